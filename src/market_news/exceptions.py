"""Exception types.

Only ``InvalidInputError`` is meant to reach callers; the others are raised
and recovered inside the fetcher and the analyzer.
"""


class MarketNewsError(Exception):
    """Base class for all market_news errors."""


class InvalidInputError(MarketNewsError, ValueError):
    """Malformed caller input (empty headline, non-list portfolio, ...)."""


class FeedFetchError(MarketNewsError):
    """A feed could not be retrieved."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class FeedBlockedError(FeedFetchError):
    """HTTP 403, or an HTML page served instead of the feed (soft block)."""


class FeedParseError(FeedFetchError):
    """Feed body is not parseable RSS/Atom."""


class CompletionError(MarketNewsError):
    """The text-completion service failed or returned nothing usable."""
