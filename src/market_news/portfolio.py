"""Portfolio-based news filtering."""

import logging
from types import MappingProxyType

from .models import Article
from .symbols import extract_symbols

logger = logging.getLogger(__name__)

# Human-readable name variants per ticker, so "RELIANCE" matches "RIL ..."
STOCK_ALIASES: MappingProxyType = MappingProxyType({
    "reliance": ("reliance", "ril", "reliance industries"),
    "tcs": ("tcs", "tata consultancy", "tata consultancy services"),
    "infosys": ("infosys", "infy"),
    "hdfcbank": ("hdfc bank", "hdfc", "hdfcbank"),
    "icicibank": ("icici bank", "icici", "icicibank"),
    "bhartiairtel": ("bharti airtel", "airtel", "bharti"),
    "itc": ("itc", "indian tobacco"),
    "sbin": ("sbi", "state bank", "state bank of india"),
    "hindunilvr": ("hindustan unilever", "hul", "unilever"),
    "asianpaint": ("asian paints", "asian paint"),
})


def _variants(symbol: str) -> tuple[str, ...]:
    symbol = symbol.lower()
    return (symbol, *STOCK_ALIASES.get(symbol, ()))


def mentions(article: Article, symbol: str) -> bool:
    """True if the article text contains the symbol or one of its aliases."""
    text = article.text().lower()
    return any(variant in text for variant in _variants(symbol))


def filter_by_portfolio(
    articles: list[Article],
    symbols: list[str] | None,
) -> list[Article]:
    """Articles mentioning at least one portfolio symbol.

    An empty or missing portfolio returns ``articles`` unchanged.
    """
    if not symbols:
        return articles

    matched = [a for a in articles if any(mentions(a, s) for s in symbols)]
    logger.info(
        "Portfolio filter: %d/%d articles match %d symbols",
        len(matched), len(articles), len(symbols),
    )
    return matched


def portfolio_stocks(article: Article, symbols: list[str]) -> list[str]:
    """Known symbols in the article, restricted to the portfolio."""
    wanted = {s.lower() for s in symbols}
    return [s for s in extract_symbols(article.text()) if s in wanted]
