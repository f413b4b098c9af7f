"""RSS / Atom parsing into ``Article`` records.

feedparser handles RSS 0.9x/1.0/2.0 and Atom; this module only maps entries
onto the uniform Article shape and applies the field fallbacks.
"""

import calendar
import logging
from datetime import datetime, timezone

import feedparser
from pydantic import ValidationError

from ..exceptions import FeedParseError
from ..models import Article

logger = logging.getLogger(__name__)

# How much of the body to inspect when sniffing for an HTML block page
_SNIFF_BYTES = 1024


def looks_like_html(body: str) -> bool:
    """True if a feed response is actually an HTML document (soft block)."""
    head = body.lstrip()[:_SNIFF_BYTES].lower()
    return head.startswith("<!doctype html") or "<html" in head


def _parse_published(entry: dict) -> datetime | None:
    """Try to parse the published date from a feed entry."""
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            try:
                # feedparser normalizes to UTC struct_time
                return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
            except (TypeError, ValueError, OverflowError):
                pass
    return None


def _entry_description(entry: dict) -> str:
    summary = (entry.get("summary") or "").strip()
    if summary:
        return summary
    content = entry.get("content")
    if content:
        return (content[0].get("value") or "").strip()
    return ""


def parse_feed(
    content: bytes | str,
    source: str,
    fetched_at: datetime | None = None,
) -> list[Article]:
    """Parse raw feed XML into Articles.

    Args:
        content: Raw response body.
        source: Source name stamped onto every article.
        fetched_at: Fallback timestamp for entries without a date.

    Raises:
        FeedParseError: The body is malformed and yields no entries.
    """
    fetched_at = fetched_at or datetime.now(timezone.utc)
    feed = feedparser.parse(content)

    if feed.bozo and not feed.entries:
        raise FeedParseError(source, f"malformed feed: {feed.get('bozo_exception')}")

    articles: list[Article] = []
    skipped = 0
    for entry in feed.entries:
        link = entry.get("link") or ""
        try:
            article = Article(
                title=entry.get("title") or "",
                description=_entry_description(entry),
                link=link,
                guid=entry.get("id") or link,
                published_at=_parse_published(entry) or fetched_at,
                source=source,
            )
        except ValidationError:
            skipped += 1
            continue
        articles.append(article)

    if skipped:
        logger.debug("%s: skipped %d entries without a title", source, skipped)
    return articles
