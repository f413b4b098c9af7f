"""Deduplication and ranking of the balanced feed.

Two articles are duplicates when their titles match after normalization.
Among duplicates the higher ``quality_score`` wins; on a tie the first seen
article is kept. The final order is quality first, recency second.

Title normalization can merge distinct stories with near-identical
headlines; that trade-off is accepted.
"""

import logging
import re

from .models import Article

logger = logging.getLogger(__name__)

# ── Title Normalization / 标题标准化 ──────────────────────────────────────

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_title(title: str) -> str:
    """Normalize title for duplicate matching.

    标题标准化：小写、去标点、合并空格。
    """
    title = _NON_WORD.sub("", title.lower())
    return _WHITESPACE.sub(" ", title).strip()


# ── Core Dedup Logic / 核心去重逻辑 ──────────────────────────────────────


def _pick_preferred(existing: Article, new: Article) -> Article:
    """Keep the strictly higher quality article; ties keep the existing one."""
    if new.quality_score > existing.quality_score:
        return new
    return existing


def deduplicate(articles: list[Article]) -> list[Article]:
    """Remove title duplicates, keeping the best version in first-seen position."""
    title_index: dict[str, int] = {}  # normalized_title → idx / 标题 → 结果索引
    result: list[Article] = []
    replaced = 0

    for article in articles:
        norm_title = normalize_title(article.title)

        if norm_title in title_index:
            idx = title_index[norm_title]
            existing = result[idx]
            preferred = _pick_preferred(existing, article)
            if preferred is not existing:
                result[idx] = preferred
                replaced += 1
            logger.debug(
                "Title dedup: '%s' (%s) ≈ '%s' (%s) → kept %s",
                article.title[:50], article.source,
                existing.title[:50], existing.source,
                preferred.source,
            )
            continue

        title_index[norm_title] = len(result)
        result.append(article)

    if len(result) != len(articles):
        logger.info(
            "Dedup: %d → %d items (%d replaced by higher quality)",
            len(articles), len(result), replaced,
        )
    return result


def rank(articles: list[Article]) -> list[Article]:
    """Sort by quality score, then publication date, both descending."""
    return sorted(
        articles,
        key=lambda a: (a.quality_score, a.published_at),
        reverse=True,
    )


def finalize(articles: list[Article]) -> list[Article]:
    """Deduplicate then rank. Idempotent."""
    return rank(deduplicate(articles))
