"""Weighted source balancing.

Each source gets a share of the combined feed proportional to its weight,
bounded by what it actually delivered and by its own ``max_articles`` cap.
"""

import logging
from dataclasses import dataclass, field

from .config import SourceConfig
from .models import Article, SourceStats
from .rounding import round_count

logger = logging.getLogger(__name__)


@dataclass
class BalanceResult:
    articles: list[Article] = field(default_factory=list)
    stats: dict[str, SourceStats] = field(default_factory=dict)


def newest_first(articles: list[Article]) -> list[Article]:
    return sorted(articles, key=lambda a: a.published_at, reverse=True)


def source_quota(config: SourceConfig, target_total: int, available: int) -> int:
    """Number of articles a source may contribute."""
    target = round_count(target_total * config.weight)
    return max(0, min(target, min(available, config.max_articles)))


def balance(
    per_source: dict[str, list[Article]],
    configs: list[SourceConfig],
    target_total: int,
) -> BalanceResult:
    """Build a source-grouped combined list according to source weights.

    Args:
        per_source: Articles keyed by configured source name.
        configs: Source configurations; output follows their order.
        target_total: Desired size of the combined feed.

    Returns:
        BalanceResult with the selected, quality-stamped articles and the
        per-source target/available/selected counters.
    """
    result = BalanceResult()

    for config in configs:
        articles = newest_first(per_source.get(config.name, []))
        target = round_count(target_total * config.weight)
        selected = source_quota(config, target_total, len(articles))

        result.stats[config.name] = SourceStats(
            target=target,
            available=len(articles),
            selected=selected,
            weight=config.weight,
        )
        result.articles.extend(
            a.model_copy(update={
                "quality_score": config.quality_score,
                "priority": config.priority,
                "source_weight": config.weight,
            })
            for a in articles[:selected]
        )

    logger.info("Source balancing applied:")
    for name, stats in result.stats.items():
        logger.info(
            "   %s: %d/%d articles (target %d, %d%% weight)",
            name, stats.selected, stats.available, stats.target,
            round_count(stats.weight * 100),
        )
    return result
