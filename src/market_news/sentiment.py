"""Batch analysis and portfolio-level sentiment."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .analyzer import ImpactAnalyzer
from .exceptions import InvalidInputError
from .models import (
    AnalysisResult,
    AnalyzedArticle,
    Article,
    HeadlineSentiment,
    Impact,
    PortfolioSentiment,
    QuickSentiment,
    SentimentBreakdown,
)
from .rounding import round_half_up

logger = logging.getLogger(__name__)

# Mean signed score beyond which the portfolio leans one way
SENTIMENT_THRESHOLD = 0.2


async def analyze_batch(
    analyzer: ImpactAnalyzer,
    articles: list[Article],
    concurrency: int = 3,
    delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[AnalyzedArticle]:
    """Analyze articles in groups of ``concurrency`` to respect rate limits.

    Articles within a group are analyzed concurrently; groups run one after
    another with ``delay`` seconds between them. Input order is preserved.
    """
    if concurrency < 1:
        raise InvalidInputError(f"concurrency must be >= 1, got {concurrency}")

    logger.info("Starting batch analysis of %d news items...", len(articles))

    async def _analyze(article: Article) -> AnalyzedArticle:
        analysis = await analyzer.analyze(
            article.title,
            article.description,
            article.relevant_stocks,
        )
        return AnalyzedArticle(article=article, analysis=analysis)

    results: list[AnalyzedArticle] = []
    for start in range(0, len(articles), concurrency):
        group = articles[start:start + concurrency]
        results.extend(await asyncio.gather(*(_analyze(a) for a in group)))

        if start + concurrency < len(articles):
            await sleep(delay)

    logger.info("Batch analysis complete: %d items processed", len(results))
    return results


def aggregate(results: list[AnalysisResult]) -> PortfolioSentiment:
    """Combine analyses into an overall sentiment.

    Positive analyses add their confidence to the score, negative ones
    subtract it, neutral ones count zero. Score and confidence are means.
    """
    if not results:
        return PortfolioSentiment()

    breakdown = SentimentBreakdown()
    total_score = 0.0
    total_confidence = 0.0

    for result in results:
        if result.impact is Impact.POSITIVE:
            breakdown.positive += 1
            total_score += result.confidence
        elif result.impact is Impact.NEGATIVE:
            breakdown.negative += 1
            total_score -= result.confidence
        else:
            breakdown.neutral += 1
        total_confidence += result.confidence

    avg_score = total_score / len(results)
    avg_confidence = total_confidence / len(results)

    overall = Impact.NEUTRAL
    if avg_score > SENTIMENT_THRESHOLD:
        overall = Impact.POSITIVE
    elif avg_score < -SENTIMENT_THRESHOLD:
        overall = Impact.NEGATIVE

    return PortfolioSentiment(
        overall=overall,
        score=round_half_up(avg_score, 2),
        breakdown=breakdown,
        confidence=round_half_up(avg_confidence, 2),
    )


def aggregate_articles(analyzed: list[AnalyzedArticle]) -> PortfolioSentiment:
    return aggregate([item.analysis for item in analyzed])


async def quick_sentiment(analyzer: ImpactAnalyzer, headlines: list[str]) -> QuickSentiment:
    """Analyze bare headlines at once and take a majority vote."""
    results = await asyncio.gather(*(analyzer.analyze(h, "", []) for h in headlines))

    analyses = [
        HeadlineSentiment(
            headline=headline,
            impact=result.impact,
            confidence=result.confidence,
            failed=result.failed,
        )
        for headline, result in zip(headlines, results)
    ]
    positive = sum(1 for a in analyses if a.impact is Impact.POSITIVE)
    negative = sum(1 for a in analyses if a.impact is Impact.NEGATIVE)

    overall = Impact.NEUTRAL
    if positive > negative:
        overall = Impact.POSITIVE
    elif negative > positive:
        overall = Impact.NEGATIVE

    return QuickSentiment(
        analyses=analyses,
        positive=positive,
        negative=negative,
        neutral=len(analyses) - positive - negative,
        overall=overall,
    )


def recommendation(sentiment: PortfolioSentiment) -> str:
    """Short advice text for a sentiment summary."""
    if sentiment.confidence < 0.3:
        return "Insufficient data for reliable recommendation. Monitor closely."

    if sentiment.overall is Impact.POSITIVE:
        if sentiment.score > 0.6:
            return "Strong positive sentiment detected. Consider potential upside."
        return "Moderate positive sentiment. Cautiously optimistic outlook."

    if sentiment.overall is Impact.NEGATIVE:
        if sentiment.score < -0.6:
            return "Strong negative sentiment detected. Exercise caution."
        return "Moderate negative sentiment. Monitor for further developments."

    return "Neutral sentiment. No clear directional bias detected."
