"""Caller-facing operations.

Orchestrates the full pipeline per request:
  fetch (all sources, concurrently) → balance → dedup/rank → filter → analyze.
Only malformed caller input raises (``InvalidInputError``); source and
analysis failures degrade to partial or neutral results.
"""

import asyncio
import logging
from collections.abc import Mapping, Sequence

import httpx
from pydantic import ValidationError

from .analyzer import ImpactAnalyzer
from .balance import balance
from .collectors import REGISTRY, BaseCollector, build_client
from .config import AppConfig
from .dedup import finalize
from .exceptions import InvalidInputError
from .models import (
    AnalyzedArticle,
    Article,
    NewsFeed,
    PortfolioAnalysis,
    PortfolioSummary,
    QuickSentiment,
    SearchResult,
    StockAnalysis,
    StockNewsSummary,
)
from .portfolio import filter_by_portfolio, portfolio_stocks
from .sentiment import (
    aggregate_articles,
    analyze_batch,
    quick_sentiment,
    recommendation,
)
from .symbols import extract_symbols

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

def _require_text(value, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"Please provide a {what}")
    return value


def _require_list(value, what: str, allow_empty: bool = False) -> list:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise InvalidInputError(f"Please provide an array of {what}")
    if not value and not allow_empty:
        raise InvalidInputError(f"Please provide an array of {what}")
    return list(value)


def _require_symbols(value, allow_empty: bool = False) -> list[str]:
    symbols = _require_list(value, "stock symbols in your portfolio", allow_empty=allow_empty)
    for symbol in symbols:
        _require_text(symbol, "stock symbol")
    return symbols


def _to_article(item) -> Article:
    if isinstance(item, Article):
        return item
    if not isinstance(item, Mapping):
        raise InvalidInputError(f"News item must be an object, got {type(item).__name__}")
    try:
        return Article.model_validate(dict(item))
    except ValidationError as exc:
        raise InvalidInputError(f"Invalid news item: {exc.errors()[0]['msg']}") from exc


def _with_symbols(article: Article) -> Article:
    if article.relevant_stocks:
        return article
    return article.model_copy(update={"relevant_stocks": tuple(extract_symbols(article.text()))})


class NewsService:
    """News aggregation and impact analysis for one process.

    Args:
        config: Application config; read-only.
        analyzer: Impact analyzer owning the LLM client.
        transport: Optional httpx transport for feed requests (tests).
    """

    def __init__(
        self,
        config: AppConfig,
        analyzer: ImpactAnalyzer,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.analyzer = analyzer
        self._transport = transport

    # ── Feed ─────────────────────────────────────────────────────────────

    def _build_collectors(self, client: httpx.AsyncClient) -> list[BaseCollector]:
        collectors: list[BaseCollector] = []
        for source in self.config.feeds.sources:
            cls = REGISTRY.get(source.type)
            if cls is None:
                logger.warning("Unknown collector type %r for %s, skipping", source.type, source.name)
                continue
            collectors.append(cls(source, self.config.feeds, client))
        return collectors

    async def fetch_all(self) -> NewsFeed:
        """Fetch every source concurrently, then balance, dedup and rank."""
        feeds = self.config.feeds
        logger.info("Fetching news from %d RSS sources...", len(feeds.sources))

        client_kwargs = {"transport": self._transport} if self._transport else {}
        async with build_client(feeds, **client_kwargs) as client:
            collectors = self._build_collectors(client)
            outcomes = await asyncio.gather(
                *(c.collect() for c in collectors),
                return_exceptions=True,
            )

        per_source: dict[str, list[Article]] = {}
        errors: dict[str, str] = {}
        for collector, outcome in zip(collectors, outcomes):
            name = collector.source.name
            if isinstance(outcome, BaseException):
                logger.error("✗ %s: collector failed: %r", name, outcome)
                per_source[name] = []
                errors[name] = repr(outcome)
                continue
            per_source[name] = outcome.articles
            if outcome.error:
                errors[name] = outcome.error
            logger.info("✓ %s: %d items", name, len(outcome.articles))

        balanced = balance(per_source, feeds.sources, feeds.target_total)
        articles = finalize(balanced.articles)
        logger.info("Balanced feed ready: %d unique news items", len(articles))

        return NewsFeed(
            articles=articles,
            target_total=feeds.target_total,
            source_stats=balanced.stats,
            fetch_errors=errors,
        )

    async def general_news(self, limit: int | None = None) -> NewsFeed:
        """Latest balanced feed with relevant stocks extracted per article."""
        limit = self.config.news.general_limit if limit is None else limit
        feed = await self.fetch_all()
        articles = [
            a.model_copy(update={"relevant_stocks": tuple(extract_symbols(a.text()))})
            for a in feed.articles[:limit]
        ]
        return feed.model_copy(update={"articles": articles})

    async def filtered_news(self, stocks, limit: int | None = None) -> NewsFeed:
        """Feed restricted to articles mentioning the portfolio."""
        symbols = _require_symbols(stocks)
        limit = self.config.news.filtered_limit if limit is None else limit
        logger.info("Filtered news requested for stocks: %s", ", ".join(symbols))

        feed = await self.fetch_all()
        matched = filter_by_portfolio(feed.articles, symbols)[:limit]
        articles = [
            a.model_copy(update={"relevant_stocks": tuple(portfolio_stocks(a, symbols))})
            for a in matched
        ]
        return feed.model_copy(update={"articles": articles})

    async def portfolio_summary(self, stocks) -> PortfolioSummary:
        """News counts and latest headlines per portfolio stock."""
        symbols = _require_symbols(stocks)
        latest = self.config.news.summary_latest
        logger.info("Portfolio summary requested for stocks: %s", ", ".join(symbols))

        feed = await self.fetch_all()
        summaries = []
        for symbol in symbols:
            stock_news = filter_by_portfolio(feed.articles, [symbol])
            summaries.append(StockNewsSummary(
                symbol=symbol,
                news_count=len(stock_news),
                latest_news=stock_news[:latest],
            ))

        return PortfolioSummary(
            portfolio=symbols,
            total_news_count=len(filter_by_portfolio(feed.articles, symbols)),
            stock_summaries=summaries,
        )

    async def search(self, query, limit: int | None = None) -> SearchResult:
        """Case-insensitive substring search over titles and descriptions."""
        query = _require_text(query, "search query")
        limit = self.config.news.search_limit if limit is None else limit
        if not isinstance(limit, int) or limit < 0:
            raise InvalidInputError("limit must be a non-negative integer")
        logger.info("Search request for: %r", query)

        needle = query.lower()
        feed = await self.fetch_all()
        matched = [a for a in feed.articles if needle in a.text().lower()][:limit]
        articles = [
            a.model_copy(update={"relevant_stocks": tuple(extract_symbols(a.text()))})
            for a in matched
        ]
        logger.info("Found %d news items matching %r", len(articles), query)
        return SearchResult(query=query, articles=articles)

    # ── Analysis ─────────────────────────────────────────────────────────

    async def analyze_single(
        self,
        headline,
        description: str = "",
        stock_symbols: list[str] | None = None,
    ) -> AnalyzedArticle:
        """Analyze one ad-hoc headline; symbols are extracted when not given."""
        headline = _require_text(headline, "news headline to analyze")
        if description is None:
            description = ""
        elif not isinstance(description, str):
            raise InvalidInputError("News description must be a string")
        given = [] if stock_symbols is None else _require_symbols(stock_symbols, allow_empty=True)
        symbols = given or extract_symbols(f"{headline} {description}")

        article = Article(title=headline, description=description, relevant_stocks=symbols)
        analysis = await self.analyzer.analyze(headline, description, symbols)
        return AnalyzedArticle(article=article, analysis=analysis)

    async def analyze_portfolio(self, news_items, max_items: int = 10) -> PortfolioAnalysis:
        """Analyze up to ``max_items`` news items (hard capped) and aggregate."""
        items = _require_list(news_items, "news items to analyze")
        if not isinstance(max_items, int) or max_items < 1:
            raise InvalidInputError("max_items must be a positive integer")

        cap = min(max_items, self.config.analysis.max_items)
        articles = [_with_symbols(_to_article(item)) for item in items[:cap]]
        logger.info("Analyzing %d news items for portfolio impact...", len(articles))

        analyzed = await analyze_batch(
            self.analyzer,
            articles,
            concurrency=self.config.analysis.concurrency,
            delay=self.config.analysis.batch_delay,
        )
        return PortfolioAnalysis(analyzed_news=analyzed, sentiment=aggregate_articles(analyzed))

    async def quick_analysis(self, headlines) -> QuickSentiment:
        items = _require_list(headlines, "headlines to analyze")
        selected = [
            _require_text(h, "headline") for h in items[:self.config.analysis.quick_limit]
        ]
        logger.info("Quick sentiment analysis for %d headlines...", len(selected))
        return await quick_sentiment(self.analyzer, selected)

    async def analyze_stock(self, stock_symbol, news_items) -> StockAnalysis:
        """Sentiment and recommendation for one stock over the given news."""
        symbol = _require_text(stock_symbol, "stock symbol")
        items = _require_list(news_items, "news items", allow_empty=True)
        articles = [_to_article(item) for item in items]
        logger.info("Analyzing news for stock: %s", symbol)

        relevant = filter_by_portfolio(articles, [symbol])
        if not relevant:
            logger.info("No relevant news found for %s", symbol)
            empty = StockAnalysis(stock_symbol=symbol)
            return empty.model_copy(update={"recommendation": recommendation(empty.sentiment)})

        selected = [_with_symbols(a) for a in relevant[:self.config.analysis.stock_items]]
        analyzed = await analyze_batch(
            self.analyzer,
            selected,
            concurrency=self.config.analysis.stock_concurrency,
            delay=self.config.analysis.batch_delay,
        )
        sentiment = aggregate_articles(analyzed)
        return StockAnalysis(
            stock_symbol=symbol,
            relevant_news=analyzed,
            sentiment=sentiment,
            recommendation=recommendation(sentiment),
        )
