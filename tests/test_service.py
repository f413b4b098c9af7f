"""End-to-end tests for NewsService with faked feeds and LLM."""

import asyncio
import random

import httpx
import pytest
from pydantic import ValidationError

from market_news.analyzer import ImpactAnalyzer
from market_news.config import AnalysisConfig, AppConfig, FeedsConfig, SourceConfig
from market_news.exceptions import InvalidInputError
from market_news.models import Impact, Priority
from market_news.service import NewsService

ET_URL = "https://et.example.com/markets.rss"
MINT_URL = "https://mint.example.com/markets.rss"
DOWN_URL = "https://down.example.com/rss"
PROXY_URL = "https://proxy.example.com/api/rss"


def _rss(*items: tuple[str, str, str]) -> bytes:
    """Build an RSS document from (title, description, pubDate) triples."""
    body = "".join(
        f"<item><title>{t}</title><link>https://example.com/{i}</link>"
        f"<description>{d}</description><pubDate>{p}</pubDate></item>"
        for i, (t, d, p) in enumerate(items)
    )
    return f'<?xml version="1.0"?><rss version="2.0"><channel><title>x</title>{body}</channel></rss>'.encode()


ET_FEED = _rss(
    ("Sensex hits record high", "Reliance leads the rally", "Mon, 14 Oct 2024 10:00:00 +0000"),
    ("RIL stock surges on new deal", "Jio tie-up announced", "Mon, 14 Oct 2024 09:00:00 +0000"),
    ("Rupee weakens", "Crude prices weigh", "Mon, 14 Oct 2024 08:00:00 +0000"),
)
MINT_FEED = _rss(
    ("Sensex hits record high!", "Broad-based buying", "Mon, 14 Oct 2024 11:00:00 +0000"),
    ("TCS wins major contract", "Deal with European bank", "Mon, 14 Oct 2024 07:00:00 +0000"),
)
BLOCK_PAGE = b"<html><body>Access denied</body></html>"


class FakeClient:
    def __init__(self, answer: str = '{"impact": "Positive", "confidence": 0.82, "reasoning": "ok"}'):
        self.answer = answer
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.answer


def _handler(mint_blocked: bool = False, requests: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        if request.url.host == "proxy.example.com":
            return httpx.Response(200, content=MINT_FEED)
        if str(request.url) == ET_URL:
            return httpx.Response(200, content=ET_FEED)
        if str(request.url) == MINT_URL:
            if mint_blocked:
                return httpx.Response(200, content=BLOCK_PAGE)
            return httpx.Response(200, content=MINT_FEED)
        raise httpx.ConnectError("Name or service not known", request=request)

    return handler


def _config(target_total: int = 50) -> AppConfig:
    return AppConfig(
        feeds=FeedsConfig(
            sources=[
                SourceConfig(name="Economic Times", url=ET_URL, weight=0.6,
                             max_articles=30, quality_score=9, priority=Priority.HIGH),
                SourceConfig(name="LiveMint", url=MINT_URL, weight=0.4,
                             max_articles=20, quality_score=8),
                SourceConfig(name="Down", url=DOWN_URL, weight=0.2,
                             max_articles=5, quality_score=6, priority=Priority.LOW),
            ],
            target_total=target_total,
            proxy_url=PROXY_URL,
        ),
        analysis=AnalysisConfig(batch_delay=0),
    )


def _service(client: FakeClient | None = None, **handler_kwargs) -> NewsService:
    analyzer = ImpactAnalyzer(client or FakeClient(), rng=random.Random(0))
    return NewsService(
        _config(),
        analyzer,
        transport=httpx.MockTransport(_handler(**handler_kwargs)),
    )


class TestFetchAll:

    def test_balanced_deduplicated_ranked(self):
        feed = asyncio.run(_service().fetch_all())
        titles = [a.title for a in feed.articles]
        # Duplicate "Sensex hits record high" kept from the quality-9 source
        assert titles.count("Sensex hits record high") == 1
        assert "Sensex hits record high!" not in titles
        assert titles == [
            "Sensex hits record high",
            "RIL stock surges on new deal",
            "Rupee weakens",
            "TCS wins major contract",
        ]

    def test_failing_source_isolated(self):
        feed = asyncio.run(_service().fetch_all())
        assert "Down" in feed.fetch_errors
        assert feed.source_stats["Down"].selected == 0
        assert feed.source_stats["Economic Times"].selected == 3
        assert feed.source_stats["LiveMint"].selected == 2

    def test_soft_block_goes_through_proxy_once(self):
        requests: list[httpx.Request] = []
        feed = asyncio.run(_service(mint_blocked=True, requests=requests).fetch_all())
        assert sum(1 for r in requests if r.url.host == "proxy.example.com") == 1
        assert feed.source_distribution["LiveMint (via proxy)"] == 1

    def test_flat_serialization(self):
        feed = asyncio.run(_service().fetch_all())
        data = feed.articles[0].to_flat_dict()
        assert set(data) == {
            "title", "description", "link", "guid", "publishedAt", "source",
            "qualityScore", "priority", "sourceWeight", "relevantStocks",
        }
        assert data["priority"] == "high"
        assert data["qualityScore"] == 9

    def test_articles_are_immutable(self):
        article = asyncio.run(_service().general_news(limit=1)).articles[0]
        with pytest.raises(AttributeError):
            article.relevant_stocks.append("tcs")
        with pytest.raises(ValidationError):
            article.title = "Edited"


class TestNewsFeeds:

    def test_general_news_extracts_symbols(self):
        feed = asyncio.run(_service().general_news(limit=2))
        assert feed.count == 2
        assert feed.articles[0].relevant_stocks == ("reliance",)

    def test_filtered_news(self):
        feed = asyncio.run(_service().filtered_news(["RELIANCE"]))
        titles = [a.title for a in feed.articles]
        assert "RIL stock surges on new deal" in titles
        assert "TCS wins major contract" not in titles

    @pytest.mark.parametrize("stocks", [None, [], "RELIANCE", [""], [3]])
    def test_filtered_news_rejects_bad_portfolio(self, stocks):
        with pytest.raises(InvalidInputError):
            asyncio.run(_service().filtered_news(stocks))

    def test_portfolio_summary(self):
        summary = asyncio.run(_service().portfolio_summary(["RELIANCE", "TCS"]))
        assert summary.portfolio == ["RELIANCE", "TCS"]
        assert summary.total_news_count == 3

        reliance, tcs = summary.stock_summaries
        assert reliance.symbol == "RELIANCE"
        assert reliance.news_count == 2
        assert [a.title for a in reliance.latest_news] == [
            "Sensex hits record high", "RIL stock surges on new deal",
        ]
        assert tcs.news_count == 1
        assert tcs.latest_news[0].title == "TCS wins major contract"

    def test_portfolio_summary_caps_latest(self):
        service = _service()
        service.config = service.config.model_copy(
            update={"news": service.config.news.model_copy(update={"summary_latest": 1})}
        )
        summary = asyncio.run(service.portfolio_summary(["RELIANCE"]))
        assert summary.stock_summaries[0].news_count == 2
        assert len(summary.stock_summaries[0].latest_news) == 1

    @pytest.mark.parametrize("stocks", [None, [], "TCS", [None]])
    def test_portfolio_summary_rejects_bad_portfolio(self, stocks):
        with pytest.raises(InvalidInputError):
            asyncio.run(_service().portfolio_summary(stocks))

    def test_search_is_case_insensitive(self):
        result = asyncio.run(_service().search("DEAL"))
        assert [a.title for a in result.articles] == [
            "RIL stock surges on new deal", "TCS wins major contract",
        ]
        assert result.query == "DEAL"
        assert result.articles[1].relevant_stocks == ("tcs",)

    def test_search_limit(self):
        result = asyncio.run(_service().search("deal", limit=1))
        assert result.count == 1

    def test_search_no_match(self):
        assert asyncio.run(_service().search("bitcoin")).count == 0

    @pytest.mark.parametrize("query", ["", "   ", None, 7])
    def test_search_rejects_empty_query(self, query):
        with pytest.raises(InvalidInputError):
            asyncio.run(_service().search(query))


class TestAnalysis:

    def test_analyze_single_extracts_symbols(self):
        client = FakeClient()
        result = asyncio.run(_service(client).analyze_single("Infosys raises guidance"))
        assert result.article.relevant_stocks == ("infosys",)
        assert result.analysis.impact is Impact.POSITIVE
        assert "Relevant stocks mentioned: infosys" in client.prompts[0]

    @pytest.mark.parametrize("headline", ["", "   ", None, 42])
    def test_analyze_single_rejects_empty_headline(self, headline):
        with pytest.raises(InvalidInputError):
            asyncio.run(_service().analyze_single(headline))

    def test_analyze_single_uses_given_symbols(self):
        client = FakeClient()
        result = asyncio.run(_service(client).analyze_single("Order win", stock_symbols=["TCS"]))
        assert result.article.relevant_stocks == ("TCS",)
        assert "Relevant stocks mentioned: TCS" in client.prompts[0]

    @pytest.mark.parametrize("kwargs", [
        {"description": 42},
        {"description": ["text"]},
        {"stock_symbols": "TCS"},
        {"stock_symbols": [None]},
    ])
    def test_analyze_single_rejects_bad_arguments(self, kwargs):
        client = FakeClient()
        with pytest.raises(InvalidInputError):
            asyncio.run(_service(client).analyze_single("Order win", **kwargs))
        assert client.prompts == []

    def test_analyze_portfolio_caps_items(self):
        client = FakeClient()
        items = [{"title": f"Story {i}", "description": ""} for i in range(20)]
        analysis = asyncio.run(_service(client).analyze_portfolio(items, max_items=50))
        assert len(analysis.analyzed_news) == 15
        assert len(client.prompts) == 15
        assert analysis.sentiment.overall is Impact.POSITIVE
        assert analysis.sentiment.breakdown.positive == 15

    def test_analyze_portfolio_accepts_camel_case(self):
        items = [{"title": "TCS wins major contract", "publishedAt": "2024-10-14T07:00:00Z",
                  "relevantStocks": ["tcs"]}]
        analysis = asyncio.run(_service().analyze_portfolio(items))
        analyzed = analysis.analyzed_news[0]
        assert analyzed.article.relevant_stocks == ("tcs",)

        data = analyzed.to_flat_dict()
        assert data["relevantStocks"] == ["tcs"]
        assert data["analysis"]["impact"] == "Positive"
        assert data["analysis"]["failed"] is False

    @pytest.mark.parametrize("items", [None, [], "news", [{"description": "no title"}], ["x"]])
    def test_analyze_portfolio_rejects_bad_items(self, items):
        with pytest.raises(InvalidInputError):
            asyncio.run(_service().analyze_portfolio(items))

    def test_quick_analysis_limits_to_five(self):
        client = FakeClient('{"impact": "Negative", "confidence": 0.66}')
        quick = asyncio.run(_service(client).quick_analysis([f"H{i}" for i in range(8)]))
        assert quick.total == 5
        assert quick.overall is Impact.NEGATIVE

    def test_analyze_stock(self):
        items = [
            {"title": "RIL stock surges on new deal"},
            {"title": "TCS wins major contract"},
        ]
        stock = asyncio.run(_service().analyze_stock("RELIANCE", items))
        assert [n.article.title for n in stock.relevant_news] == ["RIL stock surges on new deal"]
        assert stock.sentiment.overall is Impact.POSITIVE
        assert stock.recommendation.startswith("Strong positive")

    def test_analyze_stock_without_matches(self):
        client = FakeClient()
        stock = asyncio.run(_service(client).analyze_stock("WIPRO", [{"title": "Gold rises"}]))
        assert stock.relevant_news == []
        assert stock.sentiment.overall is Impact.NEUTRAL
        assert client.prompts == []

    def test_llm_garbage_never_raises(self):
        analysis = asyncio.run(
            _service(FakeClient("¯\\_(ツ)_/¯")).analyze_portfolio([{"title": "Nifty ends flat"}])
        )
        result = analysis.analyzed_news[0].analysis
        assert result.failed
        assert 0.0 <= result.confidence <= 1.0
