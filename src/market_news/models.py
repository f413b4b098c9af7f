"""Data models for Market News."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Impact(str, Enum):
    POSITIVE = "Positive"
    NEGATIVE = "Negative"
    NEUTRAL = "Neutral"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Article(BaseModel):
    """A single normalized news item from a feed.

    Immutable once produced; pipeline stages derive new copies with
    ``model_copy(update=...)``. Serialised with camelCase keys for transport.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    title: str
    description: str = ""
    link: str = ""  # declared before guid: guid falls back to it
    guid: str = Field(default="", validate_default=True)
    published_at: datetime = Field(default_factory=_utcnow)
    source: str = ""
    quality_score: int = Field(default=5, ge=1, le=10)
    priority: Priority = Priority.MEDIUM
    source_weight: float = Field(default=0.0, ge=0.0, le=1.0)
    relevant_stocks: tuple[str, ...] = ()

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be empty")
        return value

    @field_validator("description", "link", "source", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("guid", mode="before")
    @classmethod
    def _guid_falls_back_to_link(cls, value, info):
        return value or info.data.get("link", "")

    @field_validator("published_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("relevant_stocks")
    @classmethod
    def _unique_in_order(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(value))

    def text(self) -> str:
        """Title and description joined, as used for symbol matching."""
        return f"{self.title} {self.description}"

    def to_flat_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class AnalysisResult(BaseModel):
    """LLM impact classification of one news item."""

    impact: Impact = Impact.NEUTRAL
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    reasoning: str = ""
    failed: bool = False  # analysis fell back to a default


class SentimentBreakdown(BaseModel):
    positive: int = 0
    negative: int = 0
    neutral: int = 0


class PortfolioSentiment(BaseModel):
    """Aggregate sentiment over a set of analyses."""

    overall: Impact = Impact.NEUTRAL
    score: float = Field(default=0.0, ge=-1.0, le=1.0)
    breakdown: SentimentBreakdown = Field(default_factory=SentimentBreakdown)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class AnalyzedArticle(BaseModel):
    article: Article
    analysis: AnalysisResult

    def to_flat_dict(self) -> dict:
        data = self.article.to_flat_dict()
        data["analysis"] = self.analysis.model_dump(mode="json")
        return data


# ---------------------------------------------------------------------------
# Pipeline bookkeeping
# ---------------------------------------------------------------------------

class FetchResult(BaseModel):
    """Outcome of fetching one source; failures carry ``error`` instead of raising."""

    source: str
    articles: list[Article] = Field(default_factory=list)
    via_proxy: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SourceStats(BaseModel):
    target: int
    available: int
    selected: int
    weight: float


class NewsFeed(BaseModel):
    """A balanced, de-duplicated and ranked feed."""

    articles: list[Article] = Field(default_factory=list)
    target_total: int = 0
    source_stats: dict[str, SourceStats] = Field(default_factory=dict)
    fetch_errors: dict[str, str] = Field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.articles)

    @property
    def source_distribution(self) -> dict[str, int]:
        """Article count per (displayed) source name."""
        counts: dict[str, int] = {}
        for article in self.articles:
            counts[article.source] = counts.get(article.source, 0) + 1
        return counts


class HeadlineSentiment(BaseModel):
    headline: str
    impact: Impact
    confidence: float
    failed: bool = False


class QuickSentiment(BaseModel):
    analyses: list[HeadlineSentiment] = Field(default_factory=list)
    positive: int = 0
    negative: int = 0
    neutral: int = 0
    overall: Impact = Impact.NEUTRAL

    @property
    def total(self) -> int:
        return len(self.analyses)


class PortfolioAnalysis(BaseModel):
    analyzed_news: list[AnalyzedArticle] = Field(default_factory=list)
    sentiment: PortfolioSentiment = Field(default_factory=PortfolioSentiment)


class StockAnalysis(BaseModel):
    stock_symbol: str
    relevant_news: list[AnalyzedArticle] = Field(default_factory=list)
    sentiment: PortfolioSentiment = Field(default_factory=PortfolioSentiment)
    recommendation: str = ""


class StockNewsSummary(BaseModel):
    """News coverage of one portfolio stock."""

    symbol: str
    news_count: int = 0
    latest_news: list[Article] = Field(default_factory=list)


class PortfolioSummary(BaseModel):
    portfolio: list[str] = Field(default_factory=list)
    total_news_count: int = 0
    stock_summaries: list[StockNewsSummary] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=_utcnow)


class SearchResult(BaseModel):
    query: str
    articles: list[Article] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.articles)
