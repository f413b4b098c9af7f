"""Configuration loading from config.yaml + .env."""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

from .models import Priority


# ---------------------------------------------------------------------------
# Config sub-models (loaded from config.yaml)
# ---------------------------------------------------------------------------

class SourceConfig(BaseModel):
    """A single RSS source and its balancing policy.

    weight: proportional share of the final feed.
    max_articles: hard per-source cap.
    quality_score: sort key and duplicate tie-break (1-10).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    weight: float = Field(default=0.5, ge=0.0, le=1.0)
    max_articles: int = Field(default=20, ge=0)
    quality_score: int = Field(default=5, ge=1, le=10)
    priority: Priority = Priority.MEDIUM
    type: str = "rss"  # collector registry key


def _default_sources() -> list[SourceConfig]:
    return [
        SourceConfig(
            name="Economic Times",
            url="https://economictimes.indiatimes.com/markets/rssfeeds/1977021501.cms",
            weight=0.60,
            max_articles=30,
            quality_score=9,
            priority=Priority.HIGH,
        ),
        SourceConfig(
            name="LiveMint",
            url="https://www.livemint.com/rss/markets",
            weight=0.40,
            max_articles=20,
            quality_score=8,
            priority=Priority.MEDIUM,
        ),
    ]


class FeedsConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    sources: list[SourceConfig] = Field(default_factory=_default_sources)
    target_total: int = Field(default=50, ge=0)
    # RSS 代理：原始 feed URL 作为 ?url= 参数
    proxy_url: str = "https://rssproxy.migor.org/api/rss"
    timeout: float = 15.0
    proxy_timeout: float = 20.0
    max_redirects: int = 5
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    proxy_user_agent: str = "Mozilla/5.0 (compatible; market-news/0.1)"


class LlmConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str = "google/gemini-flash-1.5"  # OpenRouter model ID
    base_url: str = "https://openrouter.ai/api/v1"
    max_retries: int = 2  # OpenAI client retries (429 rate limits)
    timeout: float = 20.0
    temperature: float = 0.3


class AnalysisConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    concurrency: int = Field(default=3, ge=1)
    batch_delay: float = Field(default=1.0, ge=0.0)  # seconds between groups
    max_items: int = Field(default=15, ge=1)  # hard cap for portfolio analysis
    quick_limit: int = Field(default=5, ge=1)
    stock_items: int = Field(default=10, ge=1)
    stock_concurrency: int = Field(default=2, ge=1)


class NewsConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    general_limit: int = Field(default=50, ge=0)
    filtered_limit: int = Field(default=30, ge=0)
    summary_latest: int = Field(default=5, ge=0)  # latest items per stock in a summary
    search_limit: int = Field(default=20, ge=0)


class AppConfig(BaseModel):
    """Application config loaded from config.yaml."""

    model_config = ConfigDict(frozen=True)

    feeds: FeedsConfig = FeedsConfig()
    llm: LlmConfig = LlmConfig()
    analysis: AnalysisConfig = AnalysisConfig()
    news: NewsConfig = NewsConfig()


# ---------------------------------------------------------------------------
# Secrets (loaded from .env / environment variables)
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Secret settings loaded from environment / .env file."""

    openrouter_api_key: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(config_path: str = "config.yaml") -> tuple[AppConfig, Settings]:
    """Load app config from YAML and secrets from .env."""
    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        app_config = AppConfig(**data)
    else:
        app_config = AppConfig()

    settings = Settings()
    return app_config, settings
