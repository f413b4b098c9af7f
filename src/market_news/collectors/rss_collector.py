"""RSS feed collector with proxy fallback.

Fetches a feed with httpx using browser-like headers, then parses with
feedparser. Sites that block bots either answer 403 or serve an HTML page
with status 200; both cases are retried once through an RSS proxy relay.
A failing source yields an empty result, never an exception.
"""

import logging
from datetime import datetime, timezone

import httpx

from ..config import FeedsConfig, SourceConfig
from ..exceptions import FeedBlockedError, FeedFetchError
from ..models import Article, FetchResult
from .base import BaseCollector
from .feed import looks_like_html, parse_feed

logger = logging.getLogger(__name__)

PROXY_SUFFIX = " (via proxy)"


def browser_headers(user_agent: str) -> dict[str, str]:
    """Header set of a regular desktop browser, to get past bot detection."""
    return {
        "User-Agent": user_agent,
        "Accept": "application/rss+xml, application/xml;q=0.9, text/xml;q=0.8, */*;q=0.7",
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Upgrade-Insecure-Requests": "1",
    }


def proxy_headers(user_agent: str) -> dict[str, str]:
    return {
        "User-Agent": user_agent,
        "Accept": "application/json, application/xml, text/xml",
    }


def build_client(config: FeedsConfig, **kwargs) -> httpx.AsyncClient:
    """Shared AsyncClient for one fetch round (redirects on, bounded)."""
    return httpx.AsyncClient(
        timeout=config.timeout,
        follow_redirects=True,
        max_redirects=config.max_redirects,
        **kwargs,
    )


class RssCollector(BaseCollector):
    """Collector for a single RSS/Atom source."""

    name = "rss"

    def __init__(
        self,
        source: SourceConfig,
        feeds: FeedsConfig,
        client: httpx.AsyncClient,
    ) -> None:
        super().__init__(source)
        self.feeds = feeds
        self.client = client

    async def _fetch_direct(self) -> list[Article]:
        resp = await self.client.get(
            self.source.url,
            headers=browser_headers(self.feeds.user_agent),
            timeout=self.feeds.timeout,
        )
        if resp.status_code == 403:
            raise FeedBlockedError(self.source.name, "HTTP 403")
        resp.raise_for_status()

        if looks_like_html(resp.text):
            raise FeedBlockedError(self.source.name, "HTML returned instead of RSS")

        return parse_feed(resp.content, self.source.name, datetime.now(timezone.utc))

    async def _fetch_via_proxy(self) -> list[Article]:
        resp = await self.client.get(
            self.feeds.proxy_url,
            params={"url": self.source.url},
            headers=proxy_headers(self.feeds.proxy_user_agent),
            timeout=self.feeds.proxy_timeout,
        )
        resp.raise_for_status()

        if looks_like_html(resp.text):
            raise FeedFetchError(self.source.name, "proxy returned HTML")

        return parse_feed(
            resp.content,
            f"{self.source.name}{PROXY_SUFFIX}",
            datetime.now(timezone.utc),
        )

    async def _collect_via_proxy(self) -> FetchResult:
        name = self.source.name
        try:
            articles = await self._fetch_via_proxy()
        except (httpx.HTTPError, FeedFetchError) as exc:
            logger.error("Proxy also failed for %s: %s", name, exc)
            return FetchResult(source=name, error=f"proxy failed: {exc}")
        except Exception as exc:
            logger.exception("Proxy fetch failed for %s", name)
            return FetchResult(source=name, error=f"proxy failed: unexpected error: {exc}")

        logger.info("Proxy access successful for %s (%d items)", name, len(articles))
        return FetchResult(source=name, articles=articles, via_proxy=True)

    async def collect(self) -> FetchResult:
        name = self.source.name
        logger.info("Fetching RSS: %s (%s)", name, self.source.url)

        try:
            articles = await self._fetch_direct()
        except FeedBlockedError as exc:
            logger.warning("%s blocked (%s), trying proxy...", name, exc)
            return await self._collect_via_proxy()
        except httpx.TimeoutException as exc:
            logger.error("Request timeout for %s - site may be slow", name)
            return FetchResult(source=name, error=f"timeout: {exc}")
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error("HTTP error fetching %s: %d", name, status)
            return FetchResult(source=name, error=f"HTTP {status}")
        except httpx.HTTPError as exc:
            # DNS failures, refused connections, too many redirects
            logger.error("Network error for %s: %s", name, exc)
            return FetchResult(source=name, error=f"network error: {exc}")
        except FeedFetchError as exc:
            logger.error("Failed to parse RSS for %s: %s", name, exc)
            return FetchResult(source=name, error=str(exc))
        except Exception as exc:
            logger.exception("Failed to fetch RSS for %s", name)
            return FetchResult(source=name, error=f"unexpected error: {exc}")

        logger.info("Direct access successful for %s (%d items)", name, len(articles))
        return FetchResult(source=name, articles=articles)
