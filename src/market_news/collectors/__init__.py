"""News collectors for various sources.

Collector registry: maps ``SourceConfig.type`` to collector classes.
Adding a collector: 1) write the collector file  2) register it here
3) reference its type in config.yaml.
"""

from .base import BaseCollector
from .feed import looks_like_html, parse_feed
from .rss_collector import RssCollector, build_client

# Collector registry: name -> class
REGISTRY: dict[str, type[BaseCollector]] = {
    "rss": RssCollector,
}

__all__ = [
    "BaseCollector",
    "REGISTRY",
    "RssCollector",
    "build_client",
    "looks_like_html",
    "parse_feed",
]
