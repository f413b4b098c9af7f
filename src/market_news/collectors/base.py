"""Base collector abstract class.

All collectors inherit from BaseCollector for a unified interface; the
source configuration is injected through ``__init__``.
"""

import logging
from abc import ABC, abstractmethod

from ..config import SourceConfig
from ..models import FetchResult

logger = logging.getLogger(__name__)


class BaseCollector(ABC):
    """Abstract base class for all news collectors.

    Interface: ``await collect() -> FetchResult``. Implementations must not
    raise for source-level failures; they report them on the result.
    """

    name: str = ""  # registry key, e.g. "rss"

    def __init__(self, source: SourceConfig) -> None:
        self.source = source

    @abstractmethod
    async def collect(self) -> FetchResult:
        """Collect articles from the configured source."""
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} source={self.source.name!r}>"
