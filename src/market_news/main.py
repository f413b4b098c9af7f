"""Process startup for Market News.

Loads configuration once, builds the single LLM client and the analyzer
that owns it, and wires them into a ``NewsService`` for the host
application (web framework, worker, notebook) to call.
"""

import logging
import random
import sys

from .analyzer import ImpactAnalyzer
from .config import load_config
from .llm import OpenRouterClient
from .service import NewsService

logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> None:
    """Configure logging to stdout."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_service(config_path: str = "config.yaml", seed: int | None = None) -> NewsService:
    """Create the process-wide service from config.yaml + .env.

    Args:
        config_path: Path to config.yaml; defaults apply when it is missing.
        seed: Seed for confidence de-rounding jitter (reproducible output).
    """
    config, settings = load_config(config_path)
    logger.info(
        "Config loaded: %d sources, target=%d, model=%s",
        len(config.feeds.sources), config.feeds.target_total, config.llm.model,
    )
    if not settings.openrouter_api_key:
        logger.warning("OPENROUTER_API_KEY is not set; analyses will fall back to Neutral")

    client = OpenRouterClient(config.llm, settings)
    analyzer = ImpactAnalyzer(client, rng=random.Random(seed))
    return NewsService(config, analyzer)
