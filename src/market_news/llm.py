"""Text-completion client.

Calls an OpenAI-compatible endpoint (OpenRouter by default). The analyzer
only depends on the ``CompletionClient`` protocol, so tests substitute an
in-memory fake.
"""

import logging
from typing import Protocol

from openai import AsyncOpenAI

from .config import LlmConfig, Settings
from .exceptions import CompletionError

logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
    async def complete(self, prompt: str) -> str:
        """Return the raw text answer for ``prompt``."""
        ...


class OpenRouterClient:
    """Completion client over OpenRouter (OpenAI-compatible API).

    The underlying ``AsyncOpenAI`` handle is created on first use and then
    reused for every request; ``max_retries`` covers 429 rate limiting.
    """

    def __init__(self, llm_config: LlmConfig, settings: Settings) -> None:
        self.llm_config = llm_config
        self.settings = settings
        self._client: AsyncOpenAI | None = None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            api_key = self.settings.openrouter_api_key
            if not api_key:
                raise CompletionError(
                    "OPENROUTER_API_KEY is required. Get one at https://openrouter.ai/keys"
                )
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=self.llm_config.base_url,
                max_retries=self.llm_config.max_retries,
                timeout=self.llm_config.timeout,
            )
            logger.info("LLM client initialized (model=%s)", self.llm_config.model)
        return self._client

    async def complete(self, prompt: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.llm_config.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.llm_config.temperature,
        )

        # OpenRouter 可能在响应体中返回错误而非 HTTP 状态码
        error = getattr(response, "error", None)
        if error:
            err_msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            err_code = error.get("code", "unknown") if isinstance(error, dict) else "unknown"
            raise CompletionError(f"OpenRouter returned error (code={err_code}): {err_msg}")

        if not response.choices:
            logger.error("LLM returned empty choices. Raw response: %s", response.model_dump_json()[:500])
            raise CompletionError("LLM returned no choices")

        content = response.choices[0].message.content or ""

        # Reasoning models may only fill reasoning_content
        if not content:
            reasoning = getattr(response.choices[0].message, "reasoning_content", None)
            if reasoning:
                logger.warning("LLM returned reasoning_content but no content, using reasoning")
                content = reasoning

        if not content:
            raise CompletionError("LLM returned empty content")

        return content
