"""Anthropic Claude AI provider using the anthropic SDK.

Non-streaming Messages API calls with exponential backoff retry for
transient errors.

Tier 2 service — imports from base.py (Tier 1) + anthropic SDK.
"""

import asyncio
import logging

import anthropic

from schoolhub.ai.providers.base import AIProvider, ModelConfig, UsageInfo

logger = logging.getLogger(__name__)

_DEFAULT_TEMPERATURE = 0.4
_MAX_RETRIES = 2  # 3 total attempts
_BACKOFF_BASE = 1.0  # seconds — doubles each retry


def _is_retryable(exc: Exception) -> bool:
    """True for RateLimitError (429) and InternalServerError (5xx)."""
    return isinstance(exc, (anthropic.RateLimitError, anthropic.InternalServerError))


class AnthropicProvider(AIProvider):
    """Claude provider.

    Args:
        api_key: Anthropic API key for Claude access.
    """

    def __init__(self, api_key: str) -> None:
        self._client = anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)

    async def complete(
        self,
        *,
        system_prompt: str,
        messages: list[dict[str, str]],
        model_config: ModelConfig,
    ) -> tuple[str, UsageInfo]:
        """Returns the response text and usage, retrying 429/5xx with backoff."""
        if model_config.thinking_budget > 0:
            logger.debug(
                "thinking_budget=%d ignored for Anthropic provider",
                model_config.thinking_budget,
            )

        for attempt in range(_MAX_RETRIES + 1):
            if attempt > 0:
                backoff = _BACKOFF_BASE * (2 ** (attempt - 1))
                logger.warning(
                    "Anthropic complete retry %d/%d after %.1fs backoff",
                    attempt,
                    _MAX_RETRIES,
                    backoff,
                )
                await asyncio.sleep(backoff)
            try:
                response = await self._client.messages.create(
                    model=model_config.model_id,
                    system=system_prompt,
                    messages=messages,
                    max_tokens=model_config.max_tokens,
                    temperature=_DEFAULT_TEMPERATURE,
                )
            except anthropic.APIStatusError as exc:
                if not _is_retryable(exc) or attempt == _MAX_RETRIES:
                    raise
                continue

            text = "".join(
                block.text for block in response.content if block.type == "text"
            )
            return text, UsageInfo(
                prompt_tokens=response.usage.input_tokens,
                completion_tokens=response.usage.output_tokens,
            )

        raise RuntimeError("Unreachable")  # pragma: no cover
