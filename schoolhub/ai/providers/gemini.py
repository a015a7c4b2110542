"""Google Gemini AI provider using the google-genai SDK.

Non-streaming calls with thinking-part filtering and exponential backoff
retry for transient errors.

Tier 2 service — imports from base.py (Tier 1) + google-genai SDK.
"""

import asyncio
import logging

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from schoolhub.ai.providers.base import AIProvider, ModelConfig, UsageInfo

logger = logging.getLogger(__name__)

_DEFAULT_TEMPERATURE = 0.4
_MAX_RETRIES = 2  # 3 total attempts
_BACKOFF_BASE = 1.0  # seconds — doubles each retry


def _is_retryable(exc: Exception) -> bool:
    """True for rate limits (429) and any server error."""
    if isinstance(exc, genai_errors.ServerError):
        return True
    if isinstance(exc, genai_errors.ClientError) and exc.code == 429:
        return True
    return False


def _build_contents(messages: list[dict[str, str]]) -> list[types.Content]:
    """Converts message dicts to Gemini Content ("assistant" → "model")."""
    role_map = {"user": "user", "assistant": "model"}
    return [
        types.Content(
            parts=[types.Part(text=msg["content"])],
            role=role_map.get(msg["role"], msg["role"]),
        )
        for msg in messages
    ]


def _build_config(
    system_prompt: str, model_config: ModelConfig
) -> types.GenerateContentConfig:
    return types.GenerateContentConfig(
        system_instruction=system_prompt,
        temperature=_DEFAULT_TEMPERATURE,
        max_output_tokens=model_config.max_tokens,
        thinking_config=types.ThinkingConfig(
            thinking_budget=model_config.thinking_budget,
        ),
    )


class GeminiProvider(AIProvider):
    """Gemini provider.

    Args:
        api_key: Google API key for Gemini access.
    """

    def __init__(self, api_key: str) -> None:
        self._client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(
                retry_options=types.HttpRetryOptions(attempts=1),
            ),
        )

    async def complete(
        self,
        *,
        system_prompt: str,
        messages: list[dict[str, str]],
        model_config: ModelConfig,
    ) -> tuple[str, UsageInfo]:
        """Returns the response text and usage, retrying 429/5xx with backoff."""
        contents = _build_contents(messages)
        config = _build_config(system_prompt, model_config)

        for attempt in range(_MAX_RETRIES + 1):
            if attempt > 0:
                backoff = _BACKOFF_BASE * (2 ** (attempt - 1))
                logger.warning(
                    "Gemini complete retry %d/%d after %.1fs backoff",
                    attempt,
                    _MAX_RETRIES,
                    backoff,
                )
                await asyncio.sleep(backoff)
            try:
                response = await self._client.aio.models.generate_content(
                    model=model_config.model_id,
                    contents=contents,
                    config=config,
                )
            except (genai_errors.ClientError, genai_errors.ServerError) as exc:
                if not _is_retryable(exc) or attempt == _MAX_RETRIES:
                    raise
                continue

            parts_text = []
            for candidate in response.candidates or []:
                if candidate.content is None or candidate.content.parts is None:
                    continue
                for part in candidate.content.parts:
                    if getattr(part, "thought", False):
                        continue
                    if part.text is not None:
                        parts_text.append(part.text)

            prompt_tokens = 0
            completion_tokens = 0
            if response.usage_metadata is not None:
                prompt_tokens = response.usage_metadata.prompt_token_count or 0
                completion_tokens = response.usage_metadata.candidates_token_count or 0

            return "".join(parts_text), UsageInfo(
                prompt_tokens=prompt_tokens, completion_tokens=completion_tokens
            )

        raise RuntimeError("Unreachable")  # pragma: no cover
