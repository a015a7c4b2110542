"""Mock AI provider for tests and keyless development.

Deterministic and free. Records every call so tests can inspect the prompt
that was sent.

Tier 2 service — imports only from base.py (Tier 1).
"""

from schoolhub.ai.providers.base import AIProvider, ModelConfig, UsageInfo

_DEFAULT_RESPONSE = "Keep up the steady work and review your weakest topics."
_DEFAULT_USAGE = UsageInfo(prompt_tokens=10, completion_tokens=5)


class MockProvider(AIProvider):
    """Returns a canned response, or raises a configured error.

    Args:
        response: Text returned by complete().
        usage: Token usage returned by complete(). Defaults to 10/5.
        error: If set, complete() raises this immediately.
    """

    def __init__(
        self,
        response: str = _DEFAULT_RESPONSE,
        usage: UsageInfo | None = None,
        error: Exception | None = None,
    ) -> None:
        self.response = response
        self.usage = usage or _DEFAULT_USAGE
        self.error = error
        self.calls: list[dict] = []

    async def complete(
        self,
        *,
        system_prompt: str,
        messages: list[dict[str, str]],
        model_config: ModelConfig,
    ) -> tuple[str, UsageInfo]:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "messages": messages,
                "model_id": model_config.model_id,
            }
        )
        if self.error is not None:
            raise self.error
        return self.response, self.usage
