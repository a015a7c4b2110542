"""Base AI provider interface.

The generative-text boundary: prompt in, text out. Every provider
(Gemini, Anthropic, Mock) implements complete(). SchoolHub never streams,
so there is no streaming contract.

Tier 1 leaf — imports only stdlib and schoolhub.models (also Tier 1).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from schoolhub.models import ModelConfig


@dataclass(frozen=True)
class UsageInfo:
    """Token usage from a completed AI call, for usage logging."""

    prompt_tokens: int
    completion_tokens: int


class AIProvider(ABC):
    """Abstract base for AI model providers."""

    @abstractmethod
    async def complete(
        self,
        *,
        system_prompt: str,
        messages: list[dict[str, str]],
        model_config: ModelConfig,
    ) -> tuple[str, UsageInfo]:
        """Returns the full response text and usage info.

        Args:
            system_prompt: The assembled system instruction.
            messages: Conversation history as {"role": ..., "content": ...} dicts.
            model_config: Provider-specific configuration (model ID, limits).

        Returns:
            Tuple of (full response text, token usage information).
        """
