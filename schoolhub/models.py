"""Model ID registry — single source of truth for AI model identifiers.

The insights narrator is the only AI caller in SchoolHub. It resolves its
model through this module; no raw model ID strings live anywhere else.

Two layers:
  Layer 1: TIER_MAP resolves a capability tier → ModelConfig
  Layer 2: Model ID constants (updated when providers release new versions)
"""

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Model IDs (update when providers release new versions)
# ---------------------------------------------------------------------------

# --- Claude models ---
CLAUDE_HAIKU: str = "claude-haiku-4-5-20251001"
CLAUDE_SONNET: str = "claude-sonnet-4-6"

# --- Gemini models ---
GEMINI_FLASH_LITE: str = "gemini-flash-lite-latest"
GEMINI_FLASH: str = "gemini-3-flash-preview"


@dataclass(frozen=True)
class ModelConfig:
    """Bundles all provider-specific configuration for a model tier."""

    provider: str          # "gemini" or "anthropic"
    model_id: str
    thinking_budget: int = 0  # Gemini thinking tokens (0 = off)
    max_tokens: int = 1024


# ---------------------------------------------------------------------------
# Capability tier → ModelConfig
# ---------------------------------------------------------------------------
# Insights are short narrative summaries; the cheap tiers are plenty.

TIER_MAP: dict[str, ModelConfig] = {
    "fast": ModelConfig(provider="gemini", model_id=GEMINI_FLASH_LITE),
    "standard": ModelConfig(provider="gemini", model_id=GEMINI_FLASH),
    "anthropic": ModelConfig(provider="anthropic", model_id=CLAUDE_HAIKU),
}


def resolve_tier(tier: str) -> ModelConfig:
    """Resolves a capability tier name to its ModelConfig.

    Raises:
        KeyError: If the tier name is not found in TIER_MAP.
    """
    return TIER_MAP[tier]
