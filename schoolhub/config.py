"""App configuration — environment variable loading with typed defaults.

Loads settings from .env file (via python-dotenv) and os.environ.
Real environment variables take precedence over .env file values.

The INSIGHTS_TIER env var (e.g. INSIGHTS_TIER=fast) is validated against
TIER_MAP from schoolhub.models at load time, so a typo fails at startup
rather than on the first AI call.

Usage:
    from schoolhub.config import get_settings
    settings = get_settings()
    print(settings.default_student_password)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from schoolhub.models import TIER_MAP

# Only load .env from the project root — don't traverse parent directories.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
_DOTENV_PATH = PROJECT_ROOT / ".env"


@dataclass(frozen=True)
class Settings:
    """Typed configuration for the SchoolHub platform.

    All fields have sensible defaults for local development.
    """

    # App
    app_env: str
    app_port: int
    log_level: str
    cors_origins: list[str]

    # Accounts
    default_student_password: str
    bcrypt_rounds: int
    super_admin_email: str

    # AI
    ai_enabled: bool
    insights_tier: str
    google_api_key: str
    anthropic_api_key: str


def _resolve_tier(env_var: str, value: str) -> str:
    """Validates a tier name against TIER_MAP.

    Raises:
        ValueError: If the value doesn't match any key in TIER_MAP.
    """
    if value in TIER_MAP:
        return value
    valid = ", ".join(sorted(TIER_MAP.keys()))
    raise ValueError(
        f"Invalid value for {env_var}: {value!r}. "
        f"Valid options: {valid}"
    )


def _split_csv(value: str) -> list[str]:
    """Splits a comma-separated string into a list of stripped, non-empty values."""
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _load_settings() -> Settings:
    """Loads configuration from .env file and environment variables."""
    load_dotenv(_DOTENV_PATH)

    return Settings(
        # App
        app_env=os.environ.get("APP_ENV", "development"),
        app_port=int(os.environ.get("APP_PORT", "8000")),
        log_level=os.environ.get("LOG_LEVEL", "info"),
        cors_origins=_split_csv(
            os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
        ),
        # Accounts
        default_student_password=os.environ.get(
            "DEFAULT_STUDENT_PASSWORD", "Password123"
        ),
        bcrypt_rounds=int(os.environ.get("BCRYPT_ROUNDS", "12")),
        super_admin_email=os.environ.get(
            "SUPER_ADMIN_EMAIL", "superadmin@schoolhub.local"
        ).strip().lower(),
        # AI
        ai_enabled=_parse_bool(os.environ.get("AI_ENABLED", "true")),
        insights_tier=_resolve_tier(
            "INSIGHTS_TIER", os.environ.get("INSIGHTS_TIER", "fast")
        ),
        google_api_key=os.environ.get("GOOGLE_API_KEY", ""),
        anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Returns the singleton Settings instance. Loads .env on first call."""
    global _settings
    if _settings is None:
        _settings = _load_settings()
    return _settings
