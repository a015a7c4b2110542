"""Tests for schoolhub.config — Typed configuration from environment."""

import pytest

import schoolhub.config as config_module
from schoolhub.config import get_settings


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Resets the cached singleton before each test."""
    monkeypatch.setattr(config_module, "_settings", None)


@pytest.fixture()
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Removes all SchoolHub-related env vars so defaults are tested cleanly."""
    env_vars = [
        "APP_ENV", "APP_PORT", "LOG_LEVEL", "CORS_ORIGINS",
        "DEFAULT_STUDENT_PASSWORD", "BCRYPT_ROUNDS", "SUPER_ADMIN_EMAIL",
        "AI_ENABLED", "INSIGHTS_TIER", "GOOGLE_API_KEY", "ANTHROPIC_API_KEY",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)


class TestDefaults:
    """Settings defaults when no env vars are set."""

    @pytest.mark.usefixtures("_clean_env")
    def test_app_defaults(self) -> None:
        s = get_settings()
        assert s.app_env == "development"
        assert s.app_port == 8000
        assert s.log_level == "info"
        assert s.cors_origins == ["http://localhost:3000", "http://localhost:5173"]

    @pytest.mark.usefixtures("_clean_env")
    def test_account_defaults(self) -> None:
        s = get_settings()
        assert s.default_student_password == "Password123"
        assert s.bcrypt_rounds == 12
        assert s.super_admin_email == "superadmin@schoolhub.local"

    @pytest.mark.usefixtures("_clean_env")
    def test_ai_defaults(self) -> None:
        s = get_settings()
        assert s.ai_enabled is True
        assert s.insights_tier == "fast"
        assert s.google_api_key == ""
        assert s.anthropic_api_key == ""


class TestTierValidation:
    def test_known_tier(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INSIGHTS_TIER", "anthropic")
        assert get_settings().insights_tier == "anthropic"

    def test_invalid_tier_raises_value_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INSIGHTS_TIER", "turbo")
        with pytest.raises(ValueError, match="Invalid value for INSIGHTS_TIER"):
            get_settings()

    def test_error_lists_valid_options(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INSIGHTS_TIER", "nope")
        with pytest.raises(ValueError, match="standard"):
            get_settings()


class TestParsing:
    def test_cors_origins_multiple(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CORS_ORIGINS", "http://a.com, http://b.com ,,http://c.com")
        assert get_settings().cors_origins == ["http://a.com", "http://b.com", "http://c.com"]

    @pytest.mark.parametrize(
        "raw, expected", [("false", False), ("0", False), ("YES", True), ("on", True)]
    )
    def test_ai_enabled(self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
        monkeypatch.setenv("AI_ENABLED", raw)
        assert get_settings().ai_enabled is expected

    def test_super_admin_email_normalized(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SUPER_ADMIN_EMAIL", " Root@School.Example.COM ")
        assert get_settings().super_admin_email == "root@school.example.com"

    def test_bcrypt_rounds_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BCRYPT_ROUNDS", "6")
        assert get_settings().bcrypt_rounds == 6


class TestSingleton:
    """get_settings() returns the same cached instance."""

    def test_same_instance(self) -> None:
        assert get_settings() is get_settings()

    def test_cannot_mutate_field(self) -> None:
        s = get_settings()
        with pytest.raises(AttributeError):
            s.app_env = "production"  # type: ignore[misc]
