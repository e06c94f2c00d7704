"""Tests for application configuration."""

import pytest

from plan_analysis.config import Settings


class TestDefaults:
    def test_model_names(self) -> None:
        s = Settings()
        assert s.primary_model
        assert s.fallback_model
        assert s.primary_model != s.fallback_model

    def test_bucket_default(self) -> None:
        assert Settings().plan_bucket == "house-plans"

    def test_api_key_is_secret(self) -> None:
        s = Settings(anthropic_api_key="sk-ant-test")
        assert "sk-ant-test" not in repr(s)
        assert s.anthropic_api_key.get_secret_value() == "sk-ant-test"


class TestEnvironment:
    def test_reads_prefixed_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PLAN_ANALYSIS_PRIMARY_MODEL", "claude-opus-4-1")
        monkeypatch.setenv("PLAN_ANALYSIS_LOCK_TIMEOUT_SECONDS", "2.5")
        s = Settings()
        assert s.primary_model == "claude-opus-4-1"
        assert s.lock_timeout_seconds == 2.5

    def test_invalid_value_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PLAN_ANALYSIS_LOCK_TIMEOUT_SECONDS", "0")
        with pytest.raises(ValueError):
            Settings()


class TestGetCorsOrigins:
    def test_default_allows_all(self) -> None:
        assert Settings().get_cors_origins() == ["*"]

    def test_strips_whitespace(self) -> None:
        s = Settings(cors_origins=" https://a.example , https://b.example ")
        assert s.get_cors_origins() == ["https://a.example", "https://b.example"]

    def test_empty_string(self) -> None:
        assert Settings(cors_origins="").get_cors_origins() == []
