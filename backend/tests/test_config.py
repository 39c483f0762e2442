"""
Tests for settings loaded from the environment.
"""

import pytest

from ateria.config import Settings, get_settings


class TestSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MAX_NO_MATCH_RETRIES", raising=False)
        settings = Settings(_env_file=None)

        assert settings.max_no_match_retries == 2
        assert settings.search_result_limit == 5
        assert settings.fineli_default_lang == "fi"
        assert settings.log_level == "INFO"

    def test_only_used_fields(self):
        assert "debug" not in Settings.model_fields
        assert not hasattr(Settings(_env_file=None), "is_production")

    def test_ai_enabled_needs_key(self):
        assert not Settings(_env_file=None, AI_PROVIDER="gemini").ai_enabled
        assert not Settings(_env_file=None, AI_PROVIDER="none", GOOGLE_GENERATIVE_AI_API_KEY="k").ai_enabled
        assert Settings(_env_file=None, AI_PROVIDER="gemini", GOOGLE_GENERATIVE_AI_API_KEY="k").ai_enabled

    def test_validate_required_keys(self):
        settings = Settings(_env_file=None, GOOGLE_GENERATIVE_AI_API_KEY="k", OPIK_API_KEY="")
        assert settings.validate_required_keys() == {"google_api_key": True, "opik_api_key": False}

    def test_read_from_environment(self, monkeypatch):
        monkeypatch.setenv("MAX_NO_MATCH_RETRIES", "4")
        get_settings.cache_clear()
        try:
            assert get_settings().max_no_match_retries == 4
        finally:
            get_settings.cache_clear()

    def test_rejects_zero_retries(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, MAX_NO_MATCH_RETRIES=0)
