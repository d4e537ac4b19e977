# tests/test_settings.py
"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from threads_app.config.settings import Settings


def _settings(**overrides) -> Settings:
    values = {"supabase_url": "https://x.supabase.co", "supabase_key": "anon"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestSettings:
    def test_defaults(self):
        settings = _settings()
        assert settings.profile_lookup_attempts == 3
        assert settings.profile_lookup_delay_seconds == 0.5
        assert settings.auth_context_timeout_seconds == 8.0
        assert settings.is_production is False

    @pytest.mark.parametrize("field", ["supabase_url", "supabase_key"])
    def test_supabase_credentials_required(self, field):
        with pytest.raises(ValidationError):
            _settings(**{field: "  "})

    def test_attempts_must_be_positive(self):
        with pytest.raises(ValidationError):
            _settings(profile_lookup_attempts=0)

    def test_cors_origins_list(self):
        settings = _settings(cors_origins="https://a.com, https://b.com,")
        assert settings.get_cors_origins_list() == ["https://a.com", "https://b.com"]

    def test_production(self):
        assert _settings(environment="production").is_production is True
