"""
NoteGenius Backend — Configuration Tests
==========================================

What:  Settings parsing and the fail-fast credential checks.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from notegenius.config import Settings
from notegenius.exceptions import ConfigurationError


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestRequiredSettings:

    def test_all_missing_values_reported_at_once(self):
        s = make_settings(gemini_api_key="", supabase_url="", supabase_anon_key="")

        with pytest.raises(ConfigurationError) as exc_info:
            s.validate_required()

        message = exc_info.value.message
        assert "GEMINI_API_KEY" in message
        assert "SUPABASE_URL" in message
        assert "SUPABASE_ANON_KEY" in message
        assert exc_info.value.context == {"missing": 3}

    def test_placeholder_counts_as_missing(self):
        s = make_settings(gemini_api_key="your_gemini_api_key_here")
        assert len(s.missing_required()) == 1
        assert s.gemini_configured is False

    def test_complete_configuration_passes(self):
        s = make_settings(
            gemini_api_key="key",
            supabase_url="https://p.supabase.co",
            supabase_anon_key="anon",
        )
        s.validate_required()
        assert s.identity_provider_configured is True

    def test_require_gemini_names_the_variable(self):
        with pytest.raises(ConfigurationError) as exc_info:
            make_settings(gemini_api_key="").require_gemini()
        assert "GEMINI_API_KEY" in exc_info.value.message

    def test_require_identity_provider_lists_missing(self):
        s = make_settings(supabase_url="https://p.supabase.co", supabase_anon_key="")

        with pytest.raises(ConfigurationError) as exc_info:
            s.require_identity_provider()
        assert exc_info.value.context == {"settings": ["SUPABASE_ANON_KEY"]}


class TestParsing:

    def test_log_level_normalized(self):
        assert make_settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(PydanticValidationError):
            make_settings(log_level="verbose")

    def test_trailing_slash_stripped_from_urls(self):
        s = make_settings(supabase_url="https://p.supabase.co/", site_url="https://notes.test/")
        assert s.supabase_url == "https://p.supabase.co"
        assert s.site_url == "https://notes.test"

    def test_cors_origins_split(self):
        s = make_settings(cors_origins="http://a.test, http://b.test")
        assert s.cors_origins_list == ["http://a.test", "http://b.test"]

    def test_pool_size_bounds(self):
        with pytest.raises(PydanticValidationError):
            make_settings(db_pool_size=1)
