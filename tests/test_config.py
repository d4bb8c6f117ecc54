"""Tests for mcp_gcal.config — settings parsing and environment loading."""

import pytest
from pydantic import ValidationError

from mcp_gcal.config import DEFAULT_REDIRECT_URI, Settings, load_settings


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.GOOGLE_REDIRECT_URI == DEFAULT_REDIRECT_URI
        assert settings.LOG_LEVEL == "INFO"
        assert settings.HOST == "0.0.0.0"
        assert settings.PORT == 3000

    @pytest.mark.parametrize(
        "raw, expected",
        [("debug", "DEBUG"), (" error ", "ERROR"), ("warn", "WARNING"), ("", "INFO")],
    )
    def test_log_level_normalized(self, raw, expected):
        assert Settings(LOG_LEVEL=raw).LOG_LEVEL == expected

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(LOG_LEVEL="chatty")

    def test_port_parsed(self):
        assert Settings(PORT="8080").PORT == 8080

    def test_blank_port_uses_default(self):
        assert Settings(PORT="").PORT == 3000

    def test_non_numeric_port_rejected(self):
        with pytest.raises(ValidationError):
            Settings(PORT="http")


class TestLoadSettings:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_CLIENT_ID", "from-env")
        monkeypatch.setenv("GOOGLE_CALENDAR_ID", "team@group.calendar.google.com")
        monkeypatch.setenv("PORT", "4100")
        monkeypatch.setenv("LOG_LEVEL", "warning")

        settings = load_settings()

        assert settings.GOOGLE_CLIENT_ID == "from-env"
        assert settings.GOOGLE_CALENDAR_ID == "team@group.calendar.google.com"
        assert settings.PORT == 4100
        assert settings.LOG_LEVEL == "WARNING"

    def test_blank_redirect_uri_falls_back(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_REDIRECT_URI", "")
        assert load_settings().GOOGLE_REDIRECT_URI == DEFAULT_REDIRECT_URI
