"""Tests for settings loading and the server entry point guard."""

from __future__ import annotations

from zoneinfo import ZoneInfo

import pytest

from carecircle.core.config.settings import get_settings
from carecircle.core.server import main


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CARE_TIMEZONE", raising=False)
        settings = get_settings()
        assert settings.carecircle_host == "127.0.0.1"
        assert settings.care_timezone == "Asia/Tokyo"
        assert settings.encryption_key == ""

    def test_timezone_from_env(self, monkeypatch):
        monkeypatch.setenv("CARE_TIMEZONE", "Europe/Berlin")
        assert get_settings().tzinfo == ZoneInfo("Europe/Berlin")


class TestEntryPoint:
    @pytest.mark.parametrize("host,expected", [
        ("127.0.0.1", True),
        ("localhost", True),
        ("::1", True),
        ("0.0.0.0", False),
        ("care.example.org", False),
    ])
    def test_loopback_detection(self, host, expected):
        assert main._is_loopback_host(host) is expected

    def test_refuses_public_bind(self, monkeypatch):
        monkeypatch.setenv("CARECIRCLE_HOST", "0.0.0.0")
        with pytest.raises(RuntimeError, match="non-loopback"):
            main.run()
