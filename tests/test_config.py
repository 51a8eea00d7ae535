"""Tests for wpagentic_mcp.config module."""

import pytest

from wpagentic_mcp.config import BridgeSettings, parse_origin_list


class TestParseOriginList:
    def test_splits_and_normalizes(self):
        assert parse_origin_list(" https://A.example.com/ ,https://b.example.com,,") == [
            "https://a.example.com",
            "https://b.example.com",
        ]

    def test_empty(self):
        assert parse_origin_list(None) == []
        assert parse_origin_list("") == []


class TestBridgeSettings:
    """Tests for BridgeSettings."""

    def test_defaults(self):
        settings = BridgeSettings()
        assert settings.allowed_origins == []
        assert settings.allow_missing_origin is True
        assert settings.secure_cookies is True
        assert settings.request_timeout == 15.0

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError, match="request_timeout"):
            BridgeSettings(request_timeout=0)

    def test_from_env(self):
        settings = BridgeSettings.from_env({
            "WPAGENTIC_ALLOWED_ORIGINS": "https://app.example.com,https://admin.example.com",
            "WPAGENTIC_APP_ORIGIN": "https://app.example.com/",
            "WPAGENTIC_ALLOW_MISSING_ORIGIN": "false",
            "WPAGENTIC_SESSION_SECRET": "s" * 32,
            "WPAGENTIC_REQUEST_TIMEOUT": "7.5",
            "WPAGENTIC_STORE_DIR": "/var/lib/wpagentic",
            "WPAGENTIC_SECURE_COOKIES": "0",
        })
        assert settings.allowed_origins == ["https://app.example.com", "https://admin.example.com"]
        assert settings.app_origin == "https://app.example.com"
        assert settings.allow_missing_origin is False
        assert settings.session_secret == "s" * 32
        assert settings.request_timeout == 7.5
        assert settings.store_dir == "/var/lib/wpagentic"
        assert settings.secure_cookies is False

    def test_from_env_fallback_names(self):
        settings = BridgeSettings.from_env({
            "ALLOWED_ORIGINS": "https://app.example.com",
            "NEXT_PUBLIC_APP_URL": "https://app.example.com",
            "NEXTAUTH_SECRET": "nextauth-secret-value",
        })
        assert settings.allowed_origins == ["https://app.example.com"]
        assert settings.app_origin == "https://app.example.com"
        assert settings.session_secret == "nextauth-secret-value"

    def test_primary_name_wins(self):
        settings = BridgeSettings.from_env({
            "WPAGENTIC_SESSION_SECRET": "primary-secret-value",
            "SESSION_SECRET": "fallback-secret-value",
        })
        assert settings.session_secret == "primary-secret-value"

    def test_empty_env(self):
        settings = BridgeSettings.from_env({})
        assert settings.session_secret is None
        assert settings.store_dir is None

    def test_malformed_timeout(self):
        with pytest.raises(ValueError, match="WPAGENTIC_REQUEST_TIMEOUT"):
            BridgeSettings.from_env({"WPAGENTIC_REQUEST_TIMEOUT": "soon"})

    def test_malformed_bool(self):
        with pytest.raises(ValueError, match="WPAGENTIC_SECURE_COOKIES"):
            BridgeSettings.from_env({"WPAGENTIC_SECURE_COOKIES": "maybe"})
