"""Tests for the configuration module."""

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from kiosk.lib.config import (
    DeliverySettings,
    HubSettings,
    ScanStatus,
    Settings,
    get_settings,
    parse_email_list,
)
from kiosk.lib.config.testing import override_settings, set_settings


class TestParseEmailList:
    """Tests for allow-list parsing."""

    def test_splits_and_strips(self):
        assert parse_email_list(" a@x.com, b@y.com ,") == ("a@x.com", "b@y.com")

    def test_empty(self):
        assert parse_email_list("") == ()
        assert parse_email_list(" , ") == ()


class TestSettings:
    """Tests for environment loading and nested settings."""

    @patch.dict("os.environ", {}, clear=True)
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.hub == HubSettings()
        assert settings.hub.heartbeat_interval_sec == 30
        assert settings.telemetry.reconnect_delay_sec == 5
        assert settings.scanner.simulated is False
        assert settings.scanner.timeout_sec is None
        assert settings.delivery.allowed_emails == ()
        assert settings.delivery.enabled is False

    @patch.dict(
        "os.environ",
        {
            "HUB_URL": "ws://hub.local:4000",
            "MOCK_SCAN": "1",
            "SCANS_DIR": "/tmp/kiosk-scans",
            "SCAN_TIMEOUT_SEC": "90",
            "ALLOWED_EMAILS": "a@x.com,b@y.com",
            "PUBLIC_BASE_URL": "https://kiosk.example.com/",
            "JWT_SECRET_KEY": "s3cret",
        },
        clear=True,
    )
    def test_from_env(self):
        settings = Settings(_env_file=None)

        assert settings.telemetry.hub_url == "ws://hub.local:4000"
        assert settings.scanner.simulated is True
        assert settings.scanner.scans_dir == "/tmp/kiosk-scans"
        assert settings.scanner.timeout_sec == 90
        assert settings.delivery.allowed_emails == ("a@x.com", "b@y.com")
        assert settings.delivery.public_base_url == "https://kiosk.example.com"
        assert settings.delivery.jwt_secret.get_secret_value() == "s3cret"

    def test_nested_settings_are_frozen(self):
        settings = DeliverySettings()

        with pytest.raises(ValidationError):
            settings.mail_service_url = "http://elsewhere"

    def test_secret_is_masked(self):
        settings = Settings(_env_file=None, jwt_secret_key="s3cret")

        assert "s3cret" not in repr(settings)


class TestValidation:
    """Tests for cross-field validation."""

    def test_hub_url_requires_websocket_scheme(self):
        with pytest.raises(ValidationError, match="ws:// or wss://"):
            Settings(_env_file=None, hub_url="http://hub.local")

    def test_non_positive_interval_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, hub_heartbeat_interval_sec=0)

    def test_delivery_requires_gateway(self):
        """Enabling delivery without a gateway lists every missing setting."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(_env_file=None, enable_delivery=True)

        message = str(exc_info.value)
        assert "MAIL_SERVICE_URL" in message
        assert "JWT_SECRET_KEY" in message

    def test_delivery_in_demo_mode_needs_no_gateway(self):
        settings = Settings(_env_file=None, enable_delivery=True, mock_scan=True)

        assert settings.delivery.enabled is True

    def test_invalid_mail_service_url(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, mail_service_url="not a url")

    def test_unsupported_scan_format(self):
        with pytest.raises(ValidationError, match="SCAN_FORMAT"):
            Settings(_env_file=None, scan_format="bmp")


class TestGetSettings:
    """Tests for the settings override hook."""

    def test_override_is_returned(self):
        custom = Settings(_env_file=None, hub_port=4242)
        set_settings(custom)

        assert get_settings() is custom
        assert get_settings().hub.port == 4242

    def test_override_block_restores_previous(self, test_settings):
        """Leaving the block puts the outer settings back."""
        inner = Settings(_env_file=None, hub_port=5151)

        with override_settings(inner):
            assert get_settings() is inner

        assert get_settings() is test_settings


class TestScanStatus:
    """Tests for scan status helpers."""

    @pytest.mark.parametrize(
        ("status", "active", "terminal"),
        [
            (ScanStatus.IDLE, False, False),
            (ScanStatus.CONNECTING, True, False),
            (ScanStatus.SCANNING, True, False),
            (ScanStatus.COMPLETED, False, True),
            (ScanStatus.ERROR, False, True),
        ],
    )
    def test_flags(self, status, active, terminal):
        assert status.is_active is active
        assert status.is_terminal is terminal
