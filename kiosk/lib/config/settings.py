"""Settings models and configuration loading for the kiosk services."""

from functools import cached_property, lru_cache
from typing import Annotated, Any, Self

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    HttpUrl,
    SecretStr,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

# Scan artifact names are scan_NNNN.png with NNNN drawn from this range
SCAN_NUMBER_RANGE = (1000, 9999)

# Relay wire constants
HEARTBEAT_INTERVAL_SEC = 30
RECONNECT_DELAY_SEC = 5


def _parse_bool(v: Any) -> bool:
    """Parse boolean from string '1'/'0' or actual bool."""
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        return v == "1"
    return bool(v)


def _validate_http_url_or_empty(v: str) -> str:
    """Validate HTTP URL format, allowing empty string."""
    if not v:
        return v
    HttpUrl(v)
    return v


def _validate_ws_url(v: str) -> str:
    """Validate that a URL uses the ws:// or wss:// scheme."""
    if not v.startswith(("ws://", "wss://")):
        raise ValueError(f"WebSocket URL must start with ws:// or wss://, got '{v}'")
    return v


def parse_email_list(raw: str) -> tuple[str, ...]:
    """Split a comma-separated address list, dropping blanks."""
    return tuple(e.strip() for e in raw.split(",") if e.strip())


_BoolFromStr = Annotated[bool, BeforeValidator(_parse_bool)]
_HttpUrlOrEmpty = Annotated[str, AfterValidator(_validate_http_url_or_empty)]
_WsUrl = Annotated[str, AfterValidator(_validate_ws_url)]


class HubSettings(BaseModel):
    """Telemetry relay hub settings."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 3134
    heartbeat_interval_sec: float = HEARTBEAT_INTERVAL_SEC
    peer_queue_size: int = 100


class TelemetrySettings(BaseModel):
    """Reconnecting telemetry client and mock producer settings."""

    model_config = ConfigDict(frozen=True)

    hub_url: str = "ws://localhost:3134"
    reconnect_delay_sec: float = RECONNECT_DELAY_SEC
    producer_frequency_sec: float = 2.0
    producer_device_id: str = "mock-sensor"


class ScannerSettings(BaseModel):
    """Scan orchestration and scan device settings."""

    model_config = ConfigDict(frozen=True)

    simulated: bool = False
    scans_dir: str = "/scans"
    peer_url: str = "ws://localhost:3000/ws/scan"
    command: str = "scanimage"
    mode: str = "Color"
    image_format: str = "png"
    simulated_delay_sec: float = 3.0
    timeout_sec: float | None = None
    naming_max_attempts: int = 1000


class DeliverySettings(BaseModel):
    """Mail gateway and confirmation workflow settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    mail_service_url: str = ""
    jwt_secret: SecretStr = SecretStr("")
    jwt_expiry_sec: int = 3600
    public_base_url: str = "http://localhost:3000"
    allowed_emails: tuple[str, ...] = ()
    timeout_sec: float = 30.0


class ServerSettings(BaseModel):
    """Kiosk dashboard server settings."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 3000


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Relay hub
    hub_host: str = "0.0.0.0"
    hub_port: int = Field(default=3134, gt=0, le=65535)
    hub_heartbeat_interval_sec: float = Field(default=HEARTBEAT_INTERVAL_SEC, gt=0)
    hub_peer_queue_size: int = Field(default=100, ge=1)

    # Telemetry client
    hub_url: _WsUrl = "ws://localhost:3134"
    reconnect_delay_sec: float = Field(default=RECONNECT_DELAY_SEC, gt=0)
    producer_frequency_sec: float = Field(default=2.0, gt=0)
    producer_device_id: str = "mock-sensor"

    # Kiosk server
    server_host: str = "0.0.0.0"
    server_port: int = Field(default=3000, gt=0, le=65535)

    # Scanner
    mock_scan: _BoolFromStr = False
    scans_dir: str = "/scans"
    scan_peer_url: _WsUrl = "ws://localhost:3000/ws/scan"
    scan_command: str = "scanimage"
    scan_mode: str = "Color"
    scan_format: str = "png"
    scan_simulated_delay_sec: float = Field(default=3.0, ge=0)
    scan_timeout_sec: float | None = Field(default=None, gt=0)
    scan_naming_max_attempts: int = Field(default=1000, ge=1)

    # Delivery
    enable_delivery: _BoolFromStr = False
    mail_service_url: _HttpUrlOrEmpty = ""
    jwt_secret_key: SecretStr = SecretStr("")
    jwt_expiry_sec: int = Field(default=3600, ge=1)
    public_base_url: _HttpUrlOrEmpty = "http://localhost:3000"
    allowed_emails: str = ""  # Comma-separated list
    mail_timeout_sec: float = Field(default=30.0, gt=0)

    @cached_property
    def hub(self) -> HubSettings:
        """Get relay hub settings as nested object."""
        return HubSettings(
            host=self.hub_host,
            port=self.hub_port,
            heartbeat_interval_sec=self.hub_heartbeat_interval_sec,
            peer_queue_size=self.hub_peer_queue_size,
        )

    @cached_property
    def telemetry(self) -> TelemetrySettings:
        """Get telemetry client settings as nested object."""
        return TelemetrySettings(
            hub_url=self.hub_url,
            reconnect_delay_sec=self.reconnect_delay_sec,
            producer_frequency_sec=self.producer_frequency_sec,
            producer_device_id=self.producer_device_id,
        )

    @cached_property
    def scanner(self) -> ScannerSettings:
        """Get scanner settings as nested object."""
        return ScannerSettings(
            simulated=self.mock_scan,
            scans_dir=self.scans_dir,
            peer_url=self.scan_peer_url,
            command=self.scan_command,
            mode=self.scan_mode,
            image_format=self.scan_format,
            simulated_delay_sec=self.scan_simulated_delay_sec,
            timeout_sec=self.scan_timeout_sec,
            naming_max_attempts=self.scan_naming_max_attempts,
        )

    @cached_property
    def delivery(self) -> DeliverySettings:
        """Get delivery settings as nested object."""
        return DeliverySettings(
            enabled=self.enable_delivery,
            mail_service_url=self.mail_service_url,
            jwt_secret=self.jwt_secret_key,
            jwt_expiry_sec=self.jwt_expiry_sec,
            public_base_url=self.public_base_url.rstrip("/"),
            allowed_emails=parse_email_list(self.allowed_emails),
            timeout_sec=self.mail_timeout_sec,
        )

    @cached_property
    def server(self) -> ServerSettings:
        """Get kiosk server settings."""
        return ServerSettings(host=self.server_host, port=self.server_port)

    @model_validator(mode="after")
    def validate_settings(self) -> Self:
        """Validate cross-field configuration constraints."""
        errors: list[str] = []

        if self.enable_delivery and not self.mock_scan:
            missing = []
            if not self.mail_service_url:
                missing.append("MAIL_SERVICE_URL")
            if not self.jwt_secret_key.get_secret_value():
                missing.append("JWT_SECRET_KEY")
            if missing:
                errors.append(
                    f"Delivery enabled but missing: {', '.join(missing)}"
                )

        if self.scan_format not in ("png", "jpeg", "tiff", "pnm"):
            errors.append(
                f"SCAN_FORMAT must be one of png, jpeg, tiff, pnm "
                f"(got '{self.scan_format}')"
            )

        if errors:
            raise ValueError(
                "Configuration validation failed:\n  - "
                + "\n  - ".join(errors)
            )

        return self


# Settings override for testing - allows injecting custom Settings without
# modifying environment variables or clearing the lru_cache.
_settings_override: Settings | None = None


@lru_cache(maxsize=1)
def _load_settings() -> Settings:
    """Load settings from environment (cached)."""
    return Settings()


def get_settings() -> Settings:
    """Get the global settings instance.

    Returns the test override if set, otherwise loads from environment
    variables (cached after first load). For testing, use set_settings()
    from kiosk.lib.config.testing to override.
    """
    if _settings_override is not None:
        return _settings_override
    return _load_settings()
