"""Client configuration via environment variables.

Uses pydantic-settings to load config from env vars with PEDAL_ prefix.
No YAML files, no file-based config — just env vars (12-factor app style).

Learn: Every timing knob of the connection manager lives here so tests
can shrink a 30s heartbeat to milliseconds without monkeypatching.
"""

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All client configuration. Set via PEDAL_* env vars."""

    # REST collaborator
    api_url: str = "https://pedal-delivery-back.onrender.com/api/v1"
    request_timeout_seconds: float = 30.0

    # Push channel
    ws_url: str = "wss://pedal-delivery-back.onrender.com"
    ws_path: str = "/ws/orders"
    heartbeat_interval_seconds: float = 30.0
    normal_close_code: int = 1000

    # Reconnect policy
    backoff_base_ms: int = 1000
    backoff_max_ms: int = 30000
    backoff_warn_after: int = 3  # warn once attempts exceed this
    max_reconnect_attempts: Optional[int] = None  # None = retry forever

    # Views
    recent_orders_limit: int = 10
    orders_page_size: int = 20
    dashboard_refresh_debounce_seconds: float = 1.0  # re-fetch after unseen orders

    environment: str = "development"

    model_config = {"env_prefix": "PEDAL_"}

    @model_validator(mode="after")
    def validate_timing(self):
        """Reject timing combinations the reconnect loop can't honor."""
        if self.heartbeat_interval_seconds <= 0:
            raise ValueError("PEDAL_HEARTBEAT_INTERVAL_SECONDS must be positive")
        if self.backoff_max_ms < self.backoff_base_ms:
            raise ValueError(
                "PEDAL_BACKOFF_MAX_MS must be >= PEDAL_BACKOFF_BASE_MS"
            )
        return self


# Singleton, import this everywhere
settings = Settings()
