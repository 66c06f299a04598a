"""Rollcall-Engine configuration via pydantic-settings."""

import json
import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "secret_key": "insecure-dev-key-change-me",
    "hmac_key": "insecure-hmac-key-change-me",
    "api_key": "insecure-service-key-change-me",
}


class RollcallSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ROLLCALL_")

    environment: str = "development"
    secret_key: str = "insecure-dev-key-change-me"
    hmac_key: str = "insecure-hmac-key-change-me"

    # HMAC keyring for audit-chain signatures: JSON dict mapping version (int)
    # to key string, e.g. '{"0": "old-key", "1": "new-key"}'.
    # When set, hmac_key is ignored.  When empty, hmac_key is used as version 0.
    hmac_keys: str = ""

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/rollcall.db"

    # API
    api_title: str = "Rollcall-Engine"
    api_version: str = "0.1.0"
    api_key: str = "insecure-service-key-change-me"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]
    log_level: str = "INFO"

    # Check-in rules
    geofence_radius_m: float = 100.0
    default_check_in_buffer_mins: int = 30
    default_check_out_buffer_mins: int = 30
    require_qr_on_submit: bool = False

    # Sessions
    session_ttl: int = 28800  # 8 hours

    # Auth rate limiting (sliding window)
    auth_rate_limit_attempts: int = 5
    auth_rate_limit_window: int = 3600  # seconds

    @property
    def hmac_keyring(self) -> dict[int, str]:
        """Return HMAC keyring as {version_int: key_str}.

        If hmac_keys is set, parse it as JSON.
        Otherwise, fall back to scalar hmac_key as version 0.
        """
        if self.hmac_keys:
            try:
                raw = json.loads(self.hmac_keys)
            except (json.JSONDecodeError, TypeError) as exc:
                raise ValueError(
                    f"ROLLCALL_HMAC_KEYS must be valid JSON (e.g. '{{\"0\": \"key\"}}'), got: {self.hmac_keys!r}"
                ) from exc
            return {int(k): v for k, v in raw.items()}
        return {0: self.hmac_key}

    @property
    def current_hmac_key(self) -> str:
        """Return the HMAC key for the current (highest) version."""
        ring = self.hmac_keyring
        return ring[max(ring.keys())]

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"ROLLCALL_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default keys; set ROLLCALL_SECRET_KEY, ROLLCALL_HMAC_KEY "
                "and ROLLCALL_API_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> RollcallSettings:
    settings = RollcallSettings()
    settings.validate_for_production()
    return settings
