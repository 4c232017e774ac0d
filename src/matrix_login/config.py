"""Login negotiation configuration.

Loads settings from environment variables and .env file.
"""

import socket

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_device_name() -> str:
    """Device display name used when the caller leaves it blank."""
    return f"matrix-login on {socket.gethostname() or 'unknown host'}"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", frozen=True)

    disable_certificate_validation: bool = Field(
        default=False, description="Skip TLS certificate checks (testing only)"
    )
    initial_device_name: str = Field(default_factory=default_device_name)

    # HTTP timeouts in seconds
    well_known_timeout: float = 10.0
    request_timeout: float = 30.0

    # SSO callback
    sso_callback_host: str = Field(
        default="127.0.0.1", description="Interface the SSO callback listens on"
    )
    sso_timeout: float = Field(
        default=300.0, description="Seconds to wait for the SSO login token"
    )


# Global settings instance
settings = Settings()
