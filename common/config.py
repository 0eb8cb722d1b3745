"""Runtime configuration loaded from environment variables (prefix ``CARGO_``)."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Tunable limits and email transport settings for one deployment."""

    model_config = SettingsConfigDict(
        env_prefix="CARGO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="Root log level for entry points")

    # Ring buffer sizes
    notification_capacity: int = Field(default=50, gt=0)
    delivery_queue_capacity: int = Field(default=50, gt=0)
    activity_capacity: int = Field(default=10, gt=0)
    event_log_size: int = Field(default=100, ge=0)

    # Email delivery
    email_transport: Literal["simulated", "sendgrid"] = Field(default="simulated")
    send_delay_seconds: float = Field(
        default=0.5, ge=0, description="Simulated network latency per email"
    )
    send_failure_rate: float = Field(
        default=0.05, ge=0, le=1, description="Probability that a simulated send fails"
    )
    send_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Upper bound on a single transport call"
    )
    sendgrid_api_key: Optional[str] = Field(default=None)
    sendgrid_sender: Optional[str] = Field(default=None, min_length=3)

    @model_validator(mode="after")
    def _require_sendgrid_credentials(self) -> "Settings":
        if self.email_transport == "sendgrid" and not (
            self.sendgrid_api_key and self.sendgrid_sender
        ):
            raise ValueError(
                "email_transport 'sendgrid' requires sendgrid_api_key and sendgrid_sender"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
