"""
Tests for environment-driven settings.
"""

import pytest
from pydantic import ValidationError

from common.config import Settings


class TestSettings:
    """Tests for Settings defaults, env overrides and validation."""

    def test_defaults(self, monkeypatch):
        for name in ("CARGO_SEND_FAILURE_RATE", "CARGO_NOTIFICATION_CAPACITY", "CARGO_EMAIL_TRANSPORT"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)

        assert settings.notification_capacity == 50
        assert settings.delivery_queue_capacity == 50
        assert settings.activity_capacity == 10
        assert settings.send_failure_rate == 0.05
        assert settings.send_delay_seconds == 0.5
        assert settings.email_transport == "simulated"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("CARGO_NOTIFICATION_CAPACITY", "20")
        monkeypatch.setenv("CARGO_SEND_FAILURE_RATE", "0.2")
        settings = Settings(_env_file=None)

        assert settings.notification_capacity == 20
        assert settings.send_failure_rate == 0.2

    def test_failure_rate_must_be_a_probability(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, send_failure_rate=1.5)

    def test_capacities_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, notification_capacity=0)

    def test_sendgrid_requires_credentials(self, monkeypatch):
        monkeypatch.delenv("CARGO_SENDGRID_API_KEY", raising=False)
        monkeypatch.delenv("CARGO_SENDGRID_SENDER", raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None, email_transport="sendgrid")

    def test_sendgrid_with_credentials(self):
        settings = Settings(
            _env_file=None,
            email_transport="sendgrid",
            sendgrid_api_key="SG.key",
            sendgrid_sender="alerts@cargo-demo.com",
        )
        assert settings.email_transport == "sendgrid"
