"""
Tests for shared configuration, errors, metrics and logging helpers.
"""

import pytest

from shared.config import BaseConfig, get_config
from shared.errors import AuthenticationError, ReplayDetectedError, ServiceError, ValidationError
from shared.logging import redact_nonce
from shared.metrics import get_metrics_collector


class TestConfig:
    """Test cases for environment-driven configuration."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("ACCESS_POP_DEBUG_ERRORS", raising=False)
        config = BaseConfig()

        assert config.pop_key_alias == "clientkey"
        assert config.pop_algorithm == "RS256"
        assert config.pop_debug_errors is False
        assert config.pop_server_url == "http://localhost:8080/helloworld"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("ACCESS_POP_DEBUG_ERRORS", "true")
        monkeypatch.setenv("ACCESS_POP_CLOCK_LEEWAY_SECONDS", "30")
        monkeypatch.setenv("ACCESS_POP_PUBLIC_KEY_PATH", "/etc/pop/client-public.pem")

        config = get_config("pop_auth", 8080)

        assert config.pop_debug_errors is True
        assert config.pop_clock_leeway_seconds == 30
        assert config.pop_public_key_path == "/etc/pop/client-public.pem"
        assert config.service_name == "pop_auth"
        assert config.port == 8080

    def test_negative_leeway_rejected(self):
        with pytest.raises(ValueError):
            BaseConfig(pop_clock_leeway_seconds=-1)


class TestErrors:
    """Test cases for transport-level errors."""

    def test_authentication_error(self):
        error = AuthenticationError("Invalid PoP token")

        assert error.status_code == 401
        assert error.code == "AUTHENTICATION_ERROR"
        headers = error.response_headers()
        assert headers["WWW-Authenticate"] == "Bearer"
        assert headers["X-Error-Code"] == "AUTHENTICATION_ERROR"

    def test_replay_error_message(self):
        error = ReplayDetectedError()

        assert error.status_code == 400
        assert error.message == "Replay detected!"
        assert "WWW-Authenticate" not in error.response_headers()

    def test_status_codes(self):
        assert ValidationError().status_code == 400
        assert ServiceError().status_code == 500


class TestMetrics:
    """Test cases for the PoP metrics."""

    def test_auth_decisions(self):
        collector = get_metrics_collector("pop_auth")

        collector.record_auth_decision("ACCEPTED", nonce_registry_size=1)
        collector.record_auth_decision("REPLAY_DETECTED", nonce_registry_size=1)
        collector.record_auth_decision("SIGNATURE_INVALID")

        registry = collector.registry
        assert registry.get_sample_value("pop_auth_decisions_total", {"outcome": "ACCEPTED"}) == 1.0
        assert registry.get_sample_value("pop_auth_decisions_total", {"outcome": "SIGNATURE_INVALID"}) == 1.0
        assert registry.get_sample_value("pop_replays_detected_total") == 1.0
        assert registry.get_sample_value("pop_nonce_registry_size") == 1.0

    def test_collectors_are_isolated(self):
        first = get_metrics_collector("pop_auth")
        second = get_metrics_collector("pop_auth")

        first.record_error("REPLAY_DETECTED")

        labels = {"error_type": "REPLAY_DETECTED", "service": "pop_auth"}
        assert first.registry.get_sample_value("errors_total", labels) == 1.0
        assert second.registry.get_sample_value("errors_total", labels) is None

    def test_time_operation(self):
        collector = get_metrics_collector("pop_auth")

        with collector.time_operation("pop_verification_duration_seconds"):
            pass

        assert collector.registry.get_sample_value("pop_verification_duration_seconds_count") == 1.0


@pytest.mark.parametrize(
    "nonce, expected",
    [(None, None), ("", ""), ("abc", "abc"), ("abcdefghij", "abcdef...")],
)
def test_redact_nonce(nonce, expected):
    assert redact_nonce(nonce) == expected
