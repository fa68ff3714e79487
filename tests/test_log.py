"""Tests for oauth2kit logging helpers."""

from __future__ import annotations

import logging

from oauth2kit.log import enable_debug, get_logger, redact_sensitive_data, set_level


class TestGetLogger:
    """Tests for get_logger and level helpers."""

    def test_singleton_with_one_handler(self) -> None:
        first = get_logger()
        second = get_logger()
        assert first is second
        assert first.name == "oauth2kit"
        assert len(first.handlers) == 1

    def test_set_level_accepts_names(self) -> None:
        set_level("error")
        assert get_logger().level == logging.ERROR

    def test_enable_debug(self) -> None:
        enable_debug()
        assert get_logger().level == logging.DEBUG
        assert logging.getLogger("oauth2kit.auth").isEnabledFor(logging.DEBUG)


class TestRedactSensitiveData:
    """Tests for redact_sensitive_data."""

    def test_redacts_token_fields(self) -> None:
        data = {
            "access_token": "ya29.secret",
            "refresh_token": "1//refresh",
            "token_type": "Bearer",
            "expiry": "2030-01-01T00:00:00Z",
        }
        assert redact_sensitive_data(data) == {
            "access_token": "[REDACTED]",
            "refresh_token": "[REDACTED]",
            "token_type": "Bearer",
            "expiry": "2030-01-01T00:00:00Z",
        }

    def test_none_values_stay_none(self) -> None:
        assert redact_sensitive_data({"refresh_token": None}) == {"refresh_token": None}

    def test_nested(self) -> None:
        data = {"client": {"client_secret": "s", "name": "cli"}, "items": [{"code": "c"}]}
        assert redact_sensitive_data(data) == {
            "client": {"client_secret": "[REDACTED]", "name": "cli"},
            "items": [{"code": "[REDACTED]"}],
        }

    def test_does_not_mutate_input(self) -> None:
        data = {"access_token": "at"}
        redact_sensitive_data(data)
        assert data == {"access_token": "at"}

    def test_max_depth(self) -> None:
        assert redact_sensitive_data({"a": {"b": {}}}, max_depth=2) == {"a": {"b": "[MAX_DEPTH]"}}

    def test_primitives_pass_through(self) -> None:
        assert redact_sensitive_data("plain") == "plain"
        assert redact_sensitive_data(None) is None
