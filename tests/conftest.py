"""Pytest configuration and fixtures."""

# pylint: disable=redefined-outer-name

from __future__ import annotations

import logging
import os

from typing import TYPE_CHECKING, Any

import pytest

from oauth2kit.config import OAuth2Settings, clear_settings
from tests.constants import (
    AUTHORIZATION_ENDPOINT,
    CLIENT_ID,
    SCOPES,
    SHORT_TIMEOUT,
    TOKEN_ENDPOINT,
)
from tests.helpers import FakeBrowser, FakeProvider


if TYPE_CHECKING:
    from collections.abc import Callable, Generator
    from pathlib import Path


# =============================================================================
# Environment isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Generator[None, None, None]:
    """Keep user config files, env vars and cwd out of every test."""
    for key in list(os.environ):
        if key.startswith("OAUTH2KIT_"):
            monkeypatch.delenv(key)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("APPDATA", str(home))
    monkeypatch.chdir(tmp_path)
    clear_settings()
    yield
    clear_settings()


@pytest.fixture(autouse=True)
def reset_logger_level() -> Generator[None, None, None]:
    """Restore the oauth2kit logger level changed by CLI and log tests."""
    logger = logging.getLogger("oauth2kit")
    level = logger.level
    yield
    logger.setLevel(level)


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture()
def make_settings(tmp_path: Path) -> Callable[..., OAuth2Settings]:
    """Factory for settings pointing at the fake provider on an ephemeral port."""

    def _make(**overrides: Any) -> OAuth2Settings:
        values: dict[str, Any] = {
            "client_id": CLIENT_ID,
            "authorization_endpoint": AUTHORIZATION_ENDPOINT,
            "token_endpoint": TOKEN_ENDPOINT,
            "scopes": SCOPES,
            "local_bind_address": "127.0.0.1:0",
            "token_file_path": tmp_path / "token.json",
            "auth_timeout_seconds": SHORT_TIMEOUT,
            "shutdown_grace_seconds": 2.0,
        }
        values.update(overrides)
        return OAuth2Settings(**values)

    return _make


@pytest.fixture()
def settings(make_settings: Callable[..., OAuth2Settings]) -> OAuth2Settings:
    """Default test settings."""
    return make_settings()


# =============================================================================
# Fakes
# =============================================================================


@pytest.fixture()
def provider() -> FakeProvider:
    """Fake OAuth2 provider behind an httpx.MockTransport."""
    return FakeProvider()


@pytest.fixture()
def browser() -> Generator[FakeBrowser, None, None]:
    """Browser that completes the consent step with a code."""
    fake = FakeBrowser()
    yield fake
    fake.join()
