"""Tests for oauth2kit.exceptions module.

These tests verify the exception hierarchy, message formatting,
context storage, and inheritance relationships.
"""

from __future__ import annotations

import pytest

from oauth2kit.exceptions import (
    AuthenticationError,
    AuthFlowTimeout,
    BrowserLaunchError,
    CallbackReceiverError,
    ConfigurationError,
    OAuth2KitException,
    TokenError,
    TokenExchangeError,
    TokenParseError,
    TokenPersistError,
    TokenRefreshError,
    TokenStoreError,
)


class TestOAuth2KitException:
    """Test base exception class behavior."""

    def test_message_only(self) -> None:
        """Exception with just a message stores it correctly."""
        exc = OAuth2KitException("Something went wrong")
        assert exc.message == "Something went wrong"
        assert not exc.context
        assert str(exc) == "Something went wrong"

    def test_with_context(self) -> None:
        """Context appears in the string representation."""
        exc = OAuth2KitException("Failed", path="token.json", attempt=2)
        assert exc.context == {"path": "token.json", "attempt": 2}
        assert str(exc) == "Failed (path='token.json', attempt=2)"

    def test_args_preserved(self) -> None:
        """Standard exception args are preserved."""
        assert OAuth2KitException("message").args == ("message",)


class TestTokenStoreErrors:
    """Test token storage exceptions."""

    def test_path_attribute(self) -> None:
        exc = TokenStoreError("Cannot read token file", path="/tmp/token.json")
        assert exc.path == "/tmp/token.json"
        assert "/tmp/token.json" in str(exc)

    @pytest.mark.parametrize("cls", [TokenParseError, TokenPersistError])
    def test_subclasses(self, cls: type[TokenStoreError]) -> None:
        exc = cls("bad", path="p")
        assert isinstance(exc, TokenStoreError)
        assert isinstance(exc, OAuth2KitException)
        assert exc.path == "p"


class TestBrowserLaunchError:
    """Test browser launch exception."""

    def test_url_kept_out_of_message(self) -> None:
        """The URL carries the state nonce, so it is an attribute only."""
        exc = BrowserLaunchError("No runnable browser found", url="https://x/?state=abc")
        assert exc.url == "https://x/?state=abc"
        assert "state=abc" not in str(exc)


class TestAuthenticationErrors:
    """Test authentication exception hierarchy."""

    def test_provider_and_flow_id(self) -> None:
        exc = AuthenticationError("failed", provider="google", flow_id="f1")
        assert exc.provider == "google"
        assert exc.flow_id == "f1"
        assert "provider='google'" in str(exc)
        assert "flow_id='f1'" in str(exc)

    def test_timeout(self) -> None:
        exc = AuthFlowTimeout("timed out", timeout=300.0, provider="custom", flow_id="f")
        assert exc.timeout == 300.0
        assert exc.context["timeout"] == 300.0
        assert isinstance(exc, AuthenticationError)

    @pytest.mark.parametrize(
        ("cls", "parent"),
        [
            (CallbackReceiverError, AuthenticationError),
            (TokenError, AuthenticationError),
            (TokenExchangeError, TokenError),
            (TokenRefreshError, TokenError),
            (ConfigurationError, OAuth2KitException),
        ],
    )
    def test_hierarchy(self, cls: type[Exception], parent: type[Exception]) -> None:
        assert issubclass(cls, parent)

    def test_catch_all(self) -> None:
        with pytest.raises(OAuth2KitException):
            raise TokenRefreshError("refresh failed", provider="github")
