"""oauth2kit exception hierarchy.

All oauth2kit-specific exceptions inherit from OAuth2KitException, enabling
catch-all handling while supporting specific error types.
"""

from __future__ import annotations

from typing import Any


class OAuth2KitException(Exception):
    """Base exception for all oauth2kit errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize oauth2kit exception.

        Parameters
        ----------
        message : str
            Human-readable error message.
        **context : Any
            Additional context (path, url, flow_id, etc.).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Format exception with context."""
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class ConfigurationError(OAuth2KitException):
    """Client configuration is missing or invalid.

    Raised when a manager is built without a client ID or without
    the provider's authorization and token endpoints.
    """


class TokenStoreError(OAuth2KitException):
    """Token storage failed.

    Raised when the token file exists but cannot be read. A missing
    file is not an error: ``TokenStore.load()`` returns None instead.
    """

    def __init__(self, message: str, path: str | None = None, **context: Any) -> None:
        """Initialize token store error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        path : str, optional
            The token file involved.
        **context : Any
            Additional context.
        """
        super().__init__(message, path=path, **context)
        self.path = path


class TokenParseError(TokenStoreError):
    """Token file content is malformed.

    Raised instead of starting a new authorization flow, so a corrupt
    file is never silently replaced.
    """


class TokenPersistError(TokenStoreError):
    """Writing the token file failed."""


class BrowserLaunchError(OAuth2KitException):
    """The system browser could not be opened.

    Always recoverable: callers fall back to printing the URL.
    """

    def __init__(self, message: str, url: str | None = None, **context: Any) -> None:
        """Initialize browser launch error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        url : str, optional
            The URL that could not be opened.
        **context : Any
            Additional context.
        """
        super().__init__(message, **context)
        self.url = url


class AuthenticationError(OAuth2KitException):
    """Base exception for all authentication failures.

    Raised when an authentication operation fails, including
    the authorization flow, code exchange, or token refresh.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        flow_id: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize authentication error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        provider : str, optional
            The configured provider preset (e.g., "google", "custom").
        flow_id : str, optional
            The unique identifier of the auth flow that failed.
        **context : Any
            Additional context.
        """
        super().__init__(message, provider=provider, flow_id=flow_id, **context)
        self.provider = provider
        self.flow_id = flow_id


class CallbackReceiverError(AuthenticationError):
    """The local redirect listener failed or delivered no code.

    Raised when the callback server cannot bind, when the provider
    redirects with an ``error``, when the redirect carries no code, or
    when the ``state`` parameter does not match.
    """


class AuthFlowTimeout(AuthenticationError):
    """Authentication flow timed out.

    Raised when the blocking wait for the OAuth2 redirect
    exceeds the configured timeout.
    """

    def __init__(
        self,
        message: str,
        timeout: float,
        provider: str | None = None,
        flow_id: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize timeout error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        timeout : float
            The timeout value in seconds.
        provider : str, optional
            The configured provider preset.
        flow_id : str, optional
            The unique identifier of the auth flow.
        **context : Any
            Additional context.
        """
        super().__init__(message, provider=provider, flow_id=flow_id, timeout=timeout, **context)
        self.timeout = timeout


class TokenError(AuthenticationError):
    """Base exception for token endpoint failures."""


class TokenExchangeError(TokenError):
    """Exchanging the authorization code for a token failed."""


class TokenRefreshError(TokenError):
    """Token refresh failed.

    Raised when an expired access token cannot be renewed, either
    because the provider rejected the refresh token or because no
    refresh token is available.
    """
