"""oauth2kit - OAuth2 authorization code + PKCE for command-line tools.

Obtains a token through the user's browser once, stores it on disk and
hands out httpx clients that authorize and refresh automatically.

Examples
--------
>>> from oauth2kit import OAuth2Manager, OAuth2Settings
>>> settings = OAuth2Settings(provider="google", client_id="...", scopes=["email"])
>>> with OAuth2Manager(settings).acquire_client() as client:  # doctest: +SKIP
...     client.get("https://www.googleapis.com/oauth2/v1/userinfo").json()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .auth import (
    AuthorizationFlow,
    FileTokenStore,
    MemoryTokenStore,
    OAuth2Manager,
    OAuthCallbackServer,
    TokenStore,
    open_browser,
)
from .config import OAuth2Settings, clear_settings, get_settings
from .exceptions import (
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
from .log import enable_debug, get_logger, set_level
from .types import AuthFlowState, AuthorizationSession, CallbackResult, Credential


if TYPE_CHECKING:
    from authlib.integrations.httpx_client import OAuth2Client


__version__ = "0.1.0"


def acquire_client(settings: OAuth2Settings | None = None) -> OAuth2Client:
    """Return an authenticated client using ``settings`` (or the global settings).

    Shortcut for ``OAuth2Manager(settings).acquire_client()``.
    """
    return OAuth2Manager(settings).acquire_client()


__all__ = [
    "AuthFlowState",
    "AuthFlowTimeout",
    "AuthenticationError",
    "AuthorizationFlow",
    "AuthorizationSession",
    "BrowserLaunchError",
    "CallbackReceiverError",
    "CallbackResult",
    "ConfigurationError",
    "Credential",
    "FileTokenStore",
    "MemoryTokenStore",
    "OAuth2KitException",
    "OAuth2Manager",
    "OAuth2Settings",
    "OAuthCallbackServer",
    "TokenError",
    "TokenExchangeError",
    "TokenParseError",
    "TokenPersistError",
    "TokenRefreshError",
    "TokenStore",
    "TokenStoreError",
    "__version__",
    "acquire_client",
    "clear_settings",
    "enable_debug",
    "get_logger",
    "get_settings",
    "open_browser",
    "set_level",
]
