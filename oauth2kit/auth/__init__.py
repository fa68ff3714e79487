"""OAuth2 authorization for command-line tools.

Provides credential storage, the loopback callback server, browser
launching and the authorization code + PKCE flow orchestration.
"""

from __future__ import annotations

from .browser import open_browser
from .callback_server import OAuthCallbackServer
from .client import create_oauth_client
from .flow import AuthorizationFlow
from .manager import OAuth2Manager
from .token_store import FileTokenStore, MemoryTokenStore, TokenStore


__all__ = [
    "AuthorizationFlow",
    "FileTokenStore",
    "MemoryTokenStore",
    "OAuth2Manager",
    "OAuthCallbackServer",
    "TokenStore",
    "create_oauth_client",
    "open_browser",
]
