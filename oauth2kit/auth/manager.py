"""OAuth2 client acquisition with token caching and refresh.

Provides OAuth2Manager, the entry point that turns configuration and
a token store into an authenticated httpx client. A stored credential
is reused (and refreshed when expired); otherwise the interactive
browser flow runs once to obtain one.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging
import threading

from typing import TYPE_CHECKING, Any, TextIO

import httpx

from authlib.integrations.base_client import OAuthError

from ..config import get_settings
from ..exceptions import TokenRefreshError, TokenStoreError
from ..types import Credential
from .browser import open_browser
from .client import create_oauth_client
from .flow import AuthorizationFlow
from .token_store import FileTokenStore


if TYPE_CHECKING:
    from collections.abc import Callable

    from authlib.integrations.httpx_client import OAuth2Client

    from ..config import OAuth2Settings
    from .token_store import TokenStore


class OAuth2Manager:
    """Acquires authenticated HTTP clients for the configured provider.

    Safe to share between threads. Concurrent cache misses in one
    process run a single browser flow; other processes sharing the
    token file are not coordinated.

    Parameters
    ----------
    settings : OAuth2Settings, optional
        Configuration (default: ``get_settings()``).
    token_store : TokenStore, optional
        Credential storage (default: ``FileTokenStore(settings.token_file_path)``).
    browser_opener : callable
        Opens the authorization URL (default :func:`open_browser`).
    writer : TextIO, optional
        Stream for user-facing prompts (default ``sys.stdout``).
    logger : logging.Logger, optional
        Logger for warnings and progress (default ``oauth2kit.auth``).
    transport : httpx.BaseTransport, optional
        Custom httpx transport for the token endpoint and API requests.

    Raises
    ------
    ConfigurationError
        If the client ID or an endpoint is not configured.
    """

    def __init__(
        self,
        settings: OAuth2Settings | None = None,
        token_store: TokenStore | None = None,
        browser_opener: Callable[[str], None] = open_browser,
        writer: TextIO | None = None,
        logger: logging.Logger | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the manager."""
        self.settings = settings if settings is not None else get_settings()
        self.settings.require_client_config()
        self.token_store = (
            token_store
            if token_store is not None
            else FileTokenStore(self.settings.token_file_path)
        )
        self.browser_opener = browser_opener
        self._writer = writer
        self._logger = logger or logging.getLogger("oauth2kit.auth")
        self._transport = transport
        self._flow_lock = threading.Lock()

    def new_flow(self) -> AuthorizationFlow:
        """Create an interactive flow bound to this manager's collaborators."""
        return AuthorizationFlow(
            self.settings,
            self.token_store,
            browser_opener=self.browser_opener,
            writer=self._writer,
            transport=self._transport,
            logger=self._logger,
        )

    def get_token(self) -> Credential:
        """Return the stored credential, running the browser flow if there is none.

        The returned credential may be expired; ``acquire_client`` refreshes it.

        Raises
        ------
        TokenStoreError
            If the token file exists but cannot be read or parsed.
        AuthenticationError
            If the interactive flow fails.
        """
        credential = self.token_store.load()
        if credential is not None:
            self._logger.debug("Using stored token")
            return credential

        with self._flow_lock:
            # Another thread may have finished a flow while we waited
            credential = self.token_store.load()
            if credential is not None:
                self._logger.debug("Token stored by a concurrent flow")
                return credential

            self._logger.info("No stored token, starting authorization flow")
            return self.new_flow().run()

    def token_client(self, credential: Credential) -> OAuth2Client:
        """Build a refreshing client for ``credential`` without validating it."""
        return create_oauth_client(
            self.settings,
            token=credential.to_oauth2_token(),
            transport=self._transport,
        )

    def acquire_client(self) -> OAuth2Client:
        """Return an HTTP client that authorizes every request.

        Loads the stored credential (or obtains one interactively),
        refreshes it if expired and persists a refreshed token. The
        client keeps refreshing on later requests; those refreshes are
        saved as well.

        Returns
        -------
        OAuth2Client
            An ``httpx.Client`` sending ``Authorization: <type> <token>``.
            Close it when done.

        Raises
        ------
        TokenStoreError
            If the token file is unreadable or malformed.
        AuthenticationError
            If the interactive flow fails.
        TokenRefreshError
            If an expired token cannot be refreshed.
        """
        credential = self._ensure_active(self.get_token())
        client = self.token_client(credential)
        client.update_token = self._on_token_refreshed
        return client

    def _ensure_active(self, credential: Credential) -> Credential:
        """Refresh ``credential`` if expired and persist the result.

        The refresh runs on a short-lived client so the client handed to
        the caller is still unopened and usable as a context manager.
        """
        with self.token_client(credential) as client:
            try:
                active = client.ensure_active_token(client.token)
            except (OAuthError, httpx.HTTPError, KeyError, ValueError) as exc:
                msg = f"Token refresh failed: {exc}"
                raise TokenRefreshError(msg, provider=self.settings.provider) from exc

            if not active:
                msg = "Access token expired and no refresh token is available"
                raise TokenRefreshError(msg, provider=self.settings.provider)

            current = Credential.from_oauth2_token(client.token)

        if current.access_token == credential.access_token:
            return credential
        self._logger.debug("Access token refreshed")
        self._save_refreshed(current)
        return current

    def _save_refreshed(self, credential: Credential) -> None:
        """Persist a refreshed credential; failures only warn."""
        try:
            self.token_store.save(credential)
        except TokenStoreError as exc:
            self._logger.warning("Failed to save refreshed token: %s", exc)

    def _on_token_refreshed(
        self,
        token: dict[str, Any],
        refresh_token: str | None = None,
        access_token: str | None = None,
    ) -> None:
        """authlib ``update_token`` hook for refreshes during the client's lifetime."""
        self._save_refreshed(Credential.from_oauth2_token(token))
