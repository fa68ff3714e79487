"""Interactive OAuth2 Authorization Code + PKCE flow.

Provides AuthorizationFlow, which starts a loopback callback server,
sends the user to the provider's consent page, blocks on a
threading.Event until the redirect arrives, then exchanges the code
and persists the resulting credential.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging
import secrets
import sys
import time

from typing import TYPE_CHECKING, TextIO

import httpx

from authlib.common.security import generate_token
from authlib.integrations.base_client import OAuthError

from ..exceptions import (
    AuthFlowTimeout,
    BrowserLaunchError,
    CallbackReceiverError,
    TokenExchangeError,
    TokenPersistError,
)
from ..types import AuthFlowState, AuthorizationSession, CallbackResult, Credential
from .browser import open_browser
from .callback_server import OAuthCallbackServer
from .client import create_oauth_client


if TYPE_CHECKING:
    from collections.abc import Callable

    from authlib.integrations.httpx_client import OAuth2Client

    from ..config import OAuth2Settings
    from .token_store import TokenStore


class AuthorizationFlow:
    """Runs one interactive authorization per call to ``run()``.

    Each run gets its own callback server, state nonce and PKCE
    verifier. Nothing is retried: the first failure ends the run.

    Parameters
    ----------
    settings : OAuth2Settings
        Provider and local receiver configuration.
    token_store : TokenStore
        Where the new credential is persisted.
    browser_opener : callable
        ``browser_opener(url)``; raises ``BrowserLaunchError`` when no
        browser can be opened (default :func:`open_browser`).
    writer : TextIO, optional
        Stream for user-facing prompts (default ``sys.stdout``).
    transport : httpx.BaseTransport, optional
        Custom transport for the token endpoint.
    server_factory : callable
        Builds the callback server (default ``OAuthCallbackServer``).
    logger : logging.Logger, optional
        Logger for progress, transitions and warnings (default ``oauth2kit.auth``).
    """

    def __init__(
        self,
        settings: OAuth2Settings,
        token_store: TokenStore,
        browser_opener: Callable[[str], None] = open_browser,
        writer: TextIO | None = None,
        transport: httpx.BaseTransport | None = None,
        server_factory: Callable[..., OAuthCallbackServer] = OAuthCallbackServer,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the authorization flow."""
        self.settings = settings
        self.token_store = token_store
        self.browser_opener = browser_opener
        self._writer = writer
        self._transport = transport
        self._server_factory = server_factory
        self._logger = logger or logging.getLogger("oauth2kit.auth")
        self._state = AuthFlowState.NO_TOKEN
        self._session: AuthorizationSession | None = None

    @property
    def state(self) -> AuthFlowState:
        """Current state of the flow."""
        return self._state

    @property
    def session(self) -> AuthorizationSession | None:
        """Session of the current or last run."""
        return self._session

    def _transition(self, state: AuthFlowState) -> None:
        flow_id = self._session.flow_id if self._session else None
        level = logging.WARNING if state.is_terminal_error else logging.DEBUG
        self._logger.log(
            level, "Auth flow %s: %s -> %s", flow_id, self._state.value, state.value
        )
        self._state = state
        if self._session is not None:
            self._session.status = state

    def _write(self, message: str) -> None:
        print(message, file=self._writer or sys.stdout, flush=True)

    def run(self) -> Credential:
        """Run the flow and return the persisted credential.

        Blocks until the redirect is received or the timeout expires.

        Returns
        -------
        Credential
            The credential obtained from the code exchange, already saved.

        Raises
        ------
        CallbackReceiverError
            If the receiver cannot listen, or the redirect carries an
            error, no code, or a foreign state.
        AuthFlowTimeout
            If no redirect arrives in time.
        TokenExchangeError
            If the token endpoint rejects the code.
        TokenPersistError
            If the credential cannot be saved.
        """
        settings = self.settings
        session = AuthorizationSession(
            flow_id=secrets.token_urlsafe(8),
            state_nonce=secrets.token_urlsafe(32),
            pkce_verifier=generate_token(48),
            callback_path=settings.callback_path,
            bind_address=settings.local_bind_address,
            deadline=time.monotonic() + settings.auth_timeout_seconds,
        )
        self._session = session
        self._state = AuthFlowState.NO_TOKEN

        # Listen before the URL is shown so the redirect cannot race the server
        server = self._server_factory(
            host=settings.listen_host,
            port=settings.bind_port,
            path=settings.callback_path,
            redirect_host=settings.redirect_host,
        )
        try:
            session.redirect_uri = server.start()
        except CallbackReceiverError as exc:
            self._transition(AuthFlowState.RECEIVER_ERROR)
            raise CallbackReceiverError(
                exc.message,
                provider=settings.provider,
                flow_id=session.flow_id,
                address=settings.local_bind_address,
            ) from exc
        self._logger.info(
            "Auth flow %s: callback server at %s", session.flow_id, session.redirect_uri
        )

        with create_oauth_client(
            settings,
            redirect_uri=session.redirect_uri,
            transport=self._transport,
        ) as client:
            try:
                code = self._authorize(client, server, session)
            finally:
                server.stop(settings.shutdown_grace_seconds)

            credential = self._exchange(client, code, session)

        self._persist(credential)
        self._transition(AuthFlowState.READY)
        self._logger.info("Auth flow %s completed", session.flow_id)
        return credential

    def _authorize(
        self,
        client: OAuth2Client,
        server: OAuthCallbackServer,
        session: AuthorizationSession,
    ) -> str:
        """Send the user to the consent page and wait for the code."""
        settings = self.settings
        authorize_url, _ = client.create_authorization_url(
            settings.authorization_endpoint,
            state=session.state_nonce,
            code_verifier=session.pkce_verifier,
            access_type="offline",
        )

        self._transition(AuthFlowState.AWAITING_AUTHORIZATION)
        self._present_url(authorize_url)

        result = server.wait_for_callback(timeout=session.remaining)
        if result is None:
            self._transition(AuthFlowState.TIMED_OUT)
            msg = f"Authentication timed out after {settings.auth_timeout_seconds}s"
            raise AuthFlowTimeout(
                msg,
                timeout=settings.auth_timeout_seconds,
                provider=settings.provider,
                flow_id=session.flow_id,
            )
        return self._check_callback(result, session)

    def _check_callback(self, result: CallbackResult, session: AuthorizationSession) -> str:
        """Validate the redirect and return the authorization code."""
        if not result.ok:
            self._transition(AuthFlowState.RECEIVER_ERROR)
            if result.error and result.error != "missing_code":
                msg = f"Provider returned error: {result.error_description or result.error}"
            else:
                msg = "No authorization code in callback"
            raise CallbackReceiverError(
                msg,
                provider=self.settings.provider,
                flow_id=session.flow_id,
                error=result.error,
            )

        if not result.state or not secrets.compare_digest(result.state, session.state_nonce):
            self._transition(AuthFlowState.RECEIVER_ERROR)
            msg = "State parameter mismatch (possible CSRF attack)"
            raise CallbackReceiverError(msg, provider=self.settings.provider, flow_id=session.flow_id)

        self._write("\n✓ Authorization code received")
        return result.code or ""

    def _present_url(self, url: str) -> None:
        """Open the browser, or print the URL when that is not possible."""
        if not self.settings.open_browser:
            self._write(f"Please open the following URL in your browser:\n{url}\n")
            return

        self._write("Opening browser for authentication...")
        try:
            self.browser_opener(url)
        except BrowserLaunchError as exc:
            self._logger.warning("Could not open browser: %s", exc)
            self._write(f"Please open the following URL in your browser:\n{url}\n")

    def _exchange(
        self,
        client: OAuth2Client,
        code: str,
        session: AuthorizationSession,
    ) -> Credential:
        """Exchange the authorization code and PKCE verifier for a credential."""
        self._transition(AuthFlowState.EXCHANGING_CODE)
        self._write("Exchanging authorization code for token...")
        try:
            token = client.fetch_token(
                self.settings.token_endpoint,
                code=code,
                code_verifier=session.pkce_verifier,
            )
            return Credential.from_oauth2_token(token)
        except (OAuthError, httpx.HTTPError, KeyError, ValueError) as exc:
            self._transition(AuthFlowState.EXCHANGE_FAILED)
            msg = f"Token exchange failed: {exc}"
            raise TokenExchangeError(
                msg,
                provider=self.settings.provider,
                flow_id=session.flow_id,
            ) from exc

    def _persist(self, credential: Credential) -> None:
        try:
            self.token_store.save(credential)
        except TokenPersistError:
            self._transition(AuthFlowState.PERSIST_FAILED)
            raise
        self._transition(AuthFlowState.PERSISTED)
