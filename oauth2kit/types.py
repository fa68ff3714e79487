"""Type definitions for oauth2kit.

Shared types used by the token store, the callback server,
and the authorization flow.
"""

from __future__ import annotations

import time

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Credential:
    """OAuth2 credential persisted between runs.

    A credential is never edited in place: a refresh or a new
    authorization produces a new instance that replaces the old one.

    Attributes
    ----------
    access_token : str
        The access token for API requests.
    token_type : str
        Token type, typically "Bearer".
    refresh_token : str or None
        Refresh token for obtaining new access tokens.
    expiry : datetime or None
        Timezone-aware expiry instant, or None if the token never expires.
    """

    access_token: str
    token_type: str = "Bearer"  # noqa: S105
    refresh_token: str | None = None
    expiry: datetime | None = None

    def __post_init__(self) -> None:
        """Normalize empty optional fields and naive expiry values.

        An empty ``refresh_token`` becomes None and an empty ``token_type``
        becomes "Bearer", matching what a stored credential loads back as.
        """
        if not self.refresh_token:
            object.__setattr__(self, "refresh_token", None)
        if not self.token_type:
            object.__setattr__(self, "token_type", "Bearer")
        if self.expiry is not None and self.expiry.tzinfo is None:
            object.__setattr__(self, "expiry", self.expiry.replace(tzinfo=timezone.utc))

    def expired(self, leeway: float = 0.0) -> bool:
        """Check whether the access token is expired or about to expire.

        Parameters
        ----------
        leeway : float
            Seconds before the actual expiry at which the token is
            already treated as expired.

        Returns
        -------
        bool
            True if the token expires within ``leeway`` seconds.
        """
        if self.expiry is None:
            return False
        return self.expiry <= datetime.now(timezone.utc) + timedelta(seconds=leeway)

    def to_oauth2_token(self) -> dict[str, Any]:
        """Convert to the token dict understood by authlib clients."""
        token: dict[str, Any] = {
            "access_token": self.access_token,
            "token_type": self.token_type,
        }
        if self.refresh_token:
            token["refresh_token"] = self.refresh_token
        if self.expiry is not None:
            token["expires_at"] = int(self.expiry.timestamp())
        return token

    @classmethod
    def from_oauth2_token(cls, token: Mapping[str, Any]) -> Credential:
        """Build a credential from a token endpoint response.

        Parameters
        ----------
        token : Mapping[str, Any]
            An authlib ``OAuth2Token`` or raw token response. ``expires_at``
            takes precedence over ``expires_in``.

        Returns
        -------
        Credential
            The credential described by the response.
        """
        expiry: datetime | None = None
        expires_at = token.get("expires_at")
        expires_in = token.get("expires_in")
        if expires_at:
            expiry = datetime.fromtimestamp(int(expires_at), tz=timezone.utc)
        elif expires_in:
            expiry = datetime.fromtimestamp(time.time() + int(expires_in), tz=timezone.utc)
        return cls(
            access_token=token["access_token"],
            token_type=token.get("token_type") or "Bearer",
            refresh_token=token.get("refresh_token") or None,
            expiry=expiry,
        )


@dataclass(frozen=True)
class CallbackResult:
    """Parameters captured from the OAuth2 redirect.

    Attributes
    ----------
    code : str or None
        The authorization code.
    state : str or None
        The echoed state nonce.
    error : str or None
        The provider error code (or ``"missing_code"``).
    error_description : str or None
        Human-readable error detail.
    """

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the redirect carried a code and no error."""
        return bool(self.code) and not self.error


class AuthFlowState(str, Enum):
    """State of an interactive authorization flow."""

    NO_TOKEN = "no_token"
    AWAITING_AUTHORIZATION = "awaiting_authorization"
    EXCHANGING_CODE = "exchanging_code"
    PERSISTED = "persisted"
    READY = "ready"
    TIMED_OUT = "timed_out"
    RECEIVER_ERROR = "receiver_error"
    EXCHANGE_FAILED = "exchange_failed"
    PERSIST_FAILED = "persist_failed"

    @property
    def is_terminal_error(self) -> bool:
        """Whether this state ends the flow with an error."""
        return self in _ERROR_STATES


_ERROR_STATES = frozenset(
    {
        AuthFlowState.TIMED_OUT,
        AuthFlowState.RECEIVER_ERROR,
        AuthFlowState.EXCHANGE_FAILED,
        AuthFlowState.PERSIST_FAILED,
    }
)


@dataclass
class AuthorizationSession:
    """Ephemeral state of one interactive authorization attempt.

    Never persisted. Owned by a single ``AuthorizationFlow``.

    Attributes
    ----------
    flow_id : str
        Identifier used in logs and error context.
    state_nonce : str
        Anti-forgery ``state`` parameter.
    pkce_verifier : str
        PKCE code verifier (the S256 challenge is derived from it).
    callback_path : str
        Path the callback server listens on.
    bind_address : str
        ``host:port`` the callback server binds to.
    deadline : float
        ``time.monotonic()`` value after which the wait times out.
    redirect_uri : str
        Redirect URI advertised to the provider (set once bound).
    status : AuthFlowState
        Current state of the flow.
    """

    flow_id: str
    state_nonce: str
    pkce_verifier: str
    callback_path: str
    bind_address: str
    deadline: float
    redirect_uri: str = ""
    status: AuthFlowState = AuthFlowState.NO_TOKEN

    @property
    def remaining(self) -> float:
        """Seconds left before the deadline (never negative)."""
        return max(0.0, self.deadline - time.monotonic())
