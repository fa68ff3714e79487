"""authlib OAuth2 client construction.

Builds ``authlib.integrations.httpx_client.OAuth2Client`` instances
from ``OAuth2Settings``. The same factory serves the code exchange in
the interactive flow and the refreshing client handed to callers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from authlib.integrations.httpx_client import OAuth2Client


if TYPE_CHECKING:
    import httpx

    from ..config import OAuth2Settings


def create_oauth_client(
    settings: OAuth2Settings,
    token: dict[str, Any] | None = None,
    redirect_uri: str | None = None,
    transport: httpx.BaseTransport | None = None,
) -> OAuth2Client:
    """Create an OAuth2 client bound to the configured provider.

    Parameters
    ----------
    settings : OAuth2Settings
        Client ID/secret, endpoints, scopes and timeouts.
    token : dict, optional
        Token dict (``access_token``, ``expires_at``, ...) to attach.
    redirect_uri : str, optional
        Redirect URI sent with the authorization request and code exchange.
    transport : httpx.BaseTransport, optional
        Custom httpx transport (used by tests to stub the provider).

    Returns
    -------
    OAuth2Client
        An httpx client that authorizes requests with the token and
        refreshes it at ``token_endpoint`` when it expires.
    """
    kwargs: dict[str, Any] = {}
    if transport is not None:
        kwargs["transport"] = transport
    return OAuth2Client(
        client_id=settings.client_id,
        client_secret=settings.client_secret or None,
        token_endpoint_auth_method=settings.resolved_auth_method,
        scope=" ".join(settings.scopes) or None,
        redirect_uri=redirect_uri,
        token=token,
        token_endpoint=settings.token_endpoint,
        code_challenge_method="S256",
        leeway=settings.expiry_leeway_seconds,
        timeout=settings.http_timeout_seconds,
        **kwargs,
    )
