"""Fake provider and browser used across the test suite."""

from __future__ import annotations

import contextlib
import json
import threading
import time

from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs, urlencode, urlparse
from urllib.request import urlopen

import httpx

from oauth2kit.exceptions import BrowserLaunchError
from tests.constants import API_URL, HTTP_TIMEOUT, REDIRECT_DELAY, TOKEN_ENDPOINT


if TYPE_CHECKING:
    from pathlib import Path


class FakeProvider:
    """Token endpoint and protected API behind an httpx.MockTransport.

    Token responses are served from ``responses`` in order; once it is
    empty a fresh bearer token is issued.
    """

    def __init__(self) -> None:
        self.token_requests: list[dict[str, str]] = []
        self.api_requests: list[httpx.Request] = []
        self.responses: list[httpx.Response] = []
        self.transport = httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        if str(request.url).startswith(TOKEN_ENDPOINT):
            form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            self.token_requests.append(form)
            if self.responses:
                return self.responses.pop(0)
            return httpx.Response(
                200,
                json={
                    "access_token": f"fresh-access-{len(self.token_requests)}",
                    "token_type": "Bearer",
                    "expires_in": 3600,
                    "refresh_token": "fresh-refresh",
                },
            )
        if str(request.url).startswith(API_URL):
            self.api_requests.append(request)
            return httpx.Response(200, json={"authorization": request.headers.get("Authorization")})
        return httpx.Response(404, json={"error": "not_found"})


def _follow(url: str) -> None:
    time.sleep(REDIRECT_DELAY)
    with contextlib.suppress(OSError):
        urlopen(url, timeout=HTTP_TIMEOUT).read()  # noqa: S310


class FakeBrowser:
    """Browser opener that follows the provider redirect back to the callback server.

    Parameters
    ----------
    params : dict, optional
        Query parameters for the redirect (default: a code and the echoed state).
    repeat : int
        How many redirects to send, one after the other.
    fail : bool
        Raise ``BrowserLaunchError`` after scheduling the redirect.
    """

    def __init__(
        self,
        params: dict[str, str] | None = None,
        repeat: int = 1,
        fail: bool = False,
    ) -> None:
        self.params = params
        self.repeat = repeat
        self.fail = fail
        self.urls: list[str] = []
        self.threads: list[threading.Thread] = []

    @property
    def call_count(self) -> int:
        return len(self.urls)

    def query(self, index: int = -1) -> dict[str, str]:
        """Query parameters of an opened authorization URL."""
        return {k: v[0] for k, v in parse_qs(urlparse(self.urls[index]).query).items()}

    def __call__(self, url: str) -> None:
        self.urls.append(url)
        query = self.query()
        redirect_uri = query["redirect_uri"]
        targets = []
        for i in range(self.repeat):
            params = dict(self.params or {"code": f"auth-code-{i + 1}"})
            params.setdefault("state", query["state"])
            targets.append(f"{redirect_uri}?{urlencode(params)}")

        def _run() -> None:
            for target in targets:
                _follow(target)

        thread = threading.Thread(target=_run, daemon=True)
        thread.start()
        self.threads.append(thread)
        if self.fail:
            raise BrowserLaunchError("No runnable browser found", url=url)

    def join(self) -> None:
        for thread in self.threads:
            thread.join(timeout=HTTP_TIMEOUT)


def read_json(path: Path) -> dict[str, Any]:
    """Read a JSON file written by a token store."""
    return json.loads(path.read_text(encoding="utf-8"))
