"""Unit tests for the OAuth2 loopback callback server."""

# pylint: disable=consider-using-with,protected-access

from __future__ import annotations

import logging
import socket
import threading
import time

from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import urlopen

import pytest

from oauth2kit.auth.callback_server import OAuthCallbackServer
from oauth2kit.exceptions import CallbackReceiverError
from tests.constants import HTTP_TIMEOUT, SHORT_TIMEOUT


def _get(url: str) -> tuple[int, dict[str, str], str]:
    with urlopen(url, timeout=HTTP_TIMEOUT) as resp:  # noqa: S310
        return resp.status, dict(resp.headers), resp.read().decode("utf-8")


@pytest.fixture()
def server():
    """Started callback server on an ephemeral port."""
    srv = OAuthCallbackServer(host="127.0.0.1", port=0, redirect_host="127.0.0.1")
    srv.start()
    yield srv
    srv.stop()


class TestLifecycle:
    """Tests for start/stop."""

    def test_start_returns_redirect_uri(self) -> None:
        srv = OAuthCallbackServer(port=0, path="/oauth/callback")
        redirect_uri = srv.start()
        try:
            assert srv.port > 0
            assert srv.running
            assert redirect_uri == f"http://localhost:{srv.port}/oauth/callback"
        finally:
            assert srv.stop() is True
        assert not srv.running

    def test_stop_is_idempotent(self) -> None:
        srv = OAuthCallbackServer()
        srv.start()
        assert srv.stop() is True
        assert srv.stop() is True

    def test_stop_before_start(self) -> None:
        assert OAuthCallbackServer().stop() is True

    def test_socket_closed_after_stop(self) -> None:
        srv = OAuthCallbackServer()
        srv.start()
        port = srv.port
        srv.stop()
        with pytest.raises(URLError):
            urlopen(f"http://127.0.0.1:{port}/", timeout=HTTP_TIMEOUT)  # noqa: S310

    def test_port_reusable_after_stop(self) -> None:
        srv = OAuthCallbackServer()
        srv.start()
        port = srv.port
        srv.stop()
        again = OAuthCallbackServer(port=port)
        again.start()
        try:
            assert again.port == port
        finally:
            again.stop()

    def test_bind_failure(self) -> None:
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        try:
            port = blocker.getsockname()[1]
            srv = OAuthCallbackServer(port=port)
            with pytest.raises(CallbackReceiverError, match="Cannot listen"):
                srv.start()
            assert not srv.running
        finally:
            blocker.close()

    def test_stop_reports_slow_shutdown(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        srv = OAuthCallbackServer()
        srv.start()
        httpd = srv._server
        assert httpd is not None
        real_shutdown = httpd.shutdown

        def slow_shutdown() -> None:
            time.sleep(0.5)
            real_shutdown()

        monkeypatch.setattr(httpd, "shutdown", slow_shutdown)
        with caplog.at_level(logging.ERROR, logger="oauth2kit.auth"):
            assert srv.stop(grace_period=0.05) is False
        assert "did not stop within" in caplog.text
        assert not srv.running


class TestCallback:
    """Tests for redirect handling."""

    def test_wait_timeout(self, server: OAuthCallbackServer) -> None:
        assert server.wait_for_callback(timeout=0.2) is None

    def test_code_and_state(self, server: OAuthCallbackServer) -> None:
        query = urlencode({"code": "test_code_123", "state": "test_state"})
        status, headers, body = _get(f"{server.redirect_uri}?{query}")
        assert status == 200
        assert "Authorization code received" in body
        assert headers["Cache-Control"] == "no-store"
        assert headers["X-Content-Type-Options"] == "nosniff"
        assert "default-src 'none'" in headers["Content-Security-Policy"]

        result = server.wait_for_callback(timeout=SHORT_TIMEOUT)
        assert result is not None
        assert result.ok
        assert result.code == "test_code_123"
        assert result.state == "test_state"
        assert result.error is None

    def test_provider_error(self, server: OAuthCallbackServer) -> None:
        query = urlencode({"error": "access_denied", "error_description": "User cancelled"})
        status, _, body = _get(f"{server.redirect_uri}?{query}")
        assert status == 200
        assert "Authorization failed" in body
        assert "User cancelled" in body

        result = server.wait_for_callback(timeout=SHORT_TIMEOUT)
        assert result is not None
        assert result.error == "access_denied"
        assert result.error_description == "User cancelled"
        assert result.code is None

    def test_error_page_escapes_description(self, server: OAuthCallbackServer) -> None:
        query = urlencode({"error": "x", "error_description": "<script>alert(1)</script>"})
        _, _, body = _get(f"{server.redirect_uri}?{query}")
        assert "<script>" not in body
        assert "&lt;script&gt;" in body

    def test_missing_code(self, server: OAuthCallbackServer) -> None:
        _, _, body = _get(f"{server.redirect_uri}?state=abc")
        assert "missing_code" in body

        result = server.wait_for_callback(timeout=SHORT_TIMEOUT)
        assert result is not None
        assert result.error == "missing_code"
        assert result.state == "abc"
        assert not result.ok

    def test_only_first_callback_captured(self, server: OAuthCallbackServer) -> None:
        _get(f"{server.redirect_uri}?code=first&state=s")
        _, _, body = _get(f"{server.redirect_uri}?error=access_denied&state=s")
        assert "Authorization code received" in body

        result = server.wait_for_callback(timeout=SHORT_TIMEOUT)
        assert result is not None
        assert result.code == "first"
        assert result.error is None

    def test_concurrent_callbacks_single_result(self, server: OAuthCallbackServer) -> None:
        codes = [f"code-{i}" for i in range(5)]
        threads = [
            threading.Thread(target=_get, args=(f"{server.redirect_uri}?code={c}&state=s",))
            for c in codes
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=HTTP_TIMEOUT)

        first = server.wait_for_callback(timeout=SHORT_TIMEOUT)
        assert first is not None
        assert first.code in codes
        assert server.wait_for_callback(timeout=0) is first

    def test_waiting_page(self, server: OAuthCallbackServer) -> None:
        _, _, body = _get(f"http://127.0.0.1:{server.port}/")
        assert "Waiting for authorization" in body
        assert server.wait_for_callback(timeout=0) is None

    def test_unknown_path_404(self, server: OAuthCallbackServer) -> None:
        with pytest.raises(HTTPError) as exc_info:
            _get(f"http://127.0.0.1:{server.port}/favicon.ico")
        assert exc_info.value.code == 404
        assert server.wait_for_callback(timeout=0) is None

    def test_query_not_logged(
        self, server: OAuthCallbackServer, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.DEBUG, logger="oauth2kit.auth"):
            _get(f"{server.redirect_uri}?code=secret-code&state=s")
        assert "OAuth callback server" in caplog.text
        assert "secret-code" not in caplog.text
