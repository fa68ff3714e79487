"""System browser launcher for the authorization URL."""

from __future__ import annotations

import logging
import os
import sys
import webbrowser

from ..exceptions import BrowserLaunchError


logger = logging.getLogger("oauth2kit.auth")


def _has_display() -> bool:
    """Whether a graphical browser can be launched on this platform."""
    if not sys.platform.startswith("linux"):
        return True
    return bool(os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY"))


def open_browser(url: str) -> None:
    """Open ``url`` in the user's default browser.

    Uses :mod:`webbrowser`, which dispatches to ``open`` on macOS,
    ``xdg-open`` and friends on Linux, and ``os.startfile`` on Windows.

    Parameters
    ----------
    url : str
        The authorization URL.

    Raises
    ------
    BrowserLaunchError
        If no browser could be launched. Callers should fall back to
        printing the URL.
    """
    if not _has_display():
        # Without a display webbrowser may pick a console browser that blocks the terminal.
        raise BrowserLaunchError("No graphical display available", url=url)

    try:
        opened = webbrowser.open(url, new=2)
    except webbrowser.Error as exc:
        raise BrowserLaunchError(f"Failed to open browser: {exc}", url=url) from exc

    if not opened:
        raise BrowserLaunchError("No runnable browser found", url=url)
    logger.debug("Opened system browser for authorization")
