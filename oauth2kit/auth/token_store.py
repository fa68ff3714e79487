"""Pluggable credential storage backends.

Provides the TokenStore ABC and concrete implementations for a JSON
token file on disk and an in-memory store.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import re
import stat
import tempfile
import threading

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..exceptions import TokenParseError, TokenPersistError, TokenStoreError
from ..types import Credential


logger = logging.getLogger("oauth2kit.auth")

_FILE_MODE = stat.S_IRUSR | stat.S_IWUSR  # 0600
_FRACTION_RE = re.compile(r"\.(\d+)")


class TokenStore(ABC):
    """Abstract base class for credential storage.

    A store holds at most one credential. Deleting it is left to the
    user (remove the token file).
    """

    @abstractmethod
    def load(self) -> Credential | None:
        """Load the stored credential.

        Returns
        -------
        Credential or None
            The stored credential, or None if nothing is stored.

        Raises
        ------
        TokenParseError
            If the stored data is malformed.
        TokenStoreError
            If the stored data exists but cannot be read.
        """

    @abstractmethod
    def save(self, credential: Credential) -> None:
        """Persist a credential, replacing any previous one.

        Parameters
        ----------
        credential : Credential
            The credential to persist.

        Raises
        ------
        TokenPersistError
            If the credential could not be written.
        """

    @abstractmethod
    def exists(self) -> bool:
        """Check whether a credential is stored."""


def _format_expiry(expiry: datetime | None) -> str | None:
    """Render an expiry as an RFC 3339 UTC string."""
    if expiry is None:
        return None
    return expiry.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_expiry(value: Any) -> datetime | None:
    """Parse an RFC 3339 expiry string.

    Accepts a trailing ``Z``, any number of fractional digits, and the
    zero time ``0001-01-01T00:00:00Z`` (no expiry).
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        msg = f"expiry must be a string, got {type(value).__name__}"
        raise ValueError(msg)
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.year <= 1:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _serialize_credential(credential: Credential) -> str:
    """Serialize a Credential to JSON."""
    return json.dumps(
        {
            "access_token": credential.access_token,
            "token_type": credential.token_type,
            "refresh_token": credential.refresh_token,
            "expiry": _format_expiry(credential.expiry),
        },
        indent=2,
    )


def _deserialize_credential(data: str, source: str | None = None) -> Credential:
    """Deserialize a Credential from JSON.

    Raises
    ------
    TokenParseError
        If the data is not a JSON object with a non-empty access token.
    """
    if not data.strip():
        raise TokenParseError("Token data is empty", path=source)
    try:
        obj = json.loads(data)
    except json.JSONDecodeError as exc:
        raise TokenParseError(f"Token data is not valid JSON: {exc}", path=source) from exc

    if not isinstance(obj, dict):
        raise TokenParseError("Token data must be a JSON object", path=source)

    access_token = obj.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        raise TokenParseError("Token data has no access_token", path=source)

    try:
        expiry = _parse_expiry(obj.get("expiry"))
    except ValueError as exc:
        raise TokenParseError(f"Invalid token expiry: {exc}", path=source) from exc

    return Credential(
        access_token=access_token,
        token_type=obj.get("token_type") or "Bearer",
        refresh_token=obj.get("refresh_token") or None,
        expiry=expiry,
    )


class FileTokenStore(TokenStore):
    """JSON token file on the local filesystem.

    Writes are atomic: the credential goes to a temporary file in the
    target directory (mode 0600), is fsynced, then renamed over the
    target. A threading lock serializes access within the process.

    Parameters
    ----------
    path : str or Path
        Location of the token file (default ``token.json``).
    """

    def __init__(self, path: str | os.PathLike[str] = "token.json") -> None:
        """Initialize the file token store."""
        self._path = Path(path).expanduser()
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        """Location of the token file."""
        return self._path

    def load(self) -> Credential | None:
        """Load the credential from the token file."""
        with self._lock:
            try:
                data = self._path.read_text(encoding="utf-8")
            except FileNotFoundError:
                logger.debug("No token file at %s", self._path)
                return None
            except (OSError, UnicodeDecodeError) as exc:
                msg = f"Cannot read token file: {exc}"
                raise TokenStoreError(msg, path=str(self._path)) from exc

            credential = _deserialize_credential(data, source=str(self._path))
            logger.debug("Loaded token from %s", self._path)
            return credential

    def save(self, credential: Credential) -> None:
        """Atomically write the credential to the token file."""
        data = _serialize_credential(credential)
        with self._lock:
            try:
                self._write_atomic(data)
            except OSError as exc:
                msg = f"Cannot write token file: {exc}"
                raise TokenPersistError(msg, path=str(self._path)) from exc
        logger.debug("Saved token to %s", self._path)

    def exists(self) -> bool:
        """Check whether the token file exists."""
        return self._path.is_file()

    def _write_atomic(self, data: str) -> None:
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)

        # mkstemp creates the file with mode 0600
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise
        os.chmod(self._path, _FILE_MODE)


class MemoryTokenStore(TokenStore):
    """In-memory token store for tests and embedding.

    Keeps the serialized form so a stored credential behaves exactly
    like one read back from a token file.
    """

    def __init__(self, credential: Credential | None = None) -> None:
        """Initialize the memory token store."""
        self._data: str | None = None
        self._lock = threading.Lock()
        if credential is not None:
            self.save(credential)

    def load(self) -> Credential | None:
        """Load the credential from memory."""
        with self._lock:
            if self._data is None:
                return None
            return _deserialize_credential(self._data)

    def save(self, credential: Credential) -> None:
        """Save the credential in memory."""
        data = _serialize_credential(credential)
        with self._lock:
            self._data = data

    def exists(self) -> bool:
        """Check whether a credential is held."""
        with self._lock:
            return self._data is not None
