"""Configuration system for oauth2kit using pydantic-settings.

Supports layered configuration:
1. Built-in defaults (lowest priority)
2. pyproject.toml [tool.oauth2kit] section (project-level)
3. ./oauth2kit.toml (project-level, explicit)
4. ~/.config/oauth2kit/config.toml (user-level, overrides project)
5. The file named by OAUTH2KIT_CONFIG_FILE
6. Environment variables
7. Keyword arguments (highest priority)

Environment variables use the OAUTH2KIT_ prefix.
Example: OAUTH2KIT_CLIENT_ID, OAUTH2KIT_SCOPES="email profile"
"""

from __future__ import annotations

import logging
import os
import sys

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .exceptions import ConfigurationError


if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo


logger = logging.getLogger("oauth2kit")

DEFAULT_LOCAL_ADDR = ":15440"
DEFAULT_CALLBACK_PATH = "/callback"
DEFAULT_TOKEN_FILE = "token.json"  # noqa: S105

# Endpoint presets used when the endpoints are not configured explicitly.
PROVIDER_PRESETS: dict[str, dict[str, str]] = {
    "google": {
        "authorization_endpoint": "https://accounts.google.com/o/oauth2/v2/auth",
        "token_endpoint": "https://oauth2.googleapis.com/token",
    },
    "github": {
        "authorization_endpoint": "https://github.com/login/oauth/authorize",
        "token_endpoint": "https://github.com/login/oauth/access_token",
        "token_endpoint_auth_method": "client_secret_post",
    },
    "microsoft": {
        "authorization_endpoint": "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/authorize",
        "token_endpoint": "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token",
    },
}

# Field names that contain sensitive data and must be redacted in output.
_SENSITIVE_FIELDS: set[str] = {"client_secret"}

_REDACTED = "********"


def user_config_path() -> Path:
    """Location of the per-user configuration file."""
    if sys.platform == "win32":
        return (Path(os.environ.get("APPDATA", "~")) / "oauth2kit" / "config.toml").expanduser()
    return Path("~/.config/oauth2kit/config.toml").expanduser()


def _find_config_files() -> list[Path]:
    """Find all configuration files in order of precedence (lowest first)."""
    files = []

    pyproject = Path("pyproject.toml")
    if pyproject.exists():
        files.append(pyproject)

    explicit = Path("oauth2kit.toml")
    if explicit.exists():
        files.append(explicit)

    user_config = user_config_path()
    if user_config.exists():
        files.append(user_config)

    env_config = os.environ.get("OAUTH2KIT_CONFIG_FILE")
    if env_config:
        env_path = Path(env_config)
        if env_path.exists():
            files.append(env_path)

    return files


def _load_toml_config() -> dict[str, Any]:
    """Load and merge all TOML configuration files."""
    merged: dict[str, Any] = {}

    for config_file in _find_config_files():
        try:
            data = tomllib.loads(config_file.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.warning("Ignoring unreadable config file %s: %s", config_file, exc)
            continue

        if config_file.name == "pyproject.toml":
            data = data.get("tool", {}).get("oauth2kit", {})

        merged.update(data)

    return merged


def _split_bind_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (host optional) into its parts."""
    host, sep, port = address.rpartition(":")
    if not sep:
        msg = f"Bind address must look like 'host:port' or ':port', got {address!r}"
        raise ValueError(msg)
    try:
        port_number = int(port)
    except ValueError:
        msg = f"Invalid port in bind address {address!r}"
        raise ValueError(msg) from None
    if not 0 <= port_number <= 65535:
        msg = f"Port out of range in bind address {address!r}"
        raise ValueError(msg)
    return host.strip("[]"), port_number


class _TomlSettingsSource(PydanticBaseSettingsSource):
    """Settings source reading the merged TOML configuration files."""

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        """Unused; values are produced in bulk by ``__call__``."""
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Return TOML values for known fields."""
        data = _load_toml_config()
        return {k: v for k, v in data.items() if k in self.settings_cls.model_fields}


class OAuth2Settings(BaseSettings):
    """OAuth2 client configuration.

    Environment prefix: OAUTH2KIT_
    Example: OAUTH2KIT_CLIENT_ID=your-client-id
    Example: OAUTH2KIT_PROVIDER=google

    TOML section: [tool.oauth2kit] or top-level keys of oauth2kit.toml
    """

    model_config = SettingsConfigDict(
        env_prefix="OAUTH2KIT_",
        extra="ignore",
        frozen=True,
    )

    # Provider selection
    provider: Literal["google", "github", "microsoft", "custom"] = Field(
        default="custom",
        description="Endpoint preset: google, github, microsoft, or custom",
    )

    # Client credentials
    client_id: str = Field(default="", description="OAuth2 client ID from the provider")
    client_secret: str = Field(
        default="",
        description="OAuth2 client secret (empty for public clients with PKCE)",
    )

    # Endpoints (filled from the preset when empty)
    authorization_endpoint: str = Field(default="", description="Authorization endpoint URL")
    token_endpoint: str = Field(default="", description="Token endpoint URL")
    tenant_id: str = Field(default="common", description="Azure AD tenant (microsoft preset)")
    token_endpoint_auth_method: (
        Literal["client_secret_basic", "client_secret_post", "none"] | None
    ) = Field(
        default=None,
        description="Client authentication at the token endpoint (derived when unset)",
    )

    scopes: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Requested scopes (space or comma separated in env vars)",
    )

    # Local callback server
    local_bind_address: str = Field(
        default=DEFAULT_LOCAL_ADDR,
        description="host:port for the callback server (empty host binds 127.0.0.1)",
    )
    callback_path: str = Field(default=DEFAULT_CALLBACK_PATH, description="Callback path")

    # Token storage
    token_file_path: Path = Field(
        default=Path(DEFAULT_TOKEN_FILE),
        description="JSON file where the credential is persisted",
    )

    # Timeouts
    auth_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Maximum seconds to wait for the OAuth2 redirect",
    )
    shutdown_grace_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Seconds allowed for the callback server to shut down",
    )
    expiry_leeway_seconds: int = Field(
        default=10,
        ge=0,
        description="Seconds before expiry at which a token is refreshed",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for token endpoint and API requests",
    )

    open_browser: bool = Field(default=True, description="Open the system browser automatically")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Place TOML files between environment variables and defaults."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            _TomlSettingsSource(settings_cls),
            file_secret_settings,
        )

    @model_validator(mode="before")
    @classmethod
    def _apply_provider_preset(cls, data: Any) -> Any:
        """Fill empty endpoints from the selected provider preset."""
        if not isinstance(data, dict):
            return data
        preset = PROVIDER_PRESETS.get(data.get("provider") or "custom")
        if not preset:
            return data
        data = dict(data)
        tenant_id = data.get("tenant_id") or "common"
        for key, value in preset.items():
            if not data.get(key):
                data[key] = value.format(tenant_id=tenant_id)
        return data

    @field_validator("scopes", mode="before")
    @classmethod
    def _parse_scopes(cls, v: Any) -> list[str]:
        """Accept a space/comma separated string or a list, drop duplicates."""
        if v is None:
            return []
        if isinstance(v, str):
            v = v.replace(",", " ").split()
        if not isinstance(v, (list, tuple, set, frozenset)):
            msg = f"scopes must be a list or a separated string, got {type(v).__name__}"
            raise ValueError(msg)
        return list(dict.fromkeys(str(s).strip() for s in v if str(s).strip()))

    @field_validator("callback_path")
    @classmethod
    def _check_callback_path(cls, v: str) -> str:
        """Require an absolute callback path."""
        if not v.startswith("/"):
            msg = f"callback_path must start with '/', got {v!r}"
            raise ValueError(msg)
        return v

    @field_validator("local_bind_address")
    @classmethod
    def _check_bind_address(cls, v: str) -> str:
        """Require a parseable ``host:port``."""
        _split_bind_address(v)
        return v

    @field_validator("token_file_path", mode="before")
    @classmethod
    def _default_token_file(cls, v: Any) -> Any:
        """Treat an empty path as the default token file."""
        return v or DEFAULT_TOKEN_FILE

    @property
    def bind_host(self) -> str:
        """Host part of ``local_bind_address`` (may be empty)."""
        return _split_bind_address(self.local_bind_address)[0]

    @property
    def bind_port(self) -> int:
        """Port part of ``local_bind_address``."""
        return _split_bind_address(self.local_bind_address)[1]

    @property
    def listen_host(self) -> str:
        """Address the callback server binds to."""
        return self.bind_host or "127.0.0.1"

    @property
    def redirect_host(self) -> str:
        """Host name advertised in the redirect URI."""
        if self.bind_host in ("", "0.0.0.0", "::"):  # noqa: S104
            return "localhost"
        return self.bind_host

    @property
    def redirect_uri(self) -> str:
        """Redirect URI for the configured (not yet bound) address."""
        host = self.redirect_host
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{self.bind_port}{self.callback_path}"

    @property
    def resolved_auth_method(self) -> str:
        """Token endpoint client authentication method."""
        if self.token_endpoint_auth_method:
            return self.token_endpoint_auth_method
        return "client_secret_basic" if self.client_secret else "none"

    def require_client_config(self) -> None:
        """Ensure the settings can drive an authorization flow.

        Raises
        ------
        ConfigurationError
            If the client ID or an endpoint is missing.
        """
        missing = [
            name
            for name in ("client_id", "authorization_endpoint", "token_endpoint")
            if not getattr(self, name)
        ]
        if missing:
            msg = f"Missing OAuth2 configuration: {', '.join(missing)}"
            raise ConfigurationError(msg, provider=self.provider, missing=missing)

    def _display_items(self) -> list[tuple[str, Any]]:
        """Field values with sensitive fields redacted."""
        data = self.model_dump(exclude=_SENSITIVE_FIELDS)
        items = list(data.items())
        items.extend((name, _REDACTED) for name in sorted(_SENSITIVE_FIELDS))
        return items

    def to_env(self) -> str:
        """Export settings as shell environment variables."""
        lines = [
            "# oauth2kit Environment Variables",
            "# Generated by: oauth2kit config --env",
            "",
        ]
        for field_name, field_value in self._display_items():
            if isinstance(field_value, list):
                value_str = " ".join(str(v) for v in field_value)
            elif isinstance(field_value, bool):
                value_str = "true" if field_value else "false"
            elif field_value is None:
                value_str = ""
            else:
                value_str = str(field_value)
            lines.append(f'export OAUTH2KIT_{field_name.upper()}="{value_str}"')
        return "\n".join(lines)

    def show(self) -> str:
        """Format settings as a readable table."""
        lines = ["oauth2kit Configuration", "=" * 60, ""]
        for field_name, field_value in self._display_items():
            value_str = str(field_value)
            if len(value_str) > 50:
                value_str = value_str[:47] + "..."
            lines.append(f"  {field_name:26} = {value_str}")
        lines.append(f"  {'redirect_uri':26} = {self.redirect_uri}")
        return "\n".join(lines)


@lru_cache(maxsize=1)
def get_settings() -> OAuth2Settings:
    """Get the global settings instance (cached).

    Call clear_settings() to reload configuration.
    """
    return OAuth2Settings()


def clear_settings() -> None:
    """Clear the cached settings to force reload."""
    get_settings.cache_clear()
