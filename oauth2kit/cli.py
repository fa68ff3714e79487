"""Command-line interface for oauth2kit."""

from __future__ import annotations

import argparse
import json
import os
import sys

from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx

from pydantic import ValidationError

from .exceptions import OAuth2KitException
from .log import enable_debug, redact_sensitive_data, set_level


if TYPE_CHECKING:
    from .config import OAuth2Settings


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="oauth2kit",
        description="OAuth2 authorization code + PKCE login for command-line tools",
    )
    parser.add_argument(
        "--token-file",
        type=str,
        default=None,
        help="Token file path (overrides OAUTH2KIT_TOKEN_FILE_PATH)",
    )
    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Print the authorization URL instead of opening a browser",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "login",
        help="Authorize with the provider (reuses or refreshes a stored token)",
    )

    token_parser = subparsers.add_parser("token", help="Show the stored token")
    token_parser.add_argument(
        "--reveal",
        action="store_true",
        help="Show token values instead of redacting them",
    )

    get_parser = subparsers.add_parser("get", help="Send an authenticated GET request")
    get_parser.add_argument("url", help="URL to fetch")

    config_parser = subparsers.add_parser("config", help="Show or export configuration")
    config_group = config_parser.add_mutually_exclusive_group()
    config_group.add_argument(
        "--show",
        action="store_true",
        help="Show current configuration",
    )
    config_group.add_argument(
        "--env",
        action="store_true",
        help="Export configuration as environment variables",
    )
    config_group.add_argument(
        "--sources",
        action="store_true",
        help="Show configuration file sources",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the main CLI entry point.

    Parameters
    ----------
    argv : list[str], optional
        Arguments (default: ``sys.argv[1:]``).

    Returns
    -------
    int
        Exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = load_settings(args)
    except ValidationError as e:
        print(f"Error: invalid configuration\n{e}", file=sys.stderr)
        return 1

    if args.verbose:
        enable_debug()
    else:
        set_level(settings.log_level)

    handlers = {
        "login": handle_login,
        "token": handle_token,
        "get": handle_get,
        "config": handle_config,
    }
    try:
        return handlers[args.command](args, settings)
    except OAuth2KitException as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nAborted.", file=sys.stderr)
        return 130


def load_settings(args: argparse.Namespace) -> OAuth2Settings:
    """Build settings, applying command-line overrides."""
    from .config import OAuth2Settings

    overrides: dict[str, Any] = {}
    if args.token_file:
        overrides["token_file_path"] = args.token_file
    if args.no_browser:
        overrides["open_browser"] = False
    return OAuth2Settings(**overrides)


def handle_login(args: argparse.Namespace, settings: OAuth2Settings) -> int:  # noqa: ARG001
    """Handle the login command.

    Returns
    -------
    int
        Exit code.
    """
    from .auth import OAuth2Manager
    from .types import Credential

    manager = OAuth2Manager(settings)
    with manager.acquire_client() as client:
        credential = Credential.from_oauth2_token(client.token)

    expiry = credential.expiry.isoformat() if credential.expiry else "never"
    print(f"Authenticated: {credential.token_type} token, expires {expiry}")
    print(f"Token stored in {settings.token_file_path}")
    return 0


def handle_token(args: argparse.Namespace, settings: OAuth2Settings) -> int:
    """Handle the token command.

    Returns
    -------
    int
        Exit code (1 when no token is stored).
    """
    from .auth.token_store import FileTokenStore, _serialize_credential

    store = FileTokenStore(settings.token_file_path)
    credential = store.load()
    if credential is None:
        print(f"No token stored at {store.path}", file=sys.stderr)
        return 1

    data: Any = json.loads(_serialize_credential(credential))
    data["expired"] = credential.expired()
    if not args.reveal:
        data = redact_sensitive_data(data)
    print(json.dumps(data, indent=2))
    return 0


def handle_get(args: argparse.Namespace, settings: OAuth2Settings) -> int:
    """Handle the get command.

    Returns
    -------
    int
        Exit code (1 on transport errors and HTTP error statuses).
    """
    from .auth import OAuth2Manager

    manager = OAuth2Manager(settings)
    with manager.acquire_client() as client:
        try:
            response = client.get(args.url)
        except httpx.HTTPError as e:
            print(f"Error: request failed: {e}", file=sys.stderr)
            return 1

    if response.is_error:
        print(f"Error: HTTP {response.status_code}\n{response.text}", file=sys.stderr)
        return 1

    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)
    return 0


def handle_config(args: argparse.Namespace, settings: OAuth2Settings) -> int:
    """Handle the config command.

    Returns
    -------
    int
        Exit code.
    """
    if args.sources:
        return show_config_sources()
    if args.env:
        print(settings.to_env())
    else:
        print(settings.show())
    return 0


def show_config_sources() -> int:
    """Show configuration file sources and their status.

    Returns
    -------
    int
        Exit code.
    """
    from .config import user_config_path

    sources: list[tuple[str, Path | None]] = [
        ("pyproject.toml [tool.oauth2kit]", Path("pyproject.toml")),
        ("./oauth2kit.toml", Path("oauth2kit.toml")),
        ("User config", user_config_path()),
    ]
    env_config = os.environ.get("OAUTH2KIT_CONFIG_FILE")
    sources.append(("OAUTH2KIT_CONFIG_FILE", Path(env_config) if env_config else None))

    print("Configuration Sources (in order of precedence):\n")
    print(f"{'Source':<36} {'Status':<15} {'Path'}")
    print("-" * 80)
    print(f"{'Built-in defaults':<36} {'✓ Active':<15}")

    for name, path in sources:
        if path is None:
            status, path_display = "✗ Not set", ""
        elif path.exists():
            status, path_display = "✓ Found", str(path)
        else:
            status, path_display = "✗ Not found", str(path)
        print(f"{name:<36} {status:<15} {path_display}")

    env_vars = sorted(k for k in os.environ if k.startswith("OAUTH2KIT_"))
    if env_vars:
        shown = ", ".join(env_vars[:3]) + ("..." if len(env_vars) > 3 else "")
        print(f"{'Environment variables':<36} {f'✓ {len(env_vars)} vars':<15} {shown}")
    else:
        print(f"{'Environment variables':<36} {'✗ No vars':<15}")

    print("\nNote: Later sources override earlier ones.")
    return 0
