"""Demo: Google user profile with oauth2kit.

Signs in through the browser on first run, stores the token in
``token.json`` and prints the Google user profile. Later runs reuse
(and refresh) the stored token without opening a browser.

Setup
-----
1. Create a "Desktop app" OAuth2 client at https://console.cloud.google.com/apis/credentials
2. Add ``http://localhost:15440/callback`` as an authorized redirect URI.
3. Export the credentials::

       # PowerShell
       $env:OAUTH2KIT_CLIENT_ID = "your-client-id.apps.googleusercontent.com"
       $env:OAUTH2KIT_CLIENT_SECRET = "your-client-secret"

       # Bash
       export OAUTH2KIT_CLIENT_ID="your-client-id.apps.googleusercontent.com"
       export OAUTH2KIT_CLIENT_SECRET="your-client-secret"

4. Run::

       python examples/oauth2kit_demo_google.py
"""

from __future__ import annotations

import json
import sys

import httpx

from oauth2kit import OAuth2KitException, OAuth2Manager, OAuth2Settings, get_logger


USERINFO_URL = "https://www.googleapis.com/oauth2/v1/userinfo"


def main() -> int:
    """Fetch and print the signed-in user's profile."""
    get_logger()
    settings = OAuth2Settings(
        provider="google",
        scopes=[
            "https://www.googleapis.com/auth/userinfo.email",
            "https://www.googleapis.com/auth/userinfo.profile",
        ],
    )

    try:
        manager = OAuth2Manager(settings)
        with manager.acquire_client() as client:
            response = client.get(USERINFO_URL)
            response.raise_for_status()
    except (OAuth2KitException, httpx.HTTPError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(response.json(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
