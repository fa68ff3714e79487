"""Run the oauth2kit CLI with ``python -m oauth2kit``."""

import sys

from .cli import main


sys.exit(main())
