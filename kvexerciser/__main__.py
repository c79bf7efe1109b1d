"""Allows ``python -m kvexerciser``."""

import sys

from .cli import main

sys.exit(main())
