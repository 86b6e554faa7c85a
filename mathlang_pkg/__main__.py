"""``python -m mathlang_pkg``: same as the ``mathlang`` console script."""

import sys

from .cli import main_entry

if __name__ == "__main__":
    sys.exit(main_entry())
