#!/usr/bin/env python3
"""Run mathlang from a source checkout: ``python mathlang.py -e "1 km + 500 m"``."""

import sys

if __name__ == "__main__":
    try:
        from mathlang_pkg.cli import main_entry
    except ImportError as e:
        print(f"Error: Failed to import mathlang_pkg: {e}")
        print("Install the dependencies with: pip install -e .")
        sys.exit(1)
    try:
        sys.exit(main_entry(sys.argv[1:]))
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
        sys.exit(1)
