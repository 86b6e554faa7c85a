"""Centralized configuration for mathlang.

This module defines:
- Output formatting precision
- Worker sandbox limits (timeout, CPU time, memory)
- Input validation limits
- Numeric tolerances used by the evaluator

Configuration can be overridden via:
- CLI flags (see cli.py)
- Environment variables (prefixed with MATHLANG_)
"""

import importlib.metadata
import os

try:
    VERSION = importlib.metadata.version("mathlang")
except importlib.metadata.PackageNotFoundError:
    # Running from a source checkout without an installed distribution
    VERSION = "1.0.0"

# Output formatting
OUTPUT_PRECISION = int(
    os.getenv("MATHLANG_OUTPUT_PRECISION", "10")
)  # significant digits

# Worker sandbox limits (can be overridden via environment variables)
WORKER_TIMEOUT = int(os.getenv("MATHLANG_WORKER_TIMEOUT", "10"))  # seconds
WORKER_CPU_SECONDS = int(os.getenv("MATHLANG_WORKER_CPU_SECONDS", "30"))
WORKER_AS_MB = int(os.getenv("MATHLANG_WORKER_AS_MB", "512"))

# Input validation limits
MAX_INPUT_LENGTH = int(os.getenv("MATHLANG_MAX_INPUT_LENGTH", "10000"))  # characters

# Tolerance for deciding whether a float is integral (factorial, gcd, indices)
NUMERIC_TOLERANCE = float(os.getenv("MATHLANG_NUMERIC_TOLERANCE", "1e-9"))

# Names that are never treated as implicit-multiplication operands
RESERVED_WORDS = frozenset({"if", "else"})
