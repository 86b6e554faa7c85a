"""Subprocess sandbox for evaluating untrusted programs.

The interpreter core has no notion of deadlines, so a program such as
``f(n) = f(n + 1); f(0)`` or a huge factorial can only be bounded from the
outside. ``evaluate_safely`` runs the evaluation in a child Python process
(``python -m mathlang_pkg --worker --expr ...``) with CPU and memory limits
applied where the ``resource`` module exists, waits at most ``timeout``
seconds, and parses the child's JSON reply.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from typing import Any

from . import config
from .logging_config import get_logger

logger = get_logger("worker")

HAS_RESOURCE = False
try:
    import resource  # noqa: F401 - check if available

    HAS_RESOURCE = True
except (ImportError, OSError):
    HAS_RESOURCE = False


def _limit_resources() -> None:
    """Apply resource limits (Unix only).

    This function sets CPU time and memory limits on the worker process.
    On Windows, the `resource` module is not available, so only the
    wall-clock timeout applies.
    """
    if not HAS_RESOURCE:
        return
    import resource as _resource

    _resource.setrlimit(
        _resource.RLIMIT_CPU, (config.WORKER_CPU_SECONDS, config.WORKER_CPU_SECONDS + 1)
    )
    _resource.setrlimit(
        _resource.RLIMIT_AS,
        (config.WORKER_AS_MB * 1024 * 1024, config.WORKER_AS_MB * 1024 * 1024 + 1),
    )


def worker_evaluate(text: str) -> dict[str, Any]:
    """Evaluate inside the worker process and return a JSON-ready dict."""
    from .api import evaluate

    try:
        _limit_resources()
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to apply resource limits: {e}")
    return evaluate(text).to_dict()


def _build_self_cmd(args: list[str]) -> list[str]:
    if getattr(sys, "frozen", False):
        return [os.path.realpath(sys.argv[0])] + args
    return [sys.executable, "-m", "mathlang_pkg"] + args


def _child_env() -> dict[str, str]:
    # Make the package importable from a source checkout
    package_root = os.path.dirname(os.path.dirname(os.path.realpath(__file__)))
    env = dict(os.environ)
    existing = env.get("PYTHONPATH")
    env["PYTHONPATH"] = package_root + (os.pathsep + existing if existing else "")
    return env


def evaluate_safely(text: str, timeout: int | None = None) -> dict[str, Any]:
    """Evaluate a program in a sandboxed subprocess.

    Args:
        text: Program source
        timeout: Wall-clock limit in seconds (default: config.WORKER_TIMEOUT)

    Returns:
        Result dictionary shaped like ``EvalResult.to_dict()``; a timeout
        yields ``{"ok": False, "error_code": "TIMEOUT", ...}``
    """
    if timeout is None:
        timeout = config.WORKER_TIMEOUT
    cmd = _build_self_cmd(
        ["--worker", f"--expr={text}", f"--precision={config.OUTPUT_PRECISION}"]
    )
    try:
        proc = subprocess.run(
            cmd,
            capture_output=True,
            timeout=timeout,
            env=_child_env(),
            check=False,
        )
    except subprocess.TimeoutExpired:
        logger.warning("Worker timed out after %s seconds", timeout)
        return {"ok": False, "error": "Evaluation timed out.", "error_code": "TIMEOUT"}
    except OSError as e:
        logger.error(f"Worker communication error: {e}", exc_info=True)
        return {
            "ok": False,
            "error": "Worker communication failed",
            "error_code": "COMM_ERROR",
        }

    stdout_text = proc.stdout.decode("utf-8", errors="replace") if proc.stdout else ""
    try:
        return json.loads(stdout_text)
    except (json.JSONDecodeError, ValueError) as e:
        stderr_text = proc.stderr.decode("utf-8", errors="replace") if proc.stderr else ""
        logger.debug("Worker stderr: %s", stderr_text)
        return {
            "ok": False,
            "error": f"Invalid worker output: {e}.",
            "error_code": "INVALID_OUTPUT",
        }
