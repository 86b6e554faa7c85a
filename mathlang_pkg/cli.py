from __future__ import annotations

import argparse
import json
from typing import Any

from . import config
from .api import diff, evaluate
from .ast_nodes import dump
from .evaluator import Evaluator
from .formatting import format_superscript, format_value
from .logging_config import get_logger, setup_logging
from .parser import parse_program
from .tokenizer import tokenize
from .types import MathLangError
from .worker import evaluate_safely, worker_evaluate

logger = get_logger("cli")

HELP_TEXT = """\
Enter statements separated by ';' or newlines, for example:
  x = 3; 2x^2 + 1          variables and implicit multiplication
  f(x) = x^2 + 1; f(2)     named functions
  square = ->(x) x^2       lambdas
  60 km/h * 2 h            units (m cm mm km s ms h kg g N J W Pa Hz)
  convert(1.5 km, 'm')     unit conversion
  d/dx (x^3 + 2x)          derivatives (evaluated at the current bindings)
  [[1,2],[3,4]] * [[5,6],[7,8]]
Commands: help, vars, units, clear, quit/exit"""


def _print_text(text: str) -> None:
    try:
        print(text)
    except UnicodeEncodeError:
        # Console without Unicode support
        print(text.encode("ascii", errors="replace").decode("ascii"))


def print_result_pretty(res: dict[str, Any], output_format: str = "human") -> None:
    """Print result in specified format.

    Args:
        res: Result dictionary (``EvalResult.to_dict()`` shape)
        output_format: "json" for JSON output, "human" for human-readable
    """
    if output_format == "json":
        print(json.dumps(res, indent=2, ensure_ascii=False))
        return
    if not res.get("ok"):
        line, column = res.get("line"), res.get("column")
        if line is not None and column is not None and line > 0:
            print(f"Error: {res.get('error')} (line {line}, column {column})")
        else:
            print("Error:", res.get("error"))
        return
    result = res.get("result")
    if result is not None:
        _print_text(format_superscript(result))


def _health_check() -> int:
    """Run health check to verify dependencies and basic operations.

    Returns:
        Exit code (0 for success, non-zero for failures)
    """
    checks_passed = 0
    checks_failed = 0

    print("Running mathlang health check...")
    print("-" * 50)

    try:
        import sympy as sp

        print(f"[OK] SymPy {sp.__version__} imported successfully")
        checks_passed += 1
    except ImportError as e:
        print(f"[FAIL] SymPy import failed: {e}")
        checks_failed += 1

    checks = [
        ("Basic evaluation", lambda: evaluate("2 + 2").result, "4"),
        ("Unit arithmetic", lambda: evaluate("1 km + 500 m").result, "1.5 km"),
        ("Differentiation", lambda: evaluate("x = 2; d/dx (x^3 + 2x)").result, "14"),
    ]
    for label, run, expected in checks:
        try:
            got = run()
        except MathLangError as e:
            got = f"error: {e}"
        if got == expected:
            print(f"[OK] {label} works")
            checks_passed += 1
        else:
            print(f"[FAIL] {label} failed: expected {expected}, got {got}")
            checks_failed += 1

    result = evaluate_safely("3 * 3")
    if result.get("ok") and result.get("result") == "9":
        print("[OK] Worker evaluation works")
        checks_passed += 1
    else:
        print(f"[WARN] Worker check failed: {result.get('error')}")

    print("-" * 50)
    print(f"Results: {checks_passed} passed, {checks_failed} failed")

    if checks_failed > 0:
        print("\n[WARN] Some health checks failed. Core functionality may be impaired.")
        return 1

    print("\n[OK] All health checks passed!")
    return 0


def _print_variables(evaluator: Evaluator) -> None:
    if not evaluator.environment:
        print("No variables defined.")
        return
    for name, value in sorted(evaluator.environment.items()):
        _print_text(f"{name} = {format_superscript(format_value(value))}")


def repl_loop(output_format: str = "human") -> None:
    """Interactive REPL; bindings persist across lines."""
    try:
        import readline  # noqa: F401
    except ImportError:
        # readline not available on Windows - that's fine
        pass

    evaluator = Evaluator()
    print("mathlang - type 'help' for commands, 'quit' to exit.")
    while True:
        try:
            line = input(">>> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if not line:
            continue
        command = line.lower()
        if command in ("quit", "exit"):
            break
        if command == "help":
            print(HELP_TEXT)
            continue
        if command == "vars":
            _print_variables(evaluator)
            continue
        if command == "units":
            print("Known units: " + " ".join(sorted(evaluator.units.symbols())))
            continue
        if command == "clear":
            evaluator.environment.clear()
            print("Variables cleared.")
            continue
        res = evaluate(line, evaluator)
        if res.ok and res.result is None:
            continue
        print_result_pretty(res.to_dict(), output_format)


def _print_tokens(source: str, output_format: str) -> None:
    tokens = tokenize(source)
    if output_format == "json":
        payload = [
            {"kind": t.kind, "text": t.text, "line": t.line, "column": t.column}
            for t in tokens
        ]
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    for token in tokens:
        print(token)


def main_entry(argv: list[str] | None = None) -> int:
    """
    Main entry point for the mathlang CLI.

    Args:
        argv: Optional command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = argparse.ArgumentParser(prog="mathlang")
    parser.add_argument("--worker", action="store_true", help=argparse.SUPPRESS)
    parser.add_argument("--expr", type=str, help=argparse.SUPPRESS)
    parser.add_argument("file", nargs="?", help="Program file to run")
    parser.add_argument(
        "-e",
        "--eval",
        type=str,
        help="Evaluate one program and exit (non-interactive)",
        dest="eval_expr",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["json", "human"],
        default="human",
        help="Output format: json (machine-readable) or human (human-readable)",
    )
    parser.add_argument(
        "--diff",
        type=str,
        metavar="VAR",
        help="Differentiate the last statement with respect to VAR",
    )
    parser.add_argument(
        "--simplify",
        action="store_true",
        help="Simplify the derivative with SymPy (with --diff)",
    )
    parser.add_argument("--tokens", action="store_true", help="Print the token stream and exit")
    parser.add_argument("--ast", action="store_true", help="Print the syntax tree and exit")
    parser.add_argument(
        "-t", "--timeout", type=int, help="Override worker timeout (seconds)"
    )
    parser.add_argument(
        "--no-worker",
        action="store_true",
        help="Evaluate in-process instead of in a sandboxed subprocess",
    )
    parser.add_argument(
        "-p", "--precision", type=int, help="Set output precision (significant digits)"
    )
    parser.add_argument(
        "-v", "--version", action="store_true", help="Show program version"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set logging level",
    )
    parser.add_argument("--log-file", type=str, help="Write logs to file")
    parser.add_argument(
        "--health-check",
        action="store_true",
        help="Run health check and verify dependencies",
    )
    args = parser.parse_args(argv)
    output_format = args.format

    setup_logging(level=args.log_level, log_file=args.log_file)

    # Apply CLI configuration overrides
    if args.timeout and args.timeout > 0:
        config.WORKER_TIMEOUT = int(args.timeout)
    if args.precision and args.precision > 0:
        config.OUTPUT_PRECISION = int(args.precision)

    if args.worker:
        print(json.dumps(worker_evaluate(args.expr or "")))
        return 0
    if args.version:
        print(config.VERSION)
        return 0
    if args.health_check:
        return _health_check()

    if args.eval_expr is not None:
        source = args.eval_expr
    elif args.file:
        try:
            with open(args.file, encoding="utf-8") as handle:
                source = handle.read()
        except OSError as e:
            logger.warning("Cannot read %s: %s", args.file, e)
            print(f"Error: cannot read '{args.file}': {e.strerror}")
            return 1
    else:
        repl_loop(output_format)
        return 0

    if args.tokens or args.ast:
        try:
            if args.tokens:
                _print_tokens(source, output_format)
            else:
                print(dump(parse_program(source)))
        except MathLangError as e:
            print_result_pretty(
                {"ok": False, "error": e.message, "line": e.line, "column": e.column},
                output_format,
            )
            return 1
        return 0

    if args.diff:
        res = diff(source, args.diff, simplify=args.simplify).to_dict()
    elif args.no_worker:
        res = evaluate(source).to_dict()
    else:
        res = evaluate_safely(source)
    print_result_pretty(res, output_format)
    return 0 if res.get("ok") else 1
