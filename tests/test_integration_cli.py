"""Integration tests for CLI functionality."""

import json
import subprocess
import sys

import pytest

from mathlang_pkg import config, worker
from mathlang_pkg.cli import main_entry, print_result_pretty


@pytest.fixture(autouse=True)
def restore_config(monkeypatch):
    """CLI flags overwrite module-level configuration; undo it after each test."""
    monkeypatch.setattr(config, "OUTPUT_PRECISION", config.OUTPUT_PRECISION)
    monkeypatch.setattr(config, "WORKER_TIMEOUT", config.WORKER_TIMEOUT)


def test_cli_eval_human(capsys):
    """Test in-process evaluation with human output."""
    assert main_entry(["-e", "2 + 2", "--no-worker"]) == 0
    assert capsys.readouterr().out == "4\n"


def test_cli_eval_json(capsys):
    """Test CLI evaluation with JSON output."""
    assert main_entry(["-e", "x = 3; 2 x^2", "--no-worker", "--format", "json"]) == 0
    assert json.loads(capsys.readouterr().out) == {"ok": True, "result": "18"}


def test_cli_superscript_output(capsys):
    assert main_entry(["-e", "(3 m)^2", "--no-worker"]) == 0
    assert capsys.readouterr().out.strip() == "9 m²"


def test_cli_error_with_position(capsys):
    assert main_entry(["-e", "1 + * 2", "--no-worker"]) == 1
    assert capsys.readouterr().out.strip() == (
        "Error: Unexpected token '*', expected expression (line 1, column 5)"
    )


def test_cli_error_without_position(capsys):
    assert main_entry(["-e", "y + 1", "--no-worker"]) == 1
    assert capsys.readouterr().out.strip() == "Error: Undefined variable 'y'"


def test_cli_precision(capsys):
    assert main_entry(["-e", "1/3", "--no-worker", "-p", "3"]) == 0
    assert capsys.readouterr().out.strip() == "0.333"


def test_cli_diff_simplified(capsys):
    code = main_entry(["-e", "x^3 + 2x", "--diff", "x", "--simplify", "--format", "json"])
    assert code == 0
    assert json.loads(capsys.readouterr().out)["result"] == "3*x^2 + 2"


def test_cli_tokens(capsys):
    assert main_entry(["-e", "2x", "--tokens"]) == 0
    assert capsys.readouterr().out.splitlines() == [
        "number('2') at 1:1",
        "operator('*') at 1:2",
        "identifier('x') at 1:2",
    ]


def test_cli_tokens_json(capsys):
    assert main_entry(["-e", "5 km", "--tokens", "--format", "json"]) == 0
    assert json.loads(capsys.readouterr().out) == [
        {"kind": "number", "text": "5", "line": 1, "column": 1},
        {"kind": "unit", "text": "km", "line": 1, "column": 3},
    ]


def test_cli_ast(capsys):
    assert main_entry(["-e", "1 + 2", "--ast"]) == 0
    assert capsys.readouterr().out == "Block\n  BinaryOp +\n    Number 1.0\n    Number 2.0\n"


def test_cli_ast_parse_error(capsys):
    assert main_entry(["-e", "(1 + 2", "--ast"]) == 1
    assert capsys.readouterr().out.startswith("Error: Unexpected end of input")


def test_cli_version(capsys):
    """Test --version flag."""
    assert main_entry(["--version"]) == 0
    assert capsys.readouterr().out.strip() == config.VERSION


def test_cli_runs_file(tmp_path, capsys):
    program = tmp_path / "area.ml"
    program.write_text("r = 2\npi r^2 / pi\n", encoding="utf-8")
    assert main_entry([str(program), "--no-worker"]) == 0
    assert capsys.readouterr().out.strip() == "4"


def test_cli_missing_file(tmp_path, capsys):
    assert main_entry([str(tmp_path / "missing.ml")]) == 1
    assert "cannot read" in capsys.readouterr().out


def test_cli_repl(monkeypatch, capsys):
    lines = iter(["x = 2", "x^3", "vars", "clear", "x", "", "quit"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))
    assert main_entry([]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out[1:] == [
        "2",
        "8",
        "x = 2",
        "Variables cleared.",
        "Error: Undefined variable 'x'",
    ]


def test_cli_repl_lists_units(monkeypatch, capsys):
    lines = iter(["units", "quit"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))
    assert main_entry([]) == 0
    assert capsys.readouterr().out.splitlines()[1] == (
        "Known units: Hz J N Pa W cm g h kg km m mm ms s"
    )


def test_cli_repl_keeps_bindings_after_error(monkeypatch, capsys):
    lines = iter(["a = 1", "a = 5; b = nope", "a", "quit"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))
    assert main_entry([]) == 0
    assert capsys.readouterr().out.splitlines()[1:] == [
        "1",
        "Error: Undefined variable 'nope'",
        "1",
    ]


def test_cli_repl_exits_on_eof(monkeypatch, capsys):
    def raise_eof(prompt=""):
        raise EOFError

    monkeypatch.setattr("builtins.input", raise_eof)
    assert main_entry([]) == 0


def test_cli_worker_mode(monkeypatch, capsys):
    monkeypatch.setattr(worker, "_limit_resources", lambda: None)
    assert main_entry(["--worker", "--expr=6 * 7"]) == 0
    assert json.loads(capsys.readouterr().out) == {"ok": True, "result": "42"}


def test_print_result_pretty_json(capsys):
    print_result_pretty({"ok": True, "result": "x^2"}, "json")
    assert json.loads(capsys.readouterr().out) == {"ok": True, "result": "x^2"}


class TestWorkerFailures:
    """Test how evaluate_safely reports subprocess failures."""

    def test_timeout(self, monkeypatch):
        def fake_run(*args, **kwargs):
            raise subprocess.TimeoutExpired(cmd=args[0], timeout=kwargs.get("timeout"))

        monkeypatch.setattr(worker.subprocess, "run", fake_run)
        result = worker.evaluate_safely("f(n) = f(n + 1); f(0)", timeout=1)
        assert result["ok"] is False
        assert result["error_code"] == "TIMEOUT"

    def test_timeout_through_cli(self, monkeypatch, capsys):
        def fake_run(*args, **kwargs):
            raise subprocess.TimeoutExpired(cmd=args[0], timeout=kwargs.get("timeout"))

        monkeypatch.setattr(worker.subprocess, "run", fake_run)
        assert main_entry(["-e", "1 + 1", "-t", "2"]) == 1
        assert config.WORKER_TIMEOUT == 2
        assert capsys.readouterr().out.strip() == "Error: Evaluation timed out."

    def test_communication_error(self, monkeypatch):
        def fake_run(*args, **kwargs):
            raise OSError("no such interpreter")

        monkeypatch.setattr(worker.subprocess, "run", fake_run)
        assert worker.evaluate_safely("1")["error_code"] == "COMM_ERROR"

    def test_invalid_output(self, monkeypatch):
        def fake_run(cmd, **kwargs):
            return subprocess.CompletedProcess(cmd, 1, stdout=b"Traceback ...", stderr=b"boom")

        monkeypatch.setattr(worker.subprocess, "run", fake_run)
        assert worker.evaluate_safely("1")["error_code"] == "INVALID_OUTPUT"

    def test_worker_command(self):
        cmd = worker._build_self_cmd(["--worker"])
        assert cmd == [sys.executable, "-m", "mathlang_pkg", "--worker"]


def test_evaluate_safely_round_trip():
    """Run a real worker subprocess."""
    result = worker.evaluate_safely("1 km + 500 m", timeout=60)
    assert result == {"ok": True, "result": "1.5 km"}


def test_cli_module_help():
    """Test --help flag."""
    result = subprocess.run(
        [sys.executable, "-m", "mathlang_pkg", "--help"],
        capture_output=True,
        text=True,
        timeout=30,
    )
    assert result.returncode == 0
    assert "usage" in result.stdout.lower()
