"""Tests for the mathlang logging setup."""

import logging

from mathlang_pkg.api import evaluate
from mathlang_pkg.logging_config import StructuredFormatter, get_logger, setup_logging


def make_record(**extra):
    record = logging.LogRecord("mathlang.api", logging.DEBUG, __file__, 1, "Evaluation failed: %s", ("boom",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_plain_message(self):
        text = StructuredFormatter().format(make_record())
        assert text.endswith("[DEBUG] mathlang.api: Evaluation failed: boom")

    def test_appends_error_context(self):
        text = StructuredFormatter().format(make_record(error_code="PARSE_ERROR", line=1, column=5))
        assert text.endswith("Evaluation failed: boom error_code=PARSE_ERROR line=1 column=5")

    def test_skips_missing_position(self):
        text = StructuredFormatter().format(make_record(error_code="TYPE_MISMATCH", line=None, column=None))
        assert text.endswith("boom error_code=TYPE_MISMATCH")


def test_get_logger_is_namespaced():
    assert get_logger("parser").name == "mathlang.parser"


def test_setup_logging_writes_file(tmp_path):
    log_file = tmp_path / "mathlang.log"
    logger = setup_logging("DEBUG", str(log_file))
    try:
        get_logger("worker").warning("Worker timed out after %s seconds", 2)
        for handler in logger.handlers:
            handler.flush()
        assert "[WARNING] mathlang.worker: Worker timed out after 2 seconds" in log_file.read_text(
            encoding="utf-8"
        )
    finally:
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
        logger.setLevel(logging.WARNING)


def test_unknown_level_falls_back_to_warning():
    logger = setup_logging("chatty")
    try:
        assert logger.level == logging.WARNING
    finally:
        logger.handlers.clear()


def test_failed_evaluation_is_logged_with_position(caplog):
    caplog.set_level(logging.DEBUG, logger="mathlang")
    evaluate("1 + * 2")
    (record,) = [r for r in caplog.records if r.name == "mathlang.api"]
    assert record.error_code == "PARSE_ERROR"
    assert (record.line, record.column) == (1, 5)
