# tests/unit/test_logging.py

"""Unit tests for structlog configuration."""

import io
import json
import logging

import structlog

from testwire.telemetry import setup_logging


class TestSetupLogging:
    def test_console_output_carries_emoji_and_drops_internal_keys(self):
        stream = io.StringIO()
        setup_logging(level=logging.INFO, stream=stream)

        structlog.get_logger("test.logging").info("Discovering tests", emoji_key="discover", target="unit")

        output = stream.getvalue()
        assert "🔎 Discovering tests" in output
        assert "target" in output
        assert "emoji_key" not in output

    def test_json_console_output(self):
        stream = io.StringIO()
        setup_logging(level=logging.WARNING, json_logs=True, stream=stream)

        logger = structlog.get_logger("test.logging")
        logger.info("hidden")
        logger.warning("Session timed out", timeout=5)

        records = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert len(records) == 1
        assert records[0]["timeout"] == 5
        assert records[0]["level"] == "warning"
        assert records[0]["event"].endswith("Session timed out")

    def test_file_only_logging(self, tmp_path):
        log_file = tmp_path / "testwire.log"
        stream = io.StringIO()
        setup_logging(level=logging.DEBUG, log_file=str(log_file), file_only=True, stream=stream)

        structlog.get_logger("test.logging").error("Run session failed", exit_code=3)
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert stream.getvalue() == ""
        events = [json.loads(line)["event"] for line in log_file.read_text(encoding="utf-8").splitlines()]
        assert any(event.endswith("Run session failed") for event in events)
