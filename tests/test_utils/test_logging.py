"""Tests for the structured JSON logger."""

import json
import logging

from app.utils.logging import get_logger


def entries(caplog):
    return [json.loads(record.getMessage()) for record in caplog.records]


class TestStructuredLogger:
    """JSON entries and context binding."""

    def test_info_emits_json_with_fields(self, caplog):
        log = get_logger("tests.logging.info")

        with caplog.at_level(logging.INFO, logger="tests.logging.info"):
            log.info("step_completed", step="transcribe-audio", attempts=2)

        assert entries(caplog) == [
            {"event": "step_completed", "step": "transcribe-audio", "attempts": 2}
        ]

    def test_bind_adds_context_without_mutating_parent(self, caplog):
        log = get_logger("tests.logging.bind")
        bound = log.bind(project_id="p1", plan="pro")

        with caplog.at_level(logging.INFO, logger="tests.logging.bind"):
            bound.info("workflow_started")
            log.info("plain")

        first, second = entries(caplog)
        assert first == {"event": "workflow_started", "project_id": "p1", "plan": "pro"}
        assert second == {"event": "plain"}

    def test_exception_includes_type_message_and_traceback(self, caplog):
        log = get_logger("tests.logging.exception")

        try:
            raise ValueError("bad payload")
        except ValueError as e:
            with caplog.at_level(logging.ERROR, logger="tests.logging.exception"):
                log.exception("workflow_failed", e, project_id="p1")

        (entry,) = entries(caplog)
        assert entry["error_type"] == "ValueError"
        assert entry["error_message"] == "bad payload"
        assert "Traceback" in entry["traceback"]
        assert entry["project_id"] == "p1"
        assert caplog.records[0].levelno == logging.ERROR

    def test_non_serializable_values_are_stringified(self, caplog):
        log = get_logger("tests.logging.default")

        with caplog.at_level(logging.INFO, logger="tests.logging.default"):
            log.info("value", obj=object)

        assert entries(caplog)[0]["obj"] == str(object)
