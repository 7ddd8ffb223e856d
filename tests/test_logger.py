"""Tests for structured logging helpers."""

import io
import json
import logging

from bulk_job_orchestrator.utils.logger import StructuredFormatter, get_logger, set_log_context, setup_logger


def _record(logger, message, **extra):
    record = logger.makeRecord(logger.name, logging.INFO, __file__, 1, message, (), None, extra=extra)
    for log_filter in logger.filters:
        log_filter.filter(record)
    return record


def test_identity_fields_are_lifted_and_the_rest_nested():
    logger = get_logger("tests.structured")

    output = json.loads(StructuredFormatter().format(
        _record(logger, "Batch queued", job_id="750J", batch_id="751B", bytes_uploaded=42)
    ))

    assert output["message"] == "Batch queued"
    assert output["level"] == "INFO"
    assert output["job_id"] == "750J"
    assert output["batch_id"] == "751B"
    assert output["extra"] == {"bytes_uploaded": 42}


def test_bound_context_does_not_override_explicit_fields():
    logger = get_logger("tests.context")
    set_log_context(logger, component="batch", job_id="bound")

    record = _record(logger, "checked", job_id="explicit")

    assert record.component == "batch"
    assert record.job_id == "explicit"


def test_setup_logger_replaces_its_own_handlers(monkeypatch):
    first, second = io.StringIO(), io.StringIO()

    monkeypatch.setattr("sys.stderr", first)
    setup_logger("tests.setup", level="INFO")
    monkeypatch.setattr("sys.stderr", second)
    logger = setup_logger("tests.setup", level="WARNING", structured=False)
    logger.warning("Polling timed out")
    logger.info("not shown")

    assert len(logger.handlers) == 1
    assert first.getvalue() == ""
    assert "WARNING - Polling timed out" in second.getvalue()
    assert "not shown" not in second.getvalue()
