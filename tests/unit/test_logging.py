"""Unit tests for request-scoped logging."""

import contextvars
import logging

from openlog.utils.logging import (
    RequestIdFilter,
    current_request_id,
    logger,
    new_request_id,
    step_timer,
)


class TestRequestScope:
    def test_records_carry_request_id(self, caplog):
        def handle_request():
            new_request_id("req-abc")
            logger.info("inside request")

        with caplog.at_level(logging.INFO, logger="openlog"):
            contextvars.copy_context().run(handle_request)
            logger.info("outside request")

        by_message = {r.getMessage(): r.request_id for r in caplog.records}
        assert by_message["inside request"] == "req-abc"
        assert by_message["outside request"] == "-"
        assert current_request_id() == "-"

    def test_generated_ids_are_short_hex(self):
        request_id = contextvars.copy_context().run(new_request_id)
        assert len(request_id) == 12
        int(request_id, 16)

    def test_filter_stamps_foreign_records(self):
        record = logging.LogRecord("httpx", logging.INFO, __file__, 1, "GET /", None, None)
        assert RequestIdFilter().filter(record) is True
        assert record.request_id == "-"


class TestStepTimer:
    def test_logs_start_and_duration(self, caplog):
        with caplog.at_level(logging.INFO, logger="openlog"):
            with step_timer("GitHub — list repositories"):
                pass
        messages = [r.getMessage() for r in caplog.records]
        assert messages[0] == "▶ GitHub — list repositories — started"
        assert "completed in" in messages[1]
