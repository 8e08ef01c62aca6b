"""
Tests for structured logging.
"""
import json
import logging

import pytest

from draftio.core.config import settings
from draftio.core.logging import (
    StructuredLogger,
    log_operation,
    request_id_var,
    user_id_var,
)


@pytest.fixture
def log(caplog):
    caplog.set_level(logging.DEBUG, logger="draftio.test")
    return StructuredLogger("draftio.test")


class TestStructuredLogger:
    def test_record_carries_request_and_user(self, log):
        request_token = request_id_var.set("req-1")
        user_token = user_id_var.set("u1")
        try:
            record = log.record("INFO", "hello", {"peer": "u2"})
        finally:
            request_id_var.reset(request_token)
            user_id_var.reset(user_token)

        assert record["request_id"] == "req-1"
        assert record["user_id"] == "u1"
        assert record["context"] == {"peer": "u2"}

    def test_bound_fields_merge_with_call_fields(self, log, caplog):
        relay_log = log.bind(url="http://relay.test")

        relay_log.warning("Relay connect error", error="refused")

        assert relay_log.bound == {"url": "http://relay.test"}
        assert log.bound == {}
        line = caplog.records[-1].getMessage()
        assert "url=http://relay.test" in line
        assert "error=refused" in line

    def test_error_attaches_exception_summary(self, log):
        record = log.record("ERROR", "boom", error=ValueError("bad input"))
        assert record["error"] == {"type": "ValueError", "message": "bad input"}

    def test_json_output_in_production(self, log, caplog, monkeypatch):
        monkeypatch.setattr(settings, "APP_ENV", "production")

        log.info("Relay connected", sid="sid-1")

        data = json.loads(caplog.records[-1].getMessage())
        assert data["message"] == "Relay connected"
        assert data["context"] == {"sid": "sid-1"}
        assert data["env"] == "production"

    def test_exception_keeps_traceback(self, log, caplog):
        try:
            raise RuntimeError("handler failed")
        except RuntimeError as e:
            log.exception("Relay handler failed", error=e)

        assert caplog.records[-1].exc_info is not None


class TestLogOperation:
    @pytest.mark.anyio
    async def test_logs_completion(self, log, caplog):
        @log_operation("relay_start", log)
        async def start():
            return "ok"

        assert await start() == "ok"
        messages = [r.getMessage() for r in caplog.records]
        assert any("relay_start started" in m for m in messages)
        assert any("relay_start completed" in m and "duration_ms=" in m for m in messages)

    @pytest.mark.anyio
    async def test_logs_failure_and_reraises(self, log, caplog):
        @log_operation("send_message", log)
        async def send():
            raise ValueError("empty content")

        with pytest.raises(ValueError):
            await send()

        failed = caplog.records[-1]
        assert failed.levelno == logging.ERROR
        assert "send_message failed" in failed.getMessage()
        assert "ValueError: empty content" in failed.getMessage()
