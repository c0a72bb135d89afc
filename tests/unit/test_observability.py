"""Tests for observability/logger.py and observability/metrics.py"""
import io
import json
import logging
import sys

from larkify.observability import MetricsHook, NoopMetricsHook, StructuredFormatter, get_logger


class TestStructuredFormatter:
    def _get_record(self, msg, level=logging.INFO, exc_info=None, extra_fields=None):
        record = logging.LogRecord(
            name="test",
            level=level,
            pathname="",
            lineno=0,
            msg=msg,
            args=(),
            exc_info=exc_info,
        )
        if extra_fields is not None:
            record.extra_fields = extra_fields
        return record

    def test_basic_format(self):
        result = json.loads(StructuredFormatter().format(self._get_record("hello world")))
        assert result["message"] == "hello world"
        assert result["level"] == "INFO"
        assert result["logger"] == "test"
        assert "ts" in result

    def test_extra_fields_merged(self):
        record = self._get_record("msg", extra_fields={"document_id": "d1", "blocks": 5})
        result = json.loads(StructuredFormatter().format(record))
        assert result["document_id"] == "d1"
        assert result["blocks"] == 5

    def test_exception_info_included(self):
        try:
            raise ValueError("test error")
        except ValueError:
            exc_info = sys.exc_info()
        result = json.loads(StructuredFormatter().format(self._get_record("err", exc_info=exc_info)))
        assert "ValueError: test error" in result["exception"]

    def test_non_serialisable_values_stringified(self):
        record = self._get_record("msg", extra_fields={"obj": object()})
        result = json.loads(StructuredFormatter().format(record))
        assert result["obj"].startswith("<object object")


class TestGetLogger:
    def test_writes_json_lines(self):
        stream = io.StringIO()
        log = get_logger("larkify.test.json_lines", stream=stream)
        log.info("unit submitted", extra={"extra_fields": {"op": "create_descendants", "unit": 3}})
        line = json.loads(stream.getvalue().strip())
        assert line["message"] == "unit submitted"
        assert line["unit"] == 3

    def test_repeated_calls_do_not_stack_handlers(self):
        first = get_logger("larkify.test.repeat")
        second = get_logger("larkify.test.repeat")
        assert first is second
        assert len(first.handlers) == 1
        assert first.propagate is False

    def test_string_level(self):
        log = get_logger("larkify.test.level", level="warning", stream=io.StringIO())
        assert log.level == logging.WARNING


class TestMetrics:
    def test_noop_satisfies_protocol(self):
        hook = NoopMetricsHook()
        assert isinstance(hook, MetricsHook)
        hook.increment("larkify.requests_total", tags={"status": "200"})
        hook.timing("larkify.request_duration_ms", 12.5)
        hook.gauge("larkify.queue", 1.0)

    def test_custom_hook_satisfies_protocol(self):
        class Recorder:
            def __init__(self):
                self.calls = []

            def increment(self, name, value=1, tags=None):
                self.calls.append(name)

            def timing(self, name, ms, tags=None):
                self.calls.append(name)

            def gauge(self, name, value, tags=None):
                self.calls.append(name)

        assert isinstance(Recorder(), MetricsHook)
