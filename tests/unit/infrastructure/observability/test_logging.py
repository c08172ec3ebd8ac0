"""Tests for structured logging."""

import json
import logging

from radiosync.infrastructure.observability.logging import (
    CompactExceptionFormatter,
    ContextFilter,
    CustomJsonFormatter,
    configure_logging,
    get_correlation_id,
    get_feed,
    set_correlation_id,
    set_feed,
)


def _record(msg: str = "hello", exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="radiosync.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestCorrelationId:
    """Test correlation ID functionality."""

    def test_set_and_get_correlation_id(self):
        """Test setting and getting correlation ID."""
        result = set_correlation_id("test-123-abc")
        assert result == "test-123-abc"
        assert get_correlation_id() == "test-123-abc"

    def test_set_correlation_id_generates_id_when_none(self):
        """Each generated ID is short and fresh."""
        first = set_correlation_id(None)
        second = set_correlation_id(None)
        assert len(first) == 12
        assert first != second
        assert get_correlation_id() == second

    def test_feed_context(self):
        set_feed("movies")
        assert get_feed() == "movies"


class TestFormatters:
    """Test the text and JSON formatters."""

    def test_context_filter_sets_fields(self):
        set_correlation_id("abc")
        set_feed("kids")
        record = _record()

        assert ContextFilter().filter(record)
        assert record.correlation_id == "abc"
        assert record.feed == "kids"

    def test_compact_formatter_feed_tag(self):
        formatter = CompactExceptionFormatter(fmt="%(feed_tag)s%(message)s")
        record = _record()
        record.feed = "main"

        assert formatter.format(record) == "[main] hello"

    def test_compact_formatter_root_cause_first(self):
        formatter = CompactExceptionFormatter(fmt="%(message)s")
        try:
            try:
                raise OSError("connection reset")
            except OSError as e:
                raise RuntimeError("stream died") from e
        except RuntimeError as e:
            text = formatter.formatException((type(e), e, e.__traceback__))

        lines = [line for line in text.splitlines() if line.startswith("╰─►")]
        assert lines == [
            "╰─► OSError: connection reset",
            "╰─► RuntimeError: stream died",
        ]

    def test_json_formatter_fields(self):
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
        record = _record("track added")
        record.correlation_id = "cid-1"
        record.feed = "oldies"

        data = json.loads(formatter.format(record))

        assert data["message"] == "track added"
        assert data["level"] == "WARNING"
        assert data["logger"] == "radiosync.test"
        assert data["correlation_id"] == "cid-1"
        assert data["feed"] == "oldies"


class TestLoggingConfiguration:
    """Test logging configuration."""

    def test_configure_logging_debug_level(self):
        configure_logging(log_level="DEBUG", json_format=False, app_name="test-app")
        assert logging.getLogger("test").getEffectiveLevel() <= logging.DEBUG

    def test_configure_logging_replaces_handlers(self):
        configure_logging(log_level="INFO", json_format=True, app_name="test-app")
        configure_logging(log_level="INFO", json_format=False, app_name="test-app")
        root_logger = logging.getLogger()
        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, CompactExceptionFormatter)

    def test_third_party_loggers_are_quieted(self):
        configure_logging(log_level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
