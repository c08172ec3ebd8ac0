"""Structured logging configuration with JSON formatting, correlation IDs and feed tags."""

import contextvars
import logging
import sys
import traceback
import uuid
from pathlib import Path
from typing import Any

from pythonjsonlogger.json import JsonFormatter

# Hey future me, every processed track change gets its own correlation ID so one grep pulls
# the whole search -> ledger -> append -> stats chain for that announcement. contextvars are
# asyncio-safe: each feed's reader task runs in its own context copy, so feeds never see each
# other's IDs. Default "" covers startup logs and anything outside a pipeline step.
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

# Feed name of the connector that is currently running, set once per reader/reconnect task.
feed_var: contextvars.ContextVar[str] = contextvars.ContextVar("feed", default="")


def get_correlation_id() -> str:
    """Get the current correlation ID from context.

    Returns:
        Current correlation ID or empty string if not set
    """
    return correlation_id_var.get()


# Listen up, this setter AUTO-GENERATES a short UUID if correlation_id is None! That's the
# common case - TrackIngestionService calls it once at the top of process(). Don't call it
# inside loops or every log line gets a different ID.
def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set correlation ID in context.

    Args:
        correlation_id: Correlation ID to set. If None, generates a new one

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = uuid.uuid4().hex[:12]
    correlation_id_var.set(correlation_id)
    return correlation_id


def get_feed() -> str:
    return feed_var.get()


def set_feed(feed: str) -> None:
    feed_var.set(feed)


class ContextFilter(logging.Filter):
    """Add correlation ID and feed name to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        record.feed = get_feed()
        return True


class CompactExceptionFormatter(logging.Formatter):
    """Human readable formatter with compact exception chains.

    Hey future me - radio streams drop all the time, and the default traceback for an
    httpx.ReadError is ~40 lines of httpcore internals. This shows each exception in the
    chain on one line and keeps only frames from our own package.

    Example output:
    21:03:12 │ WARNING │ [movies] radiosync...stream_connector:201 │ Stream error
    ╰─► httpcore.ReadError: [Errno 104] Connection reset by peer
    ╰─► httpx.ReadError: [Errno 104] Connection reset by peer
        File "stream_connector.py", line 188, in _read_loop
          async for chunk in response.aiter_raw():
    """

    def format(self, record: logging.LogRecord) -> str:
        feed = getattr(record, "feed", "")
        record.feed_tag = f"[{feed}] " if feed else ""
        return super().format(record)

    def formatException(self, ei: Any) -> str:  # noqa: N802
        """Format exception chain root cause first.

        Args:
            ei: Exception info tuple (type, value, traceback)

        Returns:
            Formatted exception string
        """
        _exc_type, exc_value, _exc_tb = ei
        if exc_value is None:
            return ""

        exceptions: list[BaseException] = []
        current: BaseException | None = exc_value
        while current is not None and current not in exceptions:
            exceptions.append(current)
            current = current.__cause__ or current.__context__
        exceptions.reverse()

        lines: list[str] = []
        for exc in exceptions:
            exc_class = f"{type(exc).__module__}.{type(exc).__qualname__}"
            if type(exc).__module__ == "builtins":
                exc_class = type(exc).__qualname__
            lines.append(f"╰─► {exc_class}: {exc}")

            if exc.__traceback__ is None:
                continue
            for frame in traceback.extract_tb(exc.__traceback__):
                if "/site-packages/" in frame.filename or "radiosync" not in frame.filename:
                    continue
                lines.append(
                    f'    File "{Path(frame.filename).name}", line {frame.lineno}, in {frame.name}'
                )
                if frame.line:
                    lines.append(f"      {frame.line.strip()}")

        return "\n".join(lines)


class CustomJsonFormatter(JsonFormatter):
    """JSON formatter with fixed top-level fields for log aggregation."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno

        correlation_id = getattr(record, "correlation_id", "")
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        feed = getattr(record, "feed", "")
        if feed:
            log_record["feed"] = feed

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_record["stack_info"] = self.formatStack(record.stack_info)


# Listen future me, this is THE logging setup function - call it ONCE at startup (the
# lifecycle does). It resets the root logger, so calling it in tests is safe too. Use
# json_format=True when the output goes to a log shipper, False for a terminal.
def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = "radiosync",
) -> None:
    """Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format for logs
        app_name: Application name to include in logs
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(ContextFilter())

    if json_format:
        formatter: logging.Formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = CompactExceptionFormatter(
            fmt="%(asctime)s │ %(levelname)-7s │ %(feed_tag)s%(name)s:%(lineno)d │ %(message)s",
            datefmt="%H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Third-party noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(
        "Logging configured",
        extra={
            "app_name": app_name,
            "log_level": log_level,
            "json_format": json_format,
        },
    )


__all__ = [
    "CompactExceptionFormatter",
    "ContextFilter",
    "CustomJsonFormatter",
    "configure_logging",
    "get_correlation_id",
    "get_feed",
    "set_correlation_id",
    "set_feed",
]
