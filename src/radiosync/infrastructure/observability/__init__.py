"""Observability infrastructure for structured logging."""

from radiosync.infrastructure.observability.logging import (
    configure_logging,
    get_correlation_id,
    get_feed,
    set_correlation_id,
    set_feed,
)

__all__ = [
    "configure_logging",
    "get_correlation_id",
    "get_feed",
    "set_correlation_id",
    "set_feed",
]
