"""Infrastructure persistence layer."""

from .database import Database
from .models import (
    Base,
    CollectionModel,
    DailyStatModel,
    MatchedTrackModel,
    UnmatchedTrackModel,
)
from .repositories import (
    CollectionRepository,
    DailyStatRepository,
    MatchedTrackRepository,
    UnmatchedTrackRepository,
)
from .retry import (
    DatabaseLockMetrics,
    is_lock_error,
    lock_metrics,
    with_db_retry,
)

__all__ = [
    "Base",
    "CollectionModel",
    "CollectionRepository",
    "DailyStatModel",
    "DailyStatRepository",
    "Database",
    "DatabaseLockMetrics",
    "MatchedTrackModel",
    "MatchedTrackRepository",
    "UnmatchedTrackModel",
    "UnmatchedTrackRepository",
    "is_lock_error",
    "lock_metrics",
    "with_db_retry",
]
