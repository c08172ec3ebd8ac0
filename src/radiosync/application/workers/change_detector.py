"""Per-feed track change detection and the mutable per-feed context."""

from dataclasses import dataclass, field
from datetime import datetime

from radiosync.domain.entities import (
    CollectionRecord,
    Feed,
    ParsedTrack,
    ProcessingOutcome,
)


class ChangeDetector:
    """Remembers the last announced track of ONE feed.

    Servers repeat the current StreamTitle in every metadata block (often every few
    seconds). Only a change of artist or title is a new track. The comparison is exact:
    "AC/DC" and "AC/DC " are different announcements.
    """

    def __init__(self) -> None:
        self._last: ParsedTrack | None = None

    @property
    def last_track(self) -> ParsedTrack | None:
        return self._last

    def is_new(self, track: ParsedTrack) -> bool:
        """Return True (and remember the track) if it differs from the last one."""
        if (
            self._last is not None
            and self._last.artist == track.artist
            and self._last.title == track.title
        ):
            return False
        self._last = track
        return True

    def reset(self) -> None:
        self._last = None


# Hey future me, FeedContext is the ONLY place per-feed mutable state lives. One instance
# per feed, owned by that feed's StreamConnector, touched only from that feed's reader
# task (which processes one block at a time). No locks needed, no module-level dicts
# keyed by feed name.
@dataclass
class FeedContext:
    """Mutable runtime state of one feed."""

    feed: Feed
    collection: CollectionRecord | None = None
    detector: ChangeDetector = field(default_factory=ChangeDetector)
    tracks_added: int = 0
    existing_collection_tracks: int = 0
    last_outcome: ProcessingOutcome | None = None
    last_processed_at: datetime | None = None

    @property
    def name(self) -> str:
        return self.feed.name

    @property
    def last_track(self) -> ParsedTrack | None:
        return self.detector.last_track

    def reset(self) -> None:
        """Forget the last seen track (used when the feed is stopped)."""
        self.detector.reset()


__all__ = ["ChangeDetector", "FeedContext"]
