"""Stream Connector - keeps one feed's ICY stream open and feeds its track changes.

Hey future me - one StreamConnector per feed, and it owns EVERYTHING about that feed at
runtime: the HTTP response, the reader task, the reconnect task and the FeedContext.

STATE MACHINE:
    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED -> ... (forever)
    any state -> STOPPED (final, never reconnects)

RECONNECT:
    Stream error, clean end of stream or a failed connect -> wait reconnect_delay (30s,
    constant, no backoff) -> connect. Unlimited attempts. There is at most ONE reconnect
    task per feed; schedule_reconnect() is a no-op while one is pending.

ORDERING:
    Metadata blocks of one feed are processed strictly one after another. The reader
    awaits the full pipeline (search, ledger, append, stats) for block N before it
    reads block N+1. Different feeds run concurrently.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any

import httpx

from radiosync.application.services.track_ingestion_service import (
    TrackIngestionService,
)
from radiosync.application.workers.change_detector import FeedContext
from radiosync.domain.entities import ConnectionState, utc_now
from radiosync.domain.exceptions import StreamConnectionError
from radiosync.domain.value_objects.stream_title import (
    STREAM_TITLE_KEY,
    parse_icy_metadata,
    parse_stream_title,
)
from radiosync.infrastructure.integrations.icy_stream import (
    ICY_METADATA_HEADER,
    ICY_METAINT_HEADER,
    IcyStreamReader,
    parse_metaint,
)
from radiosync.infrastructure.observability.logging import set_feed

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_RECONNECT_DELAY = 30.0
USER_AGENT = "radiosync/1.0"


class StreamConnector:
    """Connection lifecycle and sequential metadata processing for one feed."""

    def __init__(
        self,
        context: FeedContext,
        ingestion: TrackIngestionService,
        http_client: httpx.AsyncClient,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ) -> None:
        """Initialize the connector.

        Args:
            context: Per-feed runtime state (feed, collection, last track, counters)
            ingestion: Pipeline invoked for each genuine track change
            http_client: Shared client used to open the stream
            connect_timeout: Seconds to wait for response headers
            reconnect_delay: Constant delay before every reconnect attempt
        """
        self.context = context
        self._ingestion = ingestion
        self._client = http_client
        self._connect_timeout = connect_timeout
        self._reconnect_delay = reconnect_delay

        self.state = ConnectionState.DISCONNECTED
        self.last_error: str | None = None
        self.connected_at: datetime | None = None
        self.reconnect_attempts = 0

        self._response: httpx.Response | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        # Held for the duration of one pipeline step; stop() takes it to wait for the
        # in-flight step before cancelling the reader.
        self._pipeline_lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self.context.name

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """Open the stream; on failure keep retrying in the background."""
        if self.state is ConnectionState.STOPPED:
            logger.warning("StreamConnector[%s] is stopped, not starting", self.name)
            return

        set_feed(self.name)
        try:
            await self.connect()
        except StreamConnectionError as e:
            logger.error("Initial connection to %s failed: %s", self.name, e.message)
            self.schedule_reconnect()

    async def stop(self) -> None:
        """Stop for good. Waits for an in-flight pipeline step, then tears down."""
        if self.state is ConnectionState.STOPPED:
            return
        self.state = ConnectionState.STOPPED
        logger.info("StreamConnector[%s] stopping...", self.name)

        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
            await asyncio.gather(self._reconnect_task, return_exceptions=True)
        self._reconnect_task = None

        # Teardown runs even when the caller's timeout cancels us while a slow step
        # still holds the lock; the reader and transport are closed either way.
        try:
            async with self._pipeline_lock:
                pass
        finally:
            reader = self._reader_task
            self._reader_task = None
            if reader is not None and not reader.done():
                reader.cancel()
            if reader is not None:
                await asyncio.gather(reader, return_exceptions=True)

            await self._close_response()
            self.context.reset()
            logger.info("StreamConnector[%s] stopped", self.name)

    # =========================================================================
    # CONNECT / RECONNECT
    # =========================================================================

    async def connect(self) -> None:
        """Send the ICY request and start the reader on success.

        One attempt only, no retry in here.

        Raises:
            StreamConnectionError: Non-200 status, timeout or transport failure
        """
        if self.state is ConnectionState.STOPPED:
            raise StreamConnectionError(self.name, f"{self.name}: connector is stopped")

        self.state = ConnectionState.CONNECTING
        logger.info("Connecting to %s: %s", self.name, self.context.feed.url)

        request = self._client.build_request(
            "GET",
            self.context.feed.url,
            headers={ICY_METADATA_HEADER: "1", "User-Agent": USER_AGENT},
        )
        try:
            response = await asyncio.wait_for(
                self._client.send(request, stream=True), timeout=self._connect_timeout
            )
        except TimeoutError as e:
            raise self._connect_failed(
                f"Connection timeout after {self._connect_timeout:.0f}s"
            ) from e
        except httpx.HTTPError as e:
            raise self._connect_failed(f"{type(e).__name__}: {e}") from e

        if response.status_code != 200:
            await response.aclose()
            raise self._connect_failed(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )

        # stop() ran while we were waiting for headers
        if self.state is ConnectionState.STOPPED:
            await response.aclose()
            return

        self._response = response
        self.state = ConnectionState.CONNECTED
        self.connected_at = utc_now()
        self.last_error = None
        self.reconnect_attempts = 0
        logger.info(
            "Connected to %s stream (content-type: %s)",
            self.name,
            response.headers.get("content-type", "unknown"),
        )

        metaint = parse_metaint(response.headers.get(ICY_METAINT_HEADER))
        if metaint is None:
            logger.warning(
                "%s sent no %s header, no track metadata will arrive",
                self.name,
                ICY_METAINT_HEADER,
            )

        self._reader_task = asyncio.create_task(
            self._read_loop(response, metaint), name=f"stream-reader-{self.name}"
        )

    def _connect_failed(
        self, message: str, status_code: int | None = None
    ) -> StreamConnectionError:
        if self.state is not ConnectionState.STOPPED:
            self.state = ConnectionState.DISCONNECTED
        self.last_error = message
        return StreamConnectionError(
            self.name, f"{self.name}: {message}", status_code=status_code
        )

    def schedule_reconnect(self) -> bool:
        """Schedule a single delayed reconnect.

        Returns:
            False when stopped or a reconnect is already pending
        """
        if self.state is ConnectionState.STOPPED or self.reconnect_pending:
            return False
        self._reconnect_task = asyncio.create_task(
            self._reconnect_loop(), name=f"stream-reconnect-{self.name}"
        )
        return True

    async def _reconnect_loop(self) -> None:
        set_feed(self.name)
        while self.state is not ConnectionState.STOPPED:
            self.reconnect_attempts += 1
            logger.info(
                "Reconnecting to %s in %.0fs (attempt %d)",
                self.name,
                self._reconnect_delay,
                self.reconnect_attempts,
            )
            await asyncio.sleep(self._reconnect_delay)
            if self.state is ConnectionState.STOPPED:
                return
            try:
                await self.connect()
                return
            except StreamConnectionError as e:
                logger.warning("Reconnect to %s failed: %s", self.name, e.message)

    # =========================================================================
    # READING
    # =========================================================================

    async def _read_loop(self, response: httpx.Response, metaint: int | None) -> None:
        set_feed(self.name)
        error: str | None = None
        try:
            if metaint is None:
                async for _chunk in response.aiter_raw():
                    if self.state is ConnectionState.STOPPED:
                        break
            else:
                framer = IcyStreamReader(metaint)
                async for chunk in response.aiter_raw():
                    for block in framer.feed(chunk):
                        await self._handle_block(block)
                        if self.state is ConnectionState.STOPPED:
                            break
                    if self.state is ConnectionState.STOPPED:
                        break
            error = "stream ended"
        except (httpx.HTTPError, httpx.StreamError, OSError) as e:
            error = f"{type(e).__name__}: {e}"
            logger.warning("Stream error on %s: %s", self.name, error)
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            logger.exception("Unexpected error reading %s", self.name)
        finally:
            await response.aclose()
            if self._response is response:
                self._response = None

        if self.state is ConnectionState.STOPPED:
            return

        self.state = ConnectionState.DISCONNECTED
        self.last_error = error
        self.connected_at = None
        logger.info("Disconnected from %s (%s)", self.name, error)
        self.schedule_reconnect()

    async def _handle_block(self, block: bytes) -> None:
        fields = parse_icy_metadata(block)
        stream_title = fields.get(STREAM_TITLE_KEY, "").strip()
        if not stream_title:
            return

        track = parse_stream_title(stream_title)
        if not self.context.detector.is_new(track):
            return

        async with self._pipeline_lock:
            if self.state is ConnectionState.STOPPED:
                return
            await self._ingestion.process(self.context, track)

    async def _close_response(self) -> None:
        if self._response is not None:
            await self._response.aclose()
            self._response = None

    def get_status(self) -> dict[str, Any]:
        last_track = self.context.last_track
        return {
            "name": self.name,
            "state": self.state.value,
            "connected": self.is_connected,
            "last_track": str(last_track) if last_track else None,
            "tracks_added": self.context.tracks_added,
            "reconnect_pending": self.reconnect_pending,
            "reconnect_attempts": self.reconnect_attempts,
            "last_error": self.last_error,
            "connected_at": self.connected_at.isoformat() if self.connected_at else None,
        }


__all__ = ["StreamConnector"]
