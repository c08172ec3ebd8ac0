"""ICY (SHOUTcast/Icecast) in-band metadata framing.

A server that was asked for ``Icy-MetaData: 1`` answers with an ``icy-metaint: N``
header and then interleaves the audio:

    [N audio bytes][L][16*L metadata bytes][N audio bytes][L][...]

L is a single unsigned byte. L == 0 means "no metadata this time" and is the common
case. Metadata text is NUL padded up to the 16 byte boundary.

Audio bytes are counted and thrown away, never decoded.
"""

import logging
from collections.abc import Iterator
from enum import Enum

logger = logging.getLogger(__name__)

ICY_METADATA_HEADER = "Icy-MetaData"
ICY_METAINT_HEADER = "icy-metaint"
METADATA_BLOCK_UNIT = 16


class _FrameState(Enum):
    AUDIO = "audio"
    LENGTH = "length"
    METADATA = "metadata"


class IcyStreamReader:
    """Incremental ICY framing parser.

    Feed it raw response chunks of any size (chunk boundaries can fall anywhere); it
    yields each complete non-empty metadata block.

    Example:
        reader = IcyStreamReader(metaint=16000)
        async for chunk in response.aiter_raw():
            for block in reader.feed(chunk):
                handle(block)
    """

    def __init__(self, metaint: int) -> None:
        if metaint <= 0:
            raise ValueError(f"icy-metaint must be positive, got {metaint}")
        self.metaint = metaint
        self._state = _FrameState.AUDIO
        self._remaining = metaint
        self._metadata = bytearray()
        self.audio_bytes_skipped = 0
        self.blocks_read = 0

    def feed(self, chunk: bytes) -> Iterator[bytes]:
        """Consume a chunk and yield every metadata block it completes."""
        position = 0
        size = len(chunk)

        while position < size:
            if self._state is _FrameState.AUDIO:
                take = min(self._remaining, size - position)
                position += take
                self._remaining -= take
                self.audio_bytes_skipped += take
                if self._remaining == 0:
                    self._state = _FrameState.LENGTH

            elif self._state is _FrameState.LENGTH:
                length = chunk[position] * METADATA_BLOCK_UNIT
                position += 1
                if length == 0:
                    self._start_audio()
                else:
                    self._state = _FrameState.METADATA
                    self._remaining = length
                    self._metadata.clear()

            else:
                take = min(self._remaining, size - position)
                self._metadata += chunk[position : position + take]
                position += take
                self._remaining -= take
                if self._remaining == 0:
                    block = bytes(self._metadata)
                    self._metadata.clear()
                    self._start_audio()
                    self.blocks_read += 1
                    yield block

    def _start_audio(self) -> None:
        self._state = _FrameState.AUDIO
        self._remaining = self.metaint


def parse_metaint(value: str | None) -> int | None:
    """Parse the icy-metaint header; None when absent or not a positive integer."""
    if value is None:
        return None
    try:
        metaint = int(value.strip())
    except ValueError:
        logger.warning("Ignoring invalid icy-metaint header: %r", value)
        return None
    return metaint if metaint > 0 else None


__all__ = [
    "ICY_METADATA_HEADER",
    "ICY_METAINT_HEADER",
    "IcyStreamReader",
    "parse_metaint",
]
