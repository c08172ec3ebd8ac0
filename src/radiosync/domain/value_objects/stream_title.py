"""Parsers for ICY metadata blocks and the StreamTitle announcement text.

Hey future me - radio stations announce tracks in wildly different formats. The ones we
handle, in the order we try them:

    "Artist - Title"      (plain hyphen)
    "Artist – Title"      (en dash)
    "Artist — Title"      (em dash)
    "Artist: Title"
    "Title by Artist"     (the only one where the title comes FIRST)

The first separator that appears anywhere in the string wins, even if a later one would
give a nicer split. "A - B by C" is artist "A", title "B by C". Don't try to be clever
here, the stats views and the dedup ledger rely on the parse being stable.

Usage:
    from radiosync.domain.value_objects.stream_title import (
        parse_icy_metadata,
        parse_stream_title,
    )

    fields = parse_icy_metadata(b"StreamTitle='Ray Parker Jr - Ghostbusters';")
    track = parse_stream_title(fields["StreamTitle"])
"""

import logging
import re

from radiosync.domain.entities import UNKNOWN_ARTIST, ParsedTrack

logger = logging.getLogger(__name__)

STREAM_TITLE_KEY = "StreamTitle"

# Order matters! First match wins.
STREAM_TITLE_SEPARATORS: tuple[str, ...] = (" - ", " – ", " — ", ": ", " by ")

# The "by" separator flips the order: "Title by Artist"
TITLE_FIRST_SEPARATOR = " by "

# ICY metadata pairs: StreamTitle='Don't Fear the Reaper';StreamUrl='';
# Values may contain apostrophes, so a value only ends at "';" followed by the next key
# or the end of the block.
ICY_FIELD_PATTERN = re.compile(r"(\w+)='(.*?)';(?=\w+='|\s*$)", re.DOTALL)


def parse_icy_metadata(block: bytes | str) -> dict[str, str]:
    """Extract ``key='value'`` pairs from a raw ICY metadata block.

    Args:
        block: Metadata bytes as read from the stream (NUL padded) or decoded text

    Returns:
        Mapping of field name to value. Empty when the block holds no fields.
    """
    if isinstance(block, bytes):
        text = block.decode("utf-8", errors="replace")
    else:
        text = block
    text = text.rstrip("\x00").strip()
    if not text:
        return {}

    fields: dict[str, str] = {}
    for key, value in ICY_FIELD_PATTERN.findall(text):
        fields[key] = value

    # Some servers forget the trailing semicolon on the last pair
    if not fields and text.startswith(f"{STREAM_TITLE_KEY}='") and text.endswith("'"):
        fields[STREAM_TITLE_KEY] = text[len(STREAM_TITLE_KEY) + 2 : -1]

    return fields


def parse_stream_title(stream_title: str) -> ParsedTrack:
    """Split announcement text into artist and title.

    Args:
        stream_title: Raw StreamTitle value

    Returns:
        ParsedTrack. Falls back to artist "Unknown Artist" with the whole text as title
        when no separator is present.
    """
    clean_title = stream_title.strip()

    for separator in STREAM_TITLE_SEPARATORS:
        if separator not in clean_title:
            continue

        parts = clean_title.split(separator)
        if separator == TITLE_FIRST_SEPARATOR:
            # "Title by Artist" - anything after a second " by " is dropped
            return ParsedTrack(
                artist=parts[1].strip(),
                title=parts[0].strip(),
                original=clean_title,
            )

        return ParsedTrack(
            artist=parts[0].strip(),
            title=separator.join(parts[1:]).strip(),
            original=clean_title,
        )

    logger.warning('Could not parse stream title: "%s"', clean_title)
    return ParsedTrack(artist=UNKNOWN_ARTIST, title=clean_title, original=clean_title)


__all__ = [
    "ICY_FIELD_PATTERN",
    "STREAM_TITLE_KEY",
    "STREAM_TITLE_SEPARATORS",
    "parse_icy_metadata",
    "parse_stream_title",
]
