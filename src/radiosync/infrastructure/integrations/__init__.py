"""External integrations: Spotify Web API and ICY streams."""

from radiosync.infrastructure.integrations.icy_stream import (
    IcyStreamReader,
    parse_metaint,
)
from radiosync.infrastructure.integrations.spotify_client import SpotifyClient

__all__ = ["IcyStreamReader", "SpotifyClient", "parse_metaint"]
