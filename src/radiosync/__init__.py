"""RadioSync - live radio ICY metadata to Spotify playlists."""

__version__ = "1.0.0"
