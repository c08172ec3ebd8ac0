"""Application settings loaded from environment variables and .env files."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from radiosync.domain.entities import Feed


# Hey future me, a FeedSettings is the raw config shape for one station. We keep it separate
# from the domain Feed because collection_name is optional here (the template fills it in)
# but REQUIRED on Feed. Convert via Settings.build_feeds(), never construct Feeds by hand.
class FeedSettings(BaseModel):
    """Configuration for a single monitored feed."""

    name: str
    url: str
    collection_name: str | None = None

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("feed name cannot be empty")
        return value


def _default_feeds() -> list[FeedSettings]:
    return [
        FeedSettings(name="main", url="https://radio1.streamserver.link:8000/hrm-aac"),
        FeedSettings(
            name="movies", url="https://radio1.streamserver.link/radio/8050/hrs-aac"
        ),
        FeedSettings(
            name="oldies", url="https://radio1.streamserver.link/radio/8020/hro-aac"
        ),
        FeedSettings(name="kids", url="https://radio1.streamserver.link:8030/hrk-aac"),
    ]


class SpotifySettings(BaseModel):
    """Spotify Web API credentials and search options."""

    client_id: str = ""
    client_secret: str = ""
    refresh_token: str = ""
    search_limit: int = Field(default=20, ge=1, le=50)

    @property
    def is_configured(self) -> bool:
        """Check that every credential needed for the refresh flow is present."""
        return bool(
            self.client_id.strip()
            and self.client_secret.strip()
            and self.refresh_token.strip()
        )


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///./data/radiosync.db"
    echo: bool = False
    pool_pre_ping: bool = True
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 3600


class MonitorSettings(BaseModel):
    """Feed connection settings."""

    connect_timeout: float = Field(default=30.0, gt=0)
    reconnect_delay: float = Field(default=30.0, gt=0)
    collection_name_template: str = "Halloween Radio - {display_name}"
    feeds: list[FeedSettings] = Field(default_factory=_default_feeds)


class MatchingSettings(BaseModel):
    """Catalog matching settings."""

    similarity_threshold: float = Field(default=0.75, ge=0.0, le=1.0)
    similarity_metric: Literal["dice", "indel"] = "dice"


class ObservabilitySettings(BaseModel):
    """Logging and shutdown settings."""

    log_json_format: bool = False
    shutdown_timeout: float = 10.0


class Settings(BaseSettings):
    """Top-level application settings.

    Nested sections are read from env vars like ``RADIOSYNC_SPOTIFY__CLIENT_ID`` or
    ``RADIOSYNC_MONITOR__FEEDS='[{"name": "main", "url": "..."}]'``.
    """

    model_config = SettingsConfigDict(
        env_prefix="RADIOSYNC_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "radiosync"
    log_level: str = "INFO"

    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    def build_feeds(self) -> list[Feed]:
        """Convert the configured feeds into immutable domain Feeds."""
        feeds: list[Feed] = []
        seen: set[str] = set()
        for feed_settings in self.monitor.feeds:
            if feed_settings.name in seen:
                raise ValueError(f"Duplicate feed name in configuration: {feed_settings.name}")
            seen.add(feed_settings.name)

            display_name = Feed.make_display_name(feed_settings.name)
            collection_name = feed_settings.collection_name or (
                self.monitor.collection_name_template.format(
                    name=feed_settings.name, display_name=display_name
                )
            )
            feeds.append(
                Feed(
                    name=feed_settings.name,
                    url=feed_settings.url,
                    collection_name=collection_name,
                )
            )
        return feeds

    # Hey future me, returns None for anything that isn't a file-backed SQLite URL
    # (postgres, sqlite in-memory). Lifecycle uses this to validate the directory early.
    def _get_sqlite_db_path(self) -> Path | None:
        url = self.database.url
        if not url.startswith("sqlite"):
            return None
        _, _, path = url.partition(":///")
        if not path or path.startswith(":memory:"):
            return None
        return Path(path)

    def ensure_directories(self) -> None:
        """Create the parent directory of a file-backed SQLite database."""
        db_path = self._get_sqlite_db_path()
        if db_path is not None:
            db_path.parent.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
