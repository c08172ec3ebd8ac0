"""Tests for startup validation and the command line entry point."""

import pytest

from radiosync.__main__ import build_parser, main
from radiosync.config import DatabaseSettings, Settings, get_settings
from radiosync.domain.exceptions import ConfigurationError
from radiosync.infrastructure.lifecycle import lifespan, open_database


@pytest.fixture
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Point settings at a temporary database with no Spotify credentials."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("RADIOSYNC_DATABASE__URL", f"sqlite+aiosqlite:///{tmp_path}/data/r.db")
    for key in ("CLIENT_ID", "CLIENT_SECRET", "REFRESH_TOKEN"):
        monkeypatch.setenv(f"RADIOSYNC_SPOTIFY__{key}", "")
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


class TestOpenDatabase:
    """Test database setup."""

    async def test_creates_directory_and_tables(self, tmp_path) -> None:
        settings = Settings(
            _env_file=None,
            database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path}/nested/r.db"),
        )

        async with open_database(settings) as database:
            assert database.url.endswith("nested/r.db")

        assert (tmp_path / "nested" / "r.db").exists()


class TestLifespan:
    """Test fail-fast startup checks."""

    async def test_missing_credentials(self, settings: Settings) -> None:
        spotify = settings.spotify.model_copy(update={"refresh_token": ""})
        settings = settings.model_copy(update={"spotify": spotify})

        with pytest.raises(ConfigurationError, match="Spotify credentials"):
            async with lifespan(settings):
                pass


class TestMain:
    """Test the CLI."""

    def test_log_level_is_case_insensitive(self) -> None:
        args = build_parser().parse_args(["--log-level", "debug"])
        assert args.log_level == "DEBUG"

    def test_clear_data(self, isolated_env) -> None:
        assert main(["--clear-data"]) == 0
        assert (isolated_env / "data" / "r.db").exists()

    def test_missing_credentials_exit_code(self, isolated_env) -> None:
        assert main([]) == 2
