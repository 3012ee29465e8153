"""Tests for diary_sync.mcp.lifespan: server startup and shutdown.

server_lifespan() loads config, opens the database, sizes the sync
semaphore and fails fast with RuntimeError on bad config or storage.
"""

from unittest.mock import patch

import pytest

from diary_sync.config import Config
from diary_sync.errors import StorageFailureError
from diary_sync.mcp.lifespan import server_lifespan
from diary_sync.service import DiaryService


@pytest.fixture(autouse=True)
def quiet(monkeypatch, tmp_path):
    """No real config files, .env or semaphore leak into these tests."""
    for key in (
        "DIARY_SYNC_CONFIG",
        "DIARY_DATABASE_PATH",
        "DIARY_REMOTE_DIR",
        "DIARY_REMOTE_URL",
        "DIARY_PENDING_POLICY",
        "DIARY_CONFLICT_STRATEGY",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    with (
        patch("diary_sync.mcp.lifespan._stderr_print"),
        patch("diary_sync.mcp.lifespan.load_dotenv"),
        patch("diary_sync.mcp.lifespan.init_semaphore") as init_sem,
    ):
        yield init_sem


class TestServerLifespanSuccess:
    async def test_startup_with_cli_overrides(self, tmp_path, quiet):
        overrides = {
            "database_path": str(tmp_path / "data" / "diary.db"),
            "remote_dir": str(tmp_path / "export"),
        }
        async with server_lifespan(overrides) as ctx:
            assert isinstance(ctx["service"], DiaryService)
            assert isinstance(ctx["config"], Config)
            assert ctx["config"].remote_dir == str(tmp_path / "export")
        assert (tmp_path / "data" / "diary.db").exists()
        quiet.assert_called_once_with(4)

    async def test_yaml_fallbacks(self, tmp_path, quiet):
        config_dir = tmp_path / ".diary_sync"
        config_dir.mkdir()
        (config_dir / "config.yml").write_text(
            "diary:\n"
            f"  database_path: {tmp_path / 'yaml.db'}\n"
            "  remote_url: https://diary.example.com/export\n"
            "  max_parallel_syncs: 2\n"
            "  pending_policy: supersede\n",
            encoding="utf-8",
        )
        async with server_lifespan() as ctx:
            config = ctx["config"]
            assert config.remote_url == "https://diary.example.com/export"
            assert config.pending_policy == "supersede"
            assert ctx["service"].engine.pending_policy == "supersede"
        quiet.assert_called_once_with(2)


class TestServerLifespanFailures:
    async def test_missing_remote(self, tmp_path):
        with pytest.raises(RuntimeError, match="Configuration error"):
            async with server_lifespan({"database_path": str(tmp_path / "d.db")}):
                pass

    async def test_invalid_yaml_value(self, tmp_path):
        config_dir = tmp_path / ".diary_sync"
        config_dir.mkdir()
        (config_dir / "config.yml").write_text(
            "diary:\n  remote_dir: /mnt\n  pending_policy: merge\n",
            encoding="utf-8",
        )
        with pytest.raises(RuntimeError, match="Configuration error"):
            async with server_lifespan():
                pass

    async def test_broken_yaml(self, tmp_path):
        config_dir = tmp_path / ".diary_sync"
        config_dir.mkdir()
        (config_dir / "config.yml").write_text("diary: [oops\n", encoding="utf-8")
        with pytest.raises(RuntimeError, match="Configuration error"):
            async with server_lifespan():
                pass

    async def test_database_failure(self, tmp_path):
        overrides = {
            "database_path": str(tmp_path / "d.db"),
            "remote_dir": str(tmp_path),
        }
        with patch(
            "diary_sync.mcp.lifespan.DiaryService.from_config",
            side_effect=StorageFailureError("unable to open database file"),
        ):
            with pytest.raises(RuntimeError, match="could not be opened"):
                async with server_lifespan(overrides):
                    pass
