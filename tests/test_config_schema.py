"""Tests for the unified Pydantic config schema and its runtime adapter."""

import pytest
from pydantic import ValidationError

from diary_sync.config import DEFAULT_DATABASE_PATH, Config
from diary_sync.config_schema import (
    DiaryConfig,
    LoggingConfig,
    UnifiedConfig,
    build_config,
    to_legacy_config,
)


class TestModels:
    def test_zero_config(self):
        unified = UnifiedConfig()
        assert unified.diary.pending_policy == "reject"
        assert unified.diary.conflict_strategy == "manual"
        assert unified.logging.level == "INFO"

    def test_build_from_empty(self):
        assert build_config({}) == UnifiedConfig()

    def test_build_sections(self):
        unified = build_config(
            {
                "diary": {"remote_dir": "/mnt/export", "max_parallel_syncs": 8},
                "logging": {"level": "DEBUG", "file": "/tmp/d.log"},
            }
        )
        assert unified.diary.remote_dir == "/mnt/export"
        assert unified.diary.max_parallel_syncs == 8
        assert unified.logging == LoggingConfig(level="DEBUG", file="/tmp/d.log")

    @pytest.mark.parametrize(
        "field, value",
        [
            ("pending_policy", "merge"),
            ("conflict_strategy", "newest"),
            ("max_parallel_syncs", 0),
            ("max_parallel_syncs", 65),
            ("remote_timeout", 0),
        ],
    )
    def test_rejects_bad_values(self, field, value):
        with pytest.raises(ValidationError):
            DiaryConfig(**{field: value})

    def test_frozen(self):
        diary = DiaryConfig()
        with pytest.raises(ValidationError):
            diary.debug = True


class TestToLegacyConfig:
    def test_defaults(self):
        config = to_legacy_config(UnifiedConfig())
        assert isinstance(config, Config)
        assert config.database_path == DEFAULT_DATABASE_PATH
        assert config.remote_dir is None
        assert config.debug is False

    def test_yaml_values_carried(self):
        unified = build_config(
            {
                "diary": {
                    "database_path": "/data/diary.db",
                    "remote_url": "https://diary.example.com",
                    "remote_timeout": 12.5,
                    "pending_policy": "supersede",
                    "conflict_strategy": "local-wins",
                }
            }
        )
        config = to_legacy_config(unified)
        assert config.database_path == "/data/diary.db"
        assert config.remote_url == "https://diary.example.com"
        assert config.remote_timeout == 12.5
        assert config.pending_policy == "supersede"
        assert config.conflict_strategy == "local-wins"

    def test_cli_overrides_win(self):
        unified = build_config(
            {"diary": {"database_path": "/data/diary.db", "remote_dir": "/a"}}
        )
        config = to_legacy_config(
            unified,
            cli_overrides={"database_path": "/cli.db", "remote_dir": "/b", "debug": True},
        )
        assert config.database_path == "/cli.db"
        assert config.remote_dir == "/b"
        assert config.debug is True

    def test_remote_credentials_carried(self):
        unified = build_config(
            {
                "diary": {
                    "remote_url": "https://diary.example.com",
                    "remote_username": "alice",
                    "remote_password": "s3cret",
                    "insecure": True,
                }
            }
        )
        config = to_legacy_config(unified)
        assert config.remote_username == "alice"
        assert config.remote_password == "s3cret"
        assert config.insecure is True
