"""Tests for diary_sync.config: env-var config loading and validation.

NOT to be confused with test_config_loader.py (YAML discovery) or
test_config_schema.py (Pydantic models).  This covers the runtime path:
validate_config() and load_config().
"""

import logging

import pytest

from diary_sync.config import Config, load_config, validate_config

_ENV_KEYS = [
    "DIARY_DATABASE_PATH",
    "DIARY_REMOTE_DIR",
    "DIARY_REMOTE_URL",
    "DIARY_REMOTE_TIMEOUT",
    "DIARY_MAX_PARALLEL_SYNCS",
    "DIARY_PENDING_POLICY",
    "DIARY_CONFLICT_STRATEGY",
    "DIARY_DEBUG",
    "DIARY_REMOTE_USERNAME",
    "DIARY_REMOTE_PASSWORD",
    "DIARY_INSECURE",
    "DIARY_ARCHIVE_DIR",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Remote selection, URL format and enumerated settings."""

    def test_directory_remote(self):
        validate_config(Config(remote_dir="/mnt/export"))

    def test_url_remote_normalised(self):
        config = Config(remote_url=" https://diary.example.com/export/ ")
        validate_config(config)
        assert config.remote_url == "https://diary.example.com/export"

    def test_no_remote(self):
        with pytest.raises(ValueError, match="No remote configured"):
            validate_config(Config())

    def test_both_remotes(self):
        with pytest.raises(ValueError, match="choose one"):
            validate_config(
                Config(remote_dir="/mnt", remote_url="https://example.com")
            )

    @pytest.mark.parametrize(
        "url, message",
        [
            ("example.com", "must start with http:// or https://"),
            ("ftp://example.com", "must start with http:// or https://"),
            ("https://", "must include a hostname"),
        ],
    )
    def test_bad_url(self, url, message):
        with pytest.raises(ValueError, match=message):
            validate_config(Config(remote_url=url))

    def test_bad_policy(self):
        with pytest.raises(ValueError, match="pending policy"):
            validate_config(Config(remote_dir="/mnt", pending_policy="merge"))

    def test_bad_strategy(self):
        with pytest.raises(ValueError, match="conflict strategy"):
            validate_config(
                Config(remote_dir="/mnt", conflict_strategy="newest")
            )

    @pytest.mark.parametrize(
        "username, password",
        [("alice", None), (None, "s3cret"), ("alice", "")],
    )
    def test_half_set_credentials(self, username, password):
        with pytest.raises(ValueError, match="credentials are incomplete"):
            validate_config(
                Config(
                    remote_url="https://example.com",
                    remote_username=username,
                    remote_password=password,
                )
            )

    def test_insecure_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="diary_sync.config"):
            validate_config(Config(remote_url="https://example.com", insecure=True))
        assert "TLS verification disabled" in caplog.text

    def test_automatic_strategy_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="diary_sync.config"):
            validate_config(
                Config(remote_dir="/mnt", conflict_strategy="remote-wins")
            )
        assert "without review" in caplog.text


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Precedence: CLI > env > YAML fallbacks > defaults."""

    def test_defaults_with_cli_remote(self):
        config = load_config(remote_dir="/mnt/export")
        assert config.remote_dir == "/mnt/export"
        assert config.database_path.endswith("diary.db")
        assert config.remote_timeout == 30.0
        assert config.max_parallel_syncs == 4
        assert config.pending_policy == "reject"
        assert config.conflict_strategy == "manual"
        assert config.debug is False

    def test_env_values(self, monkeypatch):
        monkeypatch.setenv("DIARY_REMOTE_URL", "https://diary.example.com")
        monkeypatch.setenv("DIARY_DATABASE_PATH", "/data/diary.db")
        monkeypatch.setenv("DIARY_REMOTE_TIMEOUT", "12.5")
        monkeypatch.setenv("DIARY_MAX_PARALLEL_SYNCS", "8")
        monkeypatch.setenv("DIARY_PENDING_POLICY", "Supersede")
        monkeypatch.setenv("DIARY_CONFLICT_STRATEGY", "local-wins")
        monkeypatch.setenv("DIARY_DEBUG", "yes")

        config = load_config()
        assert config.remote_url == "https://diary.example.com"
        assert config.database_path == "/data/diary.db"
        assert config.remote_timeout == 12.5
        assert config.max_parallel_syncs == 8
        assert config.pending_policy == "supersede"
        assert config.conflict_strategy == "local-wins"
        assert config.debug is True

    def test_cli_beats_env(self, monkeypatch):
        monkeypatch.setenv("DIARY_REMOTE_DIR", "/env/export")
        monkeypatch.setenv("DIARY_DATABASE_PATH", "/env/diary.db")
        config = load_config(database_path="/cli/diary.db", remote_dir="/cli/export")
        assert config.database_path == "/cli/diary.db"
        assert config.remote_dir == "/cli/export"

    def test_env_beats_yaml(self, monkeypatch):
        monkeypatch.setenv("DIARY_PENDING_POLICY", "reject")
        config = load_config(
            yaml_fallbacks={
                "remote_dir": "/yaml/export",
                "pending_policy": "supersede",
            }
        )
        assert config.remote_dir == "/yaml/export"
        assert config.pending_policy == "reject"

    def test_yaml_fallbacks(self):
        config = load_config(
            yaml_fallbacks={
                "remote_dir": "/yaml/export",
                "remote_timeout": 5,
                "max_parallel_syncs": 2,
                "debug": True,
            }
        )
        assert config.remote_timeout == 5.0
        assert config.max_parallel_syncs == 2
        assert config.debug is True

    def test_remote_credentials_from_env(self, monkeypatch):
        monkeypatch.setenv("DIARY_REMOTE_URL", "https://diary.example.com")
        monkeypatch.setenv("DIARY_REMOTE_USERNAME", "alice")
        monkeypatch.setenv("DIARY_REMOTE_PASSWORD", "s3cret")
        monkeypatch.setenv("DIARY_INSECURE", "1")
        config = load_config()
        assert config.remote_username == "alice"
        assert config.remote_password == "s3cret"
        assert config.insecure is True

    def test_archive_dir_precedence(self, monkeypatch):
        monkeypatch.setenv("DIARY_ARCHIVE_DIR", "/env/archive")
        yaml = {"archive_dir": "/yaml/archive"}
        assert load_config(remote_dir="/mnt", yaml_fallbacks=yaml).archive_dir == (
            "/env/archive"
        )
        config = load_config(
            remote_dir="/mnt", archive_dir="/cli/archive", yaml_fallbacks=yaml
        )
        assert config.archive_dir == "/cli/archive"

    def test_archive_dir_defaults_to_none(self):
        assert load_config(remote_dir="/mnt").archive_dir is None

    def test_remote_credentials_from_yaml(self):
        config = load_config(
            yaml_fallbacks={
                "remote_url": "https://diary.example.com",
                "remote_username": "alice",
                "remote_password": "s3cret",
            }
        )
        assert (config.remote_username, config.remote_password) == ("alice", "s3cret")
        assert config.insecure is False

    def test_cli_insecure_beats_env(self, monkeypatch):
        monkeypatch.setenv("DIARY_INSECURE", "false")
        config = load_config(remote_url="https://diary.example.com", insecure=True)
        assert config.insecure is True

    def test_env_false_overrides_yaml_debug(self, monkeypatch):
        monkeypatch.setenv("DIARY_DEBUG", "false")
        config = load_config(
            remote_dir="/mnt", yaml_fallbacks={"debug": True}
        )
        assert config.debug is False

    @pytest.mark.parametrize(
        "key, value",
        [
            ("DIARY_REMOTE_TIMEOUT", "soon"),
            ("DIARY_REMOTE_TIMEOUT", "0"),
            ("DIARY_MAX_PARALLEL_SYNCS", "100"),
            ("DIARY_MAX_PARALLEL_SYNCS", "2.5"),
        ],
    )
    def test_bad_numbers(self, monkeypatch, key, value):
        monkeypatch.setenv(key, value)
        with pytest.raises(ValueError, match=key):
            load_config(remote_dir="/mnt")

    def test_missing_remote(self):
        with pytest.raises(ValueError, match="No remote configured"):
            load_config()
