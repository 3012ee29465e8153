"""Tests for diary_sync.config_loader: YAML discovery, includes, interpolation."""

import textwrap

import pytest
import yaml

from diary_sync.config_loader import (
    _interpolate_recursive,
    read_yaml,
    discover_config_files,
    interpolate_env_vars,
    load_hierarchical_config,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run with an empty CWD and HOME so no real config files leak in."""
    monkeypatch.delenv("DIARY_SYNC_CONFIG", raising=False)
    home = tmp_path / "home"
    home.mkdir()
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    return work, home


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    def test_set_var(self, monkeypatch):
        monkeypatch.setenv("DIARY_HOME", "/srv/diary")
        assert interpolate_env_vars("${DIARY_HOME}/diary.db") == "/srv/diary/diary.db"

    def test_unset_var_is_empty(self, monkeypatch):
        monkeypatch.delenv("DIARY_UNSET_XYZ", raising=False)
        assert interpolate_env_vars("[${DIARY_UNSET_XYZ}]") == "[]"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("DIARY_UNSET_XYZ", raising=False)
        assert interpolate_env_vars("${DIARY_UNSET_XYZ:-manual}") == "manual"

    def test_empty_value_uses_default(self, monkeypatch):
        monkeypatch.setenv("DIARY_EMPTY", "")
        assert interpolate_env_vars("${DIARY_EMPTY:-reject}") == "reject"

    def test_unclosed_left_alone(self):
        assert interpolate_env_vars("${OPEN") == "${OPEN"

    def test_recursive(self, monkeypatch):
        monkeypatch.setenv("EXPORT_DIR", "/mnt/export")
        data = {"diary": {"remote_dir": "${EXPORT_DIR}", "debug": True}, "tags": ["${EXPORT_DIR}", 3]}
        assert _interpolate_recursive(data) == {
            "diary": {"remote_dir": "/mnt/export", "debug": True},
            "tags": ["/mnt/export", 3],
        }


# -------------------------------------------------------------------------
# !include
# -------------------------------------------------------------------------


class TestIncludes:
    def test_relative_include(self, tmp_path):
        _write(tmp_path / "parts" / "diary.yml", "remote_dir: /mnt/export\n")
        main = _write(tmp_path / "config.yml", "diary: !include parts/diary.yml\n")
        assert read_yaml(main) == {
            "diary": {"remote_dir": "/mnt/export"}
        }

    def test_missing_include(self, tmp_path):
        main = _write(tmp_path / "config.yml", "diary: !include nope.yml\n")
        with pytest.raises(FileNotFoundError, match="Include file not found"):
            read_yaml(main)

    def test_circular_include(self, tmp_path):
        _write(tmp_path / "a.yml", "x: !include b.yml\n")
        _write(tmp_path / "b.yml", "y: !include a.yml\n")
        with pytest.raises(ValueError, match="Circular include"):
            read_yaml(tmp_path / "a.yml")

    def test_safe_loader_untouched(self):
        with pytest.raises(yaml.YAMLError):
            yaml.safe_load("x: !include other.yml")


# -------------------------------------------------------------------------
# Discovery and merge
# -------------------------------------------------------------------------


class TestDiscovery:
    def test_nothing_found(self, isolated):
        assert discover_config_files() == []
        assert load_hierarchical_config() == {}

    def test_precedence_order(self, isolated, tmp_path, monkeypatch):
        work, home = isolated
        explicit = _write(tmp_path / "explicit.yml", "diary: {}\n")
        project = _write(work / ".diary_sync" / "config.yml", "diary: {}\n")
        global_ = _write(home / ".config" / "diary_sync" / "config.yml", "diary: {}\n")
        monkeypatch.setenv("DIARY_SYNC_CONFIG", str(explicit))

        found = discover_config_files()
        assert [p.resolve() for p in found] == [
            explicit.resolve(),
            project.resolve(),
            global_.resolve(),
        ]

    def test_project_wins_per_section(self, isolated):
        work, home = isolated
        _write(
            home / ".config" / "diary_sync" / "config.yml",
            """
            diary:
              remote_dir: /global/export
            logging:
              level: DEBUG
            """,
        )
        _write(
            work / ".diary_sync" / "config.yml",
            """
            diary:
              remote_url: https://diary.example.com
            """,
        )
        merged = load_hierarchical_config()
        # Top-level sections are replaced, not deep-merged
        assert merged["diary"] == {"remote_url": "https://diary.example.com"}
        assert merged["logging"] == {"level": "DEBUG"}

    def test_non_dict_root_skipped(self, isolated):
        work, _ = isolated
        _write(work / ".diary_sync" / "config.yml", "- just\n- a list\n")
        assert load_hierarchical_config() == {}

    def test_interpolates_after_merge(self, isolated, monkeypatch):
        work, _ = isolated
        monkeypatch.setenv("DIARY_EXPORT", "/mnt/diary")
        _write(
            work / ".diary_sync" / "config.yml",
            "diary:\n  remote_dir: ${DIARY_EXPORT}\n",
        )
        assert load_hierarchical_config()["diary"]["remote_dir"] == "/mnt/diary"

    def test_broken_yaml_raises(self, isolated):
        work, _ = isolated
        _write(work / ".diary_sync" / "config.yml", "diary: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_hierarchical_config()

    def test_explicit_paths(self, isolated, tmp_path):
        high = _write(tmp_path / "high.yml", "diary:\n  remote_dir: /high\n")
        low = _write(
            tmp_path / "low.yml",
            "diary:\n  remote_dir: /low\nlogging:\n  level: DEBUG\n",
        )
        merged = load_hierarchical_config([high, low])
        assert merged == {
            "diary": {"remote_dir": "/high"},
            "logging": {"level": "DEBUG"},
        }
