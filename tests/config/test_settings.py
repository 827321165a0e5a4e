"""Tests for layered settings."""

import pytest
from reconciler.config import Settings, load_config, load_settings
from reconciler.config.manager import _deep_merge
from reconciler.utils.errors import ConfigError


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Empty home and working directory."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    return home, work


class TestLoadSettings:
    """Defaults, user config, project config and overrides."""

    def test_packaged_defaults(self, isolated):
        settings = load_settings()

        assert settings.state_path == ".reconciler/state.json"
        assert settings.parallelism == 10
        assert settings.retry.max_attempts == 3
        assert settings.refresh is True

    def test_project_overrides_user(self, isolated):
        home, work = isolated
        (home / ".reconciler").mkdir()
        (home / ".reconciler" / "config.yaml").write_text("parallelism: 4\nretry:\n  backoff_seconds: 2\n")
        (work / ".reconciler").mkdir()
        (work / ".reconciler" / "config.yaml").write_text("parallelism: 2\n")

        settings = load_settings()

        assert settings.parallelism == 2
        assert settings.retry.backoff_seconds == 2
        assert settings.retry.max_attempts == 3

    def test_overrides_win_and_none_is_ignored(self, isolated):
        settings = load_settings({"parallelism": 1, "state_path": None})

        assert settings.parallelism == 1
        assert settings.state_path == ".reconciler/state.json"

    def test_invalid_value(self, isolated):
        with pytest.raises(ConfigError, match="Invalid settings"):
            load_settings({"parallelism": 0})

    def test_unknown_key(self, isolated):
        _, work = isolated
        (work / ".reconciler").mkdir()
        (work / ".reconciler" / "config.yaml").write_text("paralellism: 3\n")

        with pytest.raises(ConfigError):
            load_settings()

    def test_invalid_yaml(self, isolated):
        _, work = isolated
        (work / ".reconciler").mkdir()
        (work / ".reconciler" / "config.yaml").write_text("parallelism: [\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config()


class TestMerging:
    """Merge helper and model defaults."""

    def test_deep_merge(self):
        base = {"retry": {"max_attempts": 3, "backoff_seconds": 1.0}, "refresh": True}
        _deep_merge(base, {"retry": {"max_attempts": 5}, "refresh": False})

        assert base == {"retry": {"max_attempts": 5, "backoff_seconds": 1.0}, "refresh": False}

    def test_settings_model_defaults(self):
        assert Settings().allow_replace is True
