"""Test settings loading and snapshots."""

import dataclasses

import pytest

from git_source_control.config import SourceControlSettings, load_settings
from git_source_control.constants import ENV_BINARY, ENV_LOCKING, MAX_FILES_PER_BATCH, SETTINGS_FILE
from git_source_control.errors import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv(ENV_BINARY, raising=False)
    monkeypatch.delenv(ENV_LOCKING, raising=False)


class TestLoadSettings:
    """Test reading the settings file."""

    def test_defaults_without_file(self, repo):
        settings = load_settings(repo)
        assert settings.binary_path == "git"
        assert settings.using_locking is False
        assert settings.remote_name == "origin"
        assert settings.max_files_per_batch == MAX_FILES_PER_BATCH
        assert settings.project_dirs == []

    def test_git_section(self, repo):
        (repo / SETTINGS_FILE).write_text(
            "git:\n"
            "  binary_path: /usr/local/bin/git\n"
            "  using_locking: true\n"
            "  lock_user: userX\n"
            "  remote_name: upstream\n"
            "  max_files_per_batch: 20\n"
            "  project_dirs: [Content, Config]\n"
        )
        settings = load_settings(repo)
        assert settings.binary_path == "/usr/local/bin/git"
        assert settings.using_locking is True
        assert settings.lock_user == "userX"
        assert settings.remote_name == "upstream"
        assert settings.max_files_per_batch == 20
        assert settings.project_dirs == [str(repo / "Content"), str(repo / "Config")]

    def test_top_level_keys(self, repo):
        (repo / SETTINGS_FILE).write_text("using_locking: yes\n")
        assert load_settings(repo).using_locking is True

    def test_environment_overrides_file(self, repo, monkeypatch):
        (repo / SETTINGS_FILE).write_text("git:\n  using_locking: true\n")
        monkeypatch.setenv(ENV_LOCKING, "0")
        monkeypatch.setenv(ENV_BINARY, "/opt/git/bin/git")
        settings = load_settings(repo)
        assert settings.using_locking is False
        assert settings.binary_path == "/opt/git/bin/git"

    @pytest.mark.parametrize("content", [
        "git: [unclosed\n",
        "- just\n- a list\n",
        "git:\n  max_files_per_batch: 0\n",
        "git:\n  max_files_per_batch: lots\n",
        "git:\n  project_dirs: Content\n",
    ])
    def test_invalid_file(self, repo, content):
        (repo / SETTINGS_FILE).write_text(content)
        with pytest.raises(ConfigError):
            load_settings(repo)


class TestSettingsObject:
    """Test thread-safe access and snapshots."""

    def test_snapshot_is_frozen(self):
        snapshot = SourceControlSettings().snapshot()
        with pytest.raises(dataclasses.FrozenInstanceError):
            snapshot.using_locking = True

    def test_later_change_does_not_affect_snapshot(self):
        settings = SourceControlSettings(project_dirs=["/repo/Content"])
        snapshot = settings.snapshot()

        settings.set("using_locking", True)
        settings.project_dirs.append("/repo/Config")

        assert snapshot.using_locking is False
        assert snapshot.project_dirs == ("/repo/Content",)
        assert settings.get("using_locking") is True

    def test_unknown_setting(self):
        with pytest.raises(AttributeError):
            SourceControlSettings().set("colour", "blue")
