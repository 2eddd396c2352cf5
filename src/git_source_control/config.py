"""Provider settings and the per-command settings snapshot."""

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

import yaml

from .constants import (
    DEFAULT_BINARY,
    DEFAULT_REMOTE,
    ENV_BINARY,
    ENV_LOCKING,
    MAX_FILES_PER_BATCH,
    SETTINGS_FILE,
)
from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettingsSnapshot:
    """Settings captured by value when a command is built.

    Workers read only this snapshot, so a settings change made while a
    command runs never affects that command.
    """

    binary_path: str = DEFAULT_BINARY
    using_locking: bool = False
    lock_user: Optional[str] = None
    remote_name: str = DEFAULT_REMOTE
    max_files_per_batch: int = MAX_FILES_PER_BATCH
    project_dirs: Tuple[str, ...] = ()


@dataclass
class SourceControlSettings:
    """Mutable provider settings, safe to read and write from any thread."""

    binary_path: str = DEFAULT_BINARY
    using_locking: bool = False
    lock_user: Optional[str] = None
    remote_name: str = DEFAULT_REMOTE
    max_files_per_batch: int = MAX_FILES_PER_BATCH
    project_dirs: List[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def get(self, name: str):
        with self._lock:
            return getattr(self, name)

    def set(self, name: str, value) -> None:
        if name.startswith("_") or not hasattr(self, name):
            raise AttributeError(f"Unknown setting: {name}")
        with self._lock:
            setattr(self, name, value)

    def snapshot(self) -> SettingsSnapshot:
        """Capture the current values."""
        with self._lock:
            return SettingsSnapshot(
                binary_path=self.binary_path,
                using_locking=self.using_locking,
                lock_user=self.lock_user,
                remote_name=self.remote_name,
                max_files_per_batch=self.max_files_per_batch,
                project_dirs=tuple(self.project_dirs),
            )


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")


def load_settings(root: Path) -> SourceControlSettings:
    """Load settings from <root>/.git-source-control.yaml if present.

    Environment variables GIT_SOURCE_CONTROL_BINARY and
    GIT_SOURCE_CONTROL_LOCKING override the file.

    Raises:
        ConfigError: If the file exists but is not valid YAML or has
            values of the wrong type.
    """
    settings = SourceControlSettings()
    cfg_path = Path(root) / SETTINGS_FILE

    if cfg_path.exists():
        try:
            data = yaml.safe_load(cfg_path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid settings file {cfg_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Invalid settings file {cfg_path}: expected a mapping")

        section = data.get("git", data)
        settings.binary_path = str(section.get("binary_path", settings.binary_path))
        settings.using_locking = _as_bool(section.get("using_locking", settings.using_locking))
        settings.lock_user = section.get("lock_user", settings.lock_user)
        settings.remote_name = str(section.get("remote_name", settings.remote_name))

        batch = section.get("max_files_per_batch", settings.max_files_per_batch)
        if not isinstance(batch, int) or isinstance(batch, bool) or batch < 1:
            raise ConfigError(f"max_files_per_batch must be a positive integer, got {batch!r}")
        settings.max_files_per_batch = batch

        dirs = section.get("project_dirs", [])
        if not isinstance(dirs, list):
            raise ConfigError("project_dirs must be a list of paths")
        settings.project_dirs = [
            str(Path(d) if Path(d).is_absolute() else (Path(root) / d).resolve()) for d in dirs
        ]
        logger.debug("Loaded settings from %s", cfg_path)

    binary = os.environ.get(ENV_BINARY)
    if binary:
        settings.binary_path = binary
    locking = os.environ.get(ENV_LOCKING)
    if locking is not None:
        settings.using_locking = _as_bool(locking)

    return settings
