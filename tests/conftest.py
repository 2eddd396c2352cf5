"""Shared test fixtures and utilities."""

from typing import Optional

import pytest

from git_source_control.command import Command
from git_source_control.config import SettingsSnapshot, SourceControlSettings
from git_source_control.operations import Operation
from git_source_control.provider import GitSourceControlProvider, ProviderDeps
from git_source_control.workers import create_worker
from tests.fakes import FakeRunner, ManualExecutor, git, ok, skip_if_no_git


@pytest.fixture
def repo(tmp_path):
    """Directory that looks like a repository root (has a .git entry)."""
    root = tmp_path.resolve() / "project"
    (root / ".git").mkdir(parents=True)
    return root


@pytest.fixture
def write_file(repo):
    """Factory fixture to write files relative to the repository root."""
    def _write(path: str, content: str = "test content") -> str:
        file_path = repo / path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content)
        return file_path.as_posix()
    return _write


@pytest.fixture
def fake_git(repo):
    """FakeRunner rooted at repo with user userX on branch main."""
    runner = FakeRunner(repo)
    runner.on("version", ok("git version 2.43.0"))
    runner.on("config", ok("userX"), match=lambda p, f: p == ["user.name"])
    runner.on("config", ok("userx@example.com"), match=lambda p, f: p == ["user.email"])
    runner.on("symbolic-ref", ok("main"))
    return runner


@pytest.fixture
def make_command(repo, fake_git):
    """Factory fixture building a Command around fake_git."""
    def _make(operation: Operation, files=(), settings: Optional[SettingsSnapshot] = None,
              cached_states=None) -> Command:
        return Command(
            operation=operation,
            worker=create_worker(operation.name),
            files=list(files),
            settings=settings or SettingsSnapshot(),
            repository_root=repo,
            runner=fake_git,
            cached_states=cached_states or {},
        )
    return _make


@pytest.fixture
def executor():
    return ManualExecutor()


@pytest.fixture
def make_provider(repo, fake_git, executor):
    """Factory fixture for a provider running commands on a ManualExecutor.

    Synchronous waits run the queued work from the injected sleep.
    """
    def _make(settings: Optional[SourceControlSettings] = None, connect: bool = True, path=None):
        deps = ProviderDeps(
            settings=settings or SourceControlSettings(),
            runner_factory=lambda binary, root: fake_git,
            executor_factory=lambda: executor,
            sleep=lambda seconds: executor.run_all(),
        )
        provider = GitSourceControlProvider(path or repo, deps)
        if connect:
            provider.check_git_availability()
        return provider
    return _make


@pytest.fixture
def git_repo(tmp_path):
    """A real, empty git repository with a configured user on branch main."""
    skip_if_no_git()
    root = tmp_path.resolve() / "repo"
    root.mkdir()
    git(root, "init", "--quiet")
    git(root, "symbolic-ref", "HEAD", "refs/heads/main")
    git(root, "config", "user.name", "Test User")
    git(root, "config", "user.email", "test@example.com")
    git(root, "config", "commit.gpgsign", "false")
    return root
