"""End-to-end tests against a real git repository.

These run the actual git binary and are skipped when it is not installed.
"""

import pytest
from typer.testing import CliRunner

from git_source_control.cli import app
from git_source_control.config import SourceControlSettings
from git_source_control.core import CacheUsage, CommandResult, WorkingCopyState
from git_source_control.operations import CheckIn, Delete, MarkForAdd, Revert, UpdateStatus
from git_source_control.provider import ProviderDeps, open_provider
from tests.fakes import git

pytestmark = pytest.mark.integration


@pytest.fixture
def committed_repo(git_repo):
    """git_repo with one initial commit."""
    (git_repo / "README.md").write_text("# Project\n")
    git(git_repo, "add", "README.md")
    git(git_repo, "commit", "--quiet", "-m", "Initial commit")
    return git_repo


@pytest.fixture
def provider(committed_repo):
    settings = SourceControlSettings(max_files_per_batch=50)
    with open_provider(committed_repo, ProviderDeps(settings=settings)) as p:
        yield p


class TestWorkflow:
    """Test add, commit, revert and delete on a real working copy."""

    def test_add_new_file(self, provider, committed_repo):
        path = committed_repo / "Content" / "A.uasset"
        path.parent.mkdir()
        path.write_bytes(b"\x00asset")

        [state] = provider.get_state([path], CacheUsage.FORCE_UPDATE)
        assert state.working_copy_state == WorkingCopyState.NOT_CONTROLLED

        assert provider.execute(MarkForAdd(), [path]) == CommandResult.SUCCEEDED
        [state] = provider.get_state([path])
        assert state.working_copy_state == WorkingCopyState.ADDED
        assert state.can_check_in()

    def test_batched_commit_is_one_revision(self, provider, committed_repo):
        content = committed_repo / "Content"
        content.mkdir()
        files = []
        for i in range(120):
            path = content / f"T_{i:03}.uasset"
            path.write_text(f"texture {i}")
            files.append(path)
        assert provider.execute(MarkForAdd(), files) == CommandResult.SUCCEEDED

        operation = CheckIn(description="Import 120 textures")
        assert provider.execute(operation, files) == CommandResult.SUCCEEDED

        assert git(committed_repo, "rev-list", "--count", "HEAD").strip() == "2"
        tracked = git(committed_repo, "ls-tree", "-r", "--name-only", "HEAD").split()
        assert len(tracked) == 121
        assert git(committed_repo, "log", "-1", "--format=%s").strip() == "Import 120 textures"
        assert provider.commit_id == git(committed_repo, "rev-parse", "HEAD").strip()
        assert operation.success_message.startswith(f"Submitted revision {provider.commit_id[:8]}")
        states = provider.get_state(files)
        assert all(s.working_copy_state == WorkingCopyState.UNCHANGED for s in states)

    def test_update_status_is_idempotent(self, provider, committed_repo):
        (committed_repo / "README.md").write_text("# Changed\n")
        (committed_repo / "notes.txt").write_text("scratch")
        files = [committed_repo / "README.md", committed_repo / "notes.txt"]

        provider.execute(UpdateStatus(), files)
        first = [(s.filename, s.working_copy_state) for s in provider.get_state(files)]
        provider.execute(UpdateStatus(), files)
        second = [(s.filename, s.working_copy_state) for s in provider.get_state(files)]

        assert first == second
        assert [state for _, state in first] == [WorkingCopyState.MODIFIED, WorkingCopyState.NOT_CONTROLLED]

    def test_history_has_blob_ids(self, provider, committed_repo):
        readme = committed_repo / "README.md"
        readme.write_text("# Project\n\nSecond revision\n")
        provider.execute(CheckIn(description="Expand readme"), [readme])

        assert provider.execute(UpdateStatus(update_history=True), [readme]) == CommandResult.SUCCEEDED
        [state] = provider.get_state([readme])

        assert [r.revision_number for r in state.history] == [2, 1]
        assert state.history[0].description == "Expand readme"
        assert state.history[0].file_hash == git(committed_repo, "rev-parse", "HEAD:README.md").strip()
        assert state.history[1].file_size == len("# Project\n")

    def test_revert_restores_content(self, provider, committed_repo):
        readme = committed_repo / "README.md"
        readme.write_text("scribbles")
        provider.get_state([readme], CacheUsage.FORCE_UPDATE)

        assert provider.execute(Revert(), [readme]) == CommandResult.SUCCEEDED

        assert readme.read_text() == "# Project\n"
        assert provider.get_state([readme])[0].working_copy_state == WorkingCopyState.UNCHANGED

    def test_delete(self, provider, committed_repo):
        readme = committed_repo / "README.md"
        assert provider.execute(Delete(), [readme]) == CommandResult.SUCCEEDED
        assert not readme.exists()
        assert provider.get_state([readme])[0].working_copy_state == WorkingCopyState.DELETED


class TestCli:
    """Test the gitsc commands in-process."""

    def test_add_status_commit(self, committed_repo, monkeypatch):
        monkeypatch.delenv("GIT_SOURCE_CONTROL_LOCKING", raising=False)
        runner = CliRunner()
        (committed_repo / "level.umap").write_text("map")
        base = ["--path", str(committed_repo)]

        result = runner.invoke(app, base + ["add", "level.umap"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(app, base + ["status"])
        assert result.exit_code == 0, result.output
        assert "level.umap" in result.output
        assert "Added" in result.output

        result = runner.invoke(app, base + ["commit", "-m", "Add level"])
        assert result.exit_code == 0, result.output
        assert "Submitted revision" in result.output
        assert git(committed_repo, "log", "-1", "--format=%s").strip() == "Add level"

    def test_outside_repository(self, tmp_path):
        result = CliRunner().invoke(app, ["--path", str(tmp_path), "status"])
        assert result.exit_code == 1
        assert "repository" in result.output
