"""Operations that talk to the remote: pull, push, and LFS locks."""

import logging
from pathlib import Path
from typing import List, Sequence, Tuple

from .config import SettingsSnapshot
from .constants import STASH_MESSAGE
from .parsers import is_push_rejected, parse_lfs_push_dry_run
from .runner import GitRunner, get_branch_name
from .status import get_changed_files

logger = logging.getLogger(__name__)


def relative_path(runner: GitRunner, filename: str) -> str:
    """Path relative to the repository root, as git lfs expects."""
    root = runner.repository_root
    path = Path(filename)
    if root is not None and (root in path.parents):
        return path.relative_to(root).as_posix()
    return path.as_posix()


def _current_branch(runner: GitRunner) -> str:
    branch = get_branch_name(runner)
    return "" if branch.startswith("HEAD detached") else branch


def run_pull_rebase(
    runner: GitRunner,
    settings: SettingsSnapshot,
    errors: List[str],
    infos: List[str],
    autostash: bool = True,
) -> bool:
    """`git pull --rebase [--autostash] <remote> <branch>`."""
    branch = _current_branch(runner)
    if not branch:
        errors.append("Cannot pull: HEAD is not on a branch")
        return False

    parameters = ["--rebase"]
    if autostash:
        parameters.append("--autostash")
    parameters += [settings.remote_name, branch]

    result = runner.run("pull", parameters)
    if result.success:
        infos.extend(result.results)
        return True
    errors.extend(result.errors)
    return False


def _push(runner: GitRunner, settings: SettingsSnapshot):
    return runner.run("push", ["--set-upstream", settings.remote_name, "HEAD"])


def push_with_retry(
    runner: GitRunner,
    settings: SettingsSnapshot,
    errors: List[str],
    infos: List[str],
) -> bool:
    """Push HEAD; if the remote is ahead, rebase onto it and push once more.

    Local changes are stashed around the rebase and popped afterwards, even
    when the second push fails. The result is the second push's outcome,
    and a failing stash pop also counts as a failure.
    """
    first = _push(runner, settings)
    if first.success:
        infos.extend(first.results)
        return True
    if not is_push_rejected(first.errors):
        errors.extend(first.errors)
        return False

    logger.info("Push rejected by %s, rebasing before retrying", settings.remote_name)
    infos.extend(first.errors)

    stashed = False
    ok, changed = get_changed_files(runner)
    if ok and changed:
        stash = runner.run("stash", ["push", "-m", STASH_MESSAGE])
        if not stash.success:
            errors.extend(stash.errors)
            return False
        infos.extend(stash.results)
        stashed = True

    success = run_pull_rebase(runner, settings, errors, infos, autostash=False)
    if success:
        retry = _push(runner, settings)
        if retry.success:
            infos.extend(retry.results)
        else:
            errors.extend(retry.errors)
        success = retry.success
    else:
        # Leave the working copy as it was before the pull
        runner.run("rebase", ["--abort"])

    if stashed:
        pop = runner.run("stash", ["pop"])
        if pop.success:
            infos.extend(pop.results)
        else:
            errors.extend(pop.errors)
            success = False
    return success


def get_files_to_push(runner: GitRunner, settings: SettingsSnapshot, errors: List[str]) -> Tuple[bool, List[str]]:
    """Absolute paths of LFS files the next push would transfer."""
    result = runner.run("lfs", ["push", "--dry-run", settings.remote_name, "HEAD"])
    if not result.success:
        errors.extend(result.errors)
        return False, []
    root = runner.repository_root
    return True, [(root / path).as_posix() for path in parse_lfs_push_dry_run(result.results)]


def _lock_command(runner: GitRunner, verb: str, files: Sequence[str], errors: List[str], infos: List[str]) -> bool:
    # One invocation per file so one failure does not hide the others
    success = True
    for filename in files:
        result = runner.run("lfs", [verb], [relative_path(runner, filename)])
        if result.success:
            infos.extend(result.results)
        else:
            errors.extend(result.errors)
            success = False
    return success


def lock_files(runner: GitRunner, files: Sequence[str], errors: List[str], infos: List[str]) -> bool:
    return _lock_command(runner, "lock", files, errors, infos)


def unlock_files(runner: GitRunner, files: Sequence[str], errors: List[str], infos: List[str]) -> bool:
    return _lock_command(runner, "unlock", files, errors, infos)
