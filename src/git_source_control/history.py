"""File history: `git log --follow` plus blob id and size per revision."""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from .constants import HISTORY_MAX_COUNT
from .core import Revision
from .parsers import parse_log, parse_ls_tree
from .runner import GitRunner

logger = logging.getLogger(__name__)


def _log(runner: GitRunner, filename: str, merge_conflict: bool, errors: List[str]) -> Tuple[bool, List[Revision]]:
    parameters = [
        f"--max-count={1 if merge_conflict else HISTORY_MAX_COUNT}",
        "--follow",
        "--date=raw",
        "--name-status",
    ]
    if merge_conflict:
        # Tip of the branch being merged in
        parameters.append("MERGE_HEAD")
    parameters.append("--")

    result = runner.run("log", parameters, [filename])
    errors.extend(result.errors)
    if not result.success:
        return False, []
    return True, parse_log(result.results)


def run_get_history(
    runner: GitRunner,
    filename: str,
    errors: List[str],
    merge_conflict: bool = False,
) -> Tuple[bool, List[Revision]]:
    """Newest-first history of one file with blob id and size filled in.

    For a conflicted file the tip of MERGE_HEAD comes first, so the
    revision on the other side of the merge can be found by blob id.
    """
    ok = True
    history: List[Revision] = []
    if merge_conflict:
        ok, history = _log(runner, filename, True, errors)

    log_ok, revisions = _log(runner, filename, False, errors)
    ok = ok and log_ok
    history += revisions

    if merge_conflict:
        count = len(history)
        for index, rev in enumerate(history):
            rev.revision_number = count - index

    for rev in history:
        if not rev.filename:
            continue
        result = runner.run("ls-tree", ["--long", rev.commit_id, "--"], [rev.filename])
        if not result.success:
            errors.extend(result.errors)
            ok = False
            continue
        if result.results:
            rev.file_hash, rev.file_size = parse_ls_tree(result.results[0])
    return ok, history


def dump_revision(runner: GitRunner, revision: Revision, destination_dir: Path) -> Optional[Path]:
    """Write the file content at a revision to destination_dir.

    The dump is named temp-<commit>-<basename> and reused when present.
    """
    destination = Path(destination_dir) / f"temp-{revision.commit_id}-{Path(revision.filename).name}"
    if destination.exists():
        return destination
    if runner.dump_to_file(f"{revision.commit_id}:{revision.filename}", destination):
        return destination
    logger.warning("Could not dump %s at %s", revision.filename, revision.short_commit_id)
    return None
