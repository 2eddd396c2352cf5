"""Split long file lists across several git invocations."""

import logging
from typing import Iterator, List, Sequence

from .constants import MAX_FILES_PER_BATCH
from .runner import GitResult, GitRunner

logger = logging.getLogger(__name__)


def iter_batches(files: Sequence[str], batch_size: int = MAX_FILES_PER_BATCH) -> Iterator[List[str]]:
    """Yield consecutive slices of at most batch_size files, in input order."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    for start in range(0, len(files), batch_size):
        yield list(files[start:start + batch_size])


def _merge(total: GitResult, part: GitResult) -> GitResult:
    return GitResult(
        results=total.results + part.results,
        errors=total.errors + part.errors,
        # First failing exit code wins
        returncode=total.returncode if total.returncode != 0 else part.returncode,
    )


def run_batched(
    runner: GitRunner,
    command: str,
    parameters: Sequence[str],
    files: Sequence[str],
    batch_size: int = MAX_FILES_PER_BATCH,
) -> GitResult:
    """Run the command over files in batches and aggregate the outcome.

    A command with no files runs exactly once. Every batch runs even after a
    failure; the aggregate succeeds only if all batches did.
    """
    if not files:
        return runner.run(command, parameters)

    total = GitResult()
    batches = list(iter_batches(files, batch_size))
    for index, batch in enumerate(batches):
        if len(batches) > 1:
            logger.debug("git %s batch %d/%d (%d files)", command, index + 1, len(batches), len(batch))
        total = _merge(total, runner.run(command, parameters, batch))
    return total


def run_commit(
    runner: GitRunner,
    parameters: Sequence[str],
    files: Sequence[str],
    batch_size: int = MAX_FILES_PER_BATCH,
) -> GitResult:
    """Commit files in batches that together produce a single commit.

    The first batch creates the commit, each later batch amends it.
    """
    if not files:
        return runner.run("commit", parameters)

    total = GitResult()
    for index, batch in enumerate(iter_batches(files, batch_size)):
        params = list(parameters) if index == 0 else ["--amend", *parameters]
        total = _merge(total, runner.run("commit", params, batch))
    return total
