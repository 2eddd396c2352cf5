"""Thin wrappers around the git command line.

Every invocation names its repository explicitly with `git -C <root>`, so
commands running concurrently on worker threads never depend on the process
working directory.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from .constants import GIT_DIR

logger = logging.getLogger(__name__)


class GitResult(BaseModel):
    """Captured outcome of one git invocation."""
    results: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    returncode: int = 0

    @property
    def success(self) -> bool:
        return self.returncode == 0


def _git_env() -> Dict[str, str]:
    env = dict(os.environ)
    # Parsers match English messages ("[rejected]", "is outside repository")
    env["LC_ALL"] = "C"
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


def _split_lines(text: str) -> List[str]:
    return [line for line in text.splitlines() if line]


def find_root_directory(path: Path) -> Optional[Path]:
    """Walk up from path to the first directory holding a .git entry."""
    current = Path(path).resolve()
    if current.is_file():
        current = current.parent

    while current != current.parent:
        if (current / GIT_DIR).exists():
            return current
        current = current.parent

    if (current / GIT_DIR).exists():
        return current
    return None


class GitRunner:
    """Runs git for one repository with one binary.

    Failures never raise: a missing binary or a failing command comes back as
    a GitResult with a non-zero return code and error lines.
    """

    def __init__(self, binary_path: str, repository_root: Optional[Path]):
        self.binary_path = binary_path
        self.repository_root = Path(repository_root) if repository_root else None

    def root_for(self, files: Sequence[str]) -> Optional[Path]:
        root = self.repository_root
        if root is None or not files:
            return root
        first = Path(files[0])
        if first.is_absolute() and first != root and root not in first.parents:
            # Files outside the repository (e.g. copying assets into another
            # project): use the repository that holds the destination
            other = find_root_directory(first.parent)
            if other is not None:
                logger.debug("Using repository %s for %s", other, first)
                return other
        return root

    def _build(self, command: str, parameters: Iterable[str], files: Sequence[str]) -> Tuple[List[str], str]:
        args = [self.binary_path]
        root = self.root_for(files)
        if root is not None:
            args += ["-C", str(root)]
        tail = [command, *parameters, *files]
        return args + tail, " ".join(tail)

    def run(self, command: str, parameters: Iterable[str] = (), files: Sequence[str] = ()) -> GitResult:
        """Run `git <command> <parameters...> <files...>` and capture its output.

        When git exits with 0, its stderr lines are informational (progress,
        hints) and are appended to the results.
        """
        args, loggable = self._build(command, parameters, files)
        logger.debug("git %s", loggable)

        try:
            proc = subprocess.run(
                args,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                env=_git_env(),
            )
        except OSError as e:
            logger.warning("Failed to run %s: %s", self.binary_path, e)
            return GitResult(errors=[str(e)], returncode=-1)

        results = _split_lines(proc.stdout)
        errors = _split_lines(proc.stderr)

        if proc.returncode != 0:
            logger.warning("git %s exited with %d: %s", loggable, proc.returncode, " | ".join(errors))
            return GitResult(results=results, errors=errors, returncode=proc.returncode)

        if errors:
            logger.warning("git %s stderr: %s", loggable, " | ".join(errors))
        return GitResult(results=results + errors, returncode=0)

    def dump_to_file(self, parameter: str, destination: Path) -> bool:
        """Write the raw bytes of `git show <parameter>` to destination."""
        args, loggable = self._build("show", [parameter], ())
        logger.debug("git %s > %s", loggable, destination)

        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(destination, "wb") as fh:
                proc = subprocess.run(
                    args,
                    stdout=fh,
                    stderr=subprocess.PIPE,
                    check=False,
                    env=_git_env(),
                )
        except OSError as e:
            logger.warning("Failed to dump %s: %s", parameter, e)
            return False

        if proc.returncode != 0:
            logger.warning(
                "git %s exited with %d: %s",
                loggable,
                proc.returncode,
                proc.stderr.decode("utf-8", errors="replace").strip(),
            )
            destination.unlink(missing_ok=True)
            return False
        return True


def check_git_availability(runner: GitRunner) -> Tuple[bool, str]:
    """Run `git version`; returns (available, version line)."""
    result = runner.run("version")
    if result.success and result.results and "git" in result.results[0]:
        return True, result.results[0]
    return False, ""


def get_user_config(runner: GitRunner) -> Tuple[str, str]:
    """(user.name, user.email) of the repository, empty when unset."""
    name = runner.run("config", ["user.name"])
    email = runner.run("config", ["user.email"])
    return (
        name.results[0] if name.success and name.results else "",
        email.results[0] if email.success and email.results else "",
    )


def get_branch_name(runner: GitRunner) -> str:
    """Current branch, or "HEAD detached at <short id>"."""
    result = runner.run("symbolic-ref", ["--short", "--quiet", "HEAD"])
    if result.success and result.results:
        return result.results[0]

    result = runner.run("log", ["-1", "--format=%h"])
    if result.success and result.results:
        return f"HEAD detached at {result.results[0]}"
    return ""
