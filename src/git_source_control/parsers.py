"""Parsers for git command output.

All functions here are pure: they take lines captured by the runner and
return plain values, so they are tested without a repository.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .core import Revision, WorkingCopyState


# ============= git status --porcelain =============

def parse_status_code(xy: str) -> WorkingCopyState:
    """Map the two-letter porcelain code (index, worktree) to a state.

    Examples:
        "M " -> MODIFIED, "A " -> ADDED, " D" -> MISSING, "UU" -> CONFLICTED
    """
    index = xy[0] if len(xy) > 0 else " "
    wtree = xy[1] if len(xy) > 1 else " "

    if index == "U" or wtree == "U" or xy in ("AA", "DD"):
        return WorkingCopyState.CONFLICTED
    if index == "A":
        return WorkingCopyState.ADDED
    if index == "D":
        return WorkingCopyState.DELETED
    if wtree == "D":
        return WorkingCopyState.MISSING
    if index == "M" or wtree == "M":
        return WorkingCopyState.MODIFIED
    if index == "R":
        return WorkingCopyState.RENAMED
    if index == "C":
        return WorkingCopyState.COPIED
    if index == "?" or wtree == "?":
        return WorkingCopyState.NOT_CONTROLLED
    if index == "!" or wtree == "!":
        return WorkingCopyState.IGNORED
    return WorkingCopyState.UNKNOWN


_ESCAPES = {"a": 7, "b": 8, "t": 9, "n": 10, "v": 11, "f": 12, "r": 13, '"': 34, "\\": 92}


def unquote_path(text: str) -> str:
    """Undo git's C-style quoting of a path (no-op for unquoted paths)."""
    if len(text) < 2 or text[0] != '"' or text[-1] != '"':
        return text

    body = text[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 >= len(body):
            out += ch.encode("utf-8")
            i += 1
            continue
        nxt = body[i + 1]
        if nxt in "01234567":
            out.append(int(body[i + 1:i + 4], 8))
            i += 4
        else:
            out.append(_ESCAPES.get(nxt, ord(nxt)))
            i += 2
    return out.decode("utf-8", errors="replace")


def _end_of_quoted(text: str) -> int:
    """Index just past the closing quote of a quoted token starting at 0."""
    i = 1
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == '"':
            return i + 1
        i += 1
    return len(text)


@dataclass
class StatusEntry:
    """One line of porcelain status output."""
    state: WorkingCopyState
    path: str  # relative to the repository root, new path for renames
    original_path: Optional[str] = None

    @property
    def is_directory(self) -> bool:
        return self.path.endswith("/")


def parse_status_line(line: str) -> Optional[StatusEntry]:
    """Parse `XY path` or `XY old -> new`; None for malformed lines."""
    if len(line) < 4 or line[2] != " ":
        return None

    state = parse_status_code(line[:2])
    rest = line[3:]

    original = None
    if line[0] in "RC" or line[1] in "RC":
        if rest.startswith('"'):
            end = _end_of_quoted(rest)
            head, tail = rest[:end], rest[end:]
            if tail.startswith(" -> "):
                original, rest = head, tail[4:]
        else:
            idx = rest.find(" -> ")
            if idx >= 0:
                original, rest = rest[:idx], rest[idx + 4:]

    return StatusEntry(
        state=state,
        path=unquote_path(rest),
        original_path=unquote_path(original) if original is not None else None,
    )


def parse_status(lines: Sequence[str]) -> List[StatusEntry]:
    entries = []
    for line in lines:
        entry = parse_status_line(line)
        if entry is not None:
            entries.append(entry)
    return entries


# ============= git lfs locks =============

def parse_lock_listing(lines: Sequence[str], root: Optional[Path] = None) -> Dict[str, str]:
    """Map locked path -> lock holder.

    Accepts the tab separated `path<TAB>holder<TAB>ID:n` layout as well as
    whitespace aligned columns. With root, paths are made absolute.
    """
    locks = {}
    for line in lines:
        if not line.strip():
            continue
        if "\t" in line:
            parts = [p.strip() for p in line.split("\t")]
        else:
            parts = line.rsplit(None, 2)
        if len(parts) < 2 or not parts[0] or not parts[1]:
            continue
        path, holder = parts[0].strip(), parts[1].strip()
        if root is not None:
            path = (Path(root) / path).as_posix()
        locks[path] = holder
    return locks


def parse_lfs_push_dry_run(lines: Sequence[str]) -> List[str]:
    """Paths listed by `git lfs push --dry-run` (`push <oid> => <path>`)."""
    paths = []
    for line in lines:
        if line.startswith("push ") and " => " in line:
            paths.append(line.split(" => ", 1)[1].strip())
    return paths


# ============= git log =============

_LOG_ACTIONS = {
    " ": "unmodified",
    "M": "modified",
    "A": "added",
    "D": "deleted",
    "R": "renamed",
    "C": "copied",
    "T": "type changed",
    "U": "unmerged",
    "X": "unknown",
    "B": "broken pairing",
}


def _new_revision(commit_id: str) -> Revision:
    short = commit_id[:8]
    return Revision(commit_id=commit_id, short_commit_id=short, commit_id_number=int(short, 16))


def parse_log(lines: Sequence[str]) -> List[Revision]:
    """Parse `git log --date=raw --name-status` output, newest first.

    Revision numbers count from the oldest revision (1). A renamed or copied
    revision points at the next-older revision as its branch source.
    """
    history: List[Revision] = []
    current: Optional[Revision] = None
    description: List[str] = []

    def close():
        if current is not None:
            current.description = "\n".join(description)
            history.append(current)

    for line in lines:
        if line.startswith("commit "):
            close()
            current = _new_revision(line.split()[1])
            description = []
        elif current is None:
            continue
        elif line.startswith("Author: "):
            author = line[len("Author: "):]
            idx = author.rfind(" <")
            current.user_name = author[:idx] if idx >= 0 else author.strip()
        elif line.startswith("Date:"):
            fields = line[len("Date:"):].split()
            try:
                current.date = float(fields[0])
            except (IndexError, ValueError):
                current.date = 0.0
        elif line.startswith("    "):
            description.append(line[4:])
        elif line.strip():
            current.action = _LOG_ACTIONS.get(line[0], "unknown")
            current.filename = line[line.rfind("\t") + 1:]
    close()

    count = len(history)
    for index, rev in enumerate(history):
        rev.revision_number = count - index
        if rev.action in ("renamed", "copied") and index + 1 < count:
            rev.branch_source = history[index + 1]
    return history


def parse_head_commit(lines: Sequence[str]) -> Tuple[str, str]:
    """(commit id, summary) from `git log -1 --format=%H %s`."""
    if not lines:
        return "", ""
    commit_id, _, summary = lines[0].partition(" ")
    return commit_id, summary


# ============= git ls-files --unmerged / ls-tree =============

def parse_conflict_base(lines: Sequence[str]) -> Optional[str]:
    """Blob id of the common ancestor from a 3-stage unmerged listing.

    `100644 <blob> 1<TAB>path` is stage 1, the common ancestor.
    """
    if len(lines) != 3:
        return None
    return lines[0][7:47]


def parse_ls_tree(line: str) -> Tuple[str, int]:
    """(blob id, size) from `git ls-tree --long` output.

    `100644 blob a14347dc3b589b78fb19ba62a7e3982f343718bc   70731<TAB>path`
    """
    file_hash = line[12:52]
    tab = line.find("\t")
    try:
        size = int(line[53:tab].strip()) if tab > 53 else 0
    except ValueError:
        size = 0
    return file_hash, size


# ============= git push =============

def is_push_rejected(errors: Sequence[str]) -> bool:
    """True when the remote refused a push because it is behind."""
    for line in errors:
        if "[rejected]" in line and ("non-fast-forward" in line or "fetch first" in line):
            return True
    return False
