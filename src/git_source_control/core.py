"""Core data models for git-source-control.

File states are derived entirely from git output: `git status --porcelain`
gives the working-copy state, `git lfs locks` the lock state (only when the
locking workflow is enabled) and `git log` the history. A FileState is
immutable in practice: refreshing a file replaces the whole record.
"""

import time
from enum import Enum
from typing import Callable, List, Optional, Tuple, Union

from pydantic import BaseModel, Field


# ============= Enums =============

class WorkingCopyState(str, Enum):
    """State of a file in the working copy, as reported by git status."""
    UNKNOWN = "unknown"
    UNCHANGED = "unchanged"
    ADDED = "added"
    DELETED = "deleted"
    MODIFIED = "modified"
    RENAMED = "renamed"
    COPIED = "copied"
    MISSING = "missing"
    CONFLICTED = "conflicted"
    NOT_CONTROLLED = "not_controlled"
    IGNORED = "ignored"


class LockState(str, Enum):
    """LFS lock state. UNKNOWN when the locking workflow is disabled."""
    UNKNOWN = "unknown"
    NOT_LOCKED = "not_locked"
    LOCKED = "locked"
    LOCKED_BY_OTHER = "locked_by_other"


class CommandResult(str, Enum):
    """Outcome of a submitted operation."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Concurrency(str, Enum):
    """How the provider runs a command."""
    SYNCHRONOUS = "synchronous"
    ASYNCHRONOUS = "asynchronous"


class CacheUsage(str, Enum):
    """Whether get_state may answer from the cache."""
    USE = "use"
    FORCE_UPDATE = "force_update"


_DISPLAY = {
    WorkingCopyState.UNKNOWN: ("Unknown", "Unknown source control state"),
    WorkingCopyState.UNCHANGED: ("Unchanged", "There are no modifications"),
    WorkingCopyState.ADDED: ("Added", "Item is scheduled for addition"),
    WorkingCopyState.DELETED: ("Deleted", "Item is scheduled for deletion"),
    WorkingCopyState.MODIFIED: ("Modified", "Item has been modified"),
    WorkingCopyState.RENAMED: ("Renamed", "Item has been renamed"),
    WorkingCopyState.COPIED: ("Copied", "Item has been copied"),
    WorkingCopyState.CONFLICTED: (
        "Contents Conflict",
        "The contents of the item conflict with updates received from the repository.",
    ),
    WorkingCopyState.IGNORED: ("Ignored", "Item is being ignored."),
    WorkingCopyState.NOT_CONTROLLED: (
        "Not Under Source Control",
        "Item is not under version control.",
    ),
    WorkingCopyState.MISSING: (
        "Missing",
        "Item is missing (e.g., you moved or deleted it without using Git).",
    ),
}


# ============= History =============

class Revision(BaseModel):
    """One entry of a file's history (one commit touching the file)."""

    commit_id: str
    short_commit_id: str
    commit_id_number: int
    revision_number: int = 0  # 1 = oldest revision in the fetched history
    filename: str = ""
    user_name: str = ""
    date: float = 0.0  # unix timestamp
    description: str = ""
    action: str = "modified"
    file_hash: Optional[str] = None
    file_size: int = 0
    branch_source: Optional["Revision"] = None  # next-older revision for renames/copies

    def __repr__(self) -> str:
        return f"Revision({self.short_commit_id} #{self.revision_number} {self.action} {self.filename})"


Revision.model_rebuild()


# ============= File State =============

class FileState(BaseModel):
    """Cached source control state of one file.

    `filename` is the absolute POSIX path and the identity of the record.
    """

    filename: str
    working_copy_state: WorkingCopyState = WorkingCopyState.UNKNOWN
    lock_state: LockState = LockState.UNKNOWN
    lock_user: Optional[str] = None
    pending_merge_base_file_hash: Optional[str] = None
    history: List[Revision] = Field(default_factory=list)
    newer_version_available: bool = False
    timestamp: float = Field(default_factory=time.time)

    # History

    def find_history_revision(self, revision: Union[int, str]) -> Optional[Revision]:
        """Find a revision by revision number or by full commit id."""
        for rev in self.history:
            if isinstance(revision, int):
                if rev.revision_number == revision:
                    return rev
            elif rev.commit_id == revision:
                return rev
        return None

    def get_base_rev_for_merge(self) -> Optional[Revision]:
        """Revision whose file blob is the merge base of a pending conflict."""
        if not self.pending_merge_base_file_hash:
            return None
        for rev in self.history:
            if rev.file_hash == self.pending_merge_base_file_hash:
                return rev
        return None

    # Display

    @property
    def display_name(self) -> str:
        return _DISPLAY[self.working_copy_state][0]

    @property
    def display_tooltip(self) -> str:
        return _DISPLAY[self.working_copy_state][1]

    # Predicates

    @property
    def _locking(self) -> bool:
        return self.lock_state != LockState.UNKNOWN

    def is_source_controlled(self) -> bool:
        return self.working_copy_state not in (
            WorkingCopyState.NOT_CONTROLLED,
            WorkingCopyState.IGNORED,
            WorkingCopyState.UNKNOWN,
        )

    def can_check_in(self) -> bool:
        if self._locking and self.lock_state == LockState.LOCKED_BY_OTHER:
            return False
        return self.working_copy_state in (
            WorkingCopyState.ADDED,
            WorkingCopyState.DELETED,
            WorkingCopyState.MODIFIED,
            WorkingCopyState.RENAMED,
        )

    def can_checkout(self) -> bool:
        # Without locking every tracked file is always checked out
        if not self._locking:
            return False
        return (
            self.is_source_controlled()
            and self.working_copy_state != WorkingCopyState.ADDED
            and self.lock_state == LockState.NOT_LOCKED
        )

    def is_checked_out(self) -> bool:
        if not self._locking:
            return self.is_source_controlled()
        return self.is_source_controlled() and self.lock_state == LockState.LOCKED

    def is_checked_out_other(self) -> Tuple[bool, Optional[str]]:
        """(locked by someone else, lock holder)."""
        if self.lock_state == LockState.LOCKED_BY_OTHER:
            return True, self.lock_user
        return False, None

    def is_current(self) -> bool:
        return not self.newer_version_available

    def is_added(self) -> bool:
        return self.working_copy_state == WorkingCopyState.ADDED

    def is_deleted(self) -> bool:
        return self.working_copy_state == WorkingCopyState.DELETED

    def is_ignored(self) -> bool:
        return self.working_copy_state == WorkingCopyState.IGNORED

    def is_unknown(self) -> bool:
        return self.working_copy_state == WorkingCopyState.UNKNOWN

    def is_conflicted(self) -> bool:
        return self.working_copy_state == WorkingCopyState.CONFLICTED

    def can_edit(self) -> bool:
        if not self._locking:
            return True
        return self.lock_state == LockState.LOCKED or self.working_copy_state in (
            WorkingCopyState.ADDED,
            WorkingCopyState.NOT_CONTROLLED,
        )

    def is_modified(self) -> bool:
        """True for every state that has something to commit or resolve."""
        return self.working_copy_state in (
            WorkingCopyState.ADDED,
            WorkingCopyState.DELETED,
            WorkingCopyState.MODIFIED,
            WorkingCopyState.RENAMED,
            WorkingCopyState.COPIED,
            WorkingCopyState.CONFLICTED,
            WorkingCopyState.MISSING,
        )

    def can_add(self) -> bool:
        return self.working_copy_state == WorkingCopyState.NOT_CONTROLLED

    def can_revert(self) -> bool:
        return self.is_modified() or (self._locking and self.lock_state == LockState.LOCKED)


StatePredicate = Callable[[FileState], bool]
