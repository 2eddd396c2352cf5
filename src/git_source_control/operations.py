"""Operations submitted by the host.

An operation carries the caller's intent (its parameters) and collects the
messages produced while it runs; the provider copies a command's info and
error messages onto its operation before the completion callback fires.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class OperationKind(str, Enum):
    """Registry names of the supported operations."""
    CONNECT = "Connect"
    UPDATE_STATUS = "UpdateStatus"
    MARK_FOR_ADD = "MarkForAdd"
    DELETE = "Delete"
    REVERT = "Revert"
    SYNC = "Sync"
    PUSH = "Push"
    CHECK_OUT = "CheckOut"
    CHECK_IN = "CheckIn"
    COPY = "Copy"
    RESOLVE = "Resolve"


@dataclass
class Operation:
    """Base operation: a name plus info/error message sinks."""

    name: str = ""
    info_messages: List[str] = field(default_factory=list)
    error_messages: List[str] = field(default_factory=list)

    @property
    def in_progress_text(self) -> str:
        return f"Running {self.name}..."

    def add_info_message(self, message: str) -> None:
        self.info_messages.append(message)

    def add_error_message(self, message: str) -> None:
        self.error_messages.append(message)


@dataclass
class Connect(Operation):
    name: str = OperationKind.CONNECT.value
    error_text: str = ""

    @property
    def in_progress_text(self) -> str:
        return "Connecting to the git repository..."


@dataclass
class UpdateStatus(Operation):
    name: str = OperationKind.UPDATE_STATUS.value
    update_history: bool = False
    update_modified_state: bool = False

    @property
    def in_progress_text(self) -> str:
        return "Updating file status..."


@dataclass
class MarkForAdd(Operation):
    name: str = OperationKind.MARK_FOR_ADD.value

    @property
    def in_progress_text(self) -> str:
        return "Adding file(s) to source control..."


@dataclass
class Delete(Operation):
    name: str = OperationKind.DELETE.value

    @property
    def in_progress_text(self) -> str:
        return "Deleting file(s) from source control..."


@dataclass
class Revert(Operation):
    name: str = OperationKind.REVERT.value

    @property
    def in_progress_text(self) -> str:
        return "Reverting file(s)..."


@dataclass
class Sync(Operation):
    name: str = OperationKind.SYNC.value

    @property
    def in_progress_text(self) -> str:
        return "Pulling from remote (rebase)..."


@dataclass
class Push(Operation):
    name: str = OperationKind.PUSH.value

    @property
    def in_progress_text(self) -> str:
        return "Pushing to remote..."


@dataclass
class CheckOut(Operation):
    """Take LFS locks on files (locking workflow only)."""
    name: str = OperationKind.CHECK_OUT.value

    @property
    def in_progress_text(self) -> str:
        return "Locking file(s)..."


@dataclass
class CheckIn(Operation):
    name: str = OperationKind.CHECK_IN.value
    description: str = ""
    success_message: str = ""

    @property
    def in_progress_text(self) -> str:
        return "Committing file(s)..."


@dataclass
class Copy(Operation):
    name: str = OperationKind.COPY.value
    destination: Optional[str] = None

    @property
    def in_progress_text(self) -> str:
        return "Copying file..."


@dataclass
class Resolve(Operation):
    name: str = OperationKind.RESOLVE.value

    @property
    def in_progress_text(self) -> str:
        return "Marking file(s) as resolved..."
