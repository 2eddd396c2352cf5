"""In-memory path -> FileState map owned by the provider.

Only the dispatching thread touches the cache: workers see copies taken
when their command was built and hand back fresh states, which the
provider folds in from tick().
"""

import logging
import time
from typing import Dict, Iterable, List, Optional

from .core import FileState, Revision, StatePredicate

logger = logging.getLogger(__name__)


def _content(state: FileState) -> dict:
    return state.model_dump(exclude={"timestamp"})


class StateCache:
    """Source control state of every file seen so far."""

    def __init__(self):
        self._states: Dict[str, FileState] = {}

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, filename: str) -> bool:
        return filename in self._states

    def get_state(self, filename: str) -> FileState:
        """Cached state, creating an UNKNOWN placeholder for new files."""
        state = self._states.get(filename)
        if state is None:
            state = FileState(filename=filename)
            self._states[filename] = state
        return state

    def peek(self, filename: str) -> Optional[FileState]:
        return self._states.get(filename)

    def get_by_predicate(self, predicate: StatePredicate) -> List[FileState]:
        return [state for state in self._states.values() if predicate(state)]

    def remove(self, filename: str) -> bool:
        return self._states.pop(filename, None) is not None

    def update_states(self, states: Iterable[FileState]) -> bool:
        """Replace records wholesale, keeping previously fetched history.

        Returns True if at least one record differs from the cached one,
        ignoring its timestamp.
        """
        changed = 0
        now = time.time()
        for new_state in states:
            old = self._states.get(new_state.filename)
            record = new_state.model_copy()
            if old is not None and not record.history:
                record.history = old.history
            if old is None or _content(old) != _content(record):
                changed += 1
            record.timestamp = now
            self._states[record.filename] = record
        if changed:
            logger.debug("Updated %d cached states", changed)
        return changed > 0

    def set_history(self, filename: str, history: List[Revision]) -> None:
        state = self.get_state(filename).model_copy()
        state.history = list(history)
        self._states[filename] = state

    def snapshot(self, filenames: Iterable[str]) -> Dict[str, FileState]:
        """Copies of the cached states of filenames (placeholders if unknown)."""
        return {name: self.get_state(name).model_copy() for name in filenames}

    def clear(self) -> None:
        self._states.clear()
