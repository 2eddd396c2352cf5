"""Test the in-memory state cache."""

from git_source_control.cache import StateCache
from git_source_control.core import FileState, Revision, WorkingCopyState


def _rev(number):
    commit = f"{number:040x}"
    return Revision(commit_id=commit, short_commit_id=commit[:8], revision_number=number)


class TestStateCache:
    """Test StateCache behavior."""

    def test_get_state_creates_placeholder(self):
        cache = StateCache()
        state = cache.get_state("/repo/A.uasset")
        assert state.working_copy_state == WorkingCopyState.UNKNOWN
        assert "/repo/A.uasset" in cache
        assert cache.get_state("/repo/A.uasset") is state

    def test_peek_does_not_create(self):
        cache = StateCache()
        assert cache.peek("/repo/A.uasset") is None
        assert len(cache) == 0

    def test_update_replaces_wholesale(self):
        cache = StateCache()
        cache.update_states([FileState(filename="/repo/A", working_copy_state=WorkingCopyState.MODIFIED,
                                       lock_user="userX")])
        changed = cache.update_states([FileState(filename="/repo/A", working_copy_state=WorkingCopyState.UNCHANGED)])

        assert changed
        state = cache.get_state("/repo/A")
        assert state.working_copy_state == WorkingCopyState.UNCHANGED
        assert state.lock_user is None

    def test_update_keeps_previous_history(self):
        cache = StateCache()
        cache.set_history("/repo/A", [_rev(2), _rev(1)])
        cache.update_states([FileState(filename="/repo/A", working_copy_state=WorkingCopyState.MODIFIED)])

        state = cache.get_state("/repo/A")
        assert state.working_copy_state == WorkingCopyState.MODIFIED
        assert [r.revision_number for r in state.history] == [2, 1]

    def test_update_sets_timestamp(self):
        cache = StateCache()
        cache.update_states([FileState(filename="/repo/A", timestamp=0.0)])
        assert cache.get_state("/repo/A").timestamp > 0

    def test_update_nothing_is_unchanged(self):
        assert not StateCache().update_states([])

    def test_identical_record_is_not_a_change(self):
        cache = StateCache()
        assert cache.update_states([FileState(filename="/repo/A", working_copy_state=WorkingCopyState.MODIFIED)])
        assert not cache.update_states([FileState(filename="/repo/A", working_copy_state=WorkingCopyState.MODIFIED)])
        assert cache.update_states([FileState(filename="/repo/A", working_copy_state=WorkingCopyState.ADDED)])

    def test_stored_record_is_a_copy(self):
        cache = StateCache()
        state = FileState(filename="/repo/A", working_copy_state=WorkingCopyState.ADDED)
        cache.update_states([state])
        state.working_copy_state = WorkingCopyState.DELETED
        assert cache.get_state("/repo/A").working_copy_state == WorkingCopyState.ADDED

    def test_predicate_query_and_remove(self):
        cache = StateCache()
        cache.update_states([
            FileState(filename="/repo/A", working_copy_state=WorkingCopyState.MODIFIED),
            FileState(filename="/repo/B", working_copy_state=WorkingCopyState.UNCHANGED),
        ])
        assert [s.filename for s in cache.get_by_predicate(FileState.is_modified)] == ["/repo/A"]
        assert cache.remove("/repo/A")
        assert not cache.remove("/repo/A")
        assert cache.get_by_predicate(FileState.is_modified) == []

    def test_snapshot_is_detached(self):
        cache = StateCache()
        cache.update_states([FileState(filename="/repo/A", working_copy_state=WorkingCopyState.MODIFIED)])
        snapshot = cache.snapshot(["/repo/A", "/repo/New"])

        snapshot["/repo/A"].working_copy_state = WorkingCopyState.DELETED
        assert cache.get_state("/repo/A").working_copy_state == WorkingCopyState.MODIFIED
        assert snapshot["/repo/New"].working_copy_state == WorkingCopyState.UNKNOWN
