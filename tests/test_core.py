"""Test FileState predicates and history lookups."""

import pytest

from git_source_control.core import FileState, LockState, Revision, WorkingCopyState


def _state(wcs, lock=LockState.UNKNOWN, **kwargs):
    return FileState(filename="/repo/A.uasset", working_copy_state=wcs, lock_state=lock, **kwargs)


def _rev(commit_id, number, file_hash=None):
    return Revision(
        commit_id=commit_id,
        short_commit_id=commit_id[:8],
        commit_id_number=int(commit_id[:8], 16),
        revision_number=number,
        file_hash=file_hash,
    )


class TestPredicates:
    """Test the state predicates without locking."""

    @pytest.mark.parametrize("wcs", [
        WorkingCopyState.NOT_CONTROLLED,
        WorkingCopyState.IGNORED,
        WorkingCopyState.UNKNOWN,
    ])
    def test_uncontrolled_states(self, wcs):
        state = _state(wcs)
        assert not state.is_source_controlled()
        assert not state.is_checked_out()
        assert not state.is_modified()
        assert not state.can_check_in()

    @pytest.mark.parametrize("wcs,can_check_in", [
        (WorkingCopyState.ADDED, True),
        (WorkingCopyState.DELETED, True),
        (WorkingCopyState.MODIFIED, True),
        (WorkingCopyState.RENAMED, True),
        (WorkingCopyState.COPIED, False),
        (WorkingCopyState.MISSING, False),
        (WorkingCopyState.CONFLICTED, False),
        (WorkingCopyState.UNCHANGED, False),
    ])
    def test_can_check_in(self, wcs, can_check_in):
        assert _state(wcs).can_check_in() is can_check_in

    def test_git_semantics_without_locking(self):
        state = _state(WorkingCopyState.UNCHANGED)
        assert state.is_checked_out()
        assert not state.can_checkout()
        assert state.can_edit()
        assert state.is_checked_out_other() == (False, None)

    def test_can_add_only_untracked(self):
        assert _state(WorkingCopyState.NOT_CONTROLLED).can_add()
        assert not _state(WorkingCopyState.MODIFIED).can_add()

    def test_display(self):
        assert _state(WorkingCopyState.CONFLICTED).display_name == "Contents Conflict"
        assert _state(WorkingCopyState.NOT_CONTROLLED).display_name == "Not Under Source Control"
        assert "modified" in _state(WorkingCopyState.MODIFIED).display_tooltip


class TestLockingPredicates:
    """Test predicates once lock state is known."""

    def test_locked_by_me(self):
        state = _state(WorkingCopyState.MODIFIED, LockState.LOCKED, lock_user="userX")
        assert state.is_checked_out()
        assert state.can_edit()
        assert not state.can_checkout()
        assert state.can_revert()

    def test_locked_by_other(self):
        state = _state(WorkingCopyState.UNCHANGED, LockState.LOCKED_BY_OTHER, lock_user="userY")
        assert state.is_checked_out_other() == (True, "userY")
        assert not state.is_checked_out()
        assert not state.can_edit()
        assert not state.can_checkout()

    def test_not_locked(self):
        state = _state(WorkingCopyState.UNCHANGED, LockState.NOT_LOCKED)
        assert state.can_checkout()
        assert not state.is_checked_out()
        assert not state.can_edit()

    def test_newly_added_is_editable(self):
        state = _state(WorkingCopyState.ADDED, LockState.NOT_LOCKED)
        assert state.can_edit()
        assert not state.can_checkout()


class TestHistory:
    """Test history lookups."""

    def test_find_by_number_and_id(self):
        history = [_rev("b" * 40, 2), _rev("a" * 40, 1)]
        state = _state(WorkingCopyState.UNCHANGED, history=history)
        assert state.find_history_revision(1).commit_id == "a" * 40
        assert state.find_history_revision("b" * 40).revision_number == 2
        assert state.find_history_revision(3) is None

    def test_base_rev_for_merge_matches_blob(self):
        history = [_rev("b" * 40, 2, file_hash="f2"), _rev("a" * 40, 1, file_hash="f1")]
        state = _state(WorkingCopyState.CONFLICTED, history=history, pending_merge_base_file_hash="f1")
        assert state.get_base_rev_for_merge().commit_id == "a" * 40

    def test_no_base_without_conflict(self):
        state = _state(WorkingCopyState.MODIFIED, history=[_rev("a" * 40, 1, file_hash="f1")])
        assert state.get_base_rev_for_merge() is None
