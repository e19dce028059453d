"""
Tests for the drag-reorder engine: task moves, column splices, gestures.
"""
import copy

import pytest

from trackflow.errors import NotFoundError, InvariantViolation
from trackflow.reorder import DragKind, DragSession, TaskMove, reorder_columns, splice
from trackflow.schema import Board, Column
from trackflow.store import BoardRepository


def _abc_repo(clock):
    board = Board(
        id="b1",
        name="Letters",
        columns=[Column("A", "A"), Column("B", "B"), Column("C", "C")],
    )
    return BoardRepository(boards=[board], clock=clock)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Column splice
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_splice_removes_then_inserts():
    assert splice(["a", "b", "c", "d"], 0, 2) == ["b", "c", "a", "d"]
    assert splice(["a", "b", "c", "d"], 3, 0) == ["d", "a", "b", "c"]


def test_splice_returns_new_list():
    items = ["a", "b"]
    splice(items, 0, 1)
    assert items == ["a", "b"]


@pytest.mark.parametrize("dragged,target,expected", [
    # Scenario B: target's index is taken after the dragged column is removed
    ("A", "C", ["B", "A", "C"]),
    # target immediately after source: lands where it started
    ("A", "B", ["A", "B", "C"]),
    ("B", "C", ["A", "B", "C"]),
    # dragging left inserts before the target
    ("C", "A", ["C", "A", "B"]),
    ("C", "B", ["A", "C", "B"]),
    ("B", "A", ["B", "A", "C"]),
    ("A", "A", ["A", "B", "C"]),
])
def test_reorder_columns_splice_rule(dragged, target, expected):
    columns = [Column("A", "A"), Column("B", "B"), Column("C", "C")]
    result = reorder_columns(columns, dragged, target)
    assert [c.id for c in result] == expected
    assert [c.id for c in columns] == ["A", "B", "C"]


def test_reorder_columns_unknown_ids():
    columns = [Column("A", "A"), Column("B", "B")]
    with pytest.raises(NotFoundError):
        reorder_columns(columns, "X", "A")
    with pytest.raises(NotFoundError):
        reorder_columns(columns, "A", "X")


def test_move_column_onto_scenario_b(clock):
    repo = _abc_repo(clock)
    assert repo.move_column_onto("b1", "A", "C") == ["B", "A", "C"]
    assert repo.get_board("b1").column_ids() == ["B", "A", "C"]


def test_move_column_onto_keeps_task_membership(clock):
    repo = _abc_repo(clock)
    task_id = repo.create_task("b1", "A", "x")
    repo.move_column_onto("b1", "A", "C")
    assert repo.get_task("b1", task_id).status == "A"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Task moves
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_scenario_a_reassign_task_column(repo):
    """Scenario A: move changes status and updated_at only"""
    task_id = repo.create_task("b1", "T", "x")
    created = repo.get_task("b1", task_id)
    assert created.status == "T"

    move = repo.reassign_task_column("b1", task_id, "D")

    moved = repo.get_task("b1", task_id)
    assert moved.status == "D"
    assert moved.updated_at != created.updated_at
    assert moved.created_at == created.created_at
    assert isinstance(move, TaskMove)
    assert move.source_column.id == "T"
    assert move.target_column.id == "D"
    assert move.task == moved


def test_scenario_e_same_column_is_noop(repo):
    """Scenario E: dropping on its own column leaves updated_at alone"""
    task_id = repo.create_task("b1", "T", "x")
    before = repo.get_task("b1", task_id)
    assert repo.move_task("b1", task_id, "T", "T") is None
    assert repo.get_task("b1", task_id).updated_at == before.updated_at


def test_move_keeps_task_position_in_collection(repo):
    first = repo.create_task("b1", "T", "first")
    second = repo.create_task("b1", "T", "second")
    repo.reassign_task_column("b1", first, "D")
    assert [t.id for t in repo.get_board("b1").tasks] == [first, second]


def test_move_task_precondition(repo):
    task_id = repo.create_task("b1", "T", "x")
    with pytest.raises(InvariantViolation):
        repo.move_task("b1", task_id, "D", "T")
    with pytest.raises(NotFoundError):
        repo.move_task("b1", task_id, "T", "X")
    with pytest.raises(NotFoundError):
        repo.reassign_task_column("b1", "ghost", "D")
    assert repo.get_task("b1", task_id).status == "T"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Gestures
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestDragSession:
    """Tests for start / over / drop / cancel."""

    @pytest.fixture(autouse=True)
    def _session(self, repo):
        self.repo = repo
        self.session = DragSession(repo)
        self.task_id = repo.create_task("b1", "T", "drag me")

    def test_task_drag_commits_on_candidate(self):
        self.session.start_task_drag("b1", self.task_id, "T")
        assert self.session.kind is DragKind.TASK
        self.session.drag_over("D")
        move = self.session.drop()
        assert move.target_column.id == "D"
        assert self.repo.get_task("b1", self.task_id).status == "D"
        assert not self.session.active

    def test_drop_outside_target_is_noop(self):
        snapshot = copy.deepcopy(self.repo.boards)
        self.session.start_task_drag("b1", self.task_id, "T")
        self.session.drag_over("D")
        self.session.drag_over(None)
        assert self.session.drop() is None
        assert self.repo.boards == snapshot

    def test_unknown_candidate_is_ignored(self):
        snapshot = copy.deepcopy(self.repo.boards)
        self.session.start_task_drag("b1", self.task_id, "T")
        self.session.drag_over("not-a-column")
        assert self.session.candidate is None
        assert self.session.drop() is None
        assert self.repo.boards == snapshot

    def test_cancel_discards_gesture(self):
        snapshot = copy.deepcopy(self.repo.boards)
        self.session.start_task_drag("b1", self.task_id, "T")
        self.session.drag_over("D")
        self.session.cancel()
        assert self.session.drop() is None
        assert self.repo.boards == snapshot

    def test_task_deleted_mid_drag_is_swallowed(self):
        self.session.start_task_drag("b1", self.task_id, "T")
        self.repo.delete_task("b1", self.task_id)
        snapshot = copy.deepcopy(self.repo.boards)
        assert self.session.drop("D") is None
        assert self.repo.boards == snapshot

    def test_drop_on_explicit_invalid_column_is_noop(self):
        snapshot = copy.deepcopy(self.repo.boards)
        self.session.start_task_drag("b1", self.task_id, "T")
        assert self.session.drop("X") is None
        assert self.repo.boards == snapshot

    def test_task_drag_never_reorders_columns(self):
        """Test a task dropped on a column moves the task, not the column"""
        self.session.start_task_drag("b1", self.task_id, "T")
        self.session.drop("D")
        assert self.repo.get_board("b1").column_ids() == ["T", "D"]

    def test_column_drag(self):
        self.session.start_column_drag("b1", "D")
        assert self.session.kind is DragKind.COLUMN
        self.session.drag_over("T")
        assert self.session.drop() == ["D", "T"]
        assert self.repo.get_task("b1", self.task_id).status == "T"

    def test_new_drag_replaces_pending_one(self):
        self.session.start_column_drag("b1", "D")
        self.session.start_task_drag("b1", self.task_id, "T")
        self.session.drop("D")
        assert self.repo.get_board("b1").column_ids() == ["T", "D"]
        assert self.repo.get_task("b1", self.task_id).status == "D"

    def test_drop_without_drag(self):
        assert self.session.drop("D") is None
