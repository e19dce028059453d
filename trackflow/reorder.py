"""
Drag-reorder engine.

Two gestures, each: pick up an item, track candidate drop targets, commit
on release.

  task drag    → status reassignment to the column under the pointer
  column drag  → splice the dragged column into the target's slot

The functions here are pure (old board in, new board out). DragSession
holds pending gesture state and is the only place that talks to the
repository; anything that is not a recognized, validated drop is
discarded without touching it.
"""
import logging
from enum import Enum
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional, List, Tuple, TypeVar, Any

from .errors import NotFoundError, InvariantViolation
from .schema import Board, Column, Task

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TaskMove:
    """Notification for a committed cross-column move."""
    task: Task
    source_column: Column
    target_column: Column


def splice(items: List[T], from_index: int, to_index: int) -> List[T]:
    """
    Remove the item at from_index, then insert it at to_index of the
    shortened list. Returns a new list.
    """
    result = list(items)
    item = result.pop(from_index)
    result.insert(to_index, item)
    return result


def reorder_columns(columns: List[Column], dragged_id: str, target_id: str) -> List[Column]:
    """
    Drop column dragged_id onto column target_id.

    The target's index is looked up after the dragged column has been
    removed, and the dragged column is inserted there:

        [A, B, C]  A onto C  →  [B, A, C]
        [A, B, C]  A onto B  →  [A, B, C]
        [A, B, C]  C onto A  →  [C, A, B]
    """
    ids = [c.id for c in columns]
    if dragged_id not in ids:
        raise NotFoundError(f"Column {dragged_id} not found")
    if target_id not in ids:
        raise NotFoundError(f"Column {target_id} not found")
    if dragged_id == target_id:
        return list(columns)

    remaining = [c for c in columns if c.id != dragged_id]
    dragged = columns[ids.index(dragged_id)]
    target_index = [c.id for c in remaining].index(target_id)
    remaining.insert(target_index, dragged)
    return remaining


def move_task(
    board: Board,
    task_id: str,
    source_column_id: str,
    target_column_id: str,
    now: datetime,
) -> Tuple[Board, Optional[TaskMove]]:
    """
    Move a task from its source column to a target column.

    Returns the new board and the move notification, or the same board
    and None when source and target are the same column.

    Raises:
        NotFoundError: task or either column is not on the board.
        InvariantViolation: the task is not in source_column_id.
    """
    task = board.find_task(task_id)
    if task is None:
        raise NotFoundError(f"Task {task_id} not found on board {board.id}")
    source = board.find_column(source_column_id)
    if source is None:
        raise NotFoundError(f"Column {source_column_id} not found on board {board.id}")
    target = board.find_column(target_column_id)
    if target is None:
        raise NotFoundError(f"Column {target_column_id} not found on board {board.id}")
    if task.status != source_column_id:
        raise InvariantViolation(
            f"Task {task_id} is in {task.status!r}, not {source_column_id!r}"
        )

    if source_column_id == target_column_id:
        return board, None

    moved = replace(task, status=target_column_id, updated_at=now)
    tasks = [moved if t.id == task_id else t for t in board.tasks]
    return replace(board, tasks=tasks), TaskMove(task=moved, source_column=source, target_column=target)


# ── Gesture tracking ─────────────────────────────────────────────────────────


class DragKind(Enum):
    """What the pointer-down originated on."""
    TASK = "task"
    COLUMN = "column"


@dataclass
class _PendingDrag:
    kind: DragKind
    board_id: str
    item_id: str                      # task id or column id
    source_column_id: str
    candidate: Optional[str] = None   # column currently under the pointer


class DragSession:
    """
    Tracks one drag gesture at a time.

    start → over* → drop | cancel. Only drop() can change the repository,
    and only for a valid target; stale references are swallowed here.

    The target only needs get_board(), move_task() and move_column_onto():
    a BoardRepository, or a Workspace, which checks permissions again at
    drop time. PermissionDenied from the target is not swallowed: it
    propagates out of drop() after the gesture has been cleared.
    """

    def __init__(self, repository):
        self.repository = repository
        self._pending: Optional[_PendingDrag] = None

    @property
    def active(self) -> bool:
        return self._pending is not None

    @property
    def kind(self) -> Optional[DragKind]:
        return self._pending.kind if self._pending else None

    @property
    def candidate(self) -> Optional[str]:
        return self._pending.candidate if self._pending else None

    def start_task_drag(self, board_id: str, task_id: str, source_column_id: str) -> None:
        self._begin(_PendingDrag(DragKind.TASK, board_id, task_id, source_column_id))

    def start_column_drag(self, board_id: str, column_id: str) -> None:
        self._begin(_PendingDrag(DragKind.COLUMN, board_id, column_id, column_id))

    def _begin(self, pending: _PendingDrag) -> None:
        if self._pending is not None:
            logger.debug(f"Discarding unfinished {self._pending.kind.value} drag of {self._pending.item_id}")
        self._pending = pending

    def drag_over(self, column_id: Optional[str]) -> None:
        """Report the column under the pointer; unknown columns clear the candidate."""
        if self._pending is None:
            return
        if column_id is not None and self._column_exists(column_id):
            self._pending.candidate = column_id
        else:
            self._pending.candidate = None

    def cancel(self) -> None:
        """Drop released outside any target, or gesture interrupted."""
        if self._pending is not None:
            logger.debug(f"Cancelled {self._pending.kind.value} drag of {self._pending.item_id}")
        self._pending = None

    def drop(self, column_id: Optional[str] = None) -> Any:
        """
        Commit the gesture onto column_id (or the last reported candidate).

        Returns the repository's result (TaskMove / new column order) or
        None when nothing was committed.
        """
        pending, self._pending = self._pending, None
        if pending is None:
            return None
        target = column_id if column_id is not None else pending.candidate
        if target is None:
            logger.debug(f"{pending.kind.value} drag of {pending.item_id} dropped outside any target")
            return None

        try:
            if pending.kind is DragKind.TASK:
                return self.repository.move_task(
                    pending.board_id, pending.item_id, pending.source_column_id, target
                )
            return self.repository.move_column_onto(pending.board_id, pending.item_id, target)
        except (NotFoundError, InvariantViolation) as e:
            logger.warning(f"Discarded {pending.kind.value} drop of {pending.item_id}: {e}")
            return None

    def _column_exists(self, column_id: str) -> bool:
        try:
            board = self.repository.get_board(self._pending.board_id)
        except NotFoundError:
            return False
        return board.find_column(column_id) is not None
