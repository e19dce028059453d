"""
Board repository: the single source of truth for all boards.

Every mutation is old board → new board, swapped in by identity. All
validation runs before the swap, so a rejected call leaves the repository
exactly as it was. Events go out after the swap.
"""
import logging
from dataclasses import replace
from typing import List, Optional, Dict, Any, Iterable, Callable
from datetime import datetime

from .errors import ValidationError, NotFoundError, InvariantViolation
from .events import BoardEventBus
from .reorder import TaskMove, move_task, reorder_columns, splice
from .schema import Board, Column, Task, IssueType, make_column_id, new_id, utc_now

logger = logging.getLogger(__name__)

DEFAULT_BOARD_NAME = "Main Board"

# Fields update_task() accepts; status changes go through move_task()
EDITABLE_TASK_FIELDS = ("title", "description", "assignee", "labels", "issue_type")


def _require_text(value: Any, what: str) -> str:
    """Strip and return value, or raise ValidationError if empty."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{what} must not be empty")
    return value.strip()


def _check_wip_limit(wip_limit: Any) -> Optional[int]:
    if wip_limit is None:
        return None
    if isinstance(wip_limit, bool) or not isinstance(wip_limit, int) or wip_limit < 0:
        raise ValidationError(f"WIP limit must be a non-negative integer, got {wip_limit!r}")
    return wip_limit


def _normalize_labels(labels: Optional[Iterable[str]]) -> List[str]:
    if labels is None:
        return []
    if isinstance(labels, str):
        raise ValidationError("labels must be a collection of strings, not a string")
    result: List[str] = []
    for label in labels:
        if not isinstance(label, str) or not label.strip():
            raise ValidationError(f"Invalid label: {label!r}")
        label = label.strip()
        if label not in result:
            result.append(label)
    return result


def _normalize_assignee(assignee: Optional[str]) -> Optional[str]:
    if assignee is None:
        return None
    if not isinstance(assignee, str):
        raise ValidationError(f"assignee must be a string, got {type(assignee).__name__}")
    return assignee.strip() or None


class BoardRepository:
    """In-memory board list with the full mutation API."""

    def __init__(
        self,
        boards: Optional[Iterable[Board]] = None,
        active_board_id: Optional[str] = None,
        events: Optional[BoardEventBus] = None,
        default_board_name: str = DEFAULT_BOARD_NAME,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.events = events or BoardEventBus()
        self.default_board_name = default_board_name
        self.clock = clock
        self._boards: List[Board] = []
        self._active_board_id: Optional[str] = None
        self.replace_state(list(boards or []), active_board_id)

    def replace_state(self, boards: List[Board], active_board_id: Optional[str] = None) -> None:
        """Swap in a whole board list (used on load). Seeds a default board if empty."""
        for board in boards:
            board.check_integrity()
        ids = [b.id for b in boards]
        if len(set(ids)) != len(ids):
            raise InvariantViolation("Duplicate board ids")
        if not boards:
            boards = [Board.with_base_columns(self.default_board_name)]
        self._boards = list(boards)
        if active_board_id in ids:
            self._active_board_id = active_board_id
        else:
            self._active_board_id = self._boards[0].id

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # Read access
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    @property
    def boards(self) -> List[Board]:
        return list(self._boards)

    @property
    def active_board_id(self) -> str:
        return self._active_board_id

    @property
    def active_board(self) -> Board:
        return self.get_board(self._active_board_id)

    def __len__(self) -> int:
        return len(self._boards)

    def get_board(self, board_id: str) -> Board:
        for board in self._boards:
            if board.id == board_id:
                return board
        raise NotFoundError(f"Board {board_id} not found")

    def get_task(self, board_id: str, task_id: str) -> Task:
        task = self.get_board(board_id).find_task(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found on board {board_id}")
        return task

    def set_active_board(self, board_id: str) -> None:
        self.get_board(board_id)
        self._active_board_id = board_id

    def _swap(self, board: Board) -> None:
        self._boards = [board if b.id == board.id else b for b in self._boards]

    def _require_column(self, board: Board, column_id: str) -> Column:
        column = board.find_column(column_id)
        if column is None:
            raise NotFoundError(f"Column {column_id} not found on board {board.id}")
        return column

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # Boards
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def create_board(self, name: str) -> str:
        """Create a board with the standard columns and make it active."""
        name = _require_text(name, "Board name")
        board = Board.with_base_columns(name)
        self._boards = self._boards + [board]
        self._active_board_id = board.id
        logger.info(f"Created board {board.id} ({name!r})")
        self.events.emit("board_created", board=board)
        return board.id

    def delete_board(self, board_id: str) -> bool:
        """
        Delete a board with all its columns and tasks.

        Unknown ids are a no-op (returns False). The last board can never
        be deleted.
        """
        if not any(b.id == board_id for b in self._boards):
            logger.debug(f"delete_board: {board_id} already gone")
            return False
        if len(self._boards) == 1:
            raise InvariantViolation("At least one board is required")

        removed = self.get_board(board_id)
        self._boards = [b for b in self._boards if b.id != board_id]
        if self._active_board_id == board_id:
            self._active_board_id = self._boards[0].id
        logger.info(f"Deleted board {board_id} ({len(removed.tasks)} tasks)")
        self.events.emit("board_deleted", board=removed)
        return True

    def rename_board(self, board_id: str, name: str) -> None:
        name = _require_text(name, "Board name")
        board = replace(self.get_board(board_id), name=name)
        self._swap(board)
        self.events.emit("board_renamed", board=board)

    def clear_board(self, board_id: str) -> None:
        """
        Remove every column and task, keeping id and name.

        Irreversible: callers must confirm with the user first.
        """
        board = replace(self.get_board(board_id), columns=[], tasks=[])
        self._swap(board)
        logger.info(f"Cleared board {board_id}")
        self.events.emit("board_cleared", board=board)

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # Columns
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def add_column(self, board_id: str, label: str, wip_limit: Optional[int] = None) -> str:
        """Append a column to the end of the board. Returns its id."""
        label = _require_text(label, "Column label")
        wip_limit = _check_wip_limit(wip_limit)
        board = self.get_board(board_id)
        column = Column(id=make_column_id(label), label=label, wip_limit=wip_limit)
        board = replace(board, columns=board.columns + [column])
        self._swap(board)
        self.events.emit("column_added", board=board, column=column)
        return column.id

    def rename_column(self, board_id: str, column_id: str, label: str) -> None:
        label = _require_text(label, "Column label")
        board = self.get_board(board_id)
        column = replace(self._require_column(board, column_id), label=label)
        board = replace(board, columns=[column if c.id == column_id else c for c in board.columns])
        self._swap(board)
        self.events.emit("column_updated", board=board, column=column)

    def set_wip_limit(self, board_id: str, column_id: str, wip_limit: Optional[int]) -> None:
        """Set or clear (None) the advisory WIP limit of a column."""
        wip_limit = _check_wip_limit(wip_limit)
        board = self.get_board(board_id)
        column = replace(self._require_column(board, column_id), wip_limit=wip_limit)
        board = replace(board, columns=[column if c.id == column_id else c for c in board.columns])
        self._swap(board)
        self.events.emit("column_updated", board=board, column=column)

    def delete_column(self, board_id: str, column_id: str) -> int:
        """
        Delete a column and every task in it. Returns the number of tasks removed.

        Irreversible: callers must confirm with the user first. Unknown
        columns are a no-op.
        """
        board = self.get_board(board_id)
        column = board.find_column(column_id)
        if column is None:
            logger.debug(f"delete_column: {column_id} already gone from board {board_id}")
            return 0

        kept = [t for t in board.tasks if t.status != column_id]
        removed = len(board.tasks) - len(kept)
        board = replace(
            board,
            columns=[c for c in board.columns if c.id != column_id],
            tasks=kept,
        )
        self._swap(board)
        logger.info(f"Deleted column {column_id} from board {board_id} with {removed} tasks")
        self.events.emit("column_deleted", board=board, column=column, removed_tasks=removed)
        return removed

    def reorder_column(self, board_id: str, column_id: str, target_index: int) -> List[str]:
        """Splice a column to an absolute position. Returns the new column order."""
        board = self.get_board(board_id)
        from_index = board.column_index(column_id)
        if from_index < 0:
            raise NotFoundError(f"Column {column_id} not found on board {board_id}")
        valid_index = isinstance(target_index, int) and not isinstance(target_index, bool)
        if not valid_index or not 0 <= target_index < len(board.columns):
            raise ValidationError(
                f"Target index {target_index!r} out of range 0..{len(board.columns) - 1}"
            )
        if from_index == target_index:
            return board.column_ids()
        return self._commit_columns(board, splice(board.columns, from_index, target_index))

    def move_column_onto(self, board_id: str, dragged_column_id: str, target_column_id: str) -> List[str]:
        """Drop one column onto another (see reorder.reorder_columns). Returns the new order."""
        board = self.get_board(board_id)
        columns = reorder_columns(board.columns, dragged_column_id, target_column_id)
        if [c.id for c in columns] == board.column_ids():
            return board.column_ids()
        return self._commit_columns(board, columns)

    def _commit_columns(self, board: Board, columns: List[Column]) -> List[str]:
        board = replace(board, columns=columns)
        self._swap(board)
        order = board.column_ids()
        logger.debug(f"Board {board.id} column order: {order}")
        self.events.emit("columns_reordered", board=board, order=order)
        return order

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # Tasks
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def create_task(
        self,
        board_id: str,
        column_id: str,
        title: str,
        description: str = "",
        assignee: Optional[str] = None,
        labels: Optional[Iterable[str]] = None,
        issue_type: Any = IssueType.TASK,
    ) -> str:
        """Create a task in a column. Returns its id."""
        title = _require_text(title, "Task title")
        board = self.get_board(board_id)
        if board.find_column(column_id) is None:
            raise ValidationError(f"Column {column_id} does not exist on board {board_id}")
        now = self.clock()
        task = Task(
            id=new_id(),
            title=title,
            status=column_id,
            description=(description or "").strip(),
            assignee=_normalize_assignee(assignee),
            labels=_normalize_labels(labels),
            issue_type=IssueType.parse(issue_type),
            created_at=now,
            updated_at=now,
        )
        board = replace(board, tasks=board.tasks + [task])
        self._swap(board)
        self.events.emit("task_created", board=board, task=task)
        return task.id

    def update_task(self, board_id: str, task_id: str, **fields) -> Task:
        """
        Merge the given fields into a task and refresh updated_at.

        Only title, description, assignee, labels and issue_type can be
        edited here.
        """
        unknown = set(fields) - set(EDITABLE_TASK_FIELDS)
        if "status" in unknown:
            raise ValidationError("status cannot be edited; move the task instead")
        if unknown:
            raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")

        board = self.get_board(board_id)
        task = board.find_task(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found on board {board_id}")

        changes: Dict[str, Any] = {}
        if "title" in fields:
            changes["title"] = _require_text(fields["title"], "Task title")
        if "description" in fields:
            changes["description"] = (fields["description"] or "").strip()
        if "assignee" in fields:
            changes["assignee"] = _normalize_assignee(fields["assignee"])
        if "labels" in fields:
            changes["labels"] = _normalize_labels(fields["labels"])
        if "issue_type" in fields:
            changes["issue_type"] = IssueType.parse(fields["issue_type"])

        updated = replace(task, updated_at=self.clock(), **changes)
        board = replace(board, tasks=[updated if t.id == task_id else t for t in board.tasks])
        self._swap(board)
        self.events.emit("task_updated", board=board, task=updated)
        return updated

    def delete_task(self, board_id: str, task_id: str) -> bool:
        """Delete a task. Unknown tasks are a no-op (returns False)."""
        board = self.get_board(board_id)
        task = board.find_task(task_id)
        if task is None:
            logger.debug(f"delete_task: {task_id} already gone from board {board_id}")
            return False
        board = replace(board, tasks=[t for t in board.tasks if t.id != task_id])
        self._swap(board)
        self.events.emit("task_deleted", board=board, task=task)
        return True

    def reassign_task_column(self, board_id: str, task_id: str, target_column_id: str) -> Optional[TaskMove]:
        """Move a task to another column of the same board. Same column is a no-op."""
        task = self.get_task(board_id, task_id)
        return self.move_task(board_id, task_id, task.status, target_column_id)

    def move_task(
        self,
        board_id: str,
        task_id: str,
        source_column_id: str,
        target_column_id: str,
    ) -> Optional[TaskMove]:
        """Drag-and-drop form of the move: the task must still be in source_column_id."""
        board = self.get_board(board_id)
        board, move = move_task(board, task_id, source_column_id, target_column_id, self.clock())
        if move is None:
            return None
        self._swap(board)
        logger.info(
            f"Moved task {task_id} from {move.source_column.label!r} to {move.target_column.label!r}"
        )
        self.events.emit("task_moved", board=board, move=move)
        return move
