"""
Read-only projections of repository state.

Everything here is recomputed on each call; nothing is cached and no
input is modified.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Iterable

from .schema import Board, Task


@dataclass(frozen=True)
class AssignedTask:
    """A task tagged with the board it lives on."""
    board_id: str
    board_name: str
    task: Task


@dataclass
class BoardSummary:
    total: int = 0
    by_column: Dict[str, int] = field(default_factory=dict)
    by_assignee: Dict[str, int] = field(default_factory=dict)


def tasks_by_column(board: Board) -> Dict[str, List[Task]]:
    """
    Group tasks by status.

    Keys follow column display order and every column is present, empty
    or not. Within a column tasks keep their insertion order.
    """
    groups: Dict[str, List[Task]] = {column.id: [] for column in board.columns}
    for task in board.tasks:
        groups.setdefault(task.status, []).append(task)
    return groups


def tasks_by_assignee(boards: Iterable[Board], assignee: str) -> List[AssignedTask]:
    """Every task assigned to exactly this display name, across boards."""
    return [
        AssignedTask(board_id=board.id, board_name=board.name, task=task)
        for board in boards
        for task in board.tasks
        if task.assignee == assignee
    ]


def board_summary(board: Board) -> BoardSummary:
    summary = BoardSummary(by_column={column.id: 0 for column in board.columns})
    for task in board.tasks:
        summary.total += 1
        summary.by_column[task.status] = summary.by_column.get(task.status, 0) + 1
        if task.assignee:
            summary.by_assignee[task.assignee] = summary.by_assignee.get(task.assignee, 0) + 1
    return summary


def boards_with_assignee_tasks(boards: Iterable[Board], assignee: str) -> List[Board]:
    return [board for board in boards if any(t.assignee == assignee for t in board.tasks)]


def columns_over_wip_limit(board: Board) -> List[str]:
    """Ids of columns holding more tasks than their advisory WIP limit."""
    counts = board_summary(board).by_column
    return [
        column.id
        for column in board.columns
        if column.wip_limit is not None and counts.get(column.id, 0) > column.wip_limit
    ]
