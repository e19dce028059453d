"""
Board, column and task schema.

Layout of a board:
  Board → columns (ordered, position = display order)
        → tasks   (insertion order, column membership via task.status)

A task never lives "inside" a column: moving it is a status reassignment.
Entities are plain dataclasses; the repository never edits one in place,
it builds a replacement with dataclasses.replace and swaps it in.
"""
import re
import uuid
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from .errors import ValidationError, InvariantViolation


LABELS = (
    "backend",
    "blocker",
    "bug",
    "design required",
    "duplicate",
    "enhancement",
    "front-end",
)

# (id, label) of the four standard stages every new board starts with
BASE_COLUMNS = (
    ("todo", "To Do"),
    ("inprogress", "In Progress"),
    ("inreview", "In Review"),
    ("done", "Done"),
)

_WHITESPACE_RE = re.compile(r"\s+")


def utc_now() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def make_column_id(label: str) -> str:
    """Slug of the label plus a random suffix, so duplicate labels never collide."""
    slug = _WHITESPACE_RE.sub("-", label.strip().lower())
    return f"{slug}-{uuid.uuid4().hex[:12]}"


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return utc_now()
    return datetime.fromisoformat(value)


class IssueType(Enum):
    """Kind of work a task represents."""
    BUG = "Bug"
    FEATURE = "Feature"
    TASK = "Task"

    @classmethod
    def from_str(cls, value: str) -> "IssueType":
        """Lenient lookup by value or name; unknown values read as TASK."""
        try:
            return cls.parse(value)
        except ValidationError:
            return cls.TASK

    @classmethod
    def parse(cls, value: Any) -> "IssueType":
        """Strict lookup by value or name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if value.strip().lower() in (member.value.lower(), member.name.lower()):
                    return member
        raise ValidationError(
            f"Invalid issue type: {value!r}. "
            f"Expected one of: {', '.join(m.value for m in cls)}"
        )


@dataclass
class Column:
    """A named stage of a board."""
    id: str
    label: str
    wip_limit: Optional[int] = None   # advisory only, never enforced

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label, "wip_limit": self.wip_limit}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        return cls(
            id=str(data["id"]),
            label=str(data["label"]),
            wip_limit=data.get("wip_limit"),
        )


@dataclass
class Task:
    """A unit of work placed in a column by its status field."""

    id: str
    title: str
    status: str                    # id of the column the task sits in
    description: str = ""
    assignee: Optional[str] = None  # display name, by value
    labels: List[str] = field(default_factory=list)
    issue_type: IssueType = IssueType.TASK
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "assignee": self.assignee,
            "labels": list(self.labels),
            "issue_type": self.issue_type.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        labels = data.get("labels") or []
        if not isinstance(labels, list):
            raise ValueError(f"labels must be a list, got {type(labels).__name__}")
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            status=str(data["status"]),
            description=data.get("description") or "",
            assignee=data.get("assignee"),
            labels=[str(label) for label in labels],
            issue_type=IssueType.from_str(data.get("issue_type") or ""),
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


@dataclass
class Board:
    """A kanban project: ordered columns plus the tasks placed in them."""

    id: str
    name: str
    columns: List[Column] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)

    @classmethod
    def with_base_columns(cls, name: str, board_id: Optional[str] = None) -> "Board":
        """New board with its own copy of the four standard stages."""
        return cls(
            id=board_id or new_id(),
            name=name,
            columns=[Column(id=cid, label=label) for cid, label in BASE_COLUMNS],
        )

    # ── lookups ──

    def column_ids(self) -> List[str]:
        return [c.id for c in self.columns]

    def column_index(self, column_id: str) -> int:
        """Position of a column, or -1."""
        for idx, column in enumerate(self.columns):
            if column.id == column_id:
                return idx
        return -1

    def find_column(self, column_id: str) -> Optional[Column]:
        idx = self.column_index(column_id)
        return self.columns[idx] if idx >= 0 else None

    def find_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def check_integrity(self) -> None:
        """
        Raise InvariantViolation if ids collide, a label, name or title is
        empty, a WIP limit is not a non-negative integer, or a task points
        at a column the board does not have.
        """
        if not self.name.strip():
            raise InvariantViolation(f"Board {self.id} has an empty name")
        column_ids = self.column_ids()
        if len(set(column_ids)) != len(column_ids):
            raise InvariantViolation(f"Board {self.id} has duplicate column ids")
        for column in self.columns:
            if not isinstance(column.label, str) or not column.label.strip():
                raise InvariantViolation(f"Column {column.id} on board {self.id} has an empty label")
            limit = column.wip_limit
            if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 0):
                raise InvariantViolation(
                    f"Column {column.id} on board {self.id} has invalid WIP limit {limit!r}"
                )
        task_ids = [t.id for t in self.tasks]
        if len(set(task_ids)) != len(task_ids):
            raise InvariantViolation(f"Board {self.id} has duplicate task ids")
        known = set(column_ids)
        for task in self.tasks:
            if not isinstance(task.title, str) or not task.title.strip():
                raise InvariantViolation(f"Task {task.id} on board {self.id} has an empty title")
            if task.status not in known:
                raise InvariantViolation(
                    f"Task {task.id} on board {self.id} points at missing column {task.status!r}"
                )

    # ── serialization ──

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "columns": [c.to_dict() for c in self.columns],
            "tasks": [t.to_dict() for t in self.tasks],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Board":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            columns=[Column.from_dict(c) for c in data.get("columns") or []],
            tasks=[Task.from_dict(t) for t in data.get("tasks") or []],
        )
