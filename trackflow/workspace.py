"""
Workspace: composes config, storage, users, session and the board store.

Every action a UI can request goes through here. Each one checks a single
permission for the logged-in user, then delegates to the repository. When
autosave is on, every committed mutation writes the whole board state back
to the key-value store.
"""
import logging
from typing import Optional, List, Any

from .config import Config, MEMORY_STORAGE
from .errors import PermissionDenied, InvariantViolation
from .events import BoardEventBus, ANY_EVENT
from .permissions import Permission, Role, require_permission
from .persistence import (
    KeyValueStore,
    MemoryKeyValueStore,
    SqliteKeyValueStore,
    load_repository,
    save_repository,
)
from .reorder import DragSession, TaskMove
from .schema import Board, Task
from .store import BoardRepository
from .users import ACTIVE, User, UserDirectory, Session
from .views import AssignedTask, BoardSummary, board_summary, tasks_by_assignee, tasks_by_column

logger = logging.getLogger(__name__)


class Workspace:
    """One user's TrackFlow: boards, users and the login session."""

    def __init__(self, config: Config, store: KeyValueStore):
        self.config = config
        self.store = store
        self.events = BoardEventBus()
        self.users = UserDirectory(store, key=config.users_key)
        self.session = Session(store, key=config.session_key)
        self.users.initialize()
        self.repository: BoardRepository = load_repository(
            store,
            key=config.boards_key,
            events=self.events,
            default_board_name=config.default_board_name,
        )
        self.drag = DragSession(self)
        if config.autosave:
            self.events.subscribe(ANY_EVENT, self._autosave)

    @classmethod
    def open(cls, config: Optional[Config] = None, store: Optional[KeyValueStore] = None) -> "Workspace":
        """Open the workspace described by config (Config.load() by default)."""
        config = config or Config.load()
        if store is None:
            if config.storage_path == MEMORY_STORAGE:
                store = MemoryKeyValueStore()
            else:
                store = SqliteKeyValueStore(config.storage_path)
        return cls(config, store)

    def save(self) -> None:
        save_repository(self.repository, self.store, key=self.config.boards_key)

    def _autosave(self, event_type: str, **kwargs) -> None:
        self.save()
        logger.debug(f"Saved board state after {event_type}")

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # Session
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    @property
    def current_user(self) -> Optional[User]:
        return self.session.current_user

    def login(self, email: str, password: str) -> User:
        user = self.users.authenticate(email, password)
        if user is None:
            logger.warning(f"Failed login for {email!r}")
            raise PermissionDenied("Invalid email or password")
        self.session.login(user)
        return user

    def logout(self) -> None:
        self.drag.cancel()
        self.session.logout()

    def _require(self, permission: Permission) -> User:
        user = self.current_user
        require_permission(user, permission)
        return user

    def create_user(self, name: str, email: str, password: str, role: Any = Role.USER) -> User:
        actor = self._require(Permission.CREATE_USERS)
        return self.users.create_user(name, email, password, role=role, created_by=actor.email)

    def update_user(self, user_id: int, **fields) -> User:
        actor = self._require(Permission.EDIT_USERS)
        user = self.users.update_user(user_id, **fields)
        if user.id == actor.id:
            self.session.login(user)
        return user

    def set_user_status(self, user_id: int, status: str) -> User:
        actor = self._require(Permission.EDIT_USERS)
        if user_id == actor.id and status != ACTIVE:
            raise InvariantViolation("You cannot deactivate your own account")
        return self.users.set_status(user_id, status)

    def toggle_user_status(self, user_id: int) -> User:
        actor = self._require(Permission.EDIT_USERS)
        if user_id == actor.id:
            raise InvariantViolation("You cannot deactivate your own account")
        return self.users.toggle_status(user_id)

    def delete_user(self, user_id: int) -> bool:
        """Caller must have confirmed with the user."""
        actor = self._require(Permission.DELETE_USERS)
        if user_id == actor.id:
            raise InvariantViolation("You cannot delete your own account")
        return self.users.delete_user(user_id)

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # Views
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    @property
    def labels(self) -> List[str]:
        return list(self.config.labels)

    def get_board(self, board_id: str) -> Board:
        return self.repository.get_board(board_id)

    def boards(self) -> List[Board]:
        self._require(Permission.VIEW_PROJECTS)
        return self.repository.boards

    def columns_with_tasks(self, board_id: str):
        self._require(Permission.VIEW_PROJECTS)
        return tasks_by_column(self.repository.get_board(board_id))

    def summary(self, board_id: str) -> BoardSummary:
        self._require(Permission.VIEW_PROJECTS)
        return board_summary(self.repository.get_board(board_id))

    def my_tasks(self) -> List[AssignedTask]:
        """Tasks across all boards assigned to the logged-in user's name."""
        user = self._require(Permission.VIEW_DASHBOARD)
        return tasks_by_assignee(self.repository.boards, user.name)

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # Boards and columns
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def create_board(self, name: str) -> str:
        self._require(Permission.CREATE_PROJECTS)
        return self.repository.create_board(name)

    def rename_board(self, board_id: str, name: str) -> None:
        self._require(Permission.EDIT_PROJECTS)
        self.repository.rename_board(board_id, name)

    def delete_board(self, board_id: str) -> bool:
        """Caller must have confirmed with the user."""
        self._require(Permission.DELETE_PROJECTS)
        return self.repository.delete_board(board_id)

    def clear_board(self, board_id: str) -> None:
        """Caller must have confirmed with the user."""
        self._require(Permission.DELETE_PROJECTS)
        self.repository.clear_board(board_id)

    def add_column(self, board_id: str, label: str, wip_limit: Optional[int] = None) -> str:
        self._require(Permission.EDIT_PROJECTS)
        return self.repository.add_column(board_id, label, wip_limit=wip_limit)

    def rename_column(self, board_id: str, column_id: str, label: str) -> None:
        self._require(Permission.EDIT_PROJECTS)
        self.repository.rename_column(board_id, column_id, label)

    def set_wip_limit(self, board_id: str, column_id: str, wip_limit: Optional[int]) -> None:
        self._require(Permission.EDIT_PROJECTS)
        self.repository.set_wip_limit(board_id, column_id, wip_limit)

    def delete_column(self, board_id: str, column_id: str) -> int:
        """Caller must have confirmed with the user."""
        self._require(Permission.DELETE_PROJECTS)
        return self.repository.delete_column(board_id, column_id)

    def reorder_column(self, board_id: str, column_id: str, target_index: int) -> List[str]:
        self._require(Permission.EDIT_PROJECTS)
        return self.repository.reorder_column(board_id, column_id, target_index)

    def move_column_onto(self, board_id: str, dragged_column_id: str, target_column_id: str) -> List[str]:
        self._require(Permission.EDIT_PROJECTS)
        return self.repository.move_column_onto(board_id, dragged_column_id, target_column_id)

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # Tasks
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def create_task(self, board_id: str, column_id: str, title: str, **fields) -> str:
        self._require(Permission.CREATE_TASKS)
        self._note_unknown_labels(fields.get("labels"))
        return self.repository.create_task(board_id, column_id, title, **fields)

    def update_task(self, board_id: str, task_id: str, **fields) -> Task:
        self._require(Permission.CREATE_TASKS)
        self._note_unknown_labels(fields.get("labels"))
        return self.repository.update_task(board_id, task_id, **fields)

    def delete_task(self, board_id: str, task_id: str) -> bool:
        self._require(Permission.CREATE_TASKS)
        return self.repository.delete_task(board_id, task_id)

    def reassign_task_column(self, board_id: str, task_id: str, target_column_id: str) -> Optional[TaskMove]:
        self._require(Permission.CREATE_TASKS)
        return self.repository.reassign_task_column(board_id, task_id, target_column_id)

    def move_task(self, board_id: str, task_id: str, source_column_id: str, target_column_id: str) -> Optional[TaskMove]:
        self._require(Permission.CREATE_TASKS)
        return self.repository.move_task(board_id, task_id, source_column_id, target_column_id)

    def _note_unknown_labels(self, labels) -> None:
        if not labels or isinstance(labels, str):
            return
        unknown = [label for label in labels if label not in self.config.labels]
        if unknown:
            logger.debug(f"Labels outside the vocabulary: {unknown}")

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # Drag and drop
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def start_task_drag(self, board_id: str, task_id: str, source_column_id: str) -> None:
        self._require(Permission.CREATE_TASKS)
        self.drag.start_task_drag(board_id, task_id, source_column_id)

    def start_column_drag(self, board_id: str, column_id: str) -> None:
        self._require(Permission.EDIT_PROJECTS)
        self.drag.start_column_drag(board_id, column_id)

    def drag_over(self, column_id: Optional[str]) -> None:
        self.drag.drag_over(column_id)

    def drop(self, column_id: Optional[str] = None) -> Any:
        return self.drag.drop(column_id)

    def cancel_drag(self) -> None:
        self.drag.cancel()
