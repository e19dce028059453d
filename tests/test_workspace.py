"""
Tests for the workspace: login, permission checks at the boundary, autosave.
"""
import pytest

from trackflow.config import Config, MEMORY_STORAGE
from trackflow.errors import PermissionDenied, InvariantViolation
from trackflow.permissions import Role
from trackflow.persistence import MemoryKeyValueStore, load_repository
from trackflow.users import ACTIVE, DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD, INACTIVE
from trackflow.workspace import Workspace


@pytest.fixture
def workspace():
    ws = Workspace.open(config=Config(storage_path=MEMORY_STORAGE))
    ws.login(DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD)
    return ws


def _login_as(ws, role):
    email = f"{role}@example.com"
    ws.create_user(role.title(), email, "pw", role=role)
    ws.login(email, "pw")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Session
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_first_open_seeds_admin_and_default_board():
    ws = Workspace.open(config=Config(storage_path=MEMORY_STORAGE))
    assert ws.current_user is None
    assert [b.name for b in ws.repository.boards] == ["Main Board"]
    assert ws.users.find_by_email(DEFAULT_ADMIN_EMAIL) is not None


def test_bad_login(workspace):
    with pytest.raises(PermissionDenied):
        workspace.login(DEFAULT_ADMIN_EMAIL, "wrong")


def test_logged_out_user_cannot_act(workspace):
    workspace.logout()
    with pytest.raises(PermissionDenied):
        workspace.create_board("Nope")
    with pytest.raises(PermissionDenied):
        workspace.boards()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Permissions
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_viewer_can_look_but_not_touch(workspace):
    board_id = workspace.repository.active_board_id
    task_id = workspace.create_task(board_id, "todo", "Existing")
    _login_as(workspace, "viewer")

    assert len(workspace.boards()) == 1
    with pytest.raises(PermissionDenied):
        workspace.create_task(board_id, "todo", "x")
    with pytest.raises(PermissionDenied):
        workspace.start_task_drag(board_id, task_id, "todo")
    with pytest.raises(PermissionDenied):
        workspace.move_task(board_id, task_id, "todo", "done")
    assert workspace.repository.get_task(board_id, task_id).status == "todo"


def test_user_can_manage_tasks_but_not_boards(workspace):
    board_id = workspace.repository.active_board_id
    _login_as(workspace, "user")

    task_id = workspace.create_task(board_id, "todo", "Mine", assignee="User")
    workspace.update_task(board_id, task_id, description="details")
    workspace.reassign_task_column(board_id, task_id, "inprogress")
    assert workspace.repository.get_task(board_id, task_id).status == "inprogress"

    with pytest.raises(PermissionDenied):
        workspace.create_board("Team")
    with pytest.raises(PermissionDenied):
        workspace.add_column(board_id, "QA")
    with pytest.raises(PermissionDenied):
        workspace.start_column_drag(board_id, "todo")


def test_manager_cannot_delete(workspace):
    board_id = workspace.repository.active_board_id
    _login_as(workspace, "manager")
    new_board = workspace.create_board("Roadmap")
    workspace.rename_board(new_board, "Roadmap 2025")
    with pytest.raises(PermissionDenied):
        workspace.delete_board(new_board)
    with pytest.raises(PermissionDenied):
        workspace.delete_column(board_id, "done")
    with pytest.raises(PermissionDenied):
        workspace.clear_board(board_id)
    assert len(workspace.repository.get_board(board_id).columns) == 4


def test_admin_still_bound_by_invariants(workspace):
    with pytest.raises(InvariantViolation):
        workspace.delete_board(workspace.repository.active_board_id)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Drag and drop through the workspace
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_drag_task_and_column(workspace):
    board_id = workspace.repository.active_board_id
    task_id = workspace.create_task(board_id, "todo", "Drag")

    workspace.start_task_drag(board_id, task_id, "todo")
    workspace.drag_over("inreview")
    move = workspace.drop()
    assert move.target_column.label == "In Review"

    workspace.start_column_drag(board_id, "done")
    workspace.drag_over("todo")
    assert workspace.drop() == ["done", "todo", "inprogress", "inreview"]

    workspace.start_task_drag(board_id, task_id, "inreview")
    workspace.cancel_drag()
    assert workspace.drop("done") is None
    assert workspace.repository.get_task(board_id, task_id).status == "inreview"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Views and persistence
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_my_tasks_uses_current_user_name(workspace):
    board_id = workspace.repository.active_board_id
    workspace.create_task(board_id, "todo", "For admin", assignee="Admin User")
    workspace.create_task(board_id, "todo", "For someone else", assignee="User B")
    assert [a.task.title for a in workspace.my_tasks()] == ["For admin"]
    assert workspace.summary(board_id).by_assignee == {"Admin User": 1, "User B": 1}
    assert len(workspace.columns_with_tasks(board_id)["todo"]) == 2


def test_autosave_persists_every_commit():
    store = MemoryKeyValueStore()
    config = Config(storage_path=MEMORY_STORAGE)
    ws = Workspace.open(config=config, store=store)
    ws.login(DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD)

    board_id = ws.create_board("Persisted")
    task_id = ws.create_task(board_id, "todo", "Survives reload", labels=["backend"])
    ws.reassign_task_column(board_id, task_id, "done")

    reopened = Workspace.open(config=config, store=store)
    assert reopened.repository.boards == ws.repository.boards
    assert reopened.repository.active_board_id == board_id
    assert reopened.current_user.email == DEFAULT_ADMIN_EMAIL


def test_autosave_off_requires_explicit_save():
    store = MemoryKeyValueStore()
    config = Config(storage_path=MEMORY_STORAGE, autosave=False)
    ws = Workspace.open(config=config, store=store)
    ws.login(DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD)
    ws.create_board("Unsaved")
    assert store.get(config.boards_key) is None

    ws.save()
    assert [b.name for b in load_repository(store, key=config.boards_key).boards] == ["Main Board", "Unsaved"]


def test_open_with_sqlite_storage(tmp_path):
    config = Config(storage_path=str(tmp_path / "trackflow.db"))
    ws = Workspace.open(config=config)
    ws.login(DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD)
    ws.create_board("On disk")
    assert [b.name for b in Workspace.open(config=config).repository.boards] == ["Main Board", "On disk"]


def test_open_expands_home_in_default_storage_path(tmp_path, monkeypatch):
    home = tmp_path / "home"
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)

    Workspace.open(config=Config(autosave=False))

    assert not (tmp_path / "~").exists()
    assert (home / ".local" / "share" / "trackflow" / "trackflow.db").exists()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# User management
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_admin_edits_deactivates_and_deletes_users(workspace):
    sarah = workspace.create_user("Sarah", "sarah@example.com", "pw")

    edited = workspace.update_user(sarah.id, name="Sarah Chen", role="manager")
    assert edited.name == "Sarah Chen"
    assert workspace.users.get(sarah.id).role is Role.MANAGER

    assert workspace.toggle_user_status(sarah.id).status == INACTIVE
    with pytest.raises(PermissionDenied):
        workspace.login("sarah@example.com", "pw")

    workspace.set_user_status(sarah.id, ACTIVE)
    assert workspace.delete_user(sarah.id) is True
    assert workspace.delete_user(sarah.id) is False
    assert workspace.users.find_by_email("sarah@example.com") is None


def test_manager_can_edit_but_not_delete_users(workspace):
    target = workspace.create_user("Target", "target@example.com", "pw")
    _login_as(workspace, "manager")

    workspace.update_user(target.id, name="Renamed")
    workspace.toggle_user_status(target.id)
    with pytest.raises(PermissionDenied):
        workspace.delete_user(target.id)
    assert workspace.users.get(target.id).name == "Renamed"


def test_regular_user_cannot_edit_users(workspace):
    admin = workspace.current_user
    _login_as(workspace, "user")
    with pytest.raises(PermissionDenied):
        workspace.update_user(admin.id, name="Hijacked")
    with pytest.raises(PermissionDenied):
        workspace.toggle_user_status(admin.id)
    assert workspace.users.get(admin.id).name == "Admin User"


def test_cannot_remove_own_account(workspace):
    me = workspace.current_user
    with pytest.raises(InvariantViolation):
        workspace.delete_user(me.id)
    with pytest.raises(InvariantViolation):
        workspace.toggle_user_status(me.id)
    with pytest.raises(InvariantViolation):
        workspace.set_user_status(me.id, INACTIVE)
    assert workspace.users.get(me.id).is_active


def test_editing_own_account_refreshes_session(workspace):
    me = workspace.current_user
    workspace.update_user(me.id, name="Head Admin")
    assert workspace.current_user.name == "Head Admin"


def test_drop_rechecks_permission(workspace):
    board_id = workspace.repository.active_board_id
    task_id = workspace.create_task(board_id, "todo", "Guarded")
    workspace.create_user("Viewer", "viewer@example.com", "pw", role="viewer")

    workspace.start_task_drag(board_id, task_id, "todo")
    workspace.login("viewer@example.com", "pw")

    with pytest.raises(PermissionDenied):
        workspace.drop("done")
    assert not workspace.drag.active
    assert workspace.repository.get_task(board_id, task_id).status == "todo"
