"""
Whole-state persistence for the board repository.

The repository is saved as one JSON string under one key of a string
key-value store (the browser's local storage, conceptually). There is no
partial save, no schema version and no migration: anything that cannot be
read back is discarded and the repository starts fresh.
"""
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any

from .errors import TrackFlowError
from .events import BoardEventBus
from .schema import Board
from .store import BoardRepository, DEFAULT_BOARD_NAME

logger = logging.getLogger(__name__)

BOARDS_KEY = "trackflow.boards"


class KeyValueStore:
    """String key → string value store."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store, for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class SqliteKeyValueStore(KeyValueStore):
    """SQLite-backed store: one row per key in the system_state table."""

    def __init__(self, db_path: str):
        self.db_path = str(Path(db_path).expanduser())
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        """Create the table if it doesn't exist."""
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS system_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def get(self, key: str) -> Optional[str]:
        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT value FROM system_state WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with _connect(self.db_path) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO system_state (key, value, updated_at) VALUES (?, ?, ?)",
                (key, value, now),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        with _connect(self.db_path) as conn:
            conn.execute("DELETE FROM system_state WHERE key = ?", (key,))
            conn.commit()


# ── Repository state ─────────────────────────────────────────────────────────


def dump_state(repo: BoardRepository) -> Dict[str, Any]:
    return {
        "active_board_id": repo.active_board_id,
        "boards": [board.to_dict() for board in repo.boards],
    }


def restore_state(
    data: Dict[str, Any],
    events: Optional[BoardEventBus] = None,
    default_board_name: str = DEFAULT_BOARD_NAME,
) -> BoardRepository:
    """
    Rebuild a repository from dump_state() output.

    Raises ValueError / KeyError / TypeError / AttributeError /
    TrackFlowError on a structurally invalid blob, including zero boards.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    raw_boards = data["boards"]
    if not isinstance(raw_boards, list) or not raw_boards:
        raise ValueError("Saved state has no boards")
    boards = [Board.from_dict(raw) for raw in raw_boards]
    return BoardRepository(
        boards=boards,
        active_board_id=data.get("active_board_id"),
        events=events,
        default_board_name=default_board_name,
    )


def save_repository(repo: BoardRepository, store: KeyValueStore, key: str = BOARDS_KEY) -> None:
    """Write the whole repository state as one JSON string."""
    store.set(key, json.dumps(dump_state(repo)))


def load_repository(
    store: KeyValueStore,
    key: str = BOARDS_KEY,
    events: Optional[BoardEventBus] = None,
    default_board_name: str = DEFAULT_BOARD_NAME,
) -> BoardRepository:
    """
    Load the repository saved under key.

    A missing key, malformed JSON or an invalid structure all give a fresh
    repository (one default board). Never raises for bad stored data.
    """
    raw = store.get(key)
    if raw is None:
        return BoardRepository(events=events, default_board_name=default_board_name)
    try:
        data = json.loads(raw)
        return restore_state(data, events=events, default_board_name=default_board_name)
    except (ValueError, KeyError, TypeError, AttributeError, TrackFlowError) as e:
        logger.warning(f"Discarding unreadable board state under {key!r}: {e}")
        return BoardRepository(events=events, default_board_name=default_board_name)
