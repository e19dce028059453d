# TrackFlow: configuration
# Override storage location and defaults via trackflow.yaml or environment.

import logging
import os
import sys
import yaml
from pathlib import Path
from dataclasses import dataclass, field, fields
from typing import List, Optional

from .errors import ConfigError
from .schema import LABELS

CONFIG_PATH = Path("~/.config/trackflow/trackflow.yaml")
LOG_FORMAT = "%(asctime)s [trackflow] %(levelname)s: %(message)s"

# Storage path that keeps everything in memory
MEMORY_STORAGE = ":memory:"


@dataclass
class Config:
    """Runtime configuration for a TrackFlow workspace."""

    # Storage
    storage_path: str = "~/.local/share/trackflow/trackflow.db"
    boards_key: str = "trackflow.boards"
    users_key: str = "users"
    session_key: str = "currentUser"

    # Boards
    default_board_name: str = "Main Board"
    labels: List[str] = field(default_factory=lambda: list(LABELS))
    autosave: bool = True

    # Logging
    log_level: str = "INFO"

    def resolve_paths(self):
        """Expand ~ and apply the TRACKFLOW_DB override."""
        env = os.environ.get("TRACKFLOW_DB")
        if env:
            self.storage_path = env
        if self.storage_path != MEMORY_STORAGE:
            self.storage_path = str(Path(self.storage_path).expanduser())

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML file, falling back to defaults if it doesn't exist."""
        if path:
            cfg_path = Path(path)
        else:
            cfg_path = Path(os.environ.get("TRACKFLOW_CONFIG") or CONFIG_PATH).expanduser()

        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Cannot read config {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"Config {cfg_path} must be a mapping, got {type(data).__name__}")
            known = {f.name for f in fields(cls)}
            cfg = cls(**{k: v for k, v in data.items() if k in known})
        else:
            cfg = cls()
        cfg.resolve_paths()
        return cfg


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging to stdout."""
    numeric = logging.getLevelName(str(level).upper())
    if not isinstance(numeric, int):
        raise ConfigError(f"Unknown log level: {level!r}")
    logging.basicConfig(
        level=numeric,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
