"""
Event bus: lets outer layers (toasts, autosave, audit) observe committed
board mutations without the repository knowing about them.

The repository emits after a mutation has been swapped in; no-ops and
rejected operations emit nothing.
"""
import logging
from typing import Dict, List, Callable

logger = logging.getLogger(__name__)

# Wildcard subscription: receives every event, with event_type passed in
ANY_EVENT = "*"

EVENT_TYPES = (
    "board_created",
    "board_deleted",
    "board_renamed",
    "board_cleared",
    "column_added",
    "column_updated",
    "column_deleted",
    "columns_reordered",
    "task_created",
    "task_updated",
    "task_deleted",
    "task_moved",
)


class BoardEventBus:
    """Routes repository events to subscriber callbacks."""

    def __init__(self):
        self.subscribers: Dict[str, List[Callable]] = {}  # event_type -> callbacks

    def subscribe(self, event_type: str, callback: Callable) -> None:
        """Register a callback for an event type (or ANY_EVENT)."""
        if event_type != ANY_EVENT and event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")
        self.subscribers.setdefault(event_type, []).append(callback)

    def unsubscribe(self, event_type: str, callback: Callable) -> None:
        callbacks = self.subscribers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event_type: str, **kwargs) -> None:
        """Emit an event to all subscribers. A failing callback never propagates."""
        for callback in list(self.subscribers.get(event_type, [])):
            self._call(event_type, callback, kwargs)
        for callback in list(self.subscribers.get(ANY_EVENT, [])):
            self._call(event_type, callback, dict(kwargs, event_type=event_type))

    def _call(self, event_type: str, callback: Callable, kwargs: dict) -> None:
        try:
            callback(**kwargs)
        except Exception as e:
            logger.error(f"Error in {event_type} callback: {e}")
