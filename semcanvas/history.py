"""
History engine - bounded, deduplicating undo/redo over whole-graph snapshots.

The history works via snapshots:
- Every settled edit offers the resulting Graph to `record`
- `undo`/`redo` move a cursor over the stored snapshots and hand back the
  one now pointed to, for the caller to apply as a full replacement
- A new edit made after some undos discards the undone "future"

Snapshots are frozen Graph values, so they are stored and returned
without copying.
"""

import logging
from enum import Enum
from typing import Optional

from .models import Graph

logger = logging.getLogger(__name__)

# Maximum history steps
HISTORY_LIMIT = 20


class EditOrigin(str, Enum):
    """Where a graph change came from; decides what history does with it."""
    USER_EDIT = "user-edit"              # Fresh edit, recorded
    HISTORY_REPLAY = "history-replay"    # Result of undo/redo, never recorded
    RESET = "reset"                      # Load/new model, restarts history


class HistoryEngine:
    """
    Linear snapshot history with a cursor.

    `entries[index]` is always the state the live graph was last settled
    at. Entries before the cursor are undoable, entries after it are
    redoable.
    """

    def __init__(self, capacity: int = HISTORY_LIMIT):
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self._capacity = capacity
        self._entries: list[Graph] = []
        self._index = -1

    # --- Properties ---

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def entries(self) -> tuple[Graph, ...]:
        return tuple(self._entries)

    @property
    def index(self) -> int:
        """Cursor position; -1 while the history is empty."""
        return self._index

    @property
    def current(self) -> Optional[Graph]:
        """The snapshot under the cursor."""
        if self._index < 0:
            return None
        return self._entries[self._index]

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    def __len__(self) -> int:
        return len(self._entries)

    # --- Recording ---

    def record(self, graph: Graph) -> bool:
        """
        Store `graph` as the newest state.

        Returns False without touching the stack when `graph` is
        structurally identical to the snapshot under the cursor.
        """
        if graph.same_as(self.current):
            return False

        # A new edit invalidates the redo future
        del self._entries[self._index + 1:]
        self._entries.append(graph)

        # Evict oldest entries past the bound
        overflow = len(self._entries) - self._capacity
        if overflow > 0:
            del self._entries[:overflow]

        self._index = len(self._entries) - 1
        logger.debug("History recorded entry %d/%d", self._index + 1, self._capacity)
        return True

    def reset(self, graph: Graph):
        """Discard all history and restart it at `graph`."""
        self._entries = [graph]
        self._index = 0

    def seed(self, graph: Graph) -> bool:
        """Give an empty history its baseline entry. No-op once anything is stored."""
        if self._entries:
            return False
        self.reset(graph)
        return True

    # --- Undo/Redo ---

    def undo(self) -> Optional[Graph]:
        """Step back one entry and return it, or None if already at the start."""
        if not self.can_undo:
            return None
        self._index -= 1
        return self._entries[self._index]

    def redo(self) -> Optional[Graph]:
        """Step forward one entry and return it, or None if already at the end."""
        if not self.can_redo:
            return None
        self._index += 1
        return self._entries[self._index]

    def get_state(self) -> dict:
        """Summary for API responses."""
        return {
            "length": len(self._entries),
            "index": self._index,
            "capacity": self._capacity,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
        }
