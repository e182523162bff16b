"""
Undo/redo for battlefield edits.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from .models import Side
from .terrain import Position, Terrain

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    label: str
    terrain: list[Terrain] = field(default_factory=list)
    positions: dict[str, Position] = field(default_factory=dict)
    ap_spent: dict[str, float] = field(default_factory=dict)
    rp: dict[Side, int] = field(default_factory=dict)
    first_crossing_side: Optional[Side] = None


class HistoryManager:
    """
    Bounded undo/redo stack.

    `capture` returns the current state; `restore` applies a snapshot.
    Call record() before each mutation; a new record clears the redo stack.
    """

    def __init__(
        self,
        capture: Callable[[str], Snapshot],
        restore: Callable[[Snapshot], None],
        max_history: int = 50,
    ):
        self.capture = capture
        self.restore = restore
        self.max_history = max_history
        self.undo_stack: list[Snapshot] = []
        self.redo_stack: list[Snapshot] = []

    def record(self, label: str):
        self.undo_stack.append(self.capture(label))
        if len(self.undo_stack) > self.max_history:
            self.undo_stack.pop(0)
        self.redo_stack.clear()

    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def undo(self) -> Optional[str]:
        """Restore the state before the last recorded edit. Returns its label."""
        if not self.undo_stack:
            return None
        snapshot = self.undo_stack.pop()
        self.redo_stack.append(self.capture(snapshot.label))
        self.restore(snapshot)
        logger.debug(f"Undo: {snapshot.label}")
        return snapshot.label

    def redo(self) -> Optional[str]:
        if not self.redo_stack:
            return None
        snapshot = self.redo_stack.pop()
        self.undo_stack.append(self.capture(snapshot.label))
        self.restore(snapshot)
        logger.debug(f"Redo: {snapshot.label}")
        return snapshot.label

    def clear(self):
        self.undo_stack.clear()
        self.redo_stack.clear()
