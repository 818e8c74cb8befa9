"""Linear undo/redo over full snapshots of the working copy."""

from __future__ import annotations

from typing import List, Optional, Sequence

from services.records import Record

Snapshot = List[Record]


def snapshot_of(records: Sequence[Record]) -> Snapshot:
    """Return a deep copy of ``records`` suitable for the history stacks."""

    return [record.copy() for record in records]


class HistoryStack:
    """Past/future stacks of working-copy snapshots.

    The stack never looks at the workspace itself: callers hand in the current
    working copy and receive the snapshot that should replace it.
    """

    def __init__(self) -> None:
        self._past: List[Snapshot] = []
        self._future: List[Snapshot] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    @property
    def past(self) -> List[Snapshot]:
        return [snapshot_of(entry) for entry in self._past]

    @property
    def future(self) -> List[Snapshot]:
        return [snapshot_of(entry) for entry in self._future]

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()

    def commit(self, current: Sequence[Record]) -> None:
        """Checkpoint ``current`` before a forward mutation."""

        self._past.append(snapshot_of(current))
        self._future.clear()

    def undo(self, current: Sequence[Record]) -> Optional[Snapshot]:
        if not self._past:
            return None
        previous = self._past.pop()
        self._future.insert(0, snapshot_of(current))
        return previous

    def redo(self, current: Sequence[Record]) -> Optional[Snapshot]:
        if not self._future:
            return None
        following = self._future.pop(0)
        self._past.append(snapshot_of(current))
        return following
