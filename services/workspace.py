"""Workspace store: working copy, snapshots, selection and column setup.

The workspace keeps three views of every record id:

* the *baseline* captured at load time (the revert target),
* the *last-known-remote* value (updated after a confirmed push),
* the *working copy* held in display order.

Every mutation goes through this class and runs under one re-entrant lock so
that batch runs, sync and user edits coming from different call sites stay
serialized.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from services.history import HistoryStack, Snapshot
from services.modes import (
    DEFAULT_MODE,
    OptimizationMode,
    coerce_mode,
    default_column_modes,
    default_selected_columns,
    editable_columns,
)
from services.records import (
    FIELD_NAME,
    FIELD_SKU,
    Record,
    changed_field_names,
    coerce_records,
    field_names,
)


_LOGGER = logging.getLogger(__name__)


class WorkspaceError(RuntimeError):
    """Raised for operations on unknown records or overlapping batches."""


class SyncState(str, Enum):
    PENDING = "pending"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


@dataclass
class TransformStatus:
    total: int = 0
    completed: int = 0
    is_processing: bool = False
    error: Optional[str] = None


class Workspace:
    def __init__(self, records: Iterable[Record | Mapping[str, Any]] | None = None) -> None:
        self._lock = threading.RLock()
        self._records: List[Record] = []
        self._baseline: Dict[str, Record] = {}
        self._remote: Dict[str, Record] = {}
        self._history = HistoryStack()
        self._selection: Dict[str, None] = {}
        self._all_columns: List[str] = []
        self._selected_columns: List[str] = []
        self._column_modes: Dict[str, OptimizationMode] = {}
        self._sync_status: Dict[str, SyncState] = {}
        self._sync_errors: Dict[str, str] = {}
        self._status = TransformStatus()
        if records is not None:
            self.load(records)

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    # ------------------------------------------------------------------
    # Loading and reading
    # ------------------------------------------------------------------
    def load(self, records: Iterable[Record | Mapping[str, Any]]) -> None:
        """Replace all three snapshots with ``records`` and reset side state."""

        loaded = coerce_records(records)
        with self._lock:
            self._records = [record.copy() for record in loaded]
            self._baseline = {record.id: record.copy() for record in loaded}
            self._remote = {record.id: record.copy() for record in loaded}
            self._history.clear()
            self._selection.clear()
            self._sync_status.clear()
            self._sync_errors.clear()
            self._status = TransformStatus()

            self._all_columns = editable_columns(field_names(loaded))
            self._selected_columns = default_selected_columns(self._all_columns)
            self._column_modes = default_column_modes(self._all_columns)
        _LOGGER.info(
            "Workspace loaded with %d records and %d columns",
            len(loaded),
            len(self._all_columns),
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        with self._lock:
            return any(record.id == record_id for record in self._records)

    @property
    def records(self) -> List[Record]:
        with self._lock:
            return [record.copy() for record in self._records]

    def ids(self) -> List[str]:
        with self._lock:
            return [record.id for record in self._records]

    def get(self, record_id: str) -> Record:
        with self._lock:
            return self._records[self._index(record_id)].copy()

    def baseline(self, record_id: str) -> Optional[Record]:
        with self._lock:
            record = self._baseline.get(record_id)
            return record.copy() if record is not None else None

    def last_known_remote(self, record_id: str) -> Optional[Record]:
        with self._lock:
            record = self._remote.get(record_id)
            return record.copy() if record is not None else None

    def search(self, term: str) -> List[Record]:
        """Return records whose name or sku contains ``term``."""

        needle = (term or "").strip().casefold()
        with self._lock:
            if not needle:
                return [record.copy() for record in self._records]
            return [
                record.copy()
                for record in self._records
                if needle in record.get(FIELD_NAME).casefold()
                or needle in record.get(FIELD_SKU).casefold()
            ]

    def _index(self, record_id: str) -> int:
        for idx, record in enumerate(self._records):
            if record.id == record_id:
                return idx
        raise WorkspaceError(f"Unknown record id: {record_id}")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def set_field_value(self, record_id: str, field_name: str, value: Any) -> None:
        """Write one field of the working copy and refresh its dirty status."""

        self.apply_values(record_id, {field_name: value})

    def apply_values(self, record_id: str, values: Mapping[str, Any]) -> None:
        with self._lock:
            idx = self._index(record_id)
            self._records[idx] = self._records[idx].with_values(values)
            self._refresh_dirty(record_id)

    def revert(self, record_id: str) -> None:
        """Restore the load-time value of ``record_id`` as an undoable step."""

        with self._lock:
            original = self._baseline.get(record_id)
            if original is None:
                raise WorkspaceError(f"No baseline for record id: {record_id}")
            idx = self._index(record_id)
            self.commit()
            self._records[idx] = original.copy()
            self._refresh_dirty(record_id)
        _LOGGER.debug("Reverted record %s to its baseline", record_id)

    def _refresh_dirty(self, record_id: str) -> None:
        current = self._records[self._index(record_id)]
        remote = self._remote.get(record_id)
        self._sync_errors.pop(record_id, None)
        if remote is not None and not changed_field_names(current, remote):
            self._sync_status.pop(record_id, None)
        else:
            self._sync_status[record_id] = SyncState.PENDING

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def commit(self) -> None:
        """Checkpoint the working copy; call before a batch mutation starts."""

        with self._lock:
            self._history.commit(self._records)

    def undo(self) -> bool:
        with self._lock:
            restored = self._history.undo(self._records)
            if restored is None:
                return False
            self._swap_in(restored)
            return True

    def redo(self) -> bool:
        with self._lock:
            restored = self._history.redo(self._records)
            if restored is None:
                return False
            self._swap_in(restored)
            return True

    def _swap_in(self, snapshot: Snapshot) -> None:
        self._records = snapshot
        present = {record.id for record in snapshot}
        for record_id in [rid for rid in self._selection if rid not in present]:
            del self._selection[record_id]

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def history(self) -> HistoryStack:
        return self._history

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    @property
    def selected_ids(self) -> List[str]:
        with self._lock:
            return list(self._selection)

    def is_selected(self, record_id: str) -> bool:
        with self._lock:
            return record_id in self._selection

    def select(self, *record_ids: str) -> None:
        with self._lock:
            for record_id in record_ids:
                self._index(record_id)
                self._selection.setdefault(record_id, None)

    def deselect(self, *record_ids: str) -> None:
        with self._lock:
            for record_id in record_ids:
                self._selection.pop(record_id, None)

    def toggle_selection(self, record_id: str) -> bool:
        with self._lock:
            if record_id in self._selection:
                del self._selection[record_id]
                return False
            self.select(record_id)
            return True

    def set_selection(self, record_ids: Iterable[str]) -> None:
        with self._lock:
            known = set(self.ids())
            self._selection = {rid: None for rid in record_ids if rid in known}

    def toggle_all(self, record_ids: Sequence[str]) -> None:
        """Select ``record_ids``, or clear the selection if all are selected."""

        with self._lock:
            if record_ids and all(rid in self._selection for rid in record_ids):
                self._selection.clear()
            else:
                self.set_selection(record_ids)

    def clear_selection(self) -> None:
        with self._lock:
            self._selection.clear()

    # ------------------------------------------------------------------
    # Column configuration
    # ------------------------------------------------------------------
    @property
    def all_columns(self) -> List[str]:
        return list(self._all_columns)

    @property
    def selected_columns(self) -> List[str]:
        return list(self._selected_columns)

    @property
    def column_modes(self) -> Dict[str, OptimizationMode]:
        return dict(self._column_modes)

    def set_selected_columns(self, columns: Iterable[str]) -> None:
        with self._lock:
            chosen: List[str] = []
            for column in columns:
                if column not in chosen:
                    chosen.append(column)
            self._selected_columns = chosen

    def set_column_mode(self, column: str, mode: OptimizationMode | str) -> None:
        with self._lock:
            self._column_modes[column] = coerce_mode(mode)

    def mode_for(self, column: str) -> OptimizationMode:
        return self._column_modes.get(column, DEFAULT_MODE)

    # ------------------------------------------------------------------
    # Sync status
    # ------------------------------------------------------------------
    def sync_status(self, record_id: str) -> Optional[SyncState]:
        with self._lock:
            return self._sync_status.get(record_id)

    def sync_statuses(self) -> Dict[str, SyncState]:
        with self._lock:
            return dict(self._sync_status)

    def sync_error(self, record_id: str) -> Optional[str]:
        with self._lock:
            return self._sync_errors.get(record_id)

    def pending_ids(self) -> List[str]:
        with self._lock:
            return [
                record.id
                for record in self._records
                if self._sync_status.get(record.id) is SyncState.PENDING
            ]

    def is_dirty(self, record_id: str) -> bool:
        with self._lock:
            return self._sync_status.get(record_id) in (SyncState.PENDING, SyncState.ERROR)

    def can_revert(self, record_id: str) -> bool:
        with self._lock:
            original = self._baseline.get(record_id)
            if original is None:
                return False
            return bool(changed_field_names(self._records[self._index(record_id)], original))

    def changed_fields(self, record_id: str) -> List[str]:
        """Return the fields whose working value differs from the remote one."""

        with self._lock:
            current = self._records[self._index(record_id)]
            return changed_field_names(current, self._remote.get(record_id))

    def mark_syncing(self, record_id: str) -> None:
        with self._lock:
            self._index(record_id)
            self._sync_status[record_id] = SyncState.SYNCING
            self._sync_errors.pop(record_id, None)

    def mark_synced(self, record_id: str, pushed: Record) -> SyncState:
        """Record a confirmed push of ``pushed`` as the new remote value."""

        with self._lock:
            self._remote[record_id] = pushed.copy()
            self._sync_errors.pop(record_id, None)
            current = self._records[self._index(record_id)]
            # An edit may have landed while the push was in flight.
            changed = changed_field_names(current, pushed)
            state = SyncState.PENDING if changed else SyncState.SYNCED
            self._sync_status[record_id] = state
            return state

    def mark_sync_failed(self, record_id: str, message: str) -> None:
        with self._lock:
            self._sync_status[record_id] = SyncState.ERROR
            self._sync_errors[record_id] = message

    # ------------------------------------------------------------------
    # Processing indicator
    # ------------------------------------------------------------------
    @property
    def status(self) -> TransformStatus:
        with self._lock:
            return dataclasses.replace(self._status)

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self._status.is_processing

    def start_processing(self, total: int) -> None:
        with self._lock:
            if self._status.is_processing:
                raise WorkspaceError("Another batch is already processing")
            self._status = TransformStatus(total=total, completed=0, is_processing=True)

    def advance(self, count: int) -> TransformStatus:
        with self._lock:
            self._status.completed += count
            return dataclasses.replace(self._status)

    def finish_processing(self, error: Optional[str] = None) -> TransformStatus:
        with self._lock:
            self._status.is_processing = False
            self._status.error = error
            return dataclasses.replace(self._status)
