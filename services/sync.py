"""Per-record reconciliation of the working copy with the remote catalog."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Protocol

from services.records import Record
from services.workspace import SyncState, Workspace, WorkspaceError


_LOGGER = logging.getLogger(__name__)


class CatalogWriter(Protocol):
    def push(self, record_id: str, record: Record) -> None: ...


@dataclass
class SyncReport:
    synced: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


class SyncReconciler:
    """Push dirty records one at a time and record each outcome.

    Records are pushed sequentially; option renames on the remote side touch
    shared sub-resources and must not race. A failed record ends in the
    ``error`` state with its message and never stops the rest of the list.
    """

    def __init__(self, workspace: Workspace, catalog: CatalogWriter) -> None:
        self.workspace = workspace
        self.catalog = catalog

    def sync_all(self) -> SyncReport:
        """Push every record currently ``pending``."""

        pending = self.workspace.pending_ids()
        _LOGGER.info("Syncing %d pending records", len(pending))
        return self._sync(pending)

    def sync_one(self, record_id: str) -> SyncReport:
        """Push ``record_id`` regardless of its current status."""

        return self._sync([record_id])

    def _sync(self, record_ids: Iterable[str]) -> SyncReport:
        report = SyncReport()
        for record_id in record_ids:
            self._push_one(record_id, report)
        if report.errors:
            _LOGGER.warning(
                "Sync finished with %d synced and %d failed",
                len(report.synced),
                len(report.errors),
            )
        else:
            _LOGGER.info("Sync finished with %d synced", len(report.synced))
        return report

    def _push_one(self, record_id: str, report: SyncReport) -> None:
        ws = self.workspace
        try:
            record = ws.get(record_id)
        except WorkspaceError as exc:
            ws.mark_sync_failed(record_id, str(exc))
            report.errors[record_id] = str(exc)
            return

        ws.mark_syncing(record_id)
        try:
            self.catalog.push(record_id, record)
        except Exception as exc:  # every failure becomes the record's status
            message = str(exc) or exc.__class__.__name__
            _LOGGER.warning("Sync failed for %s: %s", record_id, message)
            ws.mark_sync_failed(record_id, message)
            report.errors[record_id] = message
            return

        state = ws.mark_synced(record_id, record)
        if state is SyncState.PENDING:
            _LOGGER.info("Record %s changed while syncing; left pending", record_id)
        report.synced.append(record_id)
