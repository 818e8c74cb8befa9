import pytest

from connectors.shopify.client import CatalogConnectionError, CatalogValidationError
from services.sync import SyncReconciler
from services.workspace import SyncState, Workspace


class DummyCatalog:
    def __init__(self, failures=None, on_push=None):
        self.failures = dict(failures or {})
        self.on_push = on_push
        self.pushed = []

    def push(self, record_id, record):
        self.pushed.append((record_id, record.copy()))
        if self.on_push is not None:
            self.on_push(record_id)
        if record_id in self.failures:
            raise self.failures[record_id]


@pytest.fixture
def workspace():
    ws = Workspace(
        [
            {"id": "A", "name": "Alpha"},
            {"id": "B", "name": "Beta"},
            {"id": "C", "name": "Gamma"},
        ]
    )
    ws.set_field_value("A", "name", "Alpha 2")
    ws.set_field_value("B", "name", "Beta 2")
    return ws


def test_sync_all_isolates_per_record_failures(workspace):
    catalog = DummyCatalog(
        failures={"B": CatalogValidationError("Handle already taken", ["Handle already taken"])}
    )

    report = SyncReconciler(workspace, catalog).sync_all()

    assert report.synced == ["A"]
    assert report.errors == {"B": "Handle already taken"}
    assert workspace.sync_status("A") is SyncState.SYNCED
    assert workspace.last_known_remote("A").get("name") == "Alpha 2"
    assert workspace.sync_status("B") is SyncState.ERROR
    assert workspace.sync_error("B") == "Handle already taken"
    assert workspace.last_known_remote("B").get("name") == "Beta"


def test_sync_all_pushes_only_pending_records_in_order(workspace):
    catalog = DummyCatalog()

    SyncReconciler(workspace, catalog).sync_all()

    assert [record_id for record_id, _ in catalog.pushed] == ["A", "B"]


def test_error_record_is_not_retried_by_sync_all(workspace):
    catalog = DummyCatalog(failures={"B": CatalogConnectionError("timeout")})
    reconciler = SyncReconciler(workspace, catalog)
    reconciler.sync_all()

    catalog.failures.clear()
    catalog.pushed.clear()
    report = reconciler.sync_all()

    assert report.synced == []
    assert catalog.pushed == []
    assert workspace.sync_status("B") is SyncState.ERROR


def test_sync_one_retries_regardless_of_status(workspace):
    catalog = DummyCatalog(failures={"B": CatalogConnectionError("timeout")})
    reconciler = SyncReconciler(workspace, catalog)
    reconciler.sync_all()
    catalog.failures.clear()

    report = reconciler.sync_one("B")

    assert report.ok
    assert workspace.sync_status("B") is SyncState.SYNCED


def test_sync_one_pushes_clean_record(workspace):
    report = SyncReconciler(workspace, DummyCatalog()).sync_one("C")

    assert report.synced == ["C"]
    assert workspace.sync_status("C") is SyncState.SYNCED


def test_identical_edit_after_sync_is_not_dirty(workspace):
    SyncReconciler(workspace, DummyCatalog()).sync_one("A")

    workspace.set_field_value("A", "name", "Alpha 2")

    assert workspace.sync_status("A") is None


def test_status_is_syncing_during_push(workspace):
    seen = []
    catalog = DummyCatalog(on_push=lambda rid: seen.append(workspace.sync_status(rid)))

    SyncReconciler(workspace, catalog).sync_one("A")

    assert seen == [SyncState.SYNCING]


def test_edit_during_push_leaves_record_pending(workspace):
    catalog = DummyCatalog(
        on_push=lambda rid: workspace.set_field_value(rid, "name", "Alpha 3")
    )

    report = SyncReconciler(workspace, catalog).sync_one("A")

    assert report.synced == ["A"]
    assert workspace.sync_status("A") is SyncState.PENDING
    assert workspace.last_known_remote("A").get("name") == "Alpha 2"


def test_unexpected_exception_never_escapes(workspace):
    catalog = DummyCatalog(failures={"A": ValueError("boom")})

    report = SyncReconciler(workspace, catalog).sync_all()

    assert report.errors == {"A": "boom"}
    assert report.synced == ["B"]


def test_unknown_record_is_reported(workspace):
    report = SyncReconciler(workspace, DummyCatalog()).sync_one("missing")

    assert "missing" in report.errors
    assert workspace.sync_status("missing") is SyncState.ERROR
