import threading

import pytest

from services.modes import OptimizationMode
from services.records import Record
from services.workspace import SyncState, Workspace, WorkspaceError


@pytest.fixture
def workspace():
    return Workspace(
        [
            {"id": "A", "name": "Alpha", "sku": "SKU-1", "description": "<p>a</p>"},
            {"id": "B", "name": "Beta", "sku": "SKU-2", "description": "<p>b</p>"},
        ]
    )


def test_load_derives_columns_modes_and_resets_state(workspace):
    workspace.select("A")
    workspace.set_field_value("A", "name", "changed")
    workspace.commit()

    workspace.load([{"id": "C", "name": "Gamma", "image": "x.png", "status": "active"}])

    assert workspace.ids() == ["C"]
    assert workspace.selected_ids == []
    assert workspace.sync_statuses() == {}
    assert not workspace.can_undo
    assert workspace.all_columns == ["name"]
    assert workspace.mode_for("name") is OptimizationMode.PROFESSIONAL


def test_load_rejects_duplicate_ids():
    with pytest.raises(ValueError):
        Workspace([{"id": "A"}, {"id": "A"}])


def test_set_field_value_marks_pending_only_when_different(workspace):
    workspace.set_field_value("A", "name", "Alpha 2")
    assert workspace.sync_status("A") is SyncState.PENDING
    assert workspace.changed_fields("A") == ["name"]

    workspace.set_field_value("A", "name", "Alpha")
    assert workspace.sync_status("A") is None
    assert workspace.changed_fields("A") == []


def test_cleared_new_field_reads_as_unchanged(workspace):
    workspace.set_field_value("A", "image", "a.png")
    assert workspace.sync_status("A") is SyncState.PENDING
    assert workspace.can_revert("A")

    workspace.set_field_value("A", "image", "")

    assert workspace.sync_status("A") is None
    assert workspace.changed_fields("A") == []
    assert not workspace.can_revert("A")


def test_mark_synced_ignores_blank_field_missing_from_push(workspace):
    pushed = workspace.get("A")
    workspace.set_field_value("A", "image", "")

    assert workspace.mark_synced("A", pushed) is SyncState.SYNCED


def test_readers_wait_for_the_lock(workspace):
    seen = []
    reader = threading.Thread(
        target=lambda: seen.extend(
            [
                workspace.sync_status("A"),
                workspace.sync_error("A"),
                workspace.is_dirty("A"),
                workspace.is_selected("A"),
                workspace.is_processing,
            ]
        )
    )

    with workspace.lock:
        reader.start()
        reader.join(timeout=0.2)
        assert seen == []

    reader.join(timeout=5)
    assert seen == [None, None, False, False, False]


def test_set_field_value_does_not_touch_history(workspace):
    workspace.set_field_value("A", "name", "x")
    assert not workspace.can_undo


def test_edit_preserves_record_order(workspace):
    workspace.set_field_value("A", "name", "x")
    assert workspace.ids() == ["A", "B"]


def test_unknown_record_raises(workspace):
    with pytest.raises(WorkspaceError):
        workspace.set_field_value("missing", "name", "x")


def test_undo_restores_pre_edit_state_and_redo_reapplies(workspace):
    before = workspace.records
    workspace.commit()
    workspace.set_field_value("A", "name", "A2")
    workspace.set_field_value("B", "sku", "SKU-9")
    after = workspace.records

    assert workspace.undo()
    assert workspace.records == before
    assert workspace.redo()
    assert workspace.records == after


def test_new_mutation_after_undo_discards_redo(workspace):
    workspace.commit()
    workspace.set_field_value("A", "name", "A")
    workspace.commit()
    workspace.set_field_value("A", "name", "B")
    workspace.undo()
    workspace.commit()
    workspace.set_field_value("A", "name", "C")

    assert not workspace.can_redo
    assert not workspace.redo()


def test_undo_leaves_snapshots_and_sync_status(workspace):
    workspace.commit()
    workspace.set_field_value("A", "name", "A2")
    workspace.undo()

    assert workspace.get("A").get("name") == "Alpha"
    # stale status is kept on purpose
    assert workspace.sync_status("A") is SyncState.PENDING
    assert workspace.last_known_remote("A").get("name") == "Alpha"
    assert workspace.baseline("A").get("name") == "Alpha"


def test_revert_is_idempotent_and_undoable(workspace):
    workspace.set_field_value("A", "name", "A2")
    assert workspace.can_revert("A")

    workspace.revert("A")
    once = workspace.get("A")
    workspace.revert("A")

    assert workspace.get("A") == once
    assert once.get("name") == "Alpha"
    assert workspace.sync_status("A") is None
    assert not workspace.can_revert("A")

    workspace.undo()
    workspace.undo()
    assert workspace.get("A").get("name") == "A2"


def test_revert_after_sync_leaves_record_pending(workspace):
    workspace.set_field_value("A", "name", "A2")
    workspace.mark_synced("A", workspace.get("A"))

    workspace.revert("A")

    assert workspace.get("A").get("name") == "Alpha"
    assert workspace.sync_status("A") is SyncState.PENDING


def test_mark_synced_updates_remote_and_clears_identical_edit(workspace):
    workspace.set_field_value("A", "name", "A2")
    pushed = workspace.get("A")

    assert workspace.mark_synced("A", pushed) is SyncState.SYNCED
    assert workspace.last_known_remote("A") == pushed

    workspace.set_field_value("A", "name", "A2")
    assert workspace.sync_status("A") is None


def test_mark_synced_stays_pending_when_edited_during_push(workspace):
    workspace.set_field_value("A", "name", "A2")
    pushed = workspace.get("A")
    workspace.mark_syncing("A")
    workspace.set_field_value("A", "name", "A3")

    assert workspace.mark_synced("A", pushed) is SyncState.PENDING
    assert workspace.pending_ids() == ["A"]


def test_failed_sync_is_dirty_until_next_edit(workspace):
    workspace.set_field_value("A", "name", "A2")
    workspace.mark_sync_failed("A", "rejected")

    assert workspace.is_dirty("A")
    assert workspace.sync_error("A") == "rejected"
    assert workspace.pending_ids() == []

    workspace.set_field_value("A", "name", "A3")
    assert workspace.sync_status("A") is SyncState.PENDING
    assert workspace.sync_error("A") is None


def test_undo_prunes_selection_to_restored_ids():
    workspace = Workspace([{"id": "A", "name": "a"}, {"id": "B", "name": "b"}])
    # checkpoint taken before B existed
    workspace.history.commit([Record(id="A", fields={"name": "a"})])
    workspace.select("A", "B")

    workspace.undo()

    assert workspace.ids() == ["A"]
    assert workspace.selected_ids == ["A"]


def test_selection_helpers(workspace):
    assert workspace.toggle_selection("A")
    assert workspace.is_selected("A")
    workspace.toggle_all(["A", "B"])
    assert workspace.selected_ids == ["A", "B"]
    workspace.toggle_all(["A", "B"])
    assert workspace.selected_ids == []
    workspace.set_selection(["B", "missing"])
    assert workspace.selected_ids == ["B"]
    workspace.select("A")
    workspace.deselect("B", "missing")
    assert workspace.selected_ids == ["A"]
    workspace.clear_selection()
    assert workspace.selected_ids == []
    assert len(workspace) == 2
    assert "A" in workspace and "missing" not in workspace
    with pytest.raises(WorkspaceError):
        workspace.select("missing")


def test_search_matches_name_or_sku(workspace):
    assert [r.id for r in workspace.search("beta")] == ["B"]
    assert [r.id for r in workspace.search("sku-1")] == ["A"]
    assert len(workspace.search("")) == 2


def test_column_configuration(workspace):
    workspace.set_selected_columns(["name", "name", "sku"])
    workspace.set_column_mode("sku", "seo_slug")

    assert workspace.selected_columns == ["name", "sku"]
    assert workspace.mode_for("sku") is OptimizationMode.SEO_SLUG
    assert workspace.mode_for("unknown") is OptimizationMode.FACTUAL


def test_only_one_batch_processes_at_a_time(workspace):
    workspace.start_processing(3)
    with pytest.raises(WorkspaceError):
        workspace.start_processing(1)

    workspace.advance(2)
    status = workspace.finish_processing("boom")

    assert status.completed == 2
    assert status.error == "boom"
    assert not workspace.is_processing
