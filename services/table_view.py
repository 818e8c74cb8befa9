"""pandas views of the workspace for the editable grid."""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from services.records import Record
from services.scoring import score_record
from services.workspace import Workspace

SELECTED_COLUMN = "selected"
ID_COLUMN = "id"
SCORE_COLUMN = "score"
SYNC_COLUMN = "sync"
META_COLUMNS = (SELECTED_COLUMN, ID_COLUMN, SCORE_COLUMN, SYNC_COLUMN)

Edit = Tuple[str, str, str]


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value)


def build_frame(
    workspace: Workspace,
    records: Optional[Iterable[Record]] = None,
    columns: Optional[Sequence[str]] = None,
    scorer: Callable[[Record], Tuple[int, List[str]]] = score_record,
) -> pd.DataFrame:
    """Return one row per record with selection, score, sync state and fields."""

    rows = list(records) if records is not None else workspace.records
    fields = list(columns) if columns is not None else workspace.selected_columns
    fields = [name for name in fields if name not in META_COLUMNS]

    data = []
    for record in rows:
        status = workspace.sync_status(record.id)
        row = {
            SELECTED_COLUMN: workspace.is_selected(record.id),
            ID_COLUMN: record.id,
            SCORE_COLUMN: scorer(record)[0],
            SYNC_COLUMN: status.value if status is not None else "",
        }
        for name in fields:
            row[name] = record.get(name)
        data.append(row)
    return pd.DataFrame(data, columns=[*META_COLUMNS, *fields])


def collect_edits(original: pd.DataFrame, edited: pd.DataFrame) -> List[Edit]:
    """Return ``(id, field, value)`` for every field cell that changed."""

    if edited.empty or ID_COLUMN not in edited.columns:
        return []
    fields = [
        name
        for name in edited.columns
        if name not in META_COLUMNS and name in original.columns
    ]
    before = original.set_index(ID_COLUMN)
    edits: List[Edit] = []
    for _, row in edited.iterrows():
        record_id = _cell_text(row[ID_COLUMN])
        if record_id not in before.index:
            continue
        for name in fields:
            old = _cell_text(before.at[record_id, name])
            new = _cell_text(row[name])
            if new != old:
                edits.append((record_id, name, new))
    return edits


def selection_from_frame(edited: pd.DataFrame) -> List[str]:
    """Return the ids ticked in the selection column, in row order."""

    if edited.empty or SELECTED_COLUMN not in edited.columns:
        return []
    ticked = edited[edited[SELECTED_COLUMN].fillna(False).astype(bool)]
    return [_cell_text(value) for value in ticked[ID_COLUMN]]
