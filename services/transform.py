"""Batch transformation pipeline: per-record AI rewrites with throttling."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence, Tuple, TypeVar

from services.ai_text import ProviderError, TransientProviderError, classify_provider_error
from services.prompts import BatchItem, PromptSettings, build_batch_items
from services.workspace import TransformStatus, Workspace, WorkspaceError


_LOGGER = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
RETRY_BASE_DELAY = 3.0
INTER_RECORD_DELAY = 5.0

T = TypeVar("T")


class BatchTransformer(Protocol):
    def transform_batch(self, items: Sequence[BatchItem]) -> List[str]: ...


def call_with_retry(
    call: Callable[[], T],
    *,
    attempts: int = MAX_ATTEMPTS,
    base_delay: float = RETRY_BASE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "provider call",
) -> T:
    """Run ``call`` retrying transient failures with exponential backoff.

    The wait after failed attempt ``n`` (1-based) is ``base_delay * 2**n``.
    Permanent failures and the last transient failure are raised as
    :class:`ProviderError`.
    """

    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    attempt = 0
    while True:
        attempt += 1
        try:
            return call()
        except Exception as exc:
            error = classify_provider_error(exc)
            if not isinstance(error, TransientProviderError) or attempt >= attempts:
                if error is exc:
                    raise
                raise error from exc
            wait = base_delay * 2**attempt
            _LOGGER.warning(
                "Transient error on %s (attempt %d/%d): %s. Retrying in %.1fs",
                label,
                attempt,
                attempts,
                error,
                wait,
            )
            sleep(wait)


@dataclass
class BatchResult:
    total: int = 0
    completed: int = 0
    processed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    error: Optional[str] = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.cancelled


class TransformPipeline:
    """Apply AI rewrites to the selected fields of the selected records.

    One gateway call is made per record. The whole batch is a single undo
    step, records are processed in selection order, and the first failed
    call aborts the remaining records while keeping earlier writes.
    """

    def __init__(
        self,
        workspace: Workspace,
        transformer: BatchTransformer,
        *,
        prompt_settings: Optional[PromptSettings] = None,
        inter_record_delay: float = INTER_RECORD_DELAY,
        max_attempts: int = MAX_ATTEMPTS,
        retry_base_delay: float = RETRY_BASE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.workspace = workspace
        self.transformer = transformer
        self.prompt_settings = prompt_settings or PromptSettings()
        self.inter_record_delay = inter_record_delay
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay
        self.sleep = sleep

    def plan(
        self,
        ids: Optional[Sequence[str]] = None,
        fields: Optional[Sequence[str]] = None,
    ) -> Tuple[List[Tuple[str, List[BatchItem]]], List[str]]:
        """Return ``(plan, skipped)`` for the given or selected records."""

        ws = self.workspace
        with ws.lock:
            target_ids = list(ids) if ids is not None else ws.selected_ids
            columns = list(fields) if fields is not None else ws.selected_columns
            modes = ws.column_modes
            plan: List[Tuple[str, List[BatchItem]]] = []
            skipped: List[str] = []
            for record_id in target_ids:
                if record_id not in ws:
                    skipped.append(record_id)
                    continue
                items = build_batch_items(
                    ws.get(record_id), columns, modes, self.prompt_settings
                )
                plan.append((record_id, items))
        return plan, skipped

    def run(
        self,
        ids: Optional[Sequence[str]] = None,
        fields: Optional[Sequence[str]] = None,
        *,
        on_progress: Optional[Callable[[TransformStatus], None]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchResult:
        ws = self.workspace
        with ws.lock:
            plan, skipped = self.plan(ids, fields)
            total = sum(len(items) for _, items in plan)
            if total == 0:
                _LOGGER.info("Nothing to optimize for %d records", len(plan))
                return BatchResult(total=0, skipped=skipped)
            ws.start_processing(total)
            ws.commit()

        result = BatchResult(total=total, skipped=skipped)
        _LOGGER.info("Starting batch over %d records (%d fields)", len(plan), total)
        current: Optional[str] = None
        try:
            for index, (record_id, items) in enumerate(plan):
                if cancel_event is not None and cancel_event.is_set():
                    result.cancelled = True
                    _LOGGER.info("Batch cancelled before record %s", record_id)
                    break
                current = record_id
                if items:
                    values = call_with_retry(
                        lambda: self.transformer.transform_batch(items),
                        attempts=self.max_attempts,
                        base_delay=self.retry_base_delay,
                        sleep=self.sleep,
                        label=f"record {record_id}",
                    )
                    self._write_results(record_id, items, values)

                status = ws.advance(len(items))
                result.processed.append(record_id)
                _LOGGER.debug(
                    "Record %s done (%d/%d)", record_id, status.completed, status.total
                )
                if on_progress is not None:
                    on_progress(status)

                if items and index < len(plan) - 1:
                    self.sleep(self.inter_record_delay)
        except ProviderError as exc:
            result.error = f"Record {current}: {exc}"
            _LOGGER.error("Batch aborted at record %s: %s", current, exc)
        finally:
            final = ws.finish_processing(result.error)
            result.completed = final.completed

        return result

    def _write_results(
        self, record_id: str, items: Sequence[BatchItem], values: Sequence[str]
    ) -> None:
        updates = {
            item.field: value
            for item, value in zip(items, values)
            if value
        }
        if not updates:
            return
        try:
            self.workspace.apply_values(record_id, updates)
        except WorkspaceError:
            _LOGGER.warning("Record %s left the workspace mid-batch; results dropped", record_id)
