import math
import time
from typing import Callable, Optional

import streamlit as st

from services.workspace import TransformStatus


def estimate_remaining(elapsed: float, completed: int, total: int) -> Optional[float]:
    """Seconds left if the remaining items go at the observed rate."""

    if total <= 0 or completed <= 0:
        return None
    if completed >= total:
        return 0.0
    fraction = completed / total
    return (elapsed / fraction) - elapsed


def format_eta(seconds: Optional[float]) -> str:
    if seconds is None:
        return "ETA: calculating..."
    if seconds < 60:
        return f"ETA: ~{int(seconds)} sec"
    minutes = math.ceil(seconds / 60.0)
    return f"ETA: ~{minutes} minute{'s' if minutes != 1 else ''}"


class BatchProgress:
    """Progress bar plus a remaining-time caption for long workspace runs."""

    def __init__(self, label: str = "Processing", clock: Callable[[], float] = time.monotonic):
        self.label = label
        self.clock = clock
        self.start_time = clock()
        self.bar = st.progress(0.0, text=label)
        self.placeholder = st.empty()

    def update(self, status: TransformStatus) -> None:
        total = max(status.total, 1)
        fraction = min(status.completed / total, 1.0)
        self.bar.progress(fraction, text=f"{self.label}: {status.completed}/{status.total}")
        remaining = estimate_remaining(
            self.clock() - self.start_time, status.completed, status.total
        )
        self.placeholder.caption(format_eta(remaining))

    def close(self) -> None:
        self.bar.empty()
        self.placeholder.empty()
