"""
Latency accounting for completion calls and admission waits.

Off unless FLEXRESEARCH_TIMING is set (or enable_timing() is called). The
CLI prints the per-category table at the end of a run.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from rich.console import Console as RichConsole
from rich.table import Table


@dataclass
class TimingRecord:
    operation: str
    category: str
    duration_ms: float
    at: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)


class TimingCollector:
    """
    Process-wide store of timing records.

    Categories in use:
        - completion: one record per backend call, tagged with provider and model
        - admission: one record per suspension in the rate window
    """

    _instance: Optional["TimingCollector"] = None
    _lock = threading.Lock()

    def __init__(self):
        self.enabled = os.environ.get("FLEXRESEARCH_TIMING", "0").lower() in ("1", "true", "yes")
        self._records: list[TimingRecord] = []
        self._records_lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> "TimingCollector":
        with cls._lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None

    def record(self, operation: str, category: str, duration_ms: float, **metadata: Any) -> None:
        if not self.enabled:
            return
        with self._records_lock:
            self._records.append(TimingRecord(operation, category, duration_ms, metadata=metadata))

    def records(self) -> list[TimingRecord]:
        with self._records_lock:
            return list(self._records)

    def summary(self) -> dict[str, dict[str, float]]:
        """Count, total and worst duration per category."""
        totals: dict[str, dict[str, float]] = {}
        for r in self.records():
            entry = totals.setdefault(r.category, {"count": 0, "total_ms": 0.0, "max_ms": 0.0})
            entry["count"] += 1
            entry["total_ms"] += r.duration_ms
            entry["max_ms"] = max(entry["max_ms"], r.duration_ms)
        return totals

    def render(self, out: Optional[RichConsole] = None) -> None:
        out = out or RichConsole()
        summary = self.summary()
        if not summary:
            out.print("[dim]No timing records collected.[/dim]")
            return

        table = Table(title="Timing")
        table.add_column("Category")
        table.add_column("Calls", justify="right")
        table.add_column("Total (s)", justify="right")
        table.add_column("Slowest (ms)", justify="right")
        for category, entry in sorted(summary.items()):
            table.add_row(
                category,
                str(int(entry["count"])),
                f"{entry['total_ms'] / 1000:.2f}",
                f"{entry['max_ms']:.0f}",
            )
        out.print(table)


timing = TimingCollector.get_instance


def enable_timing() -> None:
    timing().enabled = True


def print_timing_summary() -> None:
    timing().render()
