"""
Timing utilities for MindCanvas performance monitoring.

Records how long remote model calls take.
Enable via environment variable: MINDCANVAS_TIMING=1
"""

from __future__ import annotations

import os
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
import threading


def _timing_enabled() -> bool:
    """Check if timing is enabled via environment variable."""
    return os.environ.get("MINDCANVAS_TIMING", "0").lower() in ("1", "true", "yes", "on")


@dataclass
class TimingRecord:
    """Record of a single timed operation."""
    operation: str
    category: str
    duration_ms: float
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "category": self.category,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class TimingCollector:
    """
    Collects timing records for MindCanvas operations.

    Categories:
        - llm: chat-completion calls
        - probe: connectivity checks
    """

    _instance: Optional["TimingCollector"] = None
    _lock = threading.Lock()

    def __init__(self):
        self._records: list[TimingRecord] = []
        self._enabled = _timing_enabled()

    @classmethod
    def get_instance(cls) -> "TimingCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset singleton (clears all records)."""
        with cls._lock:
            cls._instance = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def record(
        self,
        operation: str,
        category: str,
        duration_ms: float,
        **metadata: Any,
    ) -> None:
        """
        Record a timing measurement.

        Args:
            operation: Name of the operation (e.g., "analyze_intention")
            category: Category (e.g., "llm", "probe")
            duration_ms: Duration in milliseconds
            **metadata: Additional metadata (model, status, etc.)
        """
        if not self._enabled:
            return

        self._records.append(TimingRecord(
            operation=operation,
            category=category,
            duration_ms=duration_ms,
            metadata=metadata,
        ))

        if os.environ.get("MINDCANVAS_TIMING_VERBOSE", "0").lower() in ("1", "true"):
            print(f"  ⏱ [{category}] {operation}: {duration_ms:.1f}ms")

    def get_records(
        self,
        category: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> list[TimingRecord]:
        """Get timing records, optionally filtered."""
        records = list(self._records)
        if category:
            records = [r for r in records if r.category == category]
        if operation:
            records = [r for r in records if r.operation == operation]
        return records

    def get_summary(self) -> dict[str, Any]:
        """Summary statistics grouped by operation."""
        records = self.get_records()
        if not records:
            return {"total_records": 0}

        by_operation: dict[str, list[float]] = {}
        for r in records:
            by_operation.setdefault(f"{r.category}.{r.operation}", []).append(r.duration_ms)

        return {
            "total_records": len(records),
            "total_time_ms": round(sum(r.duration_ms for r in records), 2),
            "by_operation": {
                op: {
                    "count": len(durs),
                    "avg_ms": round(sum(durs) / len(durs), 2),
                    "max_ms": round(max(durs), 2),
                }
                for op, durs in by_operation.items()
            },
        }

    def print_summary(self) -> None:
        """Print a formatted timing summary."""
        summary = self.get_summary()

        if summary["total_records"] == 0:
            print("\n⏱ No timing records collected.")
            return

        print("\n" + "=" * 60)
        print("  ⏱  TIMING SUMMARY")
        print("=" * 60)
        print(f"  Total operations: {summary['total_records']}")
        print(f"  Total time: {summary['total_time_ms']:.1f}ms")
        for op, stats in summary["by_operation"].items():
            print(f"    {op}: {stats['avg_ms']:.1f}ms avg ({stats['count']} calls)")
        print("=" * 60 + "\n")

    def clear(self) -> None:
        """Clear all timing records."""
        self._records.clear()


# Convenience accessor
timing = TimingCollector.get_instance


@asynccontextmanager
async def async_timed_operation(operation: str, category: str, **metadata):
    """
    Async context manager for timing an async operation.

    Usage:
        async with async_timed_operation("analyze_intention", "llm", model="gpt-4"):
            completion = await backend.acomplete(messages)
    """
    collector = timing()
    if not collector.enabled:
        yield
        return

    start = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        collector.record(operation, category, duration_ms, **metadata)


def enable_timing() -> None:
    """Enable timing collection."""
    timing().enable()


def disable_timing() -> None:
    """Disable timing collection."""
    timing().disable()
