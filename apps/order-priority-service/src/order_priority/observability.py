"""Structured logging and in-memory metrics for order priority service."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from threading import Lock
from typing import Any


def configure_logging(level: str) -> None:
    """Configure service logging format once."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
    )


def log_event(logger: logging.Logger, event: str, **fields: Any) -> None:
    """Emit one structured JSON log line."""

    payload = {
        "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        "event": event,
        **fields,
    }
    logger.info(json.dumps(payload, default=str, separators=(",", ":")))


class PriorityMetrics:
    """Thread-safe in-memory metrics for prioritization runtime."""

    _COUNTERS = (
        ("orders_created_total", "Total orders created with automatic priority."),
        ("order_create_failures_total", "Total order creations that failed to persist."),
        ("priority_updates_total", "Total priority level updates applied."),
        ("status_updates_total", "Total status transitions recorded."),
        ("recalculated_orders_total", "Total orders refreshed by recalculation sweeps."),
        ("recalculation_errors_total", "Total per-order failures during recalculation sweeps."),
        ("rule_faults_total", "Total priority rules that faulted during scoring."),
        ("bulk_operations_total", "Total bulk operations executed."),
        ("bulk_item_failures_total", "Total per-order failures across bulk operations."),
        ("change_events_total", "Total order change events handled."),
        ("change_event_failures_total", "Total order change events that failed to process."),
        ("notifications_created_total", "Total notifications created."),
        ("alerts_created_total", "Total priority alerts created."),
        ("broadcasts_total", "Total realtime envelopes published."),
        ("broadcast_failures_total", "Total realtime publish failures."),
        ("cleanup_runs_total", "Total retention cleanup passes completed."),
        ("cleanup_deleted_total", "Total notifications and alerts purged by cleanup."),
    )

    def __init__(self) -> None:
        self._lock = Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._values: dict[str, int] = {name: 0 for name, _ in self._COUNTERS}

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            if name not in self._values:
                raise KeyError(f"unknown metric: {name}")
            self._values[name] += max(amount, 0)

    def value(self, name: str) -> int:
        with self._lock:
            return self._values[name]

    def render_prometheus(self) -> str:
        lines: list[str] = []
        with self._lock:
            for name, help_text in self._COUNTERS:
                metric = f"order_priority_{name}"
                lines.append(f"# HELP {metric} {help_text}")
                lines.append(f"# TYPE {metric} counter")
                lines.append(f"{metric} {self._values[name]}")
        return "\n".join(lines) + "\n"


_metrics = PriorityMetrics()


def get_metrics() -> PriorityMetrics:
    """Return singleton metrics collector."""

    return _metrics
