"""Per-run counters and the summary report."""

from __future__ import annotations

import threading
import time
from typing import Dict, Optional, Set


class SyncStatistics:
    def __init__(self, resource_name: str = "resources") -> None:
        self.resource_name = resource_name
        self.processed = 0
        self.created = 0
        self.updated = 0
        self.up_to_date = 0
        self.failed = 0
        self._started: Optional[float] = None
        self._elapsed = 0.0
        self._lock = threading.Lock()
        self._missing_dependencies: Dict[str, Set[str]] = {}

    def increment_processed(self, count: int = 1) -> None:
        with self._lock:
            self.processed += count

    def increment_created(self, count: int = 1) -> None:
        with self._lock:
            self.created += count

    def increment_updated(self, count: int = 1) -> None:
        with self._lock:
            self.updated += count

    def increment_up_to_date(self, count: int = 1) -> None:
        with self._lock:
            self.up_to_date += count

    def increment_failed(self, count: int = 1) -> None:
        with self._lock:
            self.failed += count

    def start_timer(self) -> None:
        self._started = time.monotonic()

    def stop_timer(self) -> None:
        if self._started is None:
            return
        self._elapsed += time.monotonic() - self._started
        self._started = None

    @property
    def elapsed_seconds(self) -> float:
        if self._started is not None:
            return self._elapsed + (time.monotonic() - self._started)
        return self._elapsed

    def merge(self, other: "SyncStatistics") -> None:
        with self._lock:
            self.processed += other.processed
            self.created += other.created
            self.updated += other.updated
            self.up_to_date += other.up_to_date
            self.failed += other.failed
            self._elapsed += other.elapsed_seconds

    def add_missing_dependency(self, dependency_key: str, draft_key: str) -> None:
        with self._lock:
            self._missing_dependencies.setdefault(dependency_key, set()).add(draft_key)

    def pop_waiting_draft_keys(self, dependency_key: str) -> Set[str]:
        with self._lock:
            return self._missing_dependencies.pop(dependency_key, set())

    def remove_waiting_draft(self, draft_key: str) -> None:
        with self._lock:
            for dependency_key in list(self._missing_dependencies):
                waiting = self._missing_dependencies[dependency_key]
                waiting.discard(draft_key)
                if not waiting:
                    del self._missing_dependencies[dependency_key]

    def waiting_draft_keys(self) -> Set[str]:
        with self._lock:
            return {key for waiting in self._missing_dependencies.values() for key in waiting}

    @property
    def missing_dependency_count(self) -> int:
        return len(self.waiting_draft_keys())

    def report_message(self) -> str:
        return (
            f"Summary: {self.processed} {self.resource_name} were processed in total "
            f"({self.created} created, {self.updated} updated and {self.failed} failed to sync)."
        )

    def as_dict(self) -> Dict[str, object]:
        return {
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "upToDate": self.up_to_date,
            "failed": self.failed,
            "waitingOnReferences": self.missing_dependency_count,
            "elapsedSeconds": round(self.elapsed_seconds, 3),
        }
