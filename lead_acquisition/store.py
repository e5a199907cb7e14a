"""Task log and per-candidate result store consumed by the display layer."""
from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Protocol

from .models import SearchResult, TaskLogEntry, TaskStatus

LOGGER = logging.getLogger(__name__)


class TaskStore(Protocol):
    """Boundary between the pipeline and whatever renders task progress."""

    def append_log(self, task_id: str, entry: TaskLogEntry) -> None:  # pragma: no cover - protocol
        ...

    def upsert_result(
        self, task_id: str, candidate_id: str, fields: Mapping[str, Any]
    ) -> SearchResult:  # pragma: no cover - protocol
        ...

    def delete_result(self, task_id: str, candidate_id: str) -> bool:  # pragma: no cover - protocol
        ...

    def get_status(self, task_id: str) -> Optional[TaskStatus]:  # pragma: no cover - protocol
        ...

    def set_status(self, task_id: str, status: TaskStatus) -> None:  # pragma: no cover - protocol
        ...

    def complete_if_running(self, task_id: str) -> bool:  # pragma: no cover - protocol
        ...


class InMemoryTaskStore:
    """Thread-safe store suitable for a single process and for tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._status: Dict[str, TaskStatus] = {}
        self._logs: Dict[str, List[TaskLogEntry]] = defaultdict(list)
        self._results: Dict[str, Dict[str, SearchResult]] = defaultdict(dict)

    # ------------------------------------------------------------------
    # Task status
    # ------------------------------------------------------------------
    def get_status(self, task_id: str) -> Optional[TaskStatus]:
        with self._lock:
            return self._status.get(task_id)

    def set_status(self, task_id: str, status: TaskStatus) -> None:
        with self._lock:
            self._status[task_id] = status

    def complete_if_running(self, task_id: str) -> bool:
        """Move a running task to completed; stopped or failed tasks are left alone."""

        with self._lock:
            if self._status.get(task_id) is not TaskStatus.RUNNING:
                return False
            self._status[task_id] = TaskStatus.COMPLETED
            return True

    # ------------------------------------------------------------------
    # Log
    # ------------------------------------------------------------------
    def append_log(self, task_id: str, entry: TaskLogEntry) -> None:
        with self._lock:
            self._logs[task_id].append(entry)
        LOGGER.debug("[%s] %s %s", task_id, entry.level.upper(), entry.message)

    def logs(self, task_id: str) -> List[TaskLogEntry]:
        with self._lock:
            return list(self._logs.get(task_id, ()))

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------
    def upsert_result(self, task_id: str, candidate_id: str, fields: Mapping[str, Any]) -> SearchResult:
        with self._lock:
            current = self._results[task_id].get(candidate_id)
            if current is None:
                result = SearchResult(task_id=task_id, candidate_id=candidate_id, **fields)
            else:
                result = replace(current, **fields)
            self._results[task_id][candidate_id] = result
            return replace(result)

    def delete_result(self, task_id: str, candidate_id: str) -> bool:
        with self._lock:
            return self._results.get(task_id, {}).pop(candidate_id, None) is not None

    def get_result(self, task_id: str, candidate_id: str) -> Optional[SearchResult]:
        with self._lock:
            result = self._results.get(task_id, {}).get(candidate_id)
            return replace(result) if result is not None else None

    def results(self, task_id: str) -> List[SearchResult]:
        with self._lock:
            return [replace(result) for result in self._results.get(task_id, {}).values()]


def log_event(
    store: TaskStore,
    task_id: str,
    message: str,
    *,
    level: str = "info",
    phase: str = "process",
    candidate_id: Optional[str] = None,
    **details: Any,
) -> TaskLogEntry:
    """Append a customer-facing entry to the task log and return it."""

    entry = TaskLogEntry(
        level=level,
        phase=phase,
        message=message,
        candidate_id=candidate_id,
        details={key: value for key, value in details.items() if value is not None},
    )
    store.append_log(task_id, entry)
    return entry


__all__ = ["InMemoryTaskStore", "TaskStore", "log_event"]
