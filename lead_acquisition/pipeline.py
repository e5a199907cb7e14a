"""Search pipeline that coordinates acquisition, tentative results, and phone reveals."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional

from .correlator import PhoneRequestCorrelator
from .coverage import CoverageSelector
from .errors import DuplicatePendingRequestError, ProviderError
from .models import (
    AcquisitionResult,
    AgeFilter,
    CandidateRecord,
    SearchQuery,
    SearchRequest,
    SearchResult,
    TaskStatus,
    fingerprint_query,
)
from .store import TaskStore, log_event

LOGGER = logging.getLogger(__name__)


@dataclass
class TaskOutcome:
    """Summary returned by :meth:`SearchPipeline.run`."""

    task_id: str
    status: TaskStatus
    acquisition: Optional[AcquisitionResult] = None
    dispatched: List[str] = field(default_factory=list)
    dispatch_failures: List[str] = field(default_factory=list)


class SearchPipeline:
    """Runs one search task from acquisition to dispatched phone reveals.

    Results are finalised later, as provider callbacks arrive through the
    :class:`~lead_acquisition.correlator.PhoneRequestCorrelator`.
    """

    def __init__(
        self,
        selector: CoverageSelector,
        correlator: PhoneRequestCorrelator,
        store: TaskStore,
        *,
        max_workers: int = 5,
    ) -> None:
        self._selector = selector
        self._correlator = correlator
        self._store = store
        self._max_workers = max_workers

    def run(
        self,
        task_id: str,
        query: SearchQuery,
        requested_count: int,
        customer_id: str = "anonymous",
        age_filter: Optional[AgeFilter] = None,
    ) -> TaskOutcome:
        return self.run_request(task_id, SearchRequest(query, requested_count, customer_id, age_filter))

    def run_request(self, task_id: str, request: SearchRequest) -> TaskOutcome:
        query = request.query
        self._store.set_status(task_id, TaskStatus.RUNNING)
        log_event(
            self._store,
            task_id,
            f"Search started: name={query.name!r} title={query.title!r} region={query.region!r}, "
            f"{request.requested_count} requested",
            phase="init",
            age_min=request.age_filter.min_age if request.age_filter else None,
            age_max=request.age_filter.max_age if request.age_filter else None,
        )

        fingerprint = fingerprint_query(query)
        try:
            acquisition = self._selector.acquire(fingerprint, query, request.requested_count, request.customer_id)
        except ProviderError as exc:
            LOGGER.error("Acquisition failed for task %s: %s", task_id, exc)
            log_event(self._store, task_id, f"Provider unavailable: {exc}", level="error", phase="search")
            self._store.set_status(task_id, TaskStatus.FAILED)
            return TaskOutcome(task_id=task_id, status=TaskStatus.FAILED)

        log_event(
            self._store,
            task_id,
            acquisition.message,
            level="warning" if acquisition.partial else "info",
            phase="search",
            source=acquisition.source.value,
            coverage_rate=round(acquisition.coverage_rate, 1),
            cache_count=acquisition.cache_count,
            api_count=acquisition.api_count,
            partial=acquisition.partial,
        )

        records = acquisition.records
        if len(records) > request.requested_count:
            records = self._selector.select(records, request.requested_count)
            log_event(
                self._store,
                task_id,
                f"Randomly picked {len(records)} of {len(acquisition.records)} candidates",
                phase="process",
            )

        outcome = TaskOutcome(task_id=task_id, status=TaskStatus.RUNNING, acquisition=acquisition)
        for candidate in records:
            self._store.upsert_result(task_id, candidate.id, _tentative_fields(task_id, candidate))

        with self._correlator.dispatching(task_id):
            self._dispatch_all(task_id, records, request.age_filter, outcome)

        outcome.status = self._store.get_status(task_id) or TaskStatus.RUNNING
        return outcome

    def stop(self, task_id: str) -> None:
        """Stop a task; outstanding reveals still update results when they arrive."""

        self._store.set_status(task_id, TaskStatus.STOPPED)
        log_event(self._store, task_id, "Task stopped by operator", level="warning", phase="complete")

    # ------------------------------------------------------------------
    def _dispatch_all(
        self,
        task_id: str,
        candidates: List[CandidateRecord],
        age_filter: Optional[AgeFilter],
        outcome: TaskOutcome,
    ) -> None:
        if not candidates:
            return
        if len(candidates) == 1 or self._max_workers <= 1:
            for candidate in candidates:
                self._dispatch_one(task_id, candidate, age_filter, outcome)
            return

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            futures = [
                executor.submit(self._dispatch_one, task_id, candidate, age_filter, outcome)
                for candidate in candidates
            ]
            for future in as_completed(futures):
                future.result()

    def _dispatch_one(
        self,
        task_id: str,
        candidate: CandidateRecord,
        age_filter: Optional[AgeFilter],
        outcome: TaskOutcome,
    ) -> None:
        if self._store.get_status(task_id) is TaskStatus.STOPPED:
            return
        try:
            self._correlator.request_phone(task_id, candidate, age_filter)
        except (ProviderError, DuplicatePendingRequestError) as exc:
            LOGGER.warning("Reveal dispatch failed for candidate %s: %s", candidate.id, exc)
            outcome.dispatch_failures.append(candidate.id)
            log_event(
                self._store,
                task_id,
                f"Phone request failed for {candidate.display_name()}: {exc}",
                level="error",
                phase="reveal",
                candidate_id=candidate.id,
            )
            return
        outcome.dispatched.append(candidate.id)


def _tentative_fields(task_id: str, candidate: CandidateRecord) -> dict:
    result = SearchResult.tentative(task_id, candidate)
    return {
        "name": result.name,
        "title": result.title,
        "organization": result.organization,
        "city": result.city,
        "region": result.region,
        "email": result.email,
    }


__all__ = ["SearchPipeline", "TaskOutcome"]
