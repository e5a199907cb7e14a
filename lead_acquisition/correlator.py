"""Correlates asynchronous phone-reveal callbacks with the requests that caused them."""
from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterator, List, Optional, Protocol

from .callbacks import normalise_callback
from .errors import DuplicatePendingRequestError
from .filter_stage import FilterStage
from .models import (
    AgeFilter,
    CandidateRecord,
    Clock,
    PendingPhoneRequest,
    PhoneState,
    RevealMatch,
    utcnow,
)
from .phones import select_preferred_phone
from .store import TaskStore, log_event

LOGGER = logging.getLogger(__name__)


class RevealProvider(Protocol):
    def dispatch_phone_reveal(self, candidate_id: str, callback_url: str) -> Any:  # pragma: no cover - protocol
        ...


@dataclass
class CallbackSummary:
    """Counts describing how one callback delivery was processed."""

    resolved: int = 0
    no_phone: int = 0
    missed: int = 0
    failed: int = 0

    @property
    def received(self) -> int:
        return self.resolved + self.no_phone + self.missed + self.failed


class PhoneRequestCorrelator:
    """Owns the pending-request map.

    Registration, resolution and the expiry sweep each take the map lock once,
    so a candidate can have at most one pending request and a callback can
    consume it at most once.
    """

    def __init__(
        self,
        provider: RevealProvider,
        store: TaskStore,
        filter_stage: FilterStage,
        *,
        callback_url: str,
        expiry: timedelta = timedelta(minutes=30),
        clock: Clock = utcnow,
    ) -> None:
        self._provider = provider
        self._store = store
        self._filter_stage = filter_stage
        self._callback_url = callback_url
        self._expiry = expiry
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: Dict[str, PendingPhoneRequest] = {}
        self._dispatching: Dict[str, int] = {}
        self._sweeper: Optional[threading.Thread] = None
        self._sweeper_stop: Optional[threading.Event] = None

    # ------------------------------------------------------------------
    # Registration & dispatch
    # ------------------------------------------------------------------
    def register(
        self,
        candidate_id: str,
        task_id: str,
        candidate: CandidateRecord,
        age_filter: Optional[AgeFilter] = None,
    ) -> PendingPhoneRequest:
        request = PendingPhoneRequest(
            correlation_id=uuid.uuid4().hex,
            task_id=task_id,
            candidate_id=candidate_id,
            candidate=candidate,
            registered_at=self._clock(),
            age_filter=age_filter,
        )
        with self._lock:
            if candidate_id in self._pending:
                raise DuplicatePendingRequestError(
                    f"Candidate {candidate_id} already has a pending phone reveal "
                    f"(task {self._pending[candidate_id].task_id})"
                )
            self._pending[candidate_id] = request
        LOGGER.debug("Registered reveal %s for candidate %s", request.correlation_id, candidate_id)
        return request

    def unregister(self, candidate_id: str) -> Optional[PendingPhoneRequest]:
        with self._lock:
            return self._pending.pop(candidate_id, None)

    def dispatch_reveal(self, candidate_id: str, callback_url: Optional[str] = None) -> Any:
        """Ask the provider for an asynchronous reveal; does not wait for the callback."""

        return self._provider.dispatch_phone_reveal(candidate_id, callback_url or self._callback_url)

    def request_phone(
        self, task_id: str, candidate: CandidateRecord, age_filter: Optional[AgeFilter] = None
    ) -> PendingPhoneRequest:
        """Register then dispatch; a failed dispatch leaves nothing pending."""

        request = self.register(candidate.id, task_id, candidate, age_filter)
        try:
            self.dispatch_reveal(candidate.id)
        except Exception:
            self.unregister(candidate.id)
            raise
        return request

    @contextmanager
    def dispatching(self, task_id: str) -> Iterator[None]:
        """Hold off task completion while reveals for ``task_id`` are still being sent."""

        with self._lock:
            self._dispatching[task_id] = self._dispatching.get(task_id, 0) + 1
        try:
            yield
        finally:
            with self._lock:
                remaining = self._dispatching[task_id] - 1
                if remaining:
                    self._dispatching[task_id] = remaining
                else:
                    del self._dispatching[task_id]
            self._settle(task_id)

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------
    def on_callback(self, payload: Any) -> CallbackSummary:
        """Process a provider callback in any of its supported shapes. Never raises."""

        summary = CallbackSummary()
        for match in normalise_callback(payload):
            pending = self.unregister(match.candidate_id)
            if pending is None:
                LOGGER.info("No pending reveal for candidate %s; ignoring callback", match.candidate_id)
                summary.missed += 1
                continue
            try:
                if self._resolve(pending, match):
                    summary.resolved += 1
                else:
                    summary.no_phone += 1
            except Exception as exc:
                LOGGER.exception("Failed to process reveal for candidate %s", match.candidate_id)
                summary.failed += 1
                log_event(
                    self._store,
                    pending.task_id,
                    f"Could not process phone for {pending.candidate.display_name()}: {exc}",
                    level="error",
                    phase="reveal",
                    candidate_id=pending.candidate_id,
                )
            finally:
                self._settle(pending.task_id)
        LOGGER.info(
            "Callback processed: %s resolved, %s without phone, %s unmatched, %s failed",
            summary.resolved,
            summary.no_phone,
            summary.missed,
            summary.failed,
        )
        return summary

    def _resolve(self, pending: PendingPhoneRequest, match: RevealMatch) -> bool:
        task_id = pending.task_id
        candidate = pending.candidate
        phone = select_preferred_phone(match.phone_numbers)
        if phone is None:
            self._store.upsert_result(task_id, candidate.id, {"phone_state": PhoneState.NO_PHONE})
            log_event(
                self._store,
                task_id,
                f"No phone number returned for {candidate.display_name()}",
                level="warning",
                phase="reveal",
                candidate_id=candidate.id,
            )
            return False

        self._store.upsert_result(
            task_id,
            candidate.id,
            {"phone": phone.number, "phone_type": phone.type, "phone_state": PhoneState.RECEIVED},
        )
        log_event(
            self._store,
            task_id,
            f"Phone received for {candidate.display_name()}",
            phase="reveal",
            candidate_id=candidate.id,
            phone_type=phone.type,
        )
        self._filter_stage.verify_and_filter(task_id, candidate, phone.number, pending.age_filter)
        return True

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------
    def sweep_expired(self, now: Optional[datetime] = None) -> List[PendingPhoneRequest]:
        """Drop pending requests older than the expiry horizon."""

        cutoff = (now or self._clock()) - self._expiry
        with self._lock:
            expired = [request for request in self._pending.values() if request.registered_at <= cutoff]
            for request in expired:
                del self._pending[request.candidate_id]

        for request in expired:
            LOGGER.info("Reveal for candidate %s expired without callback", request.candidate_id)
            log_event(
                self._store,
                request.task_id,
                f"No response from provider for {request.candidate.display_name()}",
                level="warning",
                phase="reveal",
                candidate_id=request.candidate_id,
            )
        for task_id in {request.task_id for request in expired}:
            self._settle(task_id)
        return expired

    def start_sweeper(self, interval_seconds: float) -> None:
        """Run :meth:`sweep_expired` every ``interval_seconds`` on a daemon thread."""

        if self._sweeper and self._sweeper.is_alive():
            return

        stop = threading.Event()

        def _runner() -> None:
            LOGGER.info("Pending-reveal sweeper starting (every %ss)", interval_seconds)
            while not stop.wait(interval_seconds):
                try:
                    self.sweep_expired()
                except Exception:
                    LOGGER.exception("Pending-reveal sweep failed; retrying next interval")
            LOGGER.info("Pending-reveal sweeper stopped")

        self._sweeper_stop = stop
        self._sweeper = threading.Thread(target=_runner, name="reveal-sweeper", daemon=True)
        self._sweeper.start()

    def stop_sweeper(self, timeout: Optional[float] = None) -> None:
        if self._sweeper_stop is not None:
            self._sweeper_stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout)
        self._sweeper = None
        self._sweeper_stop = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    def pending(self, task_id: Optional[str] = None) -> List[PendingPhoneRequest]:
        with self._lock:
            return [
                request
                for request in self._pending.values()
                if task_id is None or request.task_id == task_id
            ]

    def is_pending(self, candidate_id: str) -> bool:
        with self._lock:
            return candidate_id in self._pending

    def _settle(self, task_id: str) -> None:
        with self._lock:
            if task_id in self._dispatching:
                return
            if any(request.task_id == task_id for request in self._pending.values()):
                return
        if self._store.complete_if_running(task_id):
            LOGGER.info("Task %s completed", task_id)
            log_event(self._store, task_id, "All phone reveals settled", level="success", phase="complete")


__all__ = ["CallbackSummary", "PhoneRequestCorrelator", "RevealProvider"]
