"""Append-only record of which candidates were handed to which customer."""
from __future__ import annotations

import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Dict, Iterable, Iterator, List, Protocol, Set

from .models import AssignmentRecord, Clock, QueryFingerprint, utcnow


class AssignmentLedger(Protocol):
    """Interface shared by the in-memory and SQLite ledgers."""

    def exclusion_set(self, fingerprint: QueryFingerprint, expire_days: int) -> Set[str]:  # pragma: no cover - protocol
        """Return candidate IDs assigned for ``fingerprint`` within ``expire_days``."""

    def record_assignment(
        self, fingerprint: QueryFingerprint, candidate_ids: Iterable[str], customer_id: str
    ) -> List[AssignmentRecord]:  # pragma: no cover - protocol
        """Append one record per candidate ID."""


class InMemoryAssignmentLedger:
    """Ledger kept in process memory. Records are never updated in place."""

    def __init__(self, *, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._records: Dict[QueryFingerprint, List[AssignmentRecord]] = defaultdict(list)
        self._lock = threading.Lock()

    def exclusion_set(self, fingerprint: QueryFingerprint, expire_days: int) -> Set[str]:
        horizon = self._clock() - timedelta(days=expire_days)
        with self._lock:
            return {
                record.candidate_id
                for record in self._records.get(fingerprint, ())
                if record.assigned_at >= horizon
            }

    def record_assignment(
        self, fingerprint: QueryFingerprint, candidate_ids: Iterable[str], customer_id: str
    ) -> List[AssignmentRecord]:
        now = self._clock()
        records = [
            AssignmentRecord(
                fingerprint=fingerprint,
                candidate_id=candidate_id,
                customer_id=customer_id,
                assigned_at=now,
            )
            for candidate_id in candidate_ids
        ]
        with self._lock:
            self._records[fingerprint].extend(records)
        return records

    def history(self, fingerprint: QueryFingerprint) -> List[AssignmentRecord]:
        """Return every record for ``fingerprint``, including expired ones."""

        with self._lock:
            return list(self._records.get(fingerprint, ()))

    def purge_expired(self, before: datetime) -> int:
        """Physically drop records assigned before ``before``."""

        removed = 0
        with self._lock:
            for fingerprint in list(self._records):
                kept = [record for record in self._records[fingerprint] if record.assigned_at >= before]
                removed += len(self._records[fingerprint]) - len(kept)
                if kept:
                    self._records[fingerprint] = kept
                else:
                    del self._records[fingerprint]
        return removed


class FingerprintLocks:
    """Hands out one re-entrant lock per fingerprint.

    Holding the lock across the exclusion-set read and the assignment write
    serialises concurrent acquisitions for the same query.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[QueryFingerprint, threading.RLock] = {}

    @contextmanager
    def hold(self, fingerprint: QueryFingerprint) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(fingerprint, threading.RLock())
        with lock:
            yield


__all__ = ["AssignmentLedger", "FingerprintLocks", "InMemoryAssignmentLedger"]
