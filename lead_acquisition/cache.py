"""Fingerprint-keyed store of previously fetched candidate sets."""
from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import timedelta
from typing import Dict, Iterable, Optional, Protocol

from .models import CacheEntry, CandidateRecord, Clock, QueryFingerprint, utcnow

LOGGER = logging.getLogger(__name__)


class CacheStore(Protocol):
    """Interface shared by the in-memory and SQLite cache stores."""

    def get(self, fingerprint: QueryFingerprint) -> Optional[CacheEntry]:  # pragma: no cover - protocol
        """Return the fresh entry for ``fingerprint`` or ``None``."""

    def merge(self, fingerprint: QueryFingerprint, candidates: Iterable[CandidateRecord]) -> int:  # pragma: no cover - protocol
        """Add unseen candidates to the entry, creating it if needed. Return the number added."""


def merge_candidates(entry: CacheEntry, candidates: Iterable[CandidateRecord]) -> int:
    """Append candidates whose IDs are not yet in ``entry``; never removes any."""

    known = entry.candidate_ids()
    added = 0
    for candidate in candidates:
        if candidate.id in known:
            continue
        entry.candidates.append(candidate)
        known.add(candidate.id)
        added += 1
    return added


class InMemoryCacheStore:
    """Thread-safe cache store keeping entries in a dictionary."""

    def __init__(self, *, freshness: timedelta = timedelta(days=180), clock: Clock = utcnow) -> None:
        self._freshness = freshness
        self._clock = clock
        self._entries: Dict[QueryFingerprint, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, fingerprint: QueryFingerprint) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                return None
            if not entry.is_fresh(self._clock()):
                LOGGER.debug("Cache entry %s is stale", fingerprint)
                return None
            return replace(entry, candidates=list(entry.candidates))

    def merge(self, fingerprint: QueryFingerprint, candidates: Iterable[CandidateRecord]) -> int:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None or not entry.is_fresh(now):
                entry = CacheEntry(
                    fingerprint=fingerprint,
                    captured_at=now,
                    refreshed_at=now,
                    freshness=self._freshness,
                )
                self._entries[fingerprint] = entry
            added = merge_candidates(entry, candidates)
            if added:
                entry.refreshed_at = now
        LOGGER.debug("Merged %s new candidates into cache entry %s", added, fingerprint)
        return added

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["CacheStore", "InMemoryCacheStore", "merge_candidates"]
