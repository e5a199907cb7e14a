"""SQLite-backed cache store and assignment ledger."""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from dataclasses import asdict
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, List, Optional, Set, Union

from .cache import merge_candidates
from .models import (
    AssignmentRecord,
    CacheEntry,
    CandidateRecord,
    Clock,
    QueryFingerprint,
    utcnow,
)

LOGGER = logging.getLogger(__name__)

CACHE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS candidate_cache (
    fingerprint TEXT PRIMARY KEY,
    candidates TEXT NOT NULL,
    captured_at TEXT NOT NULL,
    refreshed_at TEXT NOT NULL
)
"""

LEDGER_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS assignments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    fingerprint TEXT NOT NULL,
    candidate_id TEXT NOT NULL,
    customer_id TEXT NOT NULL,
    assigned_at TEXT NOT NULL
)
"""

LEDGER_INDEX_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_assignments_fingerprint ON assignments (fingerprint, assigned_at)"
)


def _connect(path: Union[str, Path]) -> sqlite3.Connection:
    if str(path) != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(str(path), timeout=10, check_same_thread=False)


def _encode_candidates(candidates: Iterable[CandidateRecord]) -> str:
    return json.dumps([asdict(candidate) for candidate in candidates])


def _decode_candidates(blob: str) -> List[CandidateRecord]:
    return [CandidateRecord(**item) for item in json.loads(blob or "[]")]


class SqliteCacheStore:
    """Cache store that survives restarts; one row per fingerprint."""

    def __init__(
        self,
        path: Union[str, Path],
        *,
        freshness: timedelta = timedelta(days=180),
        clock: Clock = utcnow,
    ) -> None:
        self._freshness = freshness
        self._clock = clock
        self._lock = threading.Lock()
        self._conn = _connect(path)
        with self._conn:
            self._conn.execute(CACHE_TABLE_SQL)

    def get(self, fingerprint: QueryFingerprint) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._load(fingerprint)
        if entry is None:
            return None
        if not entry.is_fresh(self._clock()):
            LOGGER.debug("Cache entry %s is stale", fingerprint)
            return None
        return entry

    def merge(self, fingerprint: QueryFingerprint, candidates: Iterable[CandidateRecord]) -> int:
        now = self._clock()
        with self._lock:
            entry = self._load(fingerprint)
            if entry is None or not entry.is_fresh(now):
                entry = CacheEntry(
                    fingerprint=fingerprint,
                    captured_at=now,
                    refreshed_at=now,
                    freshness=self._freshness,
                )
            added = merge_candidates(entry, candidates)
            if added:
                entry.refreshed_at = now
            with self._conn:
                self._conn.execute(
                    "INSERT OR REPLACE INTO candidate_cache (fingerprint, candidates, captured_at, refreshed_at) "
                    "VALUES (?, ?, ?, ?)",
                    (
                        fingerprint,
                        _encode_candidates(entry.candidates),
                        entry.captured_at.isoformat(),
                        entry.refreshed_at.isoformat(),
                    ),
                )
        LOGGER.debug("Merged %s new candidates into cache entry %s", added, fingerprint)
        return added

    def close(self) -> None:
        self._conn.close()

    def __len__(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) FROM candidate_cache").fetchone()
        return int(row[0])

    def _load(self, fingerprint: QueryFingerprint) -> Optional[CacheEntry]:
        row = self._conn.execute(
            "SELECT candidates, captured_at, refreshed_at FROM candidate_cache WHERE fingerprint=?",
            (fingerprint,),
        ).fetchone()
        if not row:
            return None
        return CacheEntry(
            fingerprint=fingerprint,
            candidates=_decode_candidates(row[0]),
            captured_at=datetime.fromisoformat(row[1]),
            refreshed_at=datetime.fromisoformat(row[2]),
            freshness=self._freshness,
        )


class SqliteAssignmentLedger:
    """Append-only ledger stored in an ``assignments`` table."""

    def __init__(self, path: Union[str, Path], *, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._conn = _connect(path)
        with self._conn:
            self._conn.execute(LEDGER_TABLE_SQL)
            self._conn.execute(LEDGER_INDEX_SQL)

    def exclusion_set(self, fingerprint: QueryFingerprint, expire_days: int) -> Set[str]:
        horizon = self._clock() - timedelta(days=expire_days)
        with self._lock:
            rows = self._conn.execute(
                "SELECT candidate_id, assigned_at FROM assignments WHERE fingerprint=?",
                (fingerprint,),
            ).fetchall()
        return {candidate_id for candidate_id, assigned_at in rows if datetime.fromisoformat(assigned_at) >= horizon}

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
        if not records:
            return records
        with self._lock, self._conn:
            self._conn.executemany(
                "INSERT INTO assignments (fingerprint, candidate_id, customer_id, assigned_at) VALUES (?, ?, ?, ?)",
                [
                    (record.fingerprint, record.candidate_id, record.customer_id, record.assigned_at.isoformat())
                    for record in records
                ],
            )
        return records

    def history(self, fingerprint: QueryFingerprint) -> List[AssignmentRecord]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT candidate_id, customer_id, assigned_at FROM assignments WHERE fingerprint=? ORDER BY id",
                (fingerprint,),
            ).fetchall()
        return [
            AssignmentRecord(
                fingerprint=fingerprint,
                candidate_id=candidate_id,
                customer_id=customer_id,
                assigned_at=datetime.fromisoformat(assigned_at),
            )
            for candidate_id, customer_id, assigned_at in rows
        ]

    def purge_expired(self, before: datetime) -> int:
        """Delete records assigned before ``before``; return how many were removed."""

        with self._lock:
            rows = self._conn.execute("SELECT id, assigned_at FROM assignments").fetchall()
            stale = [(row_id,) for row_id, assigned_at in rows if datetime.fromisoformat(assigned_at) < before]
            if stale:
                with self._conn:
                    self._conn.executemany("DELETE FROM assignments WHERE id=?", stale)
        if stale:
            LOGGER.info("Purged %s expired assignment records", len(stale))
        return len(stale)

    def close(self) -> None:
        self._conn.close()


__all__ = ["SqliteAssignmentLedger", "SqliteCacheStore"]
