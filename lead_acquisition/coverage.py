"""Decides whether a search is served from cache, from the provider, or from both."""
from __future__ import annotations

import logging
import random
from typing import Iterable, List, Optional, Protocol, Set

from .cache import CacheStore
from .config import PipelineSettings
from .errors import ProviderError
from .ledger import AssignmentLedger, FingerprintLocks
from .models import (
    AcquisitionResult,
    AcquisitionSource,
    CandidateRecord,
    QueryFingerprint,
    SearchPage,
    SearchQuery,
)

LOGGER = logging.getLogger(__name__)

# Fetch twice what is needed so the surplus can serve later searches from cache.
OVERFETCH_FACTOR = 2


class SearchProvider(Protocol):
    """Subset of :class:`~lead_acquisition.provider.ProviderClient` used for acquisition."""

    def search(self, query: SearchQuery, limit: int) -> SearchPage:  # pragma: no cover - protocol
        ...

    def request_count_only(self, query: SearchQuery) -> int:  # pragma: no cover - protocol
        ...


def coverage_rate(cache_count: int, total_available: int) -> float:
    """Return the cached share of the provider's total as a percentage."""

    if total_available <= 0:
        return 0.0
    return cache_count / total_available * 100


class CoverageSelector:
    """Chooses the data source for each search and records what was handed out.

    Calls for the same fingerprint are serialised with :class:`FingerprintLocks`
    so that the exclusion-set read and the assignment write cannot interleave
    with another acquisition for the same query.
    """

    def __init__(
        self,
        provider: SearchProvider,
        cache: CacheStore,
        ledger: AssignmentLedger,
        *,
        settings: Optional[PipelineSettings] = None,
        locks: Optional[FingerprintLocks] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._ledger = ledger
        self._settings = settings or PipelineSettings()
        self._locks = locks or FingerprintLocks()
        self._rng = rng or random.Random(self._settings.random_seed)

    def acquire(
        self,
        fingerprint: QueryFingerprint,
        query: SearchQuery,
        requested_count: int,
        customer_id: str,
    ) -> AcquisitionResult:
        if requested_count <= 0:
            raise ValueError(f"requested_count must be positive, got {requested_count}")

        with self._locks.hold(fingerprint):
            return self._acquire_locked(fingerprint, query, requested_count, customer_id)

    # ------------------------------------------------------------------
    def _acquire_locked(
        self,
        fingerprint: QueryFingerprint,
        query: SearchQuery,
        requested_count: int,
        customer_id: str,
    ) -> AcquisitionResult:
        entry = self._cache.get(fingerprint)
        if entry is None:
            LOGGER.info("No cache entry for %s, fetching from provider", fingerprint)
            return self._fetch_from_api(fingerprint, query, requested_count, rate=0.0)

        cache_count = entry.size
        try:
            total_available = self._provider.request_count_only(query)
        except ProviderError:
            LOGGER.warning("Count probe failed for %s; treating cache as complete", fingerprint)
            total_available = cache_count

        rate = coverage_rate(cache_count, total_available)
        threshold = self._settings.coverage_threshold
        if rate < threshold:
            LOGGER.info("Cache coverage %.1f%% < threshold %.1f%%, fetching from provider", rate, threshold)
            return self._fetch_from_api(
                fingerprint, query, requested_count, rate=rate, known_total=total_available
            )

        LOGGER.info("Cache coverage %.1f%% >= threshold %.1f%%, using cache", rate, threshold)
        excluded = self._ledger.exclusion_set(fingerprint, self._settings.assignment_expire_days)
        available = [candidate for candidate in entry.candidates if candidate.id not in excluded]
        LOGGER.debug("Available after exclusion: %s (excluded %s)", len(available), len(excluded))

        if len(available) >= requested_count:
            selected = self.select(available, requested_count)
            self._ledger.record_assignment(fingerprint, [c.id for c in selected], customer_id)
            return AcquisitionResult(
                records=selected,
                source=AcquisitionSource.CACHE,
                coverage_rate=rate,
                total_available=total_available,
                cache_count=len(selected),
                message=f"Served {len(selected)} records from cache",
            )

        return self._blend(
            fingerprint, query, requested_count, customer_id, available, excluded, rate, total_available
        )

    def _blend(
        self,
        fingerprint: QueryFingerprint,
        query: SearchQuery,
        requested_count: int,
        customer_id: str,
        available: List[CandidateRecord],
        excluded: Set[str],
        rate: float,
        total_available: int,
    ) -> AcquisitionResult:
        cache_portion = self.select(available, len(available))
        needed = requested_count - len(cache_portion)
        LOGGER.info("Cache holds %s of %s requested, fetching %s more", len(cache_portion), requested_count, needed)

        try:
            page = self._provider.search(query, needed * OVERFETCH_FACTOR)
        except ProviderError:
            LOGGER.warning("Supplemental fetch failed for %s; returning cache portion only", fingerprint)
            if cache_portion:
                self._ledger.record_assignment(fingerprint, [c.id for c in cache_portion], customer_id)
            return AcquisitionResult(
                records=cache_portion,
                source=AcquisitionSource.CACHE,
                coverage_rate=rate,
                total_available=total_available,
                cache_count=len(cache_portion),
                partial=True,
                message=f"Provider unavailable, served {len(cache_portion)} records from cache only",
            )

        taken = excluded | {candidate.id for candidate in cache_portion}
        fresh = _unique(candidate for candidate in page.candidates if candidate.id not in taken)
        api_portion = self.select(fresh, needed)
        combined = cache_portion + api_portion

        self._ledger.record_assignment(fingerprint, [c.id for c in combined], customer_id)
        added = self._cache.merge(fingerprint, page.candidates)
        if added:
            LOGGER.info("Added %s new candidates to cache entry %s", added, fingerprint)

        return AcquisitionResult(
            records=combined,
            source=AcquisitionSource.MIXED,
            coverage_rate=rate,
            total_available=total_available,
            cache_count=len(cache_portion),
            api_count=len(api_portion),
            partial=len(combined) < requested_count,
            message=f"Blended {len(cache_portion)} cached and {len(api_portion)} fresh records",
        )

    def _fetch_from_api(
        self,
        fingerprint: QueryFingerprint,
        query: SearchQuery,
        requested_count: int,
        *,
        rate: float,
        known_total: Optional[int] = None,
    ) -> AcquisitionResult:
        # The whole over-fetched page is returned; callers pick requested_count from it.
        page = self._provider.search(query, requested_count * OVERFETCH_FACTOR)
        fetched = _unique(page.candidates)
        added = self._cache.merge(fingerprint, fetched)
        LOGGER.info("Fetched %s candidates from provider, %s new to cache", len(fetched), added)

        return AcquisitionResult(
            records=fetched,
            source=AcquisitionSource.API,
            coverage_rate=rate,
            total_available=page.total_count or known_total or 0,
            api_count=len(fetched),
            partial=len(fetched) < requested_count,
            message=f"Fetched {len(fetched)} records from provider",
        )

    def select(self, candidates: List[CandidateRecord], count: int) -> List[CandidateRecord]:
        """Uniformly select ``count`` candidates by shuffling then slicing."""

        shuffled = list(candidates)
        self._rng.shuffle(shuffled)
        return shuffled[:count]


def _unique(candidates: Iterable[CandidateRecord]) -> List[CandidateRecord]:
    seen: Set[str] = set()
    unique: List[CandidateRecord] = []
    for candidate in candidates:
        if candidate.id in seen:
            continue
        seen.add(candidate.id)
        unique.append(candidate)
    return unique


__all__ = ["CoverageSelector", "SearchProvider", "coverage_rate", "OVERFETCH_FACTOR"]
