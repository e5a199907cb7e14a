"""Per-site pacing for reverse-phone lookups.

People-search sites block clients that query them too quickly, so lookups are
spaced per *site*: every verifier pointed at the same site shares one
schedule, while different sites proceed independently.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..models import VerificationReport, VerificationRequest

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SitePacing:
    """How often one site may be queried, and how long to linger afterwards."""

    calls_per_minute: Optional[float] = None
    settle_seconds: float = 0.0

    @property
    def interval(self) -> float:
        return 60.0 / float(self.calls_per_minute) if self.calls_per_minute else 0.0


class SiteScheduler:
    """Hands out lookup slots per site.

    A slot is reserved under the lock and waited for outside it, so callers
    for other sites are never held up by a sleeping caller.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_slot: Dict[str, float] = {}

    def wait_for_slot(self, site: str, pacing: SitePacing) -> float:
        """Block until ``site`` may be queried again; return the seconds waited."""

        interval = pacing.interval
        if interval <= 0:
            return 0.0
        with self._lock:
            now = self._clock()
            slot = max(now, self._next_slot.get(site, now))
            self._next_slot[site] = slot + interval
        wait = slot - now
        if wait > 0:
            LOGGER.debug("Waiting %.2fs before next %s lookup", wait, site)
            self._sleep(wait)
        return wait

    def settle(self, seconds: float) -> None:
        self._sleep(seconds)


SHARED_SCHEDULER = SiteScheduler()


class PacedVerifier:
    """Runs a verifier only when its site's schedule allows it."""

    def __init__(
        self,
        verifier,
        *,
        site: Optional[str] = None,
        display_name: Optional[str] = None,
        pacing: Optional[SitePacing] = None,
        scheduler: Optional[SiteScheduler] = None,
    ) -> None:
        self._verifier = verifier
        self._display_name = display_name
        self._pacing = pacing or SitePacing()
        self._scheduler = scheduler or SHARED_SCHEDULER
        self.site = site or getattr(verifier, "name", verifier.__class__.__name__)

    @property
    def name(self) -> str:
        if self._display_name:
            return self._display_name
        return getattr(self._verifier, "name", self._verifier.__class__.__name__)

    def verify(self, request: VerificationRequest) -> VerificationReport:
        self._scheduler.wait_for_slot(self.site, self._pacing)
        report = self._verifier.verify(request)
        if self._display_name:
            report.source = self._display_name
        if self._pacing.settle_seconds > 0:
            self._scheduler.settle(self._pacing.settle_seconds)
        return report

    def __getattr__(self, item):  # pragma: no cover - simple delegation
        return getattr(self._verifier, item)


__all__ = ["SHARED_SCHEDULER", "PacedVerifier", "SitePacing", "SiteScheduler"]
