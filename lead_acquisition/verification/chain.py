"""Runs verification sources in order until one is confident enough."""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..errors import VerificationUnavailableError
from ..models import VerificationReport, VerificationRequest
from .base import VerificationSource

LOGGER = logging.getLogger(__name__)


class VerificationChain:
    """Asks each source in turn and keeps the first report that crosses ``threshold``.

    When no source is confident the highest scoring report wins. Sources that
    raise are skipped; if all of them raise the chain raises
    :class:`~lead_acquisition.errors.VerificationUnavailableError`.
    """

    name = "chain"

    def __init__(self, sources: Sequence[VerificationSource], *, threshold: int = 60) -> None:
        self._sources = list(sources)
        self._threshold = threshold

    @property
    def sources(self) -> List[VerificationSource]:
        return list(self._sources)

    def verify(self, request: VerificationRequest) -> VerificationReport:
        best: Optional[VerificationReport] = None
        failures: List[str] = []
        for source in self._sources:
            try:
                LOGGER.debug("Running verifier %s for %s", source.name, request.phone)
                report = source.verify(request)
            except Exception as exc:
                LOGGER.exception("Verifier %s failed for %s", source.name, request.phone)
                failures.append(f"{source.name}: {exc}")
                continue

            if report.match_score >= self._threshold:
                LOGGER.info("Verifier %s confirmed %s (score %s)", source.name, request.phone, report.match_score)
                return report
            if best is None or report.match_score > best.match_score:
                best = report

        if best is None:
            detail = "; ".join(failures) or "no verification sources configured"
            raise VerificationUnavailableError(f"Verification unavailable for {request.phone}: {detail}")
        return best


__all__ = ["VerificationChain"]
