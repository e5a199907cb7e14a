"""Verification source that answers from configured data instead of a web site."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from ..models import VerificationReport, VerificationRequest
from ..phones import normalise_phone
from .scoring import ListingSnapshot, score_listing


class StaticVerifier:
    """Scores requests against listings keyed by phone number.

    ``listings`` maps a phone number (any formatting) to a mapping with
    ``names``, ``text``, ``age`` and ``carrier`` keys. Unknown numbers score 0.
    """

    name = "static"

    def __init__(self, listings: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._listings: Dict[str, ListingSnapshot] = {}
        for phone, listing in (listings or {}).items():
            names: List[str] = list(listing.get("names") or [])
            self._listings[normalise_phone(phone)] = ListingSnapshot(
                names=names,
                text=str(listing.get("text") or ""),
                age=listing.get("age"),
                carrier=listing.get("carrier"),
            )

    def verify(self, request: VerificationRequest) -> VerificationReport:
        listing = self._listings.get(normalise_phone(request.phone))
        if listing is None:
            report = VerificationReport(source=self.name)
            report.notes.append("No listing for this number")
            return report
        return score_listing(self.name, listing, request)
