"""Scoring of people-search listings against the candidate a phone was revealed for."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional

from ..models import VerificationRequest, VerificationReport

NAME_POINTS = 40
AGE_POINTS = 30
REGION_POINTS = 20
CITY_POINTS = 10
MAX_SCORE = 100

_AGE_PATTERNS = (
    re.compile(r"Age\s*</span>\s*<span[^>]*>\s*(\d{2,3})\s*<", re.IGNORECASE),
    re.compile(r"\bAge[:\s]*(\d{2,3})\b", re.IGNORECASE),
)
_CARRIER_PATTERN = re.compile(r"\bCarrier[:\s]+([A-Za-z0-9&. -]{2,40}?)\s*(?:\n|$|\|)", re.IGNORECASE)


@dataclass
class ListingSnapshot:
    """What a reverse-phone lookup page exposed about the number's owner."""

    names: List[str] = field(default_factory=list)
    text: str = ""
    age: Optional[int] = None
    carrier: Optional[str] = None


def extract_age(text: str) -> Optional[int]:
    for pattern in _AGE_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return None


def extract_carrier(text: str) -> Optional[str]:
    match = _CARRIER_PATTERN.search(text)
    if match:
        return match.group(1).strip() or None
    return None


def infer_phone_type(text: str) -> Optional[str]:
    lowered = text.lower()
    if re.search(r"mobile|cell|wireless", lowered):
        return "mobile"
    if re.search(r"landline|home|residential", lowered):
        return "landline"
    if "voip" in lowered:
        return "voip"
    return None


def _mentions(text: str, value: str) -> bool:
    value = value.strip()
    if not value:
        return False
    return re.search(rf"\b{re.escape(value)}\b", text, re.IGNORECASE) is not None


def _matching_name(names: List[str], request: VerificationRequest) -> Optional[str]:
    first = request.first_name.strip().lower()
    last = request.last_name.strip().lower()
    if not first or not last:
        return None
    for name in names:
        lowered = name.lower()
        if first in lowered and last in lowered:
            return name.strip()
    return None


def score_listing(source: str, listing: ListingSnapshot, request: VerificationRequest) -> VerificationReport:
    """Compute a 0-100 match confidence for ``listing``.

    Without a name match nothing else counts. Age earns points only when it is
    inside the requested age filter (or when no filter applies); an age outside
    the filter is still reported so the filter stage can reject the candidate.
    """

    report = VerificationReport(source=source)
    matched = _matching_name(listing.names, request)
    if matched is None:
        report.notes.append(f"No listed name matches {request.full_name or '(unnamed)'}")
        return report

    score = NAME_POINTS
    report.matched_name = matched
    report.age = listing.age if listing.age is not None else extract_age(listing.text)
    if report.age is not None and (request.age_filter is None or request.age_filter.accepts(report.age)):
        score += AGE_POINTS
    if _mentions(listing.text, request.region):
        score += REGION_POINTS
    if _mentions(listing.text, request.city):
        score += CITY_POINTS

    report.match_score = min(score, MAX_SCORE)
    report.carrier = listing.carrier or extract_carrier(listing.text)
    report.phone_type = infer_phone_type(listing.text)
    return report


__all__ = [
    "AGE_POINTS",
    "CITY_POINTS",
    "ListingSnapshot",
    "MAX_SCORE",
    "NAME_POINTS",
    "REGION_POINTS",
    "extract_age",
    "extract_carrier",
    "infer_phone_type",
    "score_listing",
]
