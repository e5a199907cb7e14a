"""Normalisation of provider reveal callbacks.

The provider delivers reveal results in three shapes:

* a batch, ``{"matches": [match, ...]}``;
* a single match wrapped in an envelope, ``{"match": match}`` or ``{"person": match}``;
* a bare match, ``{"id": ..., "phone_numbers": [...]}``.

All of them are reduced to a list of :class:`~lead_acquisition.models.RevealMatch`
before any business logic runs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .models import PhoneEntry, RevealMatch

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchPayload:
    matches: List[Dict[str, Any]]


@dataclass(frozen=True)
class SingleMatchPayload:
    match: Dict[str, Any]


@dataclass(frozen=True)
class BareMatchPayload:
    match: Dict[str, Any]


CallbackPayload = Union[BatchPayload, SingleMatchPayload, BareMatchPayload]

_ENVELOPE_KEYS = ("match", "person")
_ID_KEYS = ("id", "person_id", "candidate_id")


def classify_payload(payload: Any) -> Optional[CallbackPayload]:
    """Return the tagged shape of ``payload`` or ``None`` when unrecognised."""

    if not isinstance(payload, dict):
        return None
    matches = payload.get("matches")
    if isinstance(matches, list):
        return BatchPayload(matches=[match for match in matches if isinstance(match, dict)])
    for key in _ENVELOPE_KEYS:
        wrapped = payload.get(key)
        if isinstance(wrapped, dict):
            return SingleMatchPayload(match=wrapped)
    if _candidate_id(payload) is not None:
        return BareMatchPayload(match=payload)
    return None


def normalise_callback(payload: Any) -> List[RevealMatch]:
    """Reduce any supported callback shape to canonical reveal matches."""

    shape = classify_payload(payload)
    if shape is None:
        LOGGER.warning("Ignoring callback payload with unrecognised shape")
        return []

    if isinstance(shape, BatchPayload):
        raw_matches = shape.matches
    else:
        raw_matches = [shape.match]

    results: List[RevealMatch] = []
    for raw in raw_matches:
        match = _reveal_match(raw)
        if match is not None:
            results.append(match)
    return results


def _reveal_match(raw: Dict[str, Any]) -> Optional[RevealMatch]:
    candidate_id = _candidate_id(raw)
    if candidate_id is None:
        LOGGER.warning("Skipping callback match without a candidate id")
        return None
    phones = raw.get("phone_numbers")
    if phones is None:
        phones = []
    elif isinstance(phones, (str, dict)):
        phones = [phones]
    elif not isinstance(phones, list):
        LOGGER.warning(
            "Skipping callback match for %s: phone_numbers is a %s", candidate_id, type(phones).__name__
        )
        return None
    return RevealMatch(candidate_id=candidate_id, phone_numbers=_phone_entries(phones))


def _candidate_id(raw: Dict[str, Any]) -> Optional[str]:
    for key in _ID_KEYS:
        value = raw.get(key)
        if value not in (None, ""):
            return str(value)
    return None


def _phone_entries(items: List[Any]) -> List[PhoneEntry]:
    entries: List[PhoneEntry] = []
    for item in items:
        if isinstance(item, str):
            entries.append(PhoneEntry(number=item))
            continue
        if not isinstance(item, dict):
            continue
        number = item.get("sanitized_number") or item.get("raw_number") or item.get("number")
        if not number:
            continue
        entries.append(PhoneEntry(number=str(number), type=item.get("type") or item.get("type_cd")))
    return entries


__all__ = [
    "BareMatchPayload",
    "BatchPayload",
    "CallbackPayload",
    "SingleMatchPayload",
    "classify_payload",
    "normalise_callback",
]
