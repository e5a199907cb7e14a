"""Utility helpers for normalising and choosing revealed phone numbers."""
from __future__ import annotations

from typing import Iterable, List, Optional

from .models import PhoneEntry

PREFERRED_PHONE_TYPES = ("mobile", "personal")


def normalise_phone(value: str) -> str:
    """Strip everything but digits so numbers compare equal across formats."""

    return "".join(c for c in value.strip() if c.isdigit())


def dedupe_phones(entries: Iterable[PhoneEntry]) -> List[PhoneEntry]:
    """Drop empty and repeated numbers, keeping the first occurrence."""

    seen: set[str] = set()
    unique: List[PhoneEntry] = []
    for entry in entries:
        key = normalise_phone(entry.number or "")
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(entry)
    return unique


def select_preferred_phone(entries: Iterable[PhoneEntry]) -> Optional[PhoneEntry]:
    """Prefer a mobile/personal number, otherwise the first one available."""

    candidates = dedupe_phones(entries)
    for entry in candidates:
        phone_type = (entry.type or "").lower()
        if any(preferred in phone_type for preferred in PREFERRED_PHONE_TYPES):
            return entry
    return candidates[0] if candidates else None


__all__ = ["PREFERRED_PHONE_TYPES", "dedupe_phones", "normalise_phone", "select_preferred_phone"]
