"""Unified data models for the lead acquisition pipeline, its stores, and the webhook."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Query Models ---

@dataclass(frozen=True, slots=True)
class SearchQuery:
    """Search criteria sent to the contact-data provider."""

    name: str = ""
    title: str = ""
    region: str = ""

    def normalised(self) -> "SearchQuery":
        return SearchQuery(
            name=self.name.strip().lower(),
            title=self.title.strip().lower(),
            region=self.region.strip().lower(),
        )


@dataclass(slots=True)
class SearchRequest:
    """One search a customer asked for."""

    query: SearchQuery
    requested_count: int
    customer_id: str = "anonymous"
    age_filter: Optional["AgeFilter"] = None


QueryFingerprint = str


def fingerprint_query(query: SearchQuery) -> QueryFingerprint:
    """Return the stable cache/ledger key for ``query``."""

    normalised = query.normalised()
    payload = f"{normalised.name}|{normalised.title}|{normalised.region}"
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class AgeFilter:
    """Inclusive age bounds applied after verification."""

    min_age: int
    max_age: int

    def __post_init__(self) -> None:
        if self.min_age > self.max_age:
            raise ValueError(f"Age filter minimum {self.min_age} exceeds maximum {self.max_age}")

    def accepts(self, age: int) -> bool:
        return self.min_age <= age <= self.max_age


# --- Provider Records ---

@dataclass(slots=True)
class PhoneEntry:
    """A phone number reported by the provider."""

    number: str
    type: Optional[str] = None


@dataclass(slots=True)
class CandidateRecord:
    """One person record returned by the provider."""

    id: str
    first_name: str = ""
    last_name: str = ""
    title: str = ""
    organization: str = ""
    city: str = ""
    region: str = ""
    country: str = ""
    email: Optional[str] = None
    linkedin_url: Optional[str] = None
    organization_phone: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return " ".join(filter(None, [self.first_name, self.last_name])).strip()

    def display_name(self) -> str:
        """Return a readable name for task logs."""
        return self.full_name or f"(candidate {self.id})"

    @classmethod
    def from_provider(cls, payload: Dict[str, Any]) -> "CandidateRecord":
        organization = payload.get("organization") or {}
        if not isinstance(organization, dict):
            organization = {}
        first_name = payload.get("first_name") or ""
        last_name = payload.get("last_name") or ""
        if not (first_name or last_name) and payload.get("name"):
            first_name, _, last_name = str(payload["name"]).partition(" ")
        return cls(
            id=str(payload["id"]),
            first_name=first_name,
            last_name=last_name,
            title=payload.get("title") or "",
            organization=payload.get("organization_name") or organization.get("name") or "",
            city=payload.get("city") or "",
            region=payload.get("state") or "",
            country=payload.get("country") or "",
            email=payload.get("email") or None,
            linkedin_url=payload.get("linkedin_url") or None,
            organization_phone=organization.get("phone") or None,
            raw=dict(payload),
        )


@dataclass(slots=True)
class SearchPage:
    """Candidates returned by a provider search plus the total-count estimate."""

    candidates: List[CandidateRecord] = field(default_factory=list)
    total_count: int = 0


# --- Cache & Ledger ---

@dataclass(slots=True)
class CacheEntry:
    """Candidates previously fetched for a fingerprint."""

    fingerprint: QueryFingerprint
    candidates: List[CandidateRecord] = field(default_factory=list)
    captured_at: datetime = field(default_factory=utcnow)
    refreshed_at: datetime = field(default_factory=utcnow)
    freshness: timedelta = timedelta(days=180)

    @property
    def size(self) -> int:
        return len(self.candidates)

    def candidate_ids(self) -> set[str]:
        return {candidate.id for candidate in self.candidates}

    def is_fresh(self, now: datetime) -> bool:
        return now < self.refreshed_at + self.freshness


@dataclass(frozen=True, slots=True)
class AssignmentRecord:
    """A candidate handed to a customer for a fingerprint at a point in time."""

    fingerprint: QueryFingerprint
    candidate_id: str
    customer_id: str
    assigned_at: datetime


class AcquisitionSource(str, Enum):
    CACHE = "cache"
    API = "api"
    MIXED = "mixed"


@dataclass(slots=True)
class AcquisitionResult:
    """Outcome of :meth:`CoverageSelector.acquire`."""

    records: List[CandidateRecord]
    source: AcquisitionSource
    coverage_rate: float
    total_available: int = 0
    cache_count: int = 0
    api_count: int = 0
    partial: bool = False
    message: str = ""


# --- Phone Correlation ---

@dataclass(slots=True)
class PendingPhoneRequest:
    """An outstanding phone reveal awaiting its provider callback."""

    correlation_id: str
    task_id: str
    candidate_id: str
    candidate: CandidateRecord
    registered_at: datetime
    age_filter: Optional[AgeFilter] = None


@dataclass(slots=True)
class RevealMatch:
    """Canonical form of one candidate inside a provider callback."""

    candidate_id: str
    phone_numbers: List[PhoneEntry] = field(default_factory=list)


# --- Verification ---

@dataclass(slots=True)
class VerificationRequest:
    """Query sent to a secondary verification source."""

    first_name: str
    last_name: str
    city: str
    region: str
    phone: str
    age_filter: Optional[AgeFilter] = None

    @classmethod
    def for_candidate(
        cls, candidate: CandidateRecord, phone: str, age_filter: Optional[AgeFilter] = None
    ) -> "VerificationRequest":
        return cls(
            first_name=candidate.first_name,
            last_name=candidate.last_name,
            city=candidate.city,
            region=candidate.region,
            phone=phone,
            age_filter=age_filter,
        )

    @property
    def full_name(self) -> str:
        return " ".join(filter(None, [self.first_name, self.last_name])).strip()


@dataclass(slots=True)
class VerificationReport:
    """Result produced by an individual verification source."""

    source: str
    match_score: int = 0
    age: Optional[int] = None
    carrier: Optional[str] = None
    phone_type: Optional[str] = None
    matched_name: Optional[str] = None
    notes: List[str] = field(default_factory=list)


@dataclass(slots=True)
class FilterDecision:
    """Accept/reject decision for a revealed phone number."""

    accept: bool
    verified: bool
    score: int
    age: Optional[int] = None
    reason: str = ""
    report: Optional[VerificationReport] = None


# --- Task Log & Results ---

class PhoneState(str, Enum):
    PENDING = "pending"
    RECEIVED = "received"
    NO_PHONE = "no_phone"
    VERIFIED = "verified"


class TaskStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass(slots=True)
class SearchResult:
    """Per-candidate result state shown to the customer."""

    task_id: str
    candidate_id: str
    name: str = ""
    title: str = ""
    organization: str = ""
    city: str = ""
    region: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    phone_type: Optional[str] = None
    phone_state: PhoneState = PhoneState.PENDING
    verification_score: Optional[int] = None
    age: Optional[int] = None
    carrier: Optional[str] = None
    accepted: bool = True

    @classmethod
    def tentative(cls, task_id: str, candidate: CandidateRecord) -> "SearchResult":
        return cls(
            task_id=task_id,
            candidate_id=candidate.id,
            name=candidate.full_name,
            title=candidate.title,
            organization=candidate.organization,
            city=candidate.city,
            region=candidate.region,
            email=candidate.email,
        )

    def as_row(self) -> Dict[str, Any]:
        """Return a serialisable representation of the result."""
        return {
            "task_id": self.task_id,
            "candidate_id": self.candidate_id,
            "name": self.name,
            "title": self.title,
            "organization": self.organization,
            "city": self.city,
            "region": self.region,
            "email": self.email or "",
            "phone": self.phone or "",
            "phone_type": self.phone_type or "",
            "phone_state": self.phone_state.value,
            "verification_score": self.verification_score,
            "age": self.age,
            "carrier": self.carrier or "",
        }


@dataclass(slots=True)
class TaskLogEntry:
    """Customer-facing event appended to a task's log."""

    level: str
    phase: str
    message: str
    candidate_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)
