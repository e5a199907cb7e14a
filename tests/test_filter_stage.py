"""Tests for the verification and filter stage."""
from __future__ import annotations

from typing import List, Optional

from conftest import make_candidate
from lead_acquisition.errors import VerificationUnavailableError
from lead_acquisition.filter_stage import FilterStage
from lead_acquisition.models import (
    AgeFilter,
    PhoneState,
    SearchResult,
    VerificationReport,
    VerificationRequest,
)
from lead_acquisition.store import InMemoryTaskStore


class FakeVerifier:
    name = "fake"

    def __init__(self, report: Optional[VerificationReport] = None, error: Optional[Exception] = None) -> None:
        self.report = report
        self.error = error
        self.requests: List[VerificationRequest] = []

    def verify(self, request: VerificationRequest) -> VerificationReport:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.report


def _seed(store: InMemoryTaskStore, candidate) -> None:
    result = SearchResult.tentative("task", candidate)
    store.upsert_result("task", candidate.id, {"name": result.name, "phone_type": "mobile"})


def test_high_score_marks_result_verified() -> None:
    store = InMemoryTaskStore()
    candidate = make_candidate(1)
    _seed(store, candidate)
    verifier = FakeVerifier(VerificationReport(source="tps", match_score=90, age=41, carrier="Verizon"))

    decision = FilterStage(verifier, store).verify_and_filter("task", candidate, "5035550101", AgeFilter(30, 50))

    assert decision.accept and decision.verified
    result = store.get_result("task", candidate.id)
    assert result.phone_state is PhoneState.VERIFIED
    assert result.verification_score == 90
    assert result.age == 41
    assert result.carrier == "Verizon"
    assert verifier.requests[0].first_name == "First1"
    assert store.logs("task")[-1].level == "success"


def test_low_score_is_kept_as_received() -> None:
    store = InMemoryTaskStore()
    candidate = make_candidate(1)
    _seed(store, candidate)
    verifier = FakeVerifier(VerificationReport(source="tps", match_score=40, phone_type="landline"))

    decision = FilterStage(verifier, store, threshold=60).verify_and_filter("task", candidate, "5035550101")

    assert decision.accept and not decision.verified
    result = store.get_result("task", candidate.id)
    assert result.phone_state is PhoneState.RECEIVED
    assert result.phone_type == "mobile"


def test_score_at_threshold_counts_as_verified() -> None:
    store = InMemoryTaskStore()
    candidate = make_candidate(1)
    verifier = FakeVerifier(VerificationReport(source="tps", match_score=60))

    decision = FilterStage(verifier, store, threshold=60).evaluate(candidate, "5035550101")

    assert decision.verified


def test_age_outside_filter_deletes_result() -> None:
    store = InMemoryTaskStore()
    candidate = make_candidate(1)
    _seed(store, candidate)
    verifier = FakeVerifier(VerificationReport(source="tps", match_score=70, age=72))

    decision = FilterStage(verifier, store).verify_and_filter("task", candidate, "5035550101", AgeFilter(25, 45))

    assert not decision.accept
    assert decision.reason == "age"
    assert store.get_result("task", candidate.id) is None
    entry = store.logs("task")[-1]
    assert entry.level == "warning"
    assert "age 72 outside 25-45" in entry.message
    assert entry.candidate_id == candidate.id


def test_missing_age_does_not_reject() -> None:
    store = InMemoryTaskStore()
    candidate = make_candidate(1)
    verifier = FakeVerifier(VerificationReport(source="tps", match_score=40))

    decision = FilterStage(verifier, store).evaluate(candidate, "5035550101", AgeFilter(25, 45))

    assert decision.accept


def test_verification_outage_keeps_candidate_unverified() -> None:
    store = InMemoryTaskStore()
    candidate = make_candidate(1)
    _seed(store, candidate)
    verifier = FakeVerifier(error=VerificationUnavailableError("all sources down"))

    decision = FilterStage(verifier, store).verify_and_filter("task", candidate, "5035550101", AgeFilter(25, 45))

    assert decision.accept and not decision.verified
    assert decision.reason == "verification_unavailable"
    result = store.get_result("task", candidate.id)
    assert result.phone_state is PhoneState.RECEIVED
    assert result.phone == "5035550101"
    assert store.logs("task")[-1].level == "warning"
