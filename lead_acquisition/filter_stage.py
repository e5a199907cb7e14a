"""Verification and post-filtering of revealed phone numbers."""
from __future__ import annotations

import logging
from typing import Optional

from .models import (
    AgeFilter,
    CandidateRecord,
    FilterDecision,
    PhoneState,
    VerificationRequest,
)
from .store import TaskStore, log_event
from .verification import VerificationSource

LOGGER = logging.getLogger(__name__)


class FilterStage:
    """Turns a revealed phone number into an accepted or rejected result."""

    def __init__(self, verifier: VerificationSource, store: TaskStore, *, threshold: int = 60) -> None:
        self._verifier = verifier
        self._store = store
        self._threshold = threshold

    def evaluate(
        self, candidate: CandidateRecord, phone: str, age_filter: Optional[AgeFilter] = None
    ) -> FilterDecision:
        """Verify ``phone`` for ``candidate`` and decide whether to keep it.

        A verification outage keeps the candidate as an unverified hit; only an
        age reported outside ``age_filter`` rejects it.
        """

        request = VerificationRequest.for_candidate(candidate, phone, age_filter)
        try:
            report = self._verifier.verify(request)
        except Exception as exc:
            LOGGER.warning("Verification unavailable for candidate %s: %s", candidate.id, exc)
            return FilterDecision(accept=True, verified=False, score=0, reason="verification_unavailable")

        if age_filter is not None and report.age is not None and not age_filter.accepts(report.age):
            return FilterDecision(
                accept=False,
                verified=False,
                score=report.match_score,
                age=report.age,
                reason="age",
                report=report,
            )

        verified = report.match_score >= self._threshold
        return FilterDecision(
            accept=True,
            verified=verified,
            score=report.match_score,
            age=report.age,
            reason="verified" if verified else "unconfirmed",
            report=report,
        )

    def verify_and_filter(
        self,
        task_id: str,
        candidate: CandidateRecord,
        phone: str,
        age_filter: Optional[AgeFilter] = None,
    ) -> FilterDecision:
        """Evaluate the phone and apply the decision to the task's result and log."""

        decision = self.evaluate(candidate, phone, age_filter)
        name = candidate.display_name()

        if not decision.accept:
            self._store.delete_result(task_id, candidate.id)
            log_event(
                self._store,
                task_id,
                f"Excluded {name}: age {decision.age} outside {age_filter.min_age}-{age_filter.max_age}",
                level="warning",
                phase="verify",
                candidate_id=candidate.id,
                age=decision.age,
                reason="age",
            )
            return decision

        report = decision.report
        fields = {
            "phone": phone,
            "phone_state": PhoneState.VERIFIED if decision.verified else PhoneState.RECEIVED,
            "verification_score": decision.score,
            "age": decision.age,
            "carrier": report.carrier if report else None,
            "accepted": True,
        }
        current = self._store.upsert_result(task_id, candidate.id, fields)
        if current.phone_type is None and report is not None and report.phone_type:
            self._store.upsert_result(task_id, candidate.id, {"phone_type": report.phone_type})

        if decision.reason == "verification_unavailable":
            message = f"Kept {name} unverified: verification source unavailable"
            level = "warning"
        elif decision.verified:
            message = f"Verified {name} ({phone}, score {decision.score})"
            level = "success"
        else:
            message = f"Accepted {name} ({phone}) without confirmation (score {decision.score})"
            level = "info"
        log_event(
            self._store,
            task_id,
            message,
            level=level,
            phase="verify",
            candidate_id=candidate.id,
            score=decision.score,
            age=decision.age,
            source=report.source if report else None,
            reason=decision.reason,
        )
        return decision


__all__ = ["FilterStage"]
