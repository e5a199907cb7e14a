"""End-to-end tests for the search pipeline with fake provider and verifier."""
from __future__ import annotations

import random

import pytest

from conftest import FakeProvider, make_candidates
from lead_acquisition.cache import InMemoryCacheStore
from lead_acquisition.config import PipelineSettings
from lead_acquisition.correlator import PhoneRequestCorrelator
from lead_acquisition.coverage import CoverageSelector
from lead_acquisition.filter_stage import FilterStage
from lead_acquisition.ledger import InMemoryAssignmentLedger
from lead_acquisition.models import AgeFilter, PhoneState, TaskStatus
from lead_acquisition.pipeline import SearchPipeline
from lead_acquisition.store import InMemoryTaskStore
from lead_acquisition.verification import StaticVerifier


@pytest.fixture
def wiring(clock):
    provider = FakeProvider(make_candidates(0, 50))
    store = InMemoryTaskStore()
    settings = PipelineSettings(reveal_workers=3)
    selector = CoverageSelector(
        provider,
        InMemoryCacheStore(clock=clock),
        InMemoryAssignmentLedger(clock=clock),
        settings=settings,
        rng=random.Random(3),
    )
    verifier = StaticVerifier(
        {
            "503-555-0100": {"names": ["First0 Last0"], "text": "Portland, Oregon", "age": 40},
            "503-555-0101": {"names": ["First1 Last1"], "text": "Portland, Oregon", "age": 70},
        }
    )
    filter_stage = FilterStage(verifier, store, threshold=settings.verification_threshold)
    correlator = PhoneRequestCorrelator(
        provider, store, filter_stage, callback_url="http://localhost/cb", clock=clock
    )
    pipeline = SearchPipeline(selector, correlator, store, max_workers=settings.reveal_workers)
    return pipeline, correlator, store, provider


def test_run_creates_pending_results_and_dispatches_reveals(wiring, query) -> None:
    pipeline, correlator, store, provider = wiring

    outcome = pipeline.run("task-1", query, 5, "cust-a")

    assert outcome.status is TaskStatus.RUNNING
    assert len(outcome.dispatched) == 5
    results = store.results("task-1")
    assert len(results) == 5
    assert all(result.phone_state is PhoneState.PENDING for result in results)
    assert {candidate_id for candidate_id, _ in provider.reveals} == {result.candidate_id for result in results}
    assert len(correlator.pending("task-1")) == 5
    assert store.logs("task-1")[0].phase == "init"


def test_callbacks_finish_the_task_and_apply_age_filter(wiring, query) -> None:
    pipeline, correlator, store, provider = wiring
    provider.pool = make_candidates(0, 2)

    pipeline.run("task-1", query, 2, "cust-a", AgeFilter(25, 60))
    correlator.on_callback(
        {
            "matches": [
                {"id": "c0", "phone_numbers": [{"sanitized_number": "5035550100", "type": "mobile"}]},
                {"id": "c1", "phone_numbers": [{"sanitized_number": "5035550101", "type": "mobile"}]},
            ]
        }
    )

    results = {result.candidate_id: result for result in store.results("task-1")}
    assert set(results) == {"c0"}
    assert results["c0"].phone_state is PhoneState.VERIFIED
    assert results["c0"].verification_score == 100
    assert store.get_status("task-1") is TaskStatus.COMPLETED


def test_dispatch_failure_is_logged_and_other_candidates_continue(wiring, query) -> None:
    pipeline, correlator, store, provider = wiring
    provider.pool = make_candidates(0, 3)
    provider.fail_reveal_for.add("c1")

    outcome = pipeline.run("task-1", query, 3, "cust-a")

    assert outcome.dispatch_failures == ["c1"]
    assert sorted(outcome.dispatched) == ["c0", "c2"]
    assert not correlator.is_pending("c1")
    assert any(entry.level == "error" and entry.candidate_id == "c1" for entry in store.logs("task-1"))


def test_provider_outage_without_cache_fails_the_task(wiring, query) -> None:
    pipeline, _, store, provider = wiring
    provider.fail_search = True

    outcome = pipeline.run("task-1", query, 5, "cust-a")

    assert outcome.status is TaskStatus.FAILED
    assert store.get_status("task-1") is TaskStatus.FAILED
    assert store.logs("task-1")[-1].level == "error"


def test_empty_acquisition_completes_immediately(wiring, query) -> None:
    pipeline, _, store, provider = wiring
    provider.pool = []

    outcome = pipeline.run("task-1", query, 5, "cust-a")

    assert outcome.status is TaskStatus.COMPLETED
    assert store.results("task-1") == []


def test_stopped_task_stays_stopped_when_reveals_arrive(wiring, query) -> None:
    pipeline, correlator, store, provider = wiring
    provider.pool = make_candidates(0, 1)
    pipeline.run("task-1", query, 1, "cust-a")

    pipeline.stop("task-1")
    correlator.on_callback({"id": "c0", "phone_numbers": ["5035550100"]})

    assert store.get_status("task-1") is TaskStatus.STOPPED
    assert store.get_result("task-1", "c0").phone == "5035550100"


def test_over_fetched_provider_page_is_trimmed_to_requested_count(wiring, query) -> None:
    pipeline, correlator, store, provider = wiring

    outcome = pipeline.run("task-1", query, 4, "cust-a")

    assert len(outcome.acquisition.records) == 8
    assert len(outcome.dispatched) == 4
    assert len(store.results("task-1")) == 4
    assert any(entry.phase == "process" for entry in store.logs("task-1"))
