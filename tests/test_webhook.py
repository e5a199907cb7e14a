"""Tests for the FastAPI callback endpoint."""
from __future__ import annotations

import asyncio
import random

import pytest
from fastapi.testclient import TestClient

from conftest import FakeProvider, make_candidate, make_candidates
from lead_acquisition.cache import InMemoryCacheStore
from lead_acquisition.config import PipelineSettings
from lead_acquisition.correlator import PhoneRequestCorrelator
from lead_acquisition.coverage import CoverageSelector
from lead_acquisition.filter_stage import FilterStage
from lead_acquisition.ledger import InMemoryAssignmentLedger
from lead_acquisition.models import PhoneState, TaskStatus, VerificationReport
from lead_acquisition.pipeline import SearchPipeline
from lead_acquisition.store import InMemoryTaskStore
from lead_acquisition.verification import StaticVerifier
from lead_acquisition.webhook import CALLBACK_PATH, TASKS_PATH, create_app


@pytest.fixture
def setup(clock):
    store = InMemoryTaskStore()
    correlator = PhoneRequestCorrelator(
        FakeProvider(),
        store,
        FilterStage(StaticVerifier(), store),
        callback_url="http://testserver" + CALLBACK_PATH,
        clock=clock,
    )
    store.set_status("task", TaskStatus.RUNNING)
    correlator.request_phone("task", make_candidate(1))
    return TestClient(create_app(correlator)), correlator, store


def test_callback_resolves_pending_request(setup) -> None:
    client, correlator, store = setup

    response = client.post(CALLBACK_PATH, json={"matches": [{"id": "c1", "phone_numbers": ["5035550101"]}]})

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["resolved"] == 1
    assert store.get_result("task", "c1").phone_state is PhoneState.RECEIVED
    assert not correlator.pending()


def test_unknown_candidate_is_acknowledged(setup) -> None:
    client, _, _ = setup

    response = client.post(CALLBACK_PATH, json={"id": "nobody", "phone_numbers": []})

    assert response.status_code == 200
    assert response.json()["unmatched"] == 1


@pytest.mark.parametrize("body", [b"not json", b"[1, 2, 3]", b'{"status": "done"}'])
def test_malformed_payloads_never_fail(setup, body: bytes) -> None:
    client, correlator, _ = setup

    response = client.post(CALLBACK_PATH, content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == 200
    assert response.json()["status"] == "ignored"
    assert correlator.is_pending("c1")


def test_health_reports_pending_count(setup) -> None:
    client, _, _ = setup

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "pending": 1}


class LoopAwareVerifier:
    """Records whether each verification ran inside a running event loop."""

    name = "loop-aware"

    def __init__(self) -> None:
        self.on_event_loop = []

    def verify(self, request):
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self.on_event_loop.append(False)
        else:
            self.on_event_loop.append(True)
        return VerificationReport(source=self.name, match_score=90)


def test_verification_runs_off_the_event_loop(clock) -> None:
    store = InMemoryTaskStore()
    verifier = LoopAwareVerifier()
    correlator = PhoneRequestCorrelator(
        FakeProvider(), store, FilterStage(verifier, store), callback_url=CALLBACK_PATH, clock=clock
    )
    store.set_status("task", TaskStatus.RUNNING)
    correlator.request_phone("task", make_candidate(1))

    client = TestClient(create_app(correlator))

    response = client.post(CALLBACK_PATH, json={"id": "c1", "phone_numbers": ["5035550101"]})

    assert response.json()["resolved"] == 1
    assert verifier.on_event_loop == [False]
    assert store.get_result("task", "c1").phone_state is PhoneState.VERIFIED


def test_bad_entry_in_batch_does_not_block_the_others(setup) -> None:
    client, correlator, store = setup
    store.set_status("other", TaskStatus.RUNNING)
    correlator.request_phone("other", make_candidate(2))

    response = client.post(
        CALLBACK_PATH,
        json={"matches": [{"id": "c1", "phone_numbers": 7}, {"id": "c2", "phone_numbers": ["5035550102"]}]},
    )

    assert response.json()["status"] == "ok"
    assert response.json()["resolved"] == 1
    assert not correlator.is_pending("c2")
    assert store.get_result("other", "c2").phone == "5035550102"


@pytest.fixture
def service(clock):
    provider = FakeProvider(make_candidates(0, 4))
    store = InMemoryTaskStore()
    settings = PipelineSettings(reveal_workers=1)
    selector = CoverageSelector(
        provider,
        InMemoryCacheStore(clock=clock),
        InMemoryAssignmentLedger(clock=clock),
        settings=settings,
        rng=random.Random(5),
    )
    correlator = PhoneRequestCorrelator(
        provider, store, FilterStage(StaticVerifier(), store), callback_url=CALLBACK_PATH, clock=clock
    )
    pipeline = SearchPipeline(selector, correlator, store, max_workers=1)
    client = TestClient(create_app(correlator, pipeline=pipeline, store=store))
    return client, provider


def test_submitted_task_resolves_through_same_app(service) -> None:
    client, provider = service

    submitted = client.post(TASKS_PATH, json={"title": "Engineer", "region": "Oregon", "count": 2})

    assert submitted.status_code == 202
    task_id = submitted.json()["task_id"]
    revealed = [candidate_id for candidate_id, _ in provider.reveals]
    assert len(revealed) == 2

    callback = client.post(
        CALLBACK_PATH,
        json={"matches": [{"id": candidate_id, "phone_numbers": ["5035550199"]} for candidate_id in revealed]},
    )
    assert callback.json()["resolved"] == 2

    task = client.get(f"{TASKS_PATH}/{task_id}").json()
    assert task["status"] == "completed"
    assert task["pending"] == 0
    assert {row["candidate_id"] for row in task["results"]} == set(revealed)
    assert all(row["phone"] == "5035550199" for row in task["results"])
    assert task["log"][0]["phase"] == "init"


@pytest.mark.parametrize(
    "body",
    [
        {"title": "Engineer"},
        {"title": "Engineer", "count": 0},
        {"count": 3},
        {"title": "Engineer", "count": 3, "age_min": 60, "age_max": 30},
        ["not", "an", "object"],
    ],
)
def test_invalid_task_submission_is_rejected(service, body) -> None:
    client, provider = service

    response = client.post(TASKS_PATH, json=body)

    assert response.status_code == 400
    assert provider.search_limits == []


def test_unknown_task_is_not_found(service) -> None:
    client, _ = service

    assert client.get(f"{TASKS_PATH}/missing").status_code == 404
    assert client.post(f"{TASKS_PATH}/missing/stop").status_code == 404


def test_task_routes_are_absent_without_pipeline(setup) -> None:
    client, _, _ = setup

    assert client.post(TASKS_PATH, json={"title": "Engineer", "count": 1}).status_code in (404, 405)
