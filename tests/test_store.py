"""Tests for the in-memory task log and result store."""
from __future__ import annotations

from conftest import make_candidate
from lead_acquisition.models import PhoneState, SearchResult, TaskStatus
from lead_acquisition.store import InMemoryTaskStore, log_event


def test_complete_if_running_only_moves_running_tasks() -> None:
    store = InMemoryTaskStore()
    store.set_status("a", TaskStatus.RUNNING)
    store.set_status("b", TaskStatus.STOPPED)

    assert store.complete_if_running("a") is True
    assert store.complete_if_running("b") is False
    assert store.complete_if_running("unknown") is False
    assert store.get_status("a") is TaskStatus.COMPLETED
    assert store.get_status("b") is TaskStatus.STOPPED


def test_upsert_merges_fields_and_returns_copies() -> None:
    store = InMemoryTaskStore()
    candidate = make_candidate(1)
    tentative = SearchResult.tentative("t", candidate)
    store.upsert_result("t", "c1", {"name": tentative.name})

    updated = store.upsert_result("t", "c1", {"phone": "5035550101", "phone_state": PhoneState.RECEIVED})
    updated.phone = "tampered"

    stored = store.get_result("t", "c1")
    assert stored.name == "First1 Last1"
    assert stored.phone == "5035550101"
    assert stored.phone_state is PhoneState.RECEIVED
    assert store.delete_result("t", "c1") is True
    assert store.delete_result("t", "c1") is False


def test_log_event_drops_empty_details() -> None:
    store = InMemoryTaskStore()

    entry = log_event(store, "t", "hello", level="warning", phase="reveal", candidate_id="c1", age=None, score=5)

    assert store.logs("t") == [entry]
    assert entry.details == {"score": 5}
    assert entry.candidate_id == "c1"
