"""Shared fakes for the acquisition pipeline tests."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

import pytest

from lead_acquisition.errors import ProviderError
from lead_acquisition.models import CandidateRecord, SearchPage, SearchQuery


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_candidate(index: int, **overrides) -> CandidateRecord:
    fields = {
        "id": f"c{index}",
        "first_name": f"First{index}",
        "last_name": f"Last{index}",
        "title": "Engineer",
        "organization": "Acme",
        "city": "Portland",
        "region": "Oregon",
        "email": f"person{index}@example.com",
    }
    fields.update(overrides)
    return CandidateRecord(**fields)


def make_candidates(start: int, stop: int) -> List[CandidateRecord]:
    return [make_candidate(index) for index in range(start, stop)]


class FakeProvider:
    """In-process stand-in for :class:`lead_acquisition.provider.ProviderClient`."""

    def __init__(self, pool: Iterable[CandidateRecord] = (), *, total: Optional[int] = None) -> None:
        self.pool = list(pool)
        self.total = len(self.pool) if total is None else total
        self.search_limits: List[int] = []
        self.count_calls = 0
        self.reveals: List[tuple] = []
        self.fail_search = False
        self.fail_count = False
        self.fail_reveal_for: set = set()

    def search(self, query: SearchQuery, limit: int) -> SearchPage:
        self.search_limits.append(limit)
        if self.fail_search:
            raise ProviderError("provider search unavailable", status_code=503)
        return SearchPage(candidates=list(self.pool[:limit]), total_count=self.total)

    def request_count_only(self, query: SearchQuery) -> int:
        self.count_calls += 1
        if self.fail_count:
            raise ProviderError("count probe unavailable", status_code=503)
        return self.total

    def dispatch_phone_reveal(self, candidate_id: str, callback_url: str) -> dict:
        if candidate_id in self.fail_reveal_for:
            raise ProviderError(f"reveal for {candidate_id} rejected", status_code=500)
        self.reveals.append((candidate_id, callback_url))
        return {"status": "queued"}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def query() -> SearchQuery:
    return SearchQuery(name="", title="Engineer", region="Oregon")
