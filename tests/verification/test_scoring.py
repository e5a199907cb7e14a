"""Tests for people-search listing scoring."""
from __future__ import annotations

import pytest

from lead_acquisition.models import AgeFilter, VerificationRequest
from lead_acquisition.verification.scoring import (
    ListingSnapshot,
    extract_age,
    extract_carrier,
    infer_phone_type,
    score_listing,
)


def _request(**overrides) -> VerificationRequest:
    fields = {
        "first_name": "Jane",
        "last_name": "Doe",
        "city": "Portland",
        "region": "OR",
        "phone": "5035550101",
    }
    fields.update(overrides)
    return VerificationRequest(**fields)


def test_full_match_scores_one_hundred() -> None:
    listing = ListingSnapshot(names=["Jane A Doe"], text="Age 42\nPortland, OR\nWireless\nCarrier: T-Mobile\n")

    report = score_listing("tps", listing, _request(age_filter=AgeFilter(30, 50)))

    assert report.match_score == 100
    assert report.matched_name == "Jane A Doe"
    assert report.age == 42
    assert report.carrier == "T-Mobile"
    assert report.phone_type == "mobile"


def test_no_name_match_scores_zero_even_with_location() -> None:
    listing = ListingSnapshot(names=["John Smith"], text="Age 42 Portland, OR")

    report = score_listing("tps", listing, _request())

    assert report.match_score == 0
    assert report.age is None
    assert report.notes


def test_age_outside_filter_is_reported_but_not_scored() -> None:
    listing = ListingSnapshot(names=["Jane Doe"], text="Portland, OR", age=71)

    report = score_listing("tps", listing, _request(age_filter=AgeFilter(30, 50)))

    assert report.age == 71
    assert report.match_score == 40 + 20 + 10


def test_name_and_region_only() -> None:
    listing = ListingSnapshot(names=["JANE DOE"], text="Lives in Salem, OR")

    assert score_listing("tps", listing, _request()).match_score == 60


@pytest.mark.parametrize(
    ("text", "expected"),
    [("Age 37", 37), ("Age: 104", 104), ('Age </span> <span class="x"> 55 <', 55), ("no age here", None)],
)
def test_extract_age(text: str, expected) -> None:
    assert extract_age(text) == expected


def test_extract_carrier_and_phone_type() -> None:
    assert extract_carrier("Carrier: Verizon Wireless\nMore") == "Verizon Wireless"
    assert extract_carrier("nothing") is None
    assert infer_phone_type("Landline phone") == "landline"
    assert infer_phone_type("VoIP number") == "voip"
    assert infer_phone_type("") is None
