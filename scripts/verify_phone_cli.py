"""CLI helper to exercise the reverse-phone verifiers by hand."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Sequence

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from lead_acquisition.models import AgeFilter, VerificationReport, VerificationRequest  # noqa: E402

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify a phone number against a people-search site for debugging.")
    parser.add_argument("phone", help="Phone number to look up")
    parser.add_argument("first_name", nargs="?", default="Jane", help="Expected first name")
    parser.add_argument("last_name", nargs="?", default="Doe", help="Expected last name")
    parser.add_argument("--city", default="", help="Expected city")
    parser.add_argument("--region", default="", help="Expected state or region")
    parser.add_argument("--age-min", type=int, help="Lowest acceptable age")
    parser.add_argument("--age-max", type=int, help="Highest acceptable age")
    parser.add_argument(
        "--source",
        choices=["true_people_search", "fast_people_search"],
        default="true_people_search",
        help="Which site to query",
    )
    parser.add_argument("--driver-path", help="Path to chromedriver executable (fast_people_search only)")
    parser.add_argument("--headless", dest="headless", action="store_true", help="Run the browser headless")
    parser.add_argument(
        "--no-headless",
        dest="headless",
        action="store_false",
        help="Run the browser with a visible window",
    )
    parser.set_defaults(headless=True)
    parser.add_argument(
        "--output-json",
        type=Path,
        help="Optional path to save the report as JSON",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        help="Console log level",
    )
    return parser.parse_args(argv)


def run_verifier(args: argparse.Namespace) -> None:
    logging.basicConfig(level=getattr(logging, args.log_level))

    age_filter = None
    if args.age_min is not None or args.age_max is not None:
        age_filter = AgeFilter(args.age_min or 0, args.age_max if args.age_max is not None else 150)
    request = VerificationRequest(
        first_name=args.first_name,
        last_name=args.last_name,
        city=args.city,
        region=args.region,
        phone=args.phone,
        age_filter=age_filter,
    )

    if args.source == "fast_people_search":
        from lead_acquisition.verification.fast_people_search import (
            FastPeopleSearchConfig,
            FastPeopleSearchVerifier,
        )

        config = FastPeopleSearchConfig(driver_path=args.driver_path, headless=args.headless)
        with FastPeopleSearchVerifier(config=config) as verifier:
            report = verifier.verify(request)
    else:
        from lead_acquisition.verification.true_people_search import TruePeopleSearchVerifier

        report = TruePeopleSearchVerifier(headless=args.headless).verify(request)

    pretty_print_report(request, report)

    if args.output_json:
        payload = {"request": asdict(request), "report": asdict(report)}
        args.output_json.write_text(json.dumps(payload, indent=2))
        LOGGER.info("Wrote report JSON to %s", args.output_json)


def pretty_print_report(request: VerificationRequest, report: VerificationReport) -> None:
    print(f"Phone: {request.phone}")
    print(f"Expected: {request.full_name} {request.city} {request.region}".rstrip())
    print(f"Source: {report.source}")
    print(f"Score: {report.match_score}")
    if report.matched_name:
        print(f"Matched name: {report.matched_name}")
    if report.age is not None:
        print(f"Age: {report.age}")
    if report.carrier:
        print(f"Carrier: {report.carrier}")
    if report.phone_type:
        print(f"Phone type: {report.phone_type}")
    for note in report.notes:
        print(f"  - {note}")


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv or sys.argv[1:])
    try:
        run_verifier(args)
    except Exception as exc:  # pragma: no cover - CLI convenience
        LOGGER.exception("Verification failed: %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
