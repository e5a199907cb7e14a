"""Command line interface for running searches and the callback webhook."""
from __future__ import annotations

import argparse
import logging
import sys
import threading
import time
import uuid
from pathlib import Path
from typing import Optional

import uvicorn

from .config import load_configuration
from .errors import LeadAcquisitionError
from .ingestion import export_search_results, load_search_requests
from .models import AgeFilter, SearchQuery, SearchRequest, TaskStatus
from .runtime import Runtime, build_runtime

LOGGER = logging.getLogger(__name__)


def build_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Acquire contact leads from the provider with phone reveal and verification",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. DEBUG, INFO, WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Run a single search task")
    _add_config_argument(search)
    search.add_argument("--name", default="", help="Person name or keyword")
    search.add_argument("--title", default="", help="Job title")
    search.add_argument("--region", default="", help="State or region")
    search.add_argument("--count", type=int, required=True, help="Number of candidates requested")
    search.add_argument("--age-min", type=int, default=None, help="Lowest acceptable age")
    search.add_argument("--age-max", type=int, default=None, help="Highest acceptable age")
    search.add_argument("--customer", default="anonymous", help="Customer the candidates are assigned to")
    search.add_argument("--output", default=None, help="Write the delivered results to this CSV/XLSX file")
    _add_listen_arguments(search)

    batch = subparsers.add_parser("batch", help="Run every search request listed in a spreadsheet")
    _add_config_argument(batch)
    batch.add_argument("input", help="Path to the request spreadsheet (CSV or XLSX)")
    batch.add_argument("--output", default=None, help="Write the delivered results to this CSV/XLSX file")
    _add_listen_arguments(batch)

    serve = subparsers.add_parser("serve", help="Serve the search task API and the provider callback webhook")
    _add_config_argument(serve)
    serve.add_argument("--host", default="0.0.0.0", help="Interface to bind")
    serve.add_argument("--port", type=int, default=8000, help="Port to bind")
    return parser


def _add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        required=True,
        help="Path to the pipeline configuration file (YAML or JSON)",
    )


def _add_listen_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--wait",
        type=float,
        default=0.0,
        help="Seconds to keep the callback webhook up waiting for phone reveals (0 disables it)",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Interface the callback webhook binds while waiting")
    parser.add_argument("--port", type=int, default=8000, help="Port the callback webhook binds while waiting")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    try:
        runtime = build_runtime(load_configuration(args.config))
    except LeadAcquisitionError as exc:
        LOGGER.error("%s", exc)
        return 1

    try:
        if args.command == "serve":
            return _serve(runtime, args.host, args.port)
        if args.command == "search":
            age_filter = _age_filter(args.age_min, args.age_max)
            requests = [
                SearchRequest(
                    query=SearchQuery(name=args.name, title=args.title, region=args.region),
                    requested_count=args.count,
                    customer_id=args.customer,
                    age_filter=age_filter,
                )
            ]
        else:
            requests = load_search_requests(args.input)
            if not requests:
                LOGGER.warning("No search requests found in %s - nothing to do", args.input)
                return 0
        return _run_requests(runtime, requests, args)
    except (LeadAcquisitionError, ValueError) as exc:
        LOGGER.error("%s", exc)
        return 1
    finally:
        runtime.close()


def _age_filter(age_min: Optional[int], age_max: Optional[int]) -> Optional[AgeFilter]:
    if age_min is None and age_max is None:
        return None
    return AgeFilter(min_age=age_min if age_min is not None else 0, max_age=age_max if age_max is not None else 150)


def _serve(runtime: Runtime, host: str, port: int) -> int:
    LOGGER.info("Serving provider callbacks on %s:%s", host, port)
    uvicorn.run(runtime.create_app(), host=host, port=port)
    return 0


def _run_requests(runtime: Runtime, requests: list[SearchRequest], args: argparse.Namespace) -> int:
    server = _start_callback_server(runtime, args.host, args.port) if args.wait > 0 else None
    task_ids = []
    try:
        for request in requests:
            task_id = uuid.uuid4().hex[:12]
            task_ids.append(task_id)
            outcome = runtime.pipeline.run_request(task_id, request)
            LOGGER.info(
                "Task %s: %s, %s reveals dispatched, %s failed",
                task_id,
                outcome.status.value,
                len(outcome.dispatched),
                len(outcome.dispatch_failures),
            )
        if server is not None:
            _wait_for_tasks(runtime, task_ids, args.wait)
    finally:
        if server is not None:
            server.should_exit = True

    failed = [task_id for task_id in task_ids if runtime.store.get_status(task_id) is TaskStatus.FAILED]
    results = [result for task_id in task_ids for result in runtime.store.results(task_id)]
    if args.output:
        path = export_search_results(results, args.output)
        LOGGER.info("Results for %s tasks written to %s", len(task_ids), Path(path).resolve())
    else:
        for result in results:
            print(
                f"{result.task_id}\t{result.name}\t{result.phone or '-'}\t"
                f"{result.phone_state.value}\t{result.verification_score if result.verification_score is not None else '-'}"
            )
    return 1 if failed and len(failed) == len(task_ids) else 0


def _start_callback_server(runtime: Runtime, host: str, port: int) -> uvicorn.Server:
    server = uvicorn.Server(uvicorn.Config(runtime.create_app(), host=host, port=port, log_level="warning"))
    thread = threading.Thread(target=server.run, name="callback-webhook", daemon=True)
    thread.start()
    LOGGER.info("Listening for provider callbacks on %s:%s", host, port)
    return server


def _wait_for_tasks(runtime: Runtime, task_ids: list[str], timeout: float) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if all(runtime.store.get_status(task_id) is not TaskStatus.RUNNING for task_id in task_ids):
            return
        time.sleep(1.0)
    outstanding = len(runtime.correlator.pending())
    if outstanding:
        LOGGER.warning("Stopped waiting with %s phone reveals still outstanding", outstanding)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
