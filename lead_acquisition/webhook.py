"""FastAPI application receiving provider phone-reveal callbacks.

When a pipeline is supplied the same app also accepts search tasks, so the
process that dispatches reveals is the one that receives their callbacks.
"""
from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from .correlator import PhoneRequestCorrelator
from .models import AgeFilter, SearchQuery, SearchRequest, TaskLogEntry, TaskStatus
from .pipeline import SearchPipeline
from .store import InMemoryTaskStore

LOGGER = logging.getLogger(__name__)

CALLBACK_PATH = "/provider/reveal-callback"
TASKS_PATH = "/tasks"


def create_app(
    correlator: PhoneRequestCorrelator,
    *,
    pipeline: Optional[SearchPipeline] = None,
    store: Optional[InMemoryTaskStore] = None,
    sweep_interval: Optional[float] = None,
) -> FastAPI:
    """Build the webhook app around ``correlator``.

    When ``sweep_interval`` is given the expiry sweeper runs for the lifetime
    of the app. Task routes are mounted only when both ``pipeline`` and
    ``store`` are given.
    """

    app = FastAPI(title="lead-acquisition webhook")

    @app.on_event("startup")
    async def _start_sweeper() -> None:
        if sweep_interval:
            correlator.start_sweeper(sweep_interval)

    @app.on_event("shutdown")
    async def _stop_sweeper() -> None:
        correlator.stop_sweeper(timeout=10)

    @app.post(CALLBACK_PATH)
    async def reveal_callback(request: Request):
        """
        Accepts any of the provider's callback shapes:
          • {"matches": [{...}, ...]}
          • {"match": {...}} or {"person": {...}}
          • {"id": "...", "phone_numbers": [...]}
        Malformed or unknown payloads are acknowledged and ignored.
        """
        raw = await request.body()
        try:
            body = json.loads(raw or b"null")
        except ValueError:
            LOGGER.warning("reveal-callback: body is not valid JSON (%s bytes)", len(raw))
            return {"status": "ignored", "reason": "invalid json"}

        # Verification drives blocking browsers; keep it off the event loop.
        try:
            summary = await run_in_threadpool(correlator.on_callback, body)
        except Exception:
            LOGGER.exception("reveal-callback: unexpected failure while processing payload")
            return {"status": "error"}

        if not summary.received:
            return {"status": "ignored", "reason": "no matches"}
        return {
            "status": "ok",
            "resolved": summary.resolved,
            "no_phone": summary.no_phone,
            "unmatched": summary.missed,
            "failed": summary.failed,
        }

    @app.get("/health")
    def health():
        return {"status": "ok", "pending": len(correlator.pending())}

    if pipeline is not None and store is not None:
        _mount_task_routes(app, correlator, pipeline, store)

    return app


def _mount_task_routes(
    app: FastAPI, correlator: PhoneRequestCorrelator, pipeline: SearchPipeline, store: InMemoryTaskStore
) -> None:
    @app.post(TASKS_PATH, status_code=202)
    async def submit_task(request: Request, background_tasks: BackgroundTasks):
        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="body is not valid JSON")
        search_request = _search_request_from_body(body)

        task_id = uuid.uuid4().hex[:12]
        store.set_status(task_id, TaskStatus.RUNNING)
        LOGGER.info("Accepted task %s for %s records", task_id, search_request.requested_count)
        background_tasks.add_task(pipeline.run_request, task_id, search_request)
        return {"task_id": task_id, "status": "accepted"}

    @app.get(TASKS_PATH + "/{task_id}")
    def task_status(task_id: str):
        status = store.get_status(task_id)
        if status is None:
            raise HTTPException(status_code=404, detail="unknown task")
        return {
            "task_id": task_id,
            "status": status.value,
            "pending": len(correlator.pending(task_id)),
            "results": [result.as_row() for result in store.results(task_id)],
            "log": [_log_row(entry) for entry in store.logs(task_id)],
        }

    @app.post(TASKS_PATH + "/{task_id}/stop")
    def stop_task(task_id: str):
        if store.get_status(task_id) is None:
            raise HTTPException(status_code=404, detail="unknown task")
        pipeline.stop(task_id)
        return {"task_id": task_id, "status": store.get_status(task_id).value}


def _search_request_from_body(body: Any) -> SearchRequest:
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="expected a JSON object")

    query = SearchQuery(
        name=str(body.get("name") or "").strip(),
        title=str(body.get("title") or "").strip(),
        region=str(body.get("region") or "").strip(),
    )
    if not (query.name or query.title or query.region):
        raise HTTPException(status_code=400, detail="one of name, title or region is required")

    try:
        count = int(body.get("count"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="count must be an integer")
    if count <= 0:
        raise HTTPException(status_code=400, detail="count must be positive")

    age_filter = None
    age_min, age_max = body.get("age_min"), body.get("age_max")
    if age_min is not None or age_max is not None:
        try:
            age_filter = AgeFilter(
                int(age_min) if age_min is not None else 0,
                int(age_max) if age_max is not None else 150,
            )
        except (TypeError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=f"invalid age bounds: {exc}")

    customer_id = str(body.get("customer_id") or "anonymous")
    return SearchRequest(query, count, customer_id, age_filter)


def _log_row(entry: TaskLogEntry) -> Dict[str, Any]:
    return {
        "timestamp": entry.timestamp.isoformat(),
        "level": entry.level,
        "phase": entry.phase,
        "message": entry.message,
        "candidate_id": entry.candidate_id,
        "details": entry.details,
    }


__all__ = ["CALLBACK_PATH", "TASKS_PATH", "create_app"]
