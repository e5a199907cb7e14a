"""Wires the pipeline components together from a configuration mapping."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import FastAPI

from .cache import CacheStore, InMemoryCacheStore
from .config import (
    PipelineSettings,
    ProviderSettings,
    pipeline_settings,
    provider_settings,
    storage_settings,
)
from .correlator import PhoneRequestCorrelator
from .coverage import CoverageSelector
from .factory import build_verification_chain
from .filter_stage import FilterStage
from .ledger import AssignmentLedger, InMemoryAssignmentLedger
from .models import Clock, utcnow
from .pipeline import SearchPipeline
from .provider import ProviderClient
from .sqlite_store import SqliteAssignmentLedger, SqliteCacheStore
from .store import InMemoryTaskStore
from .webhook import CALLBACK_PATH, create_app

LOGGER = logging.getLogger(__name__)

DEFAULT_CALLBACK_URL = f"http://localhost:8000{CALLBACK_PATH}"


@dataclass
class Runtime:
    """Every long-lived collaborator of one running service."""

    settings: PipelineSettings
    provider_settings: ProviderSettings
    provider: Any
    cache: CacheStore
    ledger: AssignmentLedger
    store: InMemoryTaskStore
    selector: CoverageSelector
    filter_stage: FilterStage
    correlator: PhoneRequestCorrelator
    pipeline: SearchPipeline

    def create_app(self) -> FastAPI:
        return create_app(
            self.correlator,
            pipeline=self.pipeline,
            store=self.store,
            sweep_interval=self.settings.sweep_interval_seconds,
        )

    def close(self) -> None:
        self.correlator.stop_sweeper(timeout=5)
        for resource in (self.cache, self.ledger):
            close = getattr(resource, "close", None)
            if callable(close):
                close()


def build_runtime(
    config: Dict[str, Any],
    *,
    provider: Optional[Any] = None,
    clock: Clock = utcnow,
) -> Runtime:
    """Build a :class:`Runtime` from ``config``.

    ``provider`` replaces the HTTP :class:`ProviderClient`; it must offer
    ``search``, ``request_count_only`` and ``dispatch_phone_reveal``.
    """

    settings = pipeline_settings(config)
    provider_cfg = provider_settings(config)
    storage = storage_settings(config)

    if provider is None:
        provider = ProviderClient(provider_cfg)

    if storage.sqlite_path:
        LOGGER.info("Using SQLite storage at %s", storage.sqlite_path)
        cache: CacheStore = SqliteCacheStore(storage.sqlite_path, freshness=settings.cache_freshness, clock=clock)
        ledger: AssignmentLedger = SqliteAssignmentLedger(storage.sqlite_path, clock=clock)
    else:
        LOGGER.info("Using in-memory cache and ledger")
        cache = InMemoryCacheStore(freshness=settings.cache_freshness, clock=clock)
        ledger = InMemoryAssignmentLedger(clock=clock)

    store = InMemoryTaskStore()
    selector = CoverageSelector(
        provider,
        cache,
        ledger,
        settings=settings,
        rng=random.Random(settings.random_seed),
    )
    chain = build_verification_chain(config, settings)
    if not chain.sources:
        LOGGER.warning("No verification sources are enabled; revealed phones will stay unverified")
    filter_stage = FilterStage(chain, store, threshold=settings.verification_threshold)
    correlator = PhoneRequestCorrelator(
        provider,
        store,
        filter_stage,
        callback_url=provider_cfg.callback_url or DEFAULT_CALLBACK_URL,
        expiry=settings.phone_request_expiry,
        clock=clock,
    )
    pipeline = SearchPipeline(selector, correlator, store, max_workers=settings.reveal_workers)
    return Runtime(
        settings=settings,
        provider_settings=provider_cfg,
        provider=provider,
        cache=cache,
        ledger=ledger,
        store=store,
        selector=selector,
        filter_stage=filter_stage,
        correlator=correlator,
        pipeline=pipeline,
    )


__all__ = ["DEFAULT_CALLBACK_URL", "Runtime", "build_runtime"]
