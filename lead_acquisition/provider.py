"""HTTP client for the external contact-data provider."""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import ProviderSettings
from .errors import ProviderError
from .models import CandidateRecord, SearchPage, SearchQuery

LOGGER = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
ENRICH_BATCH_SIZE = 10


def _build_session(max_retries: int) -> requests.Session:
    session = requests.Session()
    retry = Retry(
        total=max_retries,
        connect=max_retries,
        read=max_retries,
        backoff_factor=1.0,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET", "POST"}),
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class ProviderClient:
    """Issues search, count, enrichment and reveal calls to the provider.

    The API key is resolved lazily so that a missing credential surfaces as a
    :class:`~lead_acquisition.errors.ConfigurationError` on first use rather
    than at import time.
    """

    def __init__(
        self,
        settings: Optional[ProviderSettings] = None,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.settings = settings or ProviderSettings()
        self._session = session or _build_session(self.settings.max_retries)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------
    def search(self, query: SearchQuery, limit: int) -> SearchPage:
        """Return up to ``limit`` candidates for ``query``."""

        candidates: List[CandidateRecord] = []
        total_count = 0
        page = 1
        while len(candidates) < limit:
            per_page = min(MAX_PAGE_SIZE, limit - len(candidates))
            data = self._post("/mixed_people/search", self._search_body(query, page, per_page))
            people = data.get("people") or []
            total_count = int((data.get("pagination") or {}).get("total_entries") or 0)
            candidates.extend(CandidateRecord.from_provider(person) for person in people if person.get("id"))
            if len(people) < per_page:
                break
            page += 1

        LOGGER.info("Provider search returned %s candidates (total %s)", len(candidates), total_count)
        return SearchPage(candidates=candidates[:limit], total_count=total_count)

    def request_count_only(self, query: SearchQuery) -> int:
        """Return the provider's total-count estimate without fetching records."""

        data = self._post("/mixed_people/search", self._search_body(query, 1, 1))
        return int((data.get("pagination") or {}).get("total_entries") or 0)

    # ------------------------------------------------------------------
    # Enrichment & reveal
    # ------------------------------------------------------------------
    def enrich_batch(self, candidate_ids: Iterable[str]) -> List[CandidateRecord]:
        """Enrich candidates in chunks; failing chunks are skipped."""

        ids = list(candidate_ids)
        enriched: List[CandidateRecord] = []
        for start in range(0, len(ids), ENRICH_BATCH_SIZE):
            batch = ids[start : start + ENRICH_BATCH_SIZE]
            try:
                data = self._post(
                    "/people/bulk_match",
                    {"details": [{"id": candidate_id} for candidate_id in batch], "reveal_personal_emails": True},
                )
            except ProviderError:
                LOGGER.exception("Enrichment batch of %s candidates failed; continuing", len(batch))
                continue
            enriched.extend(
                CandidateRecord.from_provider(match) for match in data.get("matches") or [] if match and match.get("id")
            )
        return enriched

    def dispatch_phone_reveal(self, candidate_id: str, callback_url: str) -> Dict[str, Any]:
        """Ask the provider to reveal a phone number asynchronously via ``callback_url``."""

        return self._post(
            "/people/match",
            {
                "id": candidate_id,
                "reveal_phone_number": True,
                "webhook_url": callback_url,
            },
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _search_body(self, query: SearchQuery, page: int, per_page: int) -> Dict[str, Any]:
        body: Dict[str, Any] = {"page": page, "per_page": per_page}
        if query.name:
            body["q_keywords"] = query.name
        if query.title:
            body["person_titles"] = [query.title]
        if query.region:
            body["person_locations"] = [query.region]
        return body

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        api_key = self.settings.resolve_api_key()
        url = f"{self.settings.base_url.rstrip('/')}{path}"
        started = time.monotonic()
        try:
            response = self._session.post(
                url,
                json=body,
                headers={"Content-Type": "application/json", "X-Api-Key": api_key},
                timeout=self.settings.timeout_seconds,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            LOGGER.error("Provider call %s failed with status %s", path, status)
            raise ProviderError(f"Provider call {path} failed with status {status}", status_code=status) from exc
        except requests.RequestException as exc:
            LOGGER.error("Provider call %s failed: %s", path, exc)
            raise ProviderError(f"Provider call {path} failed: {exc}") from exc
        finally:
            LOGGER.debug("Provider call %s took %.2fs", path, time.monotonic() - started)

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"Provider call {path} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise ProviderError(f"Provider call {path} returned an unexpected payload")
        return data


__all__ = ["ProviderClient", "MAX_PAGE_SIZE", "ENRICH_BATCH_SIZE"]
