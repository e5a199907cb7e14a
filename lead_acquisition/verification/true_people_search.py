"""TruePeopleSearch.com reverse-phone verifier.

Prerequisites
-------------
* Requires :mod:`playwright` with Chromium installed (``playwright install``).
* The public TruePeopleSearch site can present CAPTCHAs.  Automated runs must
  be monitored so a human can solve the challenge when prompted.
* Respect the web site's terms of service.  The throttling options exposed by
  :class:`TruePeopleSearchVerifier` default to generous pauses between requests
  to reduce load and lower the risk of automated blocking.
"""
from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from ..models import VerificationReport, VerificationRequest
from .base import BrowserVerifier, BrowserVerifierConfig
from .scoring import ListingSnapshot, score_listing


@dataclass
class TruePeopleSearchConfig(BrowserVerifierConfig):
    """Extends :class:`BrowserVerifierConfig` with site specific options."""

    wait_for_captcha: bool = False


class TruePeopleSearchVerifier(BrowserVerifier):
    """Looks a phone number up on TruePeopleSearch and scores the owner listing.

    Parameters
    ----------
    config:
        Optional :class:`TruePeopleSearchConfig` controlling browser behaviour.
        The base options add throttling and headless/headful controls, while
        :attr:`TruePeopleSearchConfig.wait_for_captcha` can be toggled to pause
        execution once a CAPTCHA dialog is detected.
    """

    name = "true_people_search"
    provider = "truepeoplesearch.com"
    NOT_FOUND_TEXT = "We could not find any records for that search criteria."
    NAME_SELECTOR = "div.content-header"

    def __init__(self, config: Optional[TruePeopleSearchConfig | Dict[str, Any]] = None, **options: Any) -> None:
        if isinstance(config, dict):
            resolved_config = TruePeopleSearchConfig(**config)
        else:
            resolved_config = config or TruePeopleSearchConfig(**options)
        super().__init__(config=resolved_config)

    def verify(self, request: VerificationRequest) -> VerificationReport:
        """Translate :meth:`lookup` output into a scored report."""

        listing = self.lookup(request.phone)
        return score_listing(self.name, listing, request)

    def lookup(self, phone: str) -> ListingSnapshot:
        """Open the reverse-phone page for ``phone`` and capture its listing."""

        target_url = self._build_query_url(phone)
        with sync_playwright() as playwright:
            browser = playwright.chromium.launch(headless=self.config.headless)
            try:
                page = browser.new_page()
                page.set_default_navigation_timeout(self.config.navigation_timeout * 1000)
                page.goto(target_url, wait_until="domcontentloaded")
                self._apply_throttle()

                if self._is_not_found(page):
                    return ListingSnapshot()

                if getattr(self.config, "wait_for_captcha", False) and self._is_captcha_present(page):
                    page.wait_for_event("dialog")

                return ListingSnapshot(names=self._extract_names(page), text=self._extract_text(page))
            finally:
                with contextlib.suppress(PlaywrightError):
                    browser.close()

    # ------------------------------------------------------------------
    # Helpers
    def _build_query_url(self, phone: str) -> str:
        params = {"phoneno": self._format_phone(phone)}
        return f"https://www.truepeoplesearch.com/resultphone?{urlencode(params)}"

    def _is_not_found(self, page) -> bool:
        try:
            text = page.text_content("div.content-center div.row.pl-1.record-count div")
            if text and text.strip() == self.NOT_FOUND_TEXT:
                return True
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as exc:
            raise RuntimeError("Unable to determine search result state") from exc
        return False

    def _is_captcha_present(self, page) -> bool:
        with contextlib.suppress(PlaywrightError):
            return bool(page.query_selector("iframe[src*='captcha']"))
        return False

    def _extract_names(self, page) -> List[str]:
        try:
            names = page.eval_on_selector_all(
                self.NAME_SELECTOR,
                "(nodes) => nodes.map((node) => node.textContent.trim()).filter((value) => value.length > 0)",
            )
            return names or []
        except PlaywrightError as exc:
            raise RuntimeError("Failed to extract listed names from response") from exc

    def _extract_text(self, page) -> str:
        try:
            return page.inner_text("body") or ""
        except PlaywrightError as exc:
            raise RuntimeError("Failed to read listing text from response") from exc
