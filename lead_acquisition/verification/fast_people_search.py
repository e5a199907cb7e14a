"""Reverse-phone verifier for fastpeoplesearch.com."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from selenium import webdriver
from selenium.common.exceptions import TimeoutException
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from ..models import VerificationReport, VerificationRequest
from ..phones import normalise_phone
from .scoring import ListingSnapshot, score_listing

LOGGER = logging.getLogger(__name__)


@dataclass
class FastPeopleSearchConfig:
    """Configuration parameters for :class:`FastPeopleSearchVerifier`."""

    driver_path: Optional[str] = None
    headless: bool = True
    user_data_dir: Optional[str] = None
    profile_directory: Optional[str] = None
    binary_location: Optional[str] = None
    implicit_wait_seconds: float = 5.0
    wait_timeout_seconds: float = 15.0
    rate_limit_seconds: float = 0.0


class FastPeopleSearchVerifier:
    """Look a phone number up on fastpeoplesearch.com and score the owner listing."""

    name = "fast_people_search"
    BASE_URL = "https://www.fastpeoplesearch.com"
    CARD_SELECTOR = "div.card"
    NAME_SELECTOR = "h2.card-title, h3.card-title"

    def __init__(
        self,
        config: Optional[FastPeopleSearchConfig] = None,
        *,
        driver_factory: Optional[Callable[[], WebDriver]] = None,
        rate_limiter: Optional[Callable[[], None]] = None,
        **options,
    ) -> None:
        self.config = config or FastPeopleSearchConfig(**options)
        self._driver: Optional[WebDriver] = None
        self._driver_factory = driver_factory
        self._rate_limiter = rate_limiter or self._default_rate_limiter

    def __enter__(self) -> "FastPeopleSearchVerifier":
        self._ensure_driver()
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()

    def _ensure_driver(self) -> WebDriver:
        if self._driver is None:
            if self._driver_factory is not None:
                self._driver = self._driver_factory()
            else:
                options = self._build_options()
                service = Service(executable_path=self.config.driver_path) if self.config.driver_path else Service()
                self._driver = webdriver.Chrome(service=service, options=options)
            implicit_wait = max(self.config.implicit_wait_seconds, 0.0)
            if implicit_wait:
                self._driver.implicitly_wait(implicit_wait)
        return self._driver

    def _build_options(self) -> ChromeOptions:
        options = ChromeOptions()
        if self.config.headless:
            options.add_argument("--headless=new")
            options.add_argument("--disable-gpu")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-dev-shm-usage")
        if self.config.user_data_dir:
            options.add_argument(f"--user-data-dir={self.config.user_data_dir}")
        if self.config.profile_directory:
            options.add_argument(f"--profile-directory={self.config.profile_directory}")
        if self.config.binary_location:
            options.binary_location = self.config.binary_location
        options.add_argument("--window-size=1920,1080")
        return options

    def close(self) -> None:
        if self._driver is not None:
            LOGGER.debug("Closing Selenium driver")
            self._driver.quit()
            self._driver = None

    def verify(self, request: VerificationRequest) -> VerificationReport:
        listing = self.lookup(request.phone)
        return score_listing(self.name, listing, request)

    def lookup(self, phone: str) -> ListingSnapshot:
        driver = self._ensure_driver()
        if self._rate_limiter is not None:
            self._rate_limiter()

        search_url = self._build_search_url(phone)
        LOGGER.info("Navigating to %s", search_url)
        driver.get(search_url)

        wait_timeout = max(self.config.wait_timeout_seconds, 1.0)
        try:
            WebDriverWait(driver, wait_timeout).until(
                EC.presence_of_element_located((By.CSS_SELECTOR, self.CARD_SELECTOR))
            )
        except TimeoutException:
            LOGGER.warning("Timed out waiting for listings on %s", driver.current_url)
            return ListingSnapshot()

        names: List[str] = []
        for element in driver.find_elements(By.CSS_SELECTOR, self.NAME_SELECTOR):
            text = element.text.strip()
            if text:
                names.append(text)
        body = driver.find_element(By.TAG_NAME, "body").text or ""
        LOGGER.debug("Discovered %s listed names for %s", len(names), phone)
        return ListingSnapshot(names=names, text=body)

    def _build_search_url(self, phone: str) -> str:
        digits = normalise_phone(phone)
        if len(digits) == 11 and digits.startswith("1"):
            digits = digits[1:]
        if len(digits) != 10:
            raise ValueError(f"Cannot build a reverse lookup URL for '{phone}'")
        return f"{self.BASE_URL}/{digits[:3]}-{digits[3:6]}-{digits[6:]}"

    def _default_rate_limiter(self) -> None:
        if self.config.rate_limit_seconds > 0:
            LOGGER.debug("Sleeping for %s seconds to respect rate limits", self.config.rate_limit_seconds)
            time.sleep(self.config.rate_limit_seconds)
