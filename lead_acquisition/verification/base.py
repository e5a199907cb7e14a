"""Common interfaces shared by verification sources."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional, Protocol

from ..models import VerificationReport, VerificationRequest
from ..phones import normalise_phone


class VerificationSource(Protocol):
    """Protocol defining the interface that verification sources must follow."""

    name: str

    def verify(self, request: VerificationRequest) -> VerificationReport:  # pragma: no cover - runtime protocol
        """Return a match report for the phone number in ``request``."""


@dataclass
class BrowserVerifierConfig:
    """Runtime configuration shared by all browser based verifiers."""

    headless: bool = True
    throttle_seconds: float = 5.0
    navigation_timeout: float = 30.0


class BrowserVerifier:
    """Base class exposing throttling helpers for browser verifiers."""

    def __init__(self, config: Optional[BrowserVerifierConfig] = None) -> None:
        self.config = config or BrowserVerifierConfig()

    def _apply_throttle(self) -> None:
        if self.config.throttle_seconds > 0:
            time.sleep(self.config.throttle_seconds)

    @staticmethod
    def _format_phone(phone: str) -> str:
        """Return ``(555) 123-4567`` style formatting for a US number."""

        digits = normalise_phone(phone)
        if len(digits) == 11 and digits.startswith("1"):
            digits = digits[1:]
        if len(digits) != 10:
            raise ValueError(f"Cannot format phone number '{phone}' for a reverse lookup")
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
