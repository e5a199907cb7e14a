"""Exception types shared across the acquisition pipeline."""
from __future__ import annotations

from typing import Optional


class LeadAcquisitionError(RuntimeError):
    """Base class for errors raised by :mod:`lead_acquisition`."""


class ConfigurationError(LeadAcquisitionError):
    """Raised when configuration files are missing or malformed."""


class ProviderError(LeadAcquisitionError):
    """Raised when the contact-data provider cannot be reached or rejects a call."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DuplicatePendingRequestError(LeadAcquisitionError):
    """Raised when a phone reveal is registered twice for the same candidate."""


class VerificationUnavailableError(LeadAcquisitionError):
    """Raised when no verification source produced a report."""
