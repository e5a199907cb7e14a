"""Lead acquisition pipeline: cached provider search, phone reveal correlation, and verification."""

from . import models  # noqa: F401
from .cache import InMemoryCacheStore
from .correlator import PhoneRequestCorrelator
from .coverage import CoverageSelector
from .errors import (
    ConfigurationError,
    DuplicatePendingRequestError,
    LeadAcquisitionError,
    ProviderError,
    VerificationUnavailableError,
)
from .filter_stage import FilterStage
from .ledger import InMemoryAssignmentLedger
from .models import (
    AcquisitionResult,
    AcquisitionSource,
    AgeFilter,
    CandidateRecord,
    PhoneState,
    SearchQuery,
    SearchRequest,
    SearchResult,
    TaskStatus,
    fingerprint_query,
)
from .pipeline import SearchPipeline
from .store import InMemoryTaskStore

__all__ = [
    "AcquisitionResult",
    "AcquisitionSource",
    "AgeFilter",
    "CandidateRecord",
    "ConfigurationError",
    "CoverageSelector",
    "DuplicatePendingRequestError",
    "FilterStage",
    "InMemoryAssignmentLedger",
    "InMemoryCacheStore",
    "InMemoryTaskStore",
    "LeadAcquisitionError",
    "PhoneRequestCorrelator",
    "PhoneState",
    "ProviderError",
    "SearchPipeline",
    "SearchQuery",
    "SearchRequest",
    "SearchResult",
    "TaskStatus",
    "VerificationUnavailableError",
    "fingerprint_query",
    "ingestion",
    "verification",
]
