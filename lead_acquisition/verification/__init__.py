"""Secondary sources used to confirm revealed phone numbers.

The browser-driven adapters (:mod:`.true_people_search`, :mod:`.fast_people_search`)
are imported on demand by :func:`lead_acquisition.factory.build_verifiers`.
"""

from .base import BrowserVerifier, BrowserVerifierConfig, VerificationSource  # noqa: F401
from .chain import VerificationChain  # noqa: F401
from .pacing import PacedVerifier, SitePacing, SiteScheduler  # noqa: F401
from .sample import StaticVerifier  # noqa: F401
from .scoring import ListingSnapshot, score_listing  # noqa: F401

__all__ = [
    "BrowserVerifier",
    "BrowserVerifierConfig",
    "ListingSnapshot",
    "PacedVerifier",
    "SitePacing",
    "SiteScheduler",
    "StaticVerifier",
    "VerificationChain",
    "VerificationSource",
    "score_listing",
]
