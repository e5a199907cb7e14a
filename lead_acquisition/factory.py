"""Factory helpers for constructing verification sources from configuration."""
from __future__ import annotations

import importlib
from typing import Any, Dict, List, Optional

from .config import ConfigurationError, PipelineSettings, iter_enabled_verifier_configs
from .verification import PacedVerifier, SitePacing, SiteScheduler, VerificationChain


def _load_class(path: str):
    module_name, _, attr = path.rpartition(".")
    if not module_name:
        raise ConfigurationError(f"Invalid verifier class path '{path}'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Verifier module '{module_name}' could not be imported: {exc}") from exc
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigurationError(f"Module '{module_name}' does not define '{attr}'") from exc


def build_verifiers(
    config: Dict[str, Any], *, scheduler: Optional[SiteScheduler] = None
) -> List[PacedVerifier]:
    """Instantiate verifier classes defined in the configuration file.

    Entries naming the same ``site`` share one lookup schedule; ``site``
    defaults to the verifier's own name.
    """

    verifiers: List[PacedVerifier] = []
    for verifier_cfg in iter_enabled_verifier_configs(config):
        class_path = verifier_cfg.get("class")
        if not class_path:
            raise ConfigurationError("Verifier configuration missing required 'class' field")

        options = verifier_cfg.get("options", {})
        verifier_cls = _load_class(class_path)
        verifier_instance = verifier_cls(**options)

        display_name = verifier_cfg.get("name")
        calls_per_minute = verifier_cfg.get("rate_limit_per_minute")
        pacing = SitePacing(
            calls_per_minute=float(calls_per_minute) if calls_per_minute else None,
            settle_seconds=float(verifier_cfg.get("delay_seconds", 0) or 0),
        )

        verifiers.append(
            PacedVerifier(
                verifier_instance,
                site=verifier_cfg.get("site"),
                display_name=display_name,
                pacing=pacing,
                scheduler=scheduler,
            )
        )
    return verifiers


def build_verification_chain(config: Dict[str, Any], settings: PipelineSettings) -> VerificationChain:
    return VerificationChain(build_verifiers(config), threshold=settings.verification_threshold)
