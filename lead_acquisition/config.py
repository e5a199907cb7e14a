"""Configuration helpers for the lead acquisition pipeline."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import yaml

from .errors import ConfigurationError

LOGGER = logging.getLogger(__name__)

__all__ = [
    "ConfigurationError",
    "PipelineSettings",
    "ProviderSettings",
    "StorageSettings",
    "iter_enabled_verifier_configs",
    "load_configuration",
    "pipeline_settings",
    "provider_settings",
    "storage_settings",
]


_SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}


def load_configuration(path: str | Path) -> Dict[str, Any]:
    """Load configuration data from a JSON or YAML file."""

    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Configuration file '{file_path}' was not found")

    if file_path.suffix.lower() not in _SUPPORTED_EXTENSIONS:
        raise ConfigurationError(
            f"Unsupported configuration format '{file_path.suffix}'. Supported extensions: {sorted(_SUPPORTED_EXTENSIONS)}"
        )

    text = file_path.read_text(encoding="utf-8")
    try:
        if file_path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Configuration file '{file_path}' could not be parsed: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file '{file_path}' must contain a mapping at the top level")
    return data


def iter_enabled_verifier_configs(config: Dict[str, Any]) -> Iterable[Dict[str, Any]]:
    verifiers = config.get("verifiers", [])
    for verifier in verifiers:
        if verifier.get("enabled", True):
            yield verifier
        else:
            LOGGER.debug("Skipping disabled verifier %s", verifier.get("name"))


@dataclass(frozen=True)
class PipelineSettings:
    """Tunables recognised by the acquisition pipeline."""

    coverage_threshold: float = 80.0
    assignment_expire_days: int = 30
    cache_freshness_days: int = 180
    phone_request_expiry_minutes: float = 30.0
    sweep_interval_seconds: float = 300.0
    verification_threshold: int = 60
    reveal_workers: int = 5
    random_seed: Optional[int] = None

    def __post_init__(self) -> None:
        if not 0 <= self.coverage_threshold <= 100:
            raise ConfigurationError(
                f"coverage_threshold must be a percentage between 0 and 100, got {self.coverage_threshold}"
            )
        for name in (
            "assignment_expire_days",
            "cache_freshness_days",
            "phone_request_expiry_minutes",
            "sweep_interval_seconds",
            "reveal_workers",
        ):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        if not 0 <= self.verification_threshold <= 100:
            raise ConfigurationError(
                f"verification_threshold must be between 0 and 100, got {self.verification_threshold}"
            )

    @property
    def cache_freshness(self) -> timedelta:
        return timedelta(days=self.cache_freshness_days)

    @property
    def phone_request_expiry(self) -> timedelta:
        return timedelta(minutes=self.phone_request_expiry_minutes)


@dataclass(frozen=True)
class ProviderSettings:
    """Connection details for the contact-data provider."""

    base_url: str = "https://api.apollo.io/v1"
    api_key: Optional[str] = None
    api_key_env: Optional[str] = "PROVIDER_API_KEY"
    timeout_seconds: float = 30.0
    max_retries: int = 2
    callback_url: Optional[str] = None

    def resolve_api_key(self) -> str:
        """Return the configured credential or raise :class:`ConfigurationError`."""

        if self.api_key:
            return self.api_key
        if self.api_key_env:
            value = os.environ.get(self.api_key_env)
            if value:
                return value
        raise ConfigurationError(
            "Provider API key not configured (set provider.api_key or the "
            f"'{self.api_key_env}' environment variable)"
        )


@dataclass(frozen=True)
class StorageSettings:
    """Where caches and the assignment ledger live; in memory when no path is set."""

    sqlite_path: Optional[str] = None


def _section(config: Dict[str, Any], name: str, settings_cls) -> Dict[str, Any]:
    section = config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Configuration section '{name}' must be a mapping")
    known = {item.name for item in fields(settings_cls)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ConfigurationError(f"Unknown option(s) in '{name}' section: {', '.join(unknown)}")
    return section


def pipeline_settings(config: Dict[str, Any]) -> PipelineSettings:
    try:
        return PipelineSettings(**_section(config, "pipeline", PipelineSettings))
    except TypeError as exc:
        raise ConfigurationError(f"Invalid pipeline configuration: {exc}") from exc


def provider_settings(config: Dict[str, Any]) -> ProviderSettings:
    try:
        return ProviderSettings(**_section(config, "provider", ProviderSettings))
    except TypeError as exc:
        raise ConfigurationError(f"Invalid provider configuration: {exc}") from exc


def storage_settings(config: Dict[str, Any]) -> StorageSettings:
    try:
        return StorageSettings(**_section(config, "storage", StorageSettings))
    except TypeError as exc:
        raise ConfigurationError(f"Invalid storage configuration: {exc}") from exc
