"""
Configuration Loader (``declaration_config.loader``).

Responsibility
--------------
Loads a YAML file and parses it into a ``PipelineConfig``.  Runtime code
goes through ``declaration_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section keys or out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from declaration_config.schema import (
    DatabaseSettings,
    DetectionSettings,
    PipelineConfig,
    RegistrySettings,
    SchedulerSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields ``{}``."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _section(data: dict[str, Any], name: str, cls: type) -> Any:
    raw = data.get(name) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Section '{name}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown keys in '{name}': {', '.join(unknown)}")
    return cls(**raw)


def parse_detection(data: dict[str, Any]) -> DetectionSettings:
    settings = _section(data, "detection", DetectionSettings)
    if not isinstance(settings.cutoff_day, int) or not 1 <= settings.cutoff_day <= 28:
        raise ValueError(f"detection.cutoff_day must be 1-28, got {settings.cutoff_day!r}")
    try:
        ZoneInfo(settings.reporting_timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(
            f"detection.reporting_timezone unknown: {settings.reporting_timezone!r}"
        ) from exc
    return settings


def parse_registry(data: dict[str, Any]) -> RegistrySettings:
    settings = _section(data, "registry", RegistrySettings)
    if not isinstance(settings.timeout_seconds, (int, float)) or settings.timeout_seconds <= 0:
        raise ValueError(
            f"registry.timeout_seconds must be positive, got {settings.timeout_seconds!r}"
        )
    if settings.adapter is not None and ":" not in settings.adapter:
        raise ValueError(f"registry.adapter must be 'module:factory', got {settings.adapter!r}")
    return settings


def parse_scheduler(data: dict[str, Any]) -> SchedulerSettings:
    settings = _section(data, "scheduler", SchedulerSettings)
    if (
        not isinstance(settings.tick_interval_seconds, int)
        or settings.tick_interval_seconds <= 0
    ):
        raise ValueError(
            "scheduler.tick_interval_seconds must be a positive integer, "
            f"got {settings.tick_interval_seconds!r}"
        )
    for name, expression in settings.crons().items():
        if not isinstance(expression, str) or len(expression.split()) != 5:
            raise ValueError(f"scheduler.{name} must be a 5-field cron expression")
    return settings


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    settings = _section(data, "database", DatabaseSettings)
    if not settings.url:
        raise ValueError("database.url must not be empty")
    return settings


def parse_config(data: dict[str, Any], source: str | None = None) -> PipelineConfig:
    unknown = sorted(set(data) - {"detection", "registry", "scheduler", "database"})
    if unknown:
        raise ValueError(f"Unknown configuration sections: {', '.join(unknown)}")
    return PipelineConfig(
        detection=parse_detection(data),
        registry=parse_registry(data),
        scheduler=parse_scheduler(data),
        database=parse_database(data),
        source=source,
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> PipelineConfig:
    return parse_config(load_yaml_file(path), source=str(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
