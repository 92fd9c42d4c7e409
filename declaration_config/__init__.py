"""
declaration_config -- single public entrypoint for pipeline configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains
    configuration.  It resolves which YAML file to read, applies environment
    overrides and returns a frozen ``PipelineConfig``.

Resolution order:
    1. ``config_path`` argument.
    2. ``DECLARATION_CONFIG`` environment variable.
    3. ``declaration_config/sets/default.yaml``.
    ``DATABASE_URL`` always overrides ``database.url``.

Failure modes:
    - ``FileNotFoundError`` -- the named file does not exist.
    - ``ValueError`` -- malformed values (see ``loader``).
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Mapping

from declaration_config.loader import load_config, parse_config
from declaration_config.schema import (
    DatabaseSettings,
    DetectionSettings,
    PipelineConfig,
    RegistrySettings,
    SchedulerSettings,
)

_logger = logging.getLogger("declaration_kernel.config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_ENV_VAR = "DECLARATION_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"


def get_active_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> PipelineConfig:
    env = os.environ if environ is None else environ
    path = config_path or env.get(CONFIG_ENV_VAR)
    if path:
        config = load_config(Path(path))
    elif _DEFAULT_CONFIG_FILE.exists():
        config = load_config(_DEFAULT_CONFIG_FILE)
    else:
        config = parse_config({})

    database_url = env.get(DATABASE_URL_ENV_VAR)
    if database_url:
        config = replace(config, database=replace(config.database, url=database_url))

    _logger.info(
        "declaration_config_loaded",
        extra={
            "source": config.source,
            "checksum": config.checksum,
            "cutoff_day": config.detection.cutoff_day,
            "reporting_timezone": config.detection.reporting_timezone,
            "database_url_from_env": bool(database_url),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "PipelineConfig",
    "DetectionSettings",
    "RegistrySettings",
    "SchedulerSettings",
    "DatabaseSettings",
]
