"""
Configuration schema (``declaration_config.schema``).

Frozen dataclasses for every configuration section.  Defaults here are the
production defaults; a YAML file only needs to name what it changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import tzinfo
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class DetectionSettings:
    cutoff_day: int = 20
    reporting_timezone: str = "UTC"

    @property
    def tz(self) -> tzinfo:
        return ZoneInfo(self.reporting_timezone)


@dataclass(frozen=True)
class RegistrySettings:
    timeout_seconds: float = 30.0
    adapter: str | None = None  # "package.module:factory"


@dataclass(frozen=True)
class SchedulerSettings:
    tick_interval_seconds: int = 60
    late_declarations: str = "0 23 * * *"
    monthly_jobs: str = "0 1 1 * *"
    process_jobs: str = "*/10 * * * *"
    resolve_sessions: str = "*/5 * * * *"

    def crons(self) -> dict[str, str]:
        """Entry-point name -> cron expression."""
        return {
            "late_declarations": self.late_declarations,
            "monthly_jobs": self.monthly_jobs,
            "process_jobs": self.process_jobs,
            "resolve_sessions": self.resolve_sessions,
        }


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///declarations.db"
    echo: bool = False


@dataclass(frozen=True)
class PipelineConfig:
    """The complete runtime configuration."""

    detection: DetectionSettings = field(default_factory=DetectionSettings)
    registry: RegistrySettings = field(default_factory=RegistrySettings)
    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    source: str | None = None  # path of the YAML file, None for defaults
    checksum: str = ""
