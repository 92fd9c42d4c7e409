"""
PipelineOrchestrator -- wires kernel services for one configuration.

Contract:
    Single place where the pipeline's dependencies are composed: clock,
    reporting timezone, cutoff day, registry adapter and timeout.  Service
    factories take the caller's Session; the caller owns the transaction.
    ``create_scheduler()`` builds the periodic driver with one entry per
    kernel entry point.

Architecture: declaration_batch (top-level).  Nothing in declaration_kernel
    imports from declaration_batch.

Invariants enforced:
    - All services receive the same Clock.
    - Without a registry adapter the registry-bound entries
      (session resolution) are left out of the schedule.
"""

from __future__ import annotations

from typing import Callable

from sqlalchemy.orm import Session

from declaration_config.schema import PipelineConfig
from declaration_kernel.domain.clock import Clock, SystemClock
from declaration_kernel.logging_config import get_logger
from declaration_kernel.registry.client import RegistrySessions
from declaration_kernel.services.approval_service import DeclarationApprovalService
from declaration_kernel.services.declaration_detector import DeclarationDetector
from declaration_kernel.services.first_receival_declarator import FirstReceivalDeclarator
from declaration_kernel.services.job_scheduler import JobScheduler
from declaration_kernel.services.session_resolver import SessionResultResolver

from declaration_batch.services.scheduler import DeclarationScheduler, ScheduledEntry

logger = get_logger("batch.orchestrator")


class PipelineOrchestrator:

    def __init__(
        self,
        config: PipelineConfig,
        registry: RegistrySessions | None = None,
        clock: Clock | None = None,
    ):
        self.config = config
        self.registry = registry
        self.clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Service factories
    # -------------------------------------------------------------------------

    def detector(self, session: Session) -> DeclarationDetector:
        return DeclarationDetector(
            session,
            clock=self.clock,
            cutoff_day=self.config.detection.cutoff_day,
            reporting_tz=self.config.detection.tz,
        )

    def job_scheduler(self, session: Session) -> JobScheduler:
        declarator = None
        if self.registry is not None:
            declarator = FirstReceivalDeclarator(
                session,
                self.registry,
                clock=self.clock,
                registry_timeout=self.config.registry.timeout_seconds,
            )
        return JobScheduler(
            session,
            clock=self.clock,
            detector=self.detector(session),
            declarator=declarator,
            reporting_tz=self.config.detection.tz,
        )

    def approval_service(self, session: Session) -> DeclarationApprovalService:
        return DeclarationApprovalService(
            session,
            self._require_registry(),
            clock=self.clock,
            registry_timeout=self.config.registry.timeout_seconds,
        )

    def session_resolver(self, session: Session) -> SessionResultResolver:
        return SessionResultResolver(
            session,
            self._require_registry(),
            clock=self.clock,
            registry_timeout=self.config.registry.timeout_seconds,
        )

    # -------------------------------------------------------------------------
    # Scheduler
    # -------------------------------------------------------------------------

    def scheduled_entries(self) -> list[ScheduledEntry]:
        crons = self.config.scheduler.crons()
        actions: dict[str, Callable[[Session], object]] = {
            "late_declarations": lambda s: self.job_scheduler(s).trigger_late_declarations(),
            "monthly_jobs": lambda s: self.job_scheduler(s).schedule_monthly_jobs(),
            "process_jobs": lambda s: self.job_scheduler(s).process_pending_jobs(),
        }
        if self.registry is not None:
            actions["resolve_sessions"] = (
                lambda s: self.session_resolver(s).process_pending_sessions()
            )
        else:
            logger.warning("scheduler_without_registry", extra={"skipped": ["resolve_sessions"]})
        return [
            ScheduledEntry.from_cron(name, crons[name], action)
            for name, action in actions.items()
        ]

    def create_scheduler(self, session_factory: Callable[[], Session]) -> DeclarationScheduler:
        return DeclarationScheduler(
            session_factory=session_factory,
            entries=self.scheduled_entries(),
            clock=self.clock,
            tick_interval_seconds=self.config.scheduler.tick_interval_seconds,
            schedule_tz=self.config.detection.tz,
        )

    def _require_registry(self) -> RegistrySessions:
        if self.registry is None:
            raise RuntimeError(
                "No registry adapter configured (set registry.adapter to 'module:factory')"
            )
        return self.registry
