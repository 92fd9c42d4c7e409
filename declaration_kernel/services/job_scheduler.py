"""
JobScheduler -- creates and drains periodic declaration jobs.

Responsibility:
    ``trigger_late_declarations`` and ``schedule_monthly_jobs`` enqueue
    MonthlyWasteDeclarationJob rows; ``process_pending_jobs`` drains every
    PENDING job and marks it COMPLETED.

Architecture position:
    Kernel > Services.  Invoked by the periodic driver
    (declaration_batch.scheduler) or the CLI, one transaction per call.

Invariants enforced:
    - Only PENDING jobs are loaded; COMPLETED jobs are never reprocessed and
      their fulfilled timestamp never changes.
    - FIRST_RECEIVALS: the declarator is invoked only with a non-empty
      candidate list.  The job completes either way.
    - No LATE_WEIGHT_TICKETS job is created when there is nothing late, or
      while one is still PENDING.
    - Each job runs in its own SAVEPOINT.  A job that raises is rolled back,
      stays PENDING and is retried on the next run.
"""

from __future__ import annotations

from datetime import timezone, tzinfo
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from declaration_kernel.domain.clock import Clock
from declaration_kernel.domain.period import Period
from declaration_kernel.domain.ports import FirstReceivalQuery
from declaration_kernel.domain.types import (
    JobRunSummary,
    JobStatus,
    JobType,
    MonthlyWasteDeclarationJob,
)
from declaration_kernel.logging_config import LogContext, get_logger
from declaration_kernel.selectors.declaration_selector import DeclarationSelector
from declaration_kernel.selectors.weight_ticket_selector import WeightTicketSelector
from declaration_kernel.services.base import BaseService
from declaration_kernel.services.declaration_detector import DeclarationDetector
from declaration_kernel.services.declaration_store import DeclarationStore
from declaration_kernel.services.first_receival_declarator import FirstReceivalDeclarator

logger = get_logger("services.job_scheduler")


class JobScheduler(BaseService):
    """
    Job queue driver.

    ``declarator`` may be omitted when no registry is configured; a
    FIRST_RECEIVALS job that finds candidates then fails and stays PENDING.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        detector: DeclarationDetector | None = None,
        declarator: FirstReceivalDeclarator | None = None,
        candidates: FirstReceivalQuery | None = None,
        reporting_tz: tzinfo = timezone.utc,
    ):
        super().__init__(session, clock)
        self._tz = reporting_tz
        self._detector = detector or DeclarationDetector(
            session, clock=self._clock, reporting_tz=reporting_tz,
        )
        self._declarator = declarator
        self._candidates = candidates or WeightTicketSelector(session)
        self._selector = DeclarationSelector(session)
        self._store = DeclarationStore(session)

    # ------------------------------------------------------------------
    # Job creation
    # ------------------------------------------------------------------

    def trigger_late_declarations(self) -> MonthlyWasteDeclarationJob | None:
        """Queue a LATE_WEIGHT_TICKETS job when undeclared late lines exist."""
        keys = self._detector.undeclared_late_keys()
        if not keys:
            logger.info("late_trigger_nothing_to_do")
            return None
        if self._selector.find_jobs(JobType.LATE_WEIGHT_TICKETS, status=JobStatus.PENDING):
            logger.info("late_trigger_job_already_pending", extra={"keys": len(keys)})
            return None
        job = self._create(JobType.LATE_WEIGHT_TICKETS, self._current_period())
        logger.info("late_trigger_job_created", extra={"keys": len(keys)})
        return job

    def schedule_monthly_jobs(self) -> list[MonthlyWasteDeclarationJob]:
        """Queue FIRST_RECEIVALS and MONTHLY_RECEIVALS for the previous month."""
        period = self._current_period().previous()
        created = []
        for job_type in (JobType.FIRST_RECEIVALS, JobType.MONTHLY_RECEIVALS):
            if self._selector.find_jobs(job_type, period):
                logger.info(
                    "monthly_job_exists",
                    extra={"job_type": job_type.value, "period": period.format()},
                )
                continue
            created.append(self._create(job_type, period))
        return created

    # ------------------------------------------------------------------
    # Draining
    # ------------------------------------------------------------------

    def process_pending_jobs(self) -> JobRunSummary:
        pending = self._selector.pending_jobs()
        completed: list[UUID] = []
        errored: list[UUID] = []
        details: dict[str, str] = {}

        for job in pending:
            with LogContext.bind(job_id=job.job_id):
                savepoint = self.session.begin_nested()
                try:
                    outcome = self._process(job)
                    savepoint.commit()
                except Exception as exc:
                    savepoint.rollback()
                    errored.append(job.job_id)
                    details[str(job.job_id)] = str(exc)
                    logger.exception(
                        "job_processing_failed",
                        extra={"job_type": job.job_type.value},
                    )
                    continue
                if outcome is not None:
                    completed.append(job.job_id)
                    details[str(job.job_id)] = outcome

        summary = JobRunSummary(
            processed=len(pending),
            completed=tuple(completed),
            errored=tuple(errored),
            details=details,
        )
        logger.info(
            "pending_jobs_processed",
            extra={
                "processed": summary.processed,
                "completed": len(summary.completed),
                "errored": len(summary.errored),
            },
        )
        return summary

    def _process(self, job: MonthlyWasteDeclarationJob) -> str | None:
        locked = self._store.lock_job(job.job_id)
        if locked is None or locked.status != JobStatus.PENDING:
            logger.info("job_no_longer_pending")
            return None

        if locked.job_type == JobType.FIRST_RECEIVALS:
            outcome = self._first_receivals(locked)
        elif locked.job_type == JobType.MONTHLY_RECEIVALS:
            # Monthly receivals are declared per declaration through the
            # approval flow; this job only marks the month as handled.
            logger.warning(
                "monthly_receivals_job_noop",
                extra={"period": locked.period.format()},
            )
            outcome = "no-op"
        else:
            summary = self._detector.detect_and_create_for_late_weight_tickets()
            outcome = f"created {len(summary.created)} declaration(s)"

        self._store.save_job(locked.mark_completed(self._clock.now()))
        logger.info(
            "job_completed",
            extra={
                "job_type": locked.job_type.value,
                "period": locked.period.format(),
                "outcome": outcome,
            },
        )
        return outcome

    def _first_receivals(self, job: MonthlyWasteDeclarationJob) -> str:
        candidates = self._candidates.first_receival_candidates(job.period, self._tz)
        if not candidates:
            logger.info(
                "first_receivals_none_found",
                extra={"period": job.period.format()},
            )
            return "no candidates"
        if self._declarator is None:
            raise RuntimeError("No registry configured for first-receival declarations")
        session_id = self._declarator.declare(candidates)
        return f"declared {len(candidates)} in session {session_id}"

    def _create(self, job_type: JobType, period: Period) -> MonthlyWasteDeclarationJob:
        job = MonthlyWasteDeclarationJob(
            job_id=uuid4(),
            job_type=job_type,
            period=period,
            status=JobStatus.PENDING,
            created_at=self._clock.now(),
        )
        self._store.insert_job(job)
        logger.info(
            "declaration_job_created",
            extra={
                "job_id": job.job_id,
                "job_type": job_type.value,
                "period": period.format(),
            },
        )
        return job

    def _current_period(self) -> Period:
        return Period.of(self._clock.now(), self._tz)
