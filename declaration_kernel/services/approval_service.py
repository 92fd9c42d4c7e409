"""
DeclarationApprovalService -- validate and submit one approved declaration.

Responsibility:
    Move a WAITING_APPROVAL declaration to PENDING by submitting it to the
    registry in a single-item session, or to FAILED when it cannot be
    submitted.

Architecture position:
    Kernel > Services.  The only place outside the resolver that calls the
    registry.

Invariants enforced:
    - The only success path leaves the declaration PENDING; COMPLETED is
      assigned exclusively by the SessionResultResolver.
    - Missing declarations and declarations in any status other than
      WAITING_APPROVAL cause no writes and no registry call.
    - Invalid periods and unknown waste streams fail the declaration
      without a registry call.

Failure modes:
    Never raises for domain or registry failures: every outcome is an
    ``ApprovalResult``.  Storage errors propagate.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from declaration_kernel.domain.clock import Clock
from declaration_kernel.domain.period import Period
from declaration_kernel.domain.ports import WasteStreamLookup
from declaration_kernel.domain.types import (
    ApprovalResult,
    DeclarationStatus,
    DeclarationType,
    LmaDeclaration,
    LmaDeclarationSession,
    SessionStatus,
)
from declaration_kernel.exceptions import (
    DeclarationKernelError,
    DeclarationNotFoundError,
    DeclarationStateError,
    WasteStreamNotFoundError,
)
from declaration_kernel.logging_config import LogContext, get_logger
from declaration_kernel.registry.client import RegistrySessions
from declaration_kernel.registry.messages import (
    FirstReceivalMessageMapper,
    monthly_receival_message,
)
from declaration_kernel.selectors.weight_ticket_selector import WeightTicketSelector
from declaration_kernel.services.base import BaseService
from declaration_kernel.services.declaration_store import DeclarationStore

logger = get_logger("services.approval")

APPROVED_MESSAGE = "Melding goedgekeurd en verstuurd naar LMA"
SUBMISSION_FAILED_PREFIX = "Fout bij versturen van LMA melding"
UNKNOWN_ERROR = "Onbekende fout"
SUBMISSION_ERROR_CODE = "SUBMISSION_FAILED"

DEFAULT_REGISTRY_TIMEOUT_SECONDS = 30.0


class DeclarationApprovalService(BaseService):
    """Approves declarations one at a time."""

    def __init__(
        self,
        session: Session,
        registry: RegistrySessions,
        clock: Clock | None = None,
        waste_streams: WasteStreamLookup | None = None,
        mapper: FirstReceivalMessageMapper | None = None,
        registry_timeout: float = DEFAULT_REGISTRY_TIMEOUT_SECONDS,
    ):
        super().__init__(session, clock)
        self._registry = registry
        self._waste_streams = waste_streams or WeightTicketSelector(session)
        self._mapper = mapper or FirstReceivalMessageMapper()
        self._timeout = registry_timeout
        self._store = DeclarationStore(session)

    def approve(self, declaration_id: str) -> ApprovalResult:
        with LogContext.bind(declaration_id=declaration_id):
            declaration = self._store.lock_declaration(declaration_id)
            if declaration is None:
                error = DeclarationNotFoundError(declaration_id)
                logger.warning("approval_declaration_not_found")
                return ApprovalResult(
                    success=False,
                    message=str(error),
                    declaration_id=declaration_id,
                    error_code=error.code,
                )

            if declaration.status != DeclarationStatus.WAITING_APPROVAL:
                error = DeclarationStateError(
                    declaration_id,
                    declaration.status.value,
                    DeclarationStatus.WAITING_APPROVAL.value,
                )
                logger.warning(
                    "approval_wrong_status",
                    extra={"status": declaration.status.value},
                )
                return ApprovalResult(
                    success=False,
                    message=str(error),
                    declaration_id=declaration_id,
                    error_code=error.code,
                )

            with LogContext.bind(waste_stream_number=declaration.waste_stream_number):
                return self._submit(declaration)

    def _submit(self, declaration: LmaDeclaration) -> ApprovalResult:
        try:
            period = Period.parse(declaration.period)
            waste_stream = self._waste_streams.find_by_number(
                declaration.waste_stream_number
            )
            if waste_stream is None:
                raise WasteStreamNotFoundError(declaration.waste_stream_number)

            if declaration.declaration_type == DeclarationType.FIRST_RECEIVAL:
                message = self._mapper.map_declaration(declaration, waste_stream, period)
                session_id = self._registry.declare_first_receivals(
                    [message], timeout=self._timeout,
                )
            else:
                session_id = self._registry.declare_monthly_receivals(
                    [monthly_receival_message(declaration)], timeout=self._timeout,
                )
        except SQLAlchemyError:
            raise
        except Exception as exc:
            return self._fail(declaration, exc)

        self._mark_submitted(declaration, session_id, self._clock.now())
        logger.info(
            "declaration_approved",
            extra={
                "session_id": session_id,
                "declaration_type": declaration.declaration_type.value,
                "period": declaration.period,
            },
        )
        return ApprovalResult(
            success=True,
            message=APPROVED_MESSAGE,
            declaration_id=declaration.declaration_id,
            session_id=session_id,
        )

    def _mark_submitted(
        self, declaration: LmaDeclaration, session_id: UUID, now: datetime,
    ) -> None:
        self._store.save_declaration(declaration.mark_pending())
        self._store.insert_session(
            LmaDeclarationSession(
                session_id=session_id,
                declaration_ids=(declaration.declaration_id,),
                declaration_type=declaration.declaration_type,
                status=SessionStatus.PENDING,
                created_at=now,
            )
        )

    def _fail(self, declaration: LmaDeclaration, exc: Exception) -> ApprovalResult:
        reason = str(exc) or UNKNOWN_ERROR
        code = exc.code if isinstance(exc, DeclarationKernelError) else SUBMISSION_ERROR_CODE
        self._store.save_declaration(declaration.mark_failed([reason]))
        logger.error(
            "declaration_approval_failed",
            extra={"error_code": code, "reason": reason},
            exc_info=not isinstance(exc, DeclarationKernelError),
        )
        return ApprovalResult(
            success=False,
            message=f"{SUBMISSION_FAILED_PREFIX}: {reason}",
            declaration_id=declaration.declaration_id,
            error_code=code,
        )
