"""
SessionResultResolver -- reconciles registry session results into
declaration and session state.

Responsibility:
    Poll the registry for a PENDING session, interpret the answer and
    finalize every declaration in it as COMPLETED or FAILED, then the
    session itself.

Architecture position:
    Kernel > Services.  Reads the registry through RegistrySessions,
    writes through DeclarationStore.  Flush only.

Invariants enforced:
    - "Not processed yet" is a RETRY: nothing is written, so the next poll
      is a true retry.
    - A session that is no longer PENDING is never revisited.
    - All declaration outcomes are decided before the single batch save;
      the session status is derived from every declaration it tracks,
      including ones settled before this poll.
    - Partial success is kept per declaration: accepted declarations stay
      COMPLETED even when the session ends FAILED.
    - A transport failure fails the session only; its declarations stay
      PENDING.

Failure modes:
    - SessionNotFoundError for unknown session ids.
    - Storage errors propagate.  ``process_pending_sessions`` isolates each
      session in a SAVEPOINT so one broken session does not block others.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from declaration_kernel.domain.clock import Clock
from declaration_kernel.domain.types import (
    DeclarationStatus,
    LmaDeclaration,
    LmaDeclarationSession,
    ResolutionOutcome,
    SessionResolution,
    SessionStatus,
)
from declaration_kernel.exceptions import (
    PartialFailureError,
    RegistryRequestError,
    SessionNotFoundError,
)
from declaration_kernel.logging_config import LogContext, get_logger
from declaration_kernel.registry.client import RegistrySessions
from declaration_kernel.registry.types import RegistryItemResult, StatusBlock
from declaration_kernel.selectors.declaration_selector import DeclarationSelector
from declaration_kernel.services.approval_service import DEFAULT_REGISTRY_TIMEOUT_SECONDS
from declaration_kernel.services.base import BaseService
from declaration_kernel.services.declaration_store import DeclarationStore

logger = get_logger("services.session_resolver")

DETAILS_NULL = "Response details are null"
NO_STATUS = "No status melding sessie found in response"
NO_MELDINGEN = "No meldingen found in response"


class SessionResultResolver(BaseService):

    def __init__(
        self,
        session: Session,
        registry: RegistrySessions,
        clock: Clock | None = None,
        registry_timeout: float = DEFAULT_REGISTRY_TIMEOUT_SECONDS,
    ):
        super().__init__(session, clock)
        self._registry = registry
        self._timeout = registry_timeout
        self._store = DeclarationStore(session)
        self._selector = DeclarationSelector(session)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def process_pending_sessions(self) -> list[SessionResolution]:
        """Resolve every PENDING session, each in its own SAVEPOINT."""
        resolutions = []
        for pending in self._selector.pending_sessions():
            savepoint = self.session.begin_nested()
            try:
                resolutions.append(self.process_session(pending.session_id))
                savepoint.commit()
            except Exception:
                savepoint.rollback()
                logger.exception(
                    "session_resolution_crashed",
                    extra={"session_id": pending.session_id},
                )
        return resolutions

    def process_session(
        self, declaration_session: LmaDeclarationSession | UUID,
    ) -> SessionResolution:
        session_id = (
            declaration_session.session_id
            if isinstance(declaration_session, LmaDeclarationSession)
            else declaration_session
        )
        with LogContext.bind(session_id=session_id):
            current = self._store.lock_session(session_id)
            if current is None:
                raise SessionNotFoundError(str(session_id))
            if current.status != SessionStatus.PENDING:
                logger.info(
                    "session_already_finalized",
                    extra={"status": current.status.value},
                )
                return _settled(current)
            return self._resolve(current)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _resolve(self, current: LmaDeclarationSession) -> SessionResolution:
        logger.info(
            "session_resolution_started",
            extra={
                "declaration_type": current.declaration_type.value,
                "declarations": len(current.declaration_ids),
            },
        )
        try:
            response = self._registry.retrieve(current.session_id, timeout=self._timeout)
        except SQLAlchemyError:
            raise
        except Exception as exc:
            logger.error("session_retrieval_failed", exc_info=True)
            return self._fail_session(current, [f"Exception: {exc}"])

        details = response.details
        if details is None:
            return self._fail_session(current, [DETAILS_NULL])

        if details.not_processed_yet:
            logger.info("session_resolution_retry")
            return SessionResolution(
                session_id=current.session_id, outcome=ResolutionOutcome.RETRY,
            )

        if details.request_errors:
            rejection = RegistryRequestError([str(e) for e in details.request_errors])
            logger.error("session_request_rejected", exc_info=rejection)
            return self._fail_session(current, rejection.errors)

        if details.status is None:
            return self._fail_session(current, [NO_STATUS])

        if not details.status.populated():
            return self._fail_session(current, [NO_MELDINGEN])

        return self._apply_status(current, details.status)

    def _apply_status(
        self, current: LmaDeclarationSession, status: StatusBlock,
    ) -> SessionResolution:
        tracked = {
            d.declaration_id: d
            for d in self._store.lock_declarations(current.declaration_ids)
        }
        updated: dict[str, LmaDeclaration] = {}
        session_errors: list[str] = []
        reported: set[str] = set()

        for collection in status.populated():
            logger.info(
                "session_collection_received",
                extra={"kind": collection.kind.value, "items": len(collection.items)},
            )
            for item in collection.items:
                declaration_id = item.declarer_reference
                declaration = tracked.get(declaration_id)
                if declaration is None:
                    logger.warning(
                        "session_item_unmatched",
                        extra={"declaration_id": declaration_id},
                    )
                    session_errors.append(f"Declaration {declaration_id} not found")
                    continue
                if declaration_id in reported:
                    logger.warning(
                        "session_item_duplicate",
                        extra={"declaration_id": declaration_id},
                    )
                    continue
                reported.add(declaration_id)
                if declaration.status != DeclarationStatus.PENDING:
                    logger.info(
                        "session_item_for_settled_declaration",
                        extra={
                            "declaration_id": declaration_id,
                            "status": declaration.status.value,
                        },
                    )
                    continue
                updated[declaration_id] = _outcome(declaration, item)

        for declaration_id in current.declaration_ids:
            declaration = tracked.get(declaration_id)
            if (
                declaration is not None
                and declaration_id not in reported
                and declaration.status == DeclarationStatus.PENDING
            ):
                session_errors.append(f"Declaration {declaration_id} missing from response")

        self._store.save_declarations(updated.values())

        final = [
            updated.get(declaration_id) or tracked[declaration_id]
            for declaration_id in current.declaration_ids
            if declaration_id in updated or declaration_id in tracked
        ]
        completed = tuple(
            d.declaration_id for d in updated.values()
            if d.status == DeclarationStatus.COMPLETED
        )
        failed = [d for d in final if d.status == DeclarationStatus.FAILED]
        now = self._clock.now()

        if not session_errors and not failed:
            self._store.save_session(current.mark_completed(now))
            logger.info("session_completed", extra={"completed": len(completed)})
            return SessionResolution(
                session_id=current.session_id,
                outcome=ResolutionOutcome.SUCCEEDED,
                completed_declarations=completed,
            )

        errors = session_errors + [
            e for d in failed
            for e in (d.errors or (f"Declaration {d.declaration_id} failed",))
        ]
        succeeded = [
            d.declaration_id for d in final if d.status == DeclarationStatus.COMPLETED
        ]
        if failed and succeeded:
            logger.warning(
                "session_partially_failed",
                exc_info=PartialFailureError(
                    str(current.session_id), succeeded, [d.declaration_id for d in failed],
                ),
            )
        self._store.save_session(current.mark_failed(errors, now))
        logger.error(
            "session_failed",
            extra={
                "completed": len(completed),
                "failed": len(failed),
                "errors": errors,
            },
        )
        return SessionResolution(
            session_id=current.session_id,
            outcome=ResolutionOutcome.FAILED,
            errors=tuple(errors),
            completed_declarations=completed,
            failed_declarations=tuple(d.declaration_id for d in failed),
        )

    def _fail_session(
        self, current: LmaDeclarationSession, errors: list[str],
    ) -> SessionResolution:
        self._store.save_session(current.mark_failed(errors, self._clock.now()))
        logger.error("session_failed", extra={"errors": errors})
        return SessionResolution(
            session_id=current.session_id,
            outcome=ResolutionOutcome.FAILED,
            errors=tuple(errors),
        )


def _outcome(declaration: LmaDeclaration, item: RegistryItemResult) -> LmaDeclaration:
    if item.succeeded:
        return declaration.mark_completed(item.amice_uuid)
    return declaration.mark_failed([str(e) for e in item.errors], amice_uuid=item.amice_uuid)


def _settled(current: LmaDeclarationSession) -> SessionResolution:
    outcome = (
        ResolutionOutcome.SUCCEEDED
        if current.status == SessionStatus.COMPLETED
        else ResolutionOutcome.FAILED
    )
    return SessionResolution(
        session_id=current.session_id,
        outcome=outcome,
        errors=current.errors or (),
    )
