"""
FirstReceivalDeclarator -- submits first-receival declarations in bulk.

Used by the FIRST_RECEIVALS job: every candidate becomes one PENDING
FIRST_RECEIVAL declaration, and all of them travel to the registry in one
session.  Unlike the approval path there is no operator step; the job is
the approval.
"""

from __future__ import annotations

from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from declaration_kernel.domain.clock import Clock
from declaration_kernel.domain.identifiers import DeclarationIdGenerator
from declaration_kernel.domain.types import (
    DeclarationStatus,
    DeclarationType,
    FirstReceivalCandidate,
    LmaDeclaration,
    LmaDeclarationSession,
    SessionStatus,
)
from declaration_kernel.logging_config import LogContext, get_logger
from declaration_kernel.registry.client import RegistrySessions
from declaration_kernel.registry.messages import FirstReceivalMessageMapper
from declaration_kernel.services.approval_service import DEFAULT_REGISTRY_TIMEOUT_SECONDS
from declaration_kernel.services.base import BaseService
from declaration_kernel.services.declaration_store import DeclarationStore

logger = get_logger("services.first_receival_declarator")


class FirstReceivalDeclarator(BaseService):

    def __init__(
        self,
        session: Session,
        registry: RegistrySessions,
        clock: Clock | None = None,
        id_generator: DeclarationIdGenerator | None = None,
        mapper: FirstReceivalMessageMapper | None = None,
        registry_timeout: float = DEFAULT_REGISTRY_TIMEOUT_SECONDS,
    ):
        super().__init__(session, clock)
        self._registry = registry
        self._ids = id_generator or DeclarationIdGenerator()
        self._mapper = mapper or FirstReceivalMessageMapper()
        self._timeout = registry_timeout
        self._store = DeclarationStore(session)

    def declare(self, candidates: Sequence[FirstReceivalCandidate]) -> UUID:
        """
        Submit ``candidates`` as one session and persist the result.

        Raises:
            ValueError: ``candidates`` is empty.
            RegistryTransportError: submission failed; nothing was written.
        """
        if not candidates:
            raise ValueError("FirstReceivalDeclarator.declare requires at least one candidate")

        now = self._clock.now()
        declarations = []
        messages = []
        for candidate in candidates:
            declaration_id = self._ids.next_id()
            declarations.append(
                LmaDeclaration(
                    declaration_id=declaration_id,
                    waste_stream_number=candidate.waste_stream.number,
                    period=candidate.period.format(),
                    declaration_type=DeclarationType.FIRST_RECEIVAL,
                    status=DeclarationStatus.PENDING,
                    total_weight=candidate.total_weight,
                    total_shipments=candidate.total_shipments,
                    transporters=candidate.transporters,
                    created_at=now,
                )
            )
            messages.append(
                self._mapper.map(
                    declaration_id,
                    candidate.waste_stream,
                    candidate.transporters,
                    candidate.total_weight,
                    candidate.total_shipments,
                    candidate.period,
                )
            )

        session_id = self._registry.declare_first_receivals(messages, timeout=self._timeout)

        self._store.insert_declarations(declarations)
        self._store.insert_session(
            LmaDeclarationSession(
                session_id=session_id,
                declaration_ids=tuple(d.declaration_id for d in declarations),
                declaration_type=DeclarationType.FIRST_RECEIVAL,
                status=SessionStatus.PENDING,
                created_at=now,
            )
        )
        with LogContext.bind(session_id=session_id):
            logger.info(
                "first_receivals_declared",
                extra={
                    "declarations": len(declarations),
                    "period": candidates[0].period.format(),
                },
            )
        return session_id
