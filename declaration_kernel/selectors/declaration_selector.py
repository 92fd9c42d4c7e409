"""
DeclarationSelector -- read side of declarations, sessions and jobs.

Every method returns frozen DTOs.  Loading rows *for update* is a write-side
concern and lives in ``services.declaration_store``.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import select

from declaration_kernel.domain.period import Period
from declaration_kernel.domain.types import (
    DeclarationStatus,
    JobStatus,
    JobType,
    LmaDeclaration,
    LmaDeclarationSession,
    MonthlyWasteDeclarationJob,
    SessionStatus,
)
from declaration_kernel.models.declaration import (
    LmaDeclarationModel,
    LmaDeclarationSessionModel,
    MonthlyWasteDeclarationJobModel,
)
from declaration_kernel.selectors.base import BaseSelector


class DeclarationSelector(BaseSelector):
    """Declaration, session and job queries."""

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def get(self, declaration_id: str) -> LmaDeclaration | None:
        model = self.session.get(LmaDeclarationModel, declaration_id)
        return model.to_dto() if model is not None else None

    def find_by_ids(self, declaration_ids: Iterable[str]) -> list[LmaDeclaration]:
        ids = list(declaration_ids)
        if not ids:
            return []
        models = self.session.execute(
            select(LmaDeclarationModel).where(LmaDeclarationModel.id.in_(ids))
        ).scalars().all()
        return [m.to_dto() for m in models]

    def find_by_key(self, waste_stream_number: str, period: str) -> list[LmaDeclaration]:
        models = self.session.execute(
            select(LmaDeclarationModel)
            .where(
                LmaDeclarationModel.waste_stream_number == waste_stream_number,
                LmaDeclarationModel.period == period,
            )
            .order_by(LmaDeclarationModel.created_at, LmaDeclarationModel.id)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def find_by_waste_streams(
        self, waste_stream_numbers: Iterable[str],
    ) -> list[LmaDeclaration]:
        numbers = sorted(set(waste_stream_numbers))
        if not numbers:
            return []
        models = self.session.execute(
            select(LmaDeclarationModel).where(
                LmaDeclarationModel.waste_stream_number.in_(numbers)
            )
        ).scalars().all()
        return [m.to_dto() for m in models]

    def list_declarations(
        self,
        status: DeclarationStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[LmaDeclaration]:
        """Newest first."""
        stmt = select(LmaDeclarationModel)
        if status is not None:
            stmt = stmt.where(LmaDeclarationModel.status == status.value)
        stmt = stmt.order_by(
            LmaDeclarationModel.created_at.desc(), LmaDeclarationModel.id.desc(),
        ).limit(limit).offset(offset)
        return [m.to_dto() for m in self.session.execute(stmt).scalars().all()]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def get_session(self, session_id: UUID) -> LmaDeclarationSession | None:
        model = self.session.get(LmaDeclarationSessionModel, session_id)
        return model.to_dto() if model is not None else None

    def pending_sessions(self) -> list[LmaDeclarationSession]:
        models = self.session.execute(
            select(LmaDeclarationSessionModel)
            .where(LmaDeclarationSessionModel.status == SessionStatus.PENDING.value)
            .order_by(LmaDeclarationSessionModel.created_at)
        ).scalars().all()
        return [m.to_dto() for m in models]

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def pending_jobs(self) -> list[MonthlyWasteDeclarationJob]:
        models = self.session.execute(
            select(MonthlyWasteDeclarationJobModel)
            .where(MonthlyWasteDeclarationJobModel.status == JobStatus.PENDING.value)
            .order_by(MonthlyWasteDeclarationJobModel.created_at)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def find_jobs(
        self,
        job_type: JobType,
        period: Period | None = None,
        status: JobStatus | None = None,
    ) -> list[MonthlyWasteDeclarationJob]:
        stmt = select(MonthlyWasteDeclarationJobModel).where(
            MonthlyWasteDeclarationJobModel.job_type == job_type.value
        )
        if period is not None:
            stmt = stmt.where(MonthlyWasteDeclarationJobModel.year_month == period.format())
        if status is not None:
            stmt = stmt.where(MonthlyWasteDeclarationJobModel.status == status.value)
        return [m.to_dto() for m in self.session.execute(stmt).scalars().all()]
