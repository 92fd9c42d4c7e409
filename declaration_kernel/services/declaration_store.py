"""
DeclarationStore -- write side of declarations, sessions and jobs.

Contract:
    Rows that are about to transition are loaded ``FOR UPDATE``.  Saves are
    whole-row replaces of a DTO onto its row; batch saves flush once.

Failure modes:
    - SQLAlchemy errors propagate unchanged.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import select

from declaration_kernel.domain.types import (
    LmaDeclaration,
    LmaDeclarationSession,
    MonthlyWasteDeclarationJob,
)
from declaration_kernel.models.declaration import (
    LmaDeclarationModel,
    LmaDeclarationSessionModel,
    MonthlyWasteDeclarationJobModel,
)
from declaration_kernel.services.base import BaseService


class DeclarationStore(BaseService):
    """Flush-only persistence for the three state-machine tables."""

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def lock_declaration(self, declaration_id: str) -> LmaDeclaration | None:
        model = self.session.execute(
            select(LmaDeclarationModel)
            .where(LmaDeclarationModel.id == declaration_id)
            .with_for_update()
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def lock_declarations(self, declaration_ids: Iterable[str]) -> list[LmaDeclaration]:
        ids = list(declaration_ids)
        if not ids:
            return []
        models = self.session.execute(
            select(LmaDeclarationModel)
            .where(LmaDeclarationModel.id.in_(ids))
            .with_for_update()
        ).scalars().all()
        return [m.to_dto() for m in models]

    def insert_declarations(self, declarations: Iterable[LmaDeclaration]) -> None:
        self.session.add_all([LmaDeclarationModel.from_dto(d) for d in declarations])
        self.session.flush()

    def save_declaration(self, declaration: LmaDeclaration) -> None:
        self.save_declarations([declaration])

    def save_declarations(self, declarations: Iterable[LmaDeclaration]) -> None:
        """Batch save: one flush for every touched row."""
        for dto in declarations:
            model = self.session.get(LmaDeclarationModel, dto.declaration_id)
            if model is None:
                self.session.add(LmaDeclarationModel.from_dto(dto))
            else:
                model.apply(dto)
        self.session.flush()

    def delete_declarations(self, declaration_ids: Iterable[str]) -> None:
        for declaration_id in declaration_ids:
            model = self.session.get(LmaDeclarationModel, declaration_id)
            if model is not None:
                self.session.delete(model)
        # Deletes must reach the database before a replacement row with the
        # same WAITING_APPROVAL key is inserted.
        self.session.flush()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def lock_session(self, session_id: UUID) -> LmaDeclarationSession | None:
        model = self.session.execute(
            select(LmaDeclarationSessionModel)
            .where(LmaDeclarationSessionModel.id == session_id)
            .with_for_update()
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def insert_session(self, declaration_session: LmaDeclarationSession) -> None:
        self.session.add(LmaDeclarationSessionModel.from_dto(declaration_session))
        self.session.flush()

    def save_session(self, declaration_session: LmaDeclarationSession) -> None:
        model = self.session.get(LmaDeclarationSessionModel, declaration_session.session_id)
        if model is None:
            self.session.add(LmaDeclarationSessionModel.from_dto(declaration_session))
        else:
            model.apply(declaration_session)
        self.session.flush()

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def lock_job(self, job_id: UUID) -> MonthlyWasteDeclarationJob | None:
        model = self.session.execute(
            select(MonthlyWasteDeclarationJobModel)
            .where(MonthlyWasteDeclarationJobModel.id == job_id)
            .with_for_update()
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def insert_job(self, job: MonthlyWasteDeclarationJob) -> None:
        self.session.add(MonthlyWasteDeclarationJobModel.from_dto(job))
        self.session.flush()

    def save_job(self, job: MonthlyWasteDeclarationJob) -> None:
        model = self.session.get(MonthlyWasteDeclarationJobModel, job.job_id)
        if model is None:
            self.session.add(MonthlyWasteDeclarationJobModel.from_dto(job))
        else:
            model.apply(job)
        self.session.flush()
