"""
ORM models for declarations, declaration sessions and declaration jobs.

Contract:
    LmaDeclarationModel, LmaDeclarationSessionModel and
    MonthlyWasteDeclarationJobModel persist the three-layer state machine.
    Each has ``to_dto()`` / ``from_dto()`` round-trip methods and an
    ``apply()`` that copies a transitioned DTO back onto the row.

Architecture: declaration_kernel/models.  Imports from db.base and
    domain only.

Invariants enforced:
    - At most one WAITING_APPROVAL row per (waste_stream_number, period):
      partial unique index on PostgreSQL and SQLite.
    - Declaration ids are the 12-character registry reference, not UUIDs.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from declaration_kernel.db.base import TrackedBase, UtcDateTime, UUIDString
from declaration_kernel.domain.period import Period
from declaration_kernel.domain.types import (
    DeclarationStatus,
    DeclarationType,
    JobStatus,
    JobType,
    LmaDeclaration,
    LmaDeclarationSession,
    MonthlyWasteDeclarationJob,
    SessionStatus,
)

_WAITING = text("status = 'WAITING_APPROVAL'")


def _tuple_or_none(values: list[str] | None) -> tuple[str, ...] | None:
    return tuple(values) if values is not None else None


class LmaDeclarationModel(TrackedBase):
    """One declaration row (``lma_declarations``)."""

    __tablename__ = "lma_declarations"

    __table_args__ = (
        Index("ix_lma_declarations_key", "waste_stream_number", "period"),
        Index("ix_lma_declarations_status", "status"),
        Index(
            "uq_lma_declarations_waiting_key",
            "waste_stream_number",
            "period",
            unique=True,
            postgresql_where=_WAITING,
            sqlite_where=_WAITING,
        ),
    )

    id: Mapped[str] = mapped_column(String(12), primary_key=True)
    waste_stream_number: Mapped[str] = mapped_column(String(12), nullable=False)
    period: Mapped[str] = mapped_column(String(6), nullable=False)
    declaration_type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    total_weight: Mapped[Decimal] = mapped_column(nullable=False)
    total_shipments: Mapped[int] = mapped_column(Integer, nullable=False)
    transporters: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    amice_uuid: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    errors: Mapped[list | None] = mapped_column(JSON, nullable=True)

    def to_dto(self) -> LmaDeclaration:
        return LmaDeclaration(
            declaration_id=self.id,
            waste_stream_number=self.waste_stream_number,
            period=self.period,
            declaration_type=DeclarationType(self.declaration_type),
            status=DeclarationStatus(self.status),
            total_weight=Decimal(self.total_weight),
            total_shipments=self.total_shipments,
            transporters=tuple(self.transporters or ()),
            amice_uuid=self.amice_uuid,
            errors=_tuple_or_none(self.errors),
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: LmaDeclaration) -> LmaDeclarationModel:
        model = cls(
            id=dto.declaration_id,
            waste_stream_number=dto.waste_stream_number,
            period=dto.period,
        )
        model.apply(dto)
        if dto.created_at is not None:
            model.created_at = dto.created_at
        return model

    def apply(self, dto: LmaDeclaration) -> None:
        """Whole-row replace of the mutable columns."""
        self.declaration_type = dto.declaration_type.value
        self.status = dto.status.value
        self.total_weight = dto.total_weight
        self.total_shipments = dto.total_shipments
        self.transporters = list(dto.transporters)
        self.amice_uuid = dto.amice_uuid
        self.errors = list(dto.errors) if dto.errors is not None else None


class LmaDeclarationSessionModel(TrackedBase):
    """One submission batch (``lma_declaration_sessions``)."""

    __tablename__ = "lma_declaration_sessions"

    __table_args__ = (
        Index("ix_lma_declaration_sessions_status", "status"),
    )

    declaration_ids: Mapped[list] = mapped_column(JSON, nullable=False)
    declaration_type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    errors: Mapped[list | None] = mapped_column(JSON, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(
        UtcDateTime(), nullable=True,
    )

    def to_dto(self) -> LmaDeclarationSession:
        return LmaDeclarationSession(
            session_id=self.id,
            declaration_ids=tuple(self.declaration_ids),
            declaration_type=DeclarationType(self.declaration_type),
            status=SessionStatus(self.status),
            errors=_tuple_or_none(self.errors),
            created_at=self.created_at,
            processed_at=self.processed_at,
        )

    @classmethod
    def from_dto(cls, dto: LmaDeclarationSession) -> LmaDeclarationSessionModel:
        model = cls(
            id=dto.session_id,
            declaration_ids=list(dto.declaration_ids),
            declaration_type=dto.declaration_type.value,
        )
        model.apply(dto)
        if dto.created_at is not None:
            model.created_at = dto.created_at
        return model

    def apply(self, dto: LmaDeclarationSession) -> None:
        self.status = dto.status.value
        self.errors = list(dto.errors) if dto.errors is not None else None
        self.processed_at = dto.processed_at


class MonthlyWasteDeclarationJobModel(TrackedBase):
    """Scheduling record (``monthly_waste_declaration_jobs``)."""

    __tablename__ = "monthly_waste_declaration_jobs"

    __table_args__ = (
        Index("ix_declaration_jobs_status", "status"),
        Index("ix_declaration_jobs_type_period", "job_type", "year_month"),
    )

    job_type: Mapped[str] = mapped_column(String(32), nullable=False)
    year_month: Mapped[str] = mapped_column(String(6), nullable=False)  # MMyyyy
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    fulfilled_at: Mapped[datetime | None] = mapped_column(
        UtcDateTime(), nullable=True,
    )

    def to_dto(self) -> MonthlyWasteDeclarationJob:
        return MonthlyWasteDeclarationJob(
            job_id=self.id,
            job_type=JobType(self.job_type),
            period=Period.parse(self.year_month),
            status=JobStatus(self.status),
            created_at=self.created_at,
            fulfilled_at=self.fulfilled_at,
        )

    @classmethod
    def from_dto(cls, dto: MonthlyWasteDeclarationJob) -> MonthlyWasteDeclarationJobModel:
        return cls(
            id=dto.job_id,
            job_type=dto.job_type.value,
            year_month=dto.period.format(),
            status=dto.status.value,
            created_at=dto.created_at,
            fulfilled_at=dto.fulfilled_at,
        )

    def apply(self, dto: MonthlyWasteDeclarationJob) -> None:
        self.status = dto.status.value
        self.fulfilled_at = dto.fulfilled_at
