"""
Module: declaration_kernel.db.base
Responsibility: Declarative base for the pipeline's ORM models and the two
    column types every table shares: UUIDs stored as text and UTC timestamps.
Architecture position: Kernel > DB.  Lowest import target in the kernel; ALL
    model files import from here.  MUST NOT import from models/, services/,
    selectors/ or outer layers.

Invariants enforced:
    - Timestamps are written in UTC and always read back timezone-aware,
      also on SQLite, which drops the offset.  Weight-ticket cutoffs compare
      against these columns, so a local-time value must never reach the
      database unconverted.
    - Weights map Python Decimal to Numeric(18, 3) (kilograms, gram precision).
    - Registry-side identifiers (session ids, declaration UUIDs) are stored as
      36-character strings.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UUIDString(TypeDecorator):
    """UUID stored as String(36)."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class UtcDateTime(TypeDecorator):
    """
    Timezone-aware timestamp normalized to UTC on the way in and out.

    PostgreSQL keeps the offset itself; SQLite returns naive values, which
    are re-tagged as UTC because nothing else is ever written.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return as_utc(value)

    def process_result_value(self, value, dialect):
        return as_utc(value)


class Base(DeclarativeBase):
    """
    Declarative base for all models.

    Models with a natural key (declarations use their 12-character registry
    reference) redeclare ``id``; the others get a uuid4 primary key.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 3),
        datetime: UtcDateTime(),
        PyUUID: UUIDString(),
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base for the pipeline's own tables (declarations, sessions,
    jobs).  ``created_at`` is normally set by the service from its Clock; the
    server default only covers rows written outside a service.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        UtcDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UtcDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
