"""
Pytest fixtures for the waste-declaration pipeline tests.

All tests run against in-memory SQLite with the real ORM models.  The
pysqlite driver is switched to explicit BEGIN so that SAVEPOINT based
per-item isolation behaves as it does on PostgreSQL.
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import declaration_kernel.models  # noqa: F401
from declaration_kernel.db.base import Base
from declaration_kernel.db.engine import enable_sqlite_savepoints
from declaration_kernel.domain.clock import DeterministicClock
from declaration_kernel.domain.identifiers import DeclarationIdGenerator
from declaration_kernel.domain.types import (
    DeclarationStatus,
    DeclarationType,
    LmaDeclaration,
    LmaDeclarationSession,
    SessionStatus,
    WasteStream,
)
from declaration_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from declaration_kernel.models.weight_ticket import WasteStreamModel, WeightTicketLineModel
from declaration_kernel.services.declaration_store import DeclarationStore

from tests.factories import STREAM_A, FakeRegistry, make_waste_stream

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture structured JSON log records emitted under declaration_kernel.

    Usage:
        def test_something(captured_logs, ...):
            ...
            logs = captured_logs()
            assert any(r["message"] == "declaration_approved" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("declaration_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    eng = enable_sqlite_savepoints(create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    ))

    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


# ---------------------------------------------------------------------------
# Time and identifiers
# ---------------------------------------------------------------------------


@pytest.fixture
def deterministic_clock():
    """2025-12-04 12:00 UTC: cutoff period is November 2025."""
    return DeterministicClock(datetime(2025, 12, 4, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def id_generator():
    """Sequential 12-digit ids: 000000000001, 000000000002, ..."""
    counter = iter(range(1, 1_000_000))
    return DeclarationIdGenerator(source=lambda: f"{next(counter):012d}")


# ---------------------------------------------------------------------------
# Registry fake
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_registry():
    return FakeRegistry()


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def seed_stream(session):
    """Insert a waste stream; returns its DTO."""

    def _seed(number: str = STREAM_A, **overrides) -> WasteStream:
        stream = make_waste_stream(number, **overrides)
        session.add(WasteStreamModel.from_dto(stream))
        session.flush()
        return stream

    return _seed


@pytest.fixture
def seed_line(session):
    """Insert one weight-ticket line.  Weights are kilograms."""
    ticket_ids = iter(range(1, 1_000_000))

    def _seed(
        number: str,
        weighed_at: datetime,
        weight: str | Decimal = "100",
        carrier: str | None = None,
        weight_ticket_id: int | None = None,
        line_index: int = 0,
    ) -> None:
        session.add(
            WeightTicketLineModel(
                weight_ticket_id=weight_ticket_id or next(ticket_ids),
                line_index=line_index,
                waste_stream_number=number,
                weight=Decimal(weight),
                carrier=carrier,
                weighed_at=weighed_at,
            )
        )
        session.flush()

    return _seed


@pytest.fixture
def seed_declaration(session, deterministic_clock):
    """Insert a declaration with sensible defaults; returns its DTO."""

    def _seed(
        declaration_id: str,
        number: str = STREAM_A,
        period: str = "102025",
        status: DeclarationStatus = DeclarationStatus.WAITING_APPROVAL,
        declaration_type: DeclarationType = DeclarationType.FIRST_RECEIVAL,
        total_weight: str = "1000",
        total_shipments: int = 2,
        **overrides,
    ) -> LmaDeclaration:
        declaration = LmaDeclaration(
            declaration_id=declaration_id,
            waste_stream_number=number,
            period=period,
            declaration_type=declaration_type,
            status=status,
            total_weight=Decimal(total_weight),
            total_shipments=total_shipments,
            created_at=deterministic_clock.now(),
            **overrides,
        )
        DeclarationStore(session).insert_declarations([declaration])
        return declaration

    return _seed


@pytest.fixture
def seed_session(session, deterministic_clock):
    """Insert a PENDING declaration session over ``declaration_ids``."""

    def _seed(
        declaration_ids: list[str],
        declaration_type: DeclarationType = DeclarationType.FIRST_RECEIVAL,
        status: SessionStatus = SessionStatus.PENDING,
        session_id: UUID | None = None,
    ) -> LmaDeclarationSession:
        declaration_session = LmaDeclarationSession(
            session_id=session_id or uuid4(),
            declaration_ids=tuple(declaration_ids),
            declaration_type=declaration_type,
            status=status,
            created_at=deterministic_clock.now(),
        )
        DeclarationStore(session).insert_session(declaration_session)
        return declaration_session

    return _seed

