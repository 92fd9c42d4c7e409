"""
declaration_kernel.domain.types -- Pure frozen dataclasses for the pipeline.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.  Transitions return new instances via ``replace``
so that a service computes every new state before anything is written.

Invariants enforced:
    - A declaration carries ``amice_uuid`` only when COMPLETED (or when the
      registry assigned one to a rejected item) and ``errors`` only when
      FAILED.
    - COMPLETED and FAILED declarations, sessions and COMPLETED jobs are
      terminal: the ``mark_*`` helpers refuse to move them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from declaration_kernel.domain.period import Period
from declaration_kernel.exceptions import (
    DeclarationStateError,
    JobStateError,
    SessionStateError,
)


# =============================================================================
# Status enums
# =============================================================================


class DeclarationType(str, Enum):
    """Declaration subtype."""

    FIRST_RECEIVAL = "FIRST_RECEIVAL"  # First-ever declaration for a stream
    MONTHLY_RECEIVAL = "MONTHLY_RECEIVAL"  # Recurring monthly declaration


class DeclarationStatus(str, Enum):
    """Declaration lifecycle status."""

    WAITING_APPROVAL = "WAITING_APPROVAL"  # Detected, awaiting operator approval
    PENDING = "PENDING"  # Submitted, awaiting session result
    COMPLETED = "COMPLETED"  # Accepted by the registry
    FAILED = "FAILED"  # Rejected or could not be submitted

    @property
    def is_terminal(self) -> bool:
        return self in (DeclarationStatus.COMPLETED, DeclarationStatus.FAILED)


class SessionStatus(str, Enum):
    """Declaration session lifecycle status."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class JobType(str, Enum):
    """Periodic declaration job kinds."""

    FIRST_RECEIVALS = "FIRST_RECEIVALS"
    MONTHLY_RECEIVALS = "MONTHLY_RECEIVALS"
    LATE_WEIGHT_TICKETS = "LATE_WEIGHT_TICKETS"


class JobStatus(str, Enum):
    """Job lifecycle status."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class CollectionType(str, Enum):
    """How a waste stream is collected."""

    DEFAULT = "DEFAULT"
    ROUTE = "ROUTE"
    COLLECTORS_SCHEME = "COLLECTORS_SCHEME"


# =============================================================================
# Collaborator read models
# =============================================================================


@dataclass(frozen=True)
class WeightTicketLine:
    """One weighed shipment line.  Owned by the weight-ticket subsystem."""

    weight_ticket_id: int
    line_index: int
    waste_stream_number: str
    weight: Decimal  # kg
    carrier: str | None
    weighed_at: datetime


@dataclass(frozen=True)
class Company:
    """Party referenced by a waste stream."""

    company_id: str
    name: str
    chamber_of_commerce_id: str | None = None
    country: str = "Nederland"
    vihb_id: str | None = None


@dataclass(frozen=True)
class PickupLocation:
    """Origin of a waste stream (Dutch address or proximity description)."""

    postal_code: str | None = None
    building_number: str | None = None
    building_number_addition: str | None = None
    street_name: str | None = None
    city: str | None = None
    country: str | None = "Nederland"
    proximity_description: str | None = None


@dataclass(frozen=True)
class WasteStream:
    """Registered waste stream, as needed to build registry messages."""

    number: str  # 12 characters
    name: str
    eural_code: str
    processing_method_code: str
    processor_party_id: str
    collection_type: CollectionType = CollectionType.DEFAULT
    pickup_location: PickupLocation | None = None
    consignor: Company | None = None  # None = private person
    collector: Company | None = None
    dealer: Company | None = None
    broker: Company | None = None


@dataclass(frozen=True)
class FirstReceivalCandidate:
    """Aggregated activity for a waste stream that was never declared."""

    waste_stream: WasteStream
    period: Period
    transporters: tuple[str, ...]
    total_weight: Decimal
    total_shipments: int


# =============================================================================
# Declaration
# =============================================================================


@dataclass(frozen=True)
class LmaDeclaration:
    """Immutable snapshot of one regulatory declaration."""

    declaration_id: str  # 12-character registry reference
    waste_stream_number: str
    period: str  # MMyyyy
    declaration_type: DeclarationType
    status: DeclarationStatus
    total_weight: Decimal
    total_shipments: int
    transporters: tuple[str, ...] = ()
    amice_uuid: UUID | None = None
    errors: tuple[str, ...] | None = None
    created_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str]:
        """Semantic key: at most one WAITING_APPROVAL row per key."""
        return (self.waste_stream_number, self.period)

    def _require(self, *allowed: DeclarationStatus) -> None:
        if self.status not in allowed:
            raise DeclarationStateError(
                self.declaration_id,
                self.status.value,
                "/".join(s.value for s in allowed),
            )

    def mark_pending(self) -> LmaDeclaration:
        self._require(DeclarationStatus.WAITING_APPROVAL)
        return replace(self, status=DeclarationStatus.PENDING)

    def mark_completed(self, amice_uuid: UUID | None) -> LmaDeclaration:
        self._require(DeclarationStatus.PENDING)
        return replace(
            self, status=DeclarationStatus.COMPLETED, amice_uuid=amice_uuid, errors=None,
        )

    def mark_failed(
        self, errors: list[str] | tuple[str, ...], amice_uuid: UUID | None = None,
    ) -> LmaDeclaration:
        self._require(DeclarationStatus.WAITING_APPROVAL, DeclarationStatus.PENDING)
        return replace(
            self,
            status=DeclarationStatus.FAILED,
            errors=tuple(errors),
            amice_uuid=amice_uuid,
        )

    def same_content(self, other: LmaDeclaration) -> bool:
        """True when totals, type and transporters match (ids ignored)."""
        return (
            self.key == other.key
            and self.declaration_type == other.declaration_type
            and self.total_weight == other.total_weight
            and self.total_shipments == other.total_shipments
            and self.transporters == other.transporters
        )


# =============================================================================
# Session
# =============================================================================


@dataclass(frozen=True)
class LmaDeclarationSession:
    """A batch of declarations submitted to the registry in one call."""

    session_id: UUID
    declaration_ids: tuple[str, ...]
    declaration_type: DeclarationType
    status: SessionStatus
    errors: tuple[str, ...] | None = None
    created_at: datetime | None = None
    processed_at: datetime | None = None

    def _require_pending(self) -> None:
        if self.status != SessionStatus.PENDING:
            raise SessionStateError(str(self.session_id), self.status.value)

    def mark_completed(self, processed_at: datetime) -> LmaDeclarationSession:
        self._require_pending()
        return replace(
            self, status=SessionStatus.COMPLETED, errors=None, processed_at=processed_at,
        )

    def mark_failed(
        self, errors: list[str] | tuple[str, ...], processed_at: datetime,
    ) -> LmaDeclarationSession:
        self._require_pending()
        return replace(
            self,
            status=SessionStatus.FAILED,
            errors=tuple(errors),
            processed_at=processed_at,
        )


# =============================================================================
# Job
# =============================================================================


@dataclass(frozen=True)
class MonthlyWasteDeclarationJob:
    """Scheduling record drained by the JobScheduler."""

    job_id: UUID
    job_type: JobType
    period: Period
    status: JobStatus
    created_at: datetime
    fulfilled_at: datetime | None = None

    def mark_completed(self, fulfilled_at: datetime) -> MonthlyWasteDeclarationJob:
        if self.status != JobStatus.PENDING:
            raise JobStateError(str(self.job_id), self.status.value)
        return replace(self, status=JobStatus.COMPLETED, fulfilled_at=fulfilled_at)


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class ApprovalResult:
    """Outcome of approving one declaration.  Never raised, always returned."""

    success: bool
    message: str
    declaration_id: str
    error_code: str | None = None
    session_id: UUID | None = None


class ResolutionOutcome(str, Enum):
    """Tagged outcome of polling a session."""

    RETRY = "RETRY"  # Registry not done yet; nothing was written
    FAILED = "FAILED"
    SUCCEEDED = "SUCCEEDED"


@dataclass(frozen=True)
class SessionResolution:
    """Result of ``SessionResultResolver.process_session``."""

    session_id: UUID
    outcome: ResolutionOutcome
    errors: tuple[str, ...] = ()
    completed_declarations: tuple[str, ...] = ()
    failed_declarations: tuple[str, ...] = ()

    @property
    def is_partial_failure(self) -> bool:
        return (
            self.outcome == ResolutionOutcome.FAILED
            and bool(self.completed_declarations)
        )


@dataclass(frozen=True)
class DetectionSummary:
    """What one detection run did, per (waste stream, period) key."""

    cutoff: Period
    lines_scanned: int
    created: tuple[str, ...] = ()  # new declaration ids
    superseded: tuple[str, ...] = ()  # replaced WAITING_APPROVAL ids
    unchanged: tuple[str, ...] = ()  # WAITING_APPROVAL ids left as-is
    skipped_keys: tuple[tuple[str, str], ...] = ()  # keys with a locked declaration


@dataclass(frozen=True)
class JobRunSummary:
    """Result of draining the pending job queue once."""

    processed: int = 0
    completed: tuple[UUID, ...] = ()
    errored: tuple[UUID, ...] = ()
    details: dict[str, str] = field(default_factory=dict)
