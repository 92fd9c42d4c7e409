"""
Registry response model -- what a session retrieval can come back with.

The registry answers ``retrieve(session_id)`` with one of:

    - no details at all (``RetrievalResponse.details is None``),
    - request-level errors, among which the "not every declaration in this
      session has been processed yet" marker,
    - a status block holding per-declaration-type result collections.

The three collection kinds (first receival, monthly receival, discharge)
share one item projection, ``RegistryItemResult``, so resolution logic
never switches on the collection kind.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

NOT_PROCESSED_CODE = "MeldingSessieNogNietAlleMeldingenVerwerkt"


@dataclass(frozen=True)
class RegistryError:
    """One error as reported by the registry."""

    code: str
    description: str

    def __str__(self) -> str:
        return f"{self.code}: {self.description}"


class CollectionKind(str, Enum):
    FIRST_RECEIVAL = "FIRST_RECEIVAL"
    MONTHLY_RECEIVAL = "MONTHLY_RECEIVAL"
    DISCHARGE = "DISCHARGE"


@dataclass(frozen=True)
class RegistryItemResult:
    """Per-declaration outcome inside a status block."""

    declarer_reference: str  # our 12-character declaration id
    accepted: bool  # technical acceptance
    amice_uuid: UUID | None = None
    errors: tuple[RegistryError, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.accepted and not self.errors


@dataclass(frozen=True)
class ItemCollection:
    kind: CollectionKind
    items: tuple[RegistryItemResult, ...]


@dataclass(frozen=True)
class StatusBlock:
    collections: tuple[ItemCollection, ...] = ()

    def populated(self) -> tuple[ItemCollection, ...]:
        return tuple(c for c in self.collections if c.items)


@dataclass(frozen=True)
class ResponseDetails:
    request_errors: tuple[RegistryError, ...] = ()
    status: StatusBlock | None = None

    @property
    def not_processed_yet(self) -> bool:
        return any(e.code == NOT_PROCESSED_CODE for e in self.request_errors)


@dataclass(frozen=True)
class RetrievalResponse:
    details: ResponseDetails | None
