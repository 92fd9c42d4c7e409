"""
DeclarationDetector -- turns undeclared late weight-ticket activity into
declarations awaiting approval.

Responsibility:
    Scan weight-ticket lines weighed before the cutoff period, group them
    per (waste stream, period), aggregate totals and create or replace the
    WAITING_APPROVAL declaration for each key.

Architecture position:
    Kernel > Services.  Reads through WeightTicketQuery and
    DeclarationSelector, writes through DeclarationStore.  Flush only.

Invariants enforced:
    - At most one WAITING_APPROVAL declaration per key.  A changed aggregate
      replaces it (new id, old row deleted); an identical aggregate leaves
      it untouched, so a rerun without new activity writes nothing.
    - PENDING, COMPLETED and FAILED declarations are never replaced and
      never duplicated.
    - Aggregation for every key completes before the first write.

Failure modes:
    - Storage errors propagate to the caller; the caller's transaction
      rolls back, so no half-aggregated declaration is ever committed.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import timezone, tzinfo
from decimal import Decimal
from typing import Collection

from sqlalchemy.orm import Session

from declaration_kernel.domain.clock import Clock
from declaration_kernel.domain.identifiers import DeclarationIdGenerator
from declaration_kernel.domain.period import (
    DEFAULT_CUTOFF_DAY,
    Period,
    cutoff_period,
    late_boundary,
)
from declaration_kernel.domain.ports import WeightTicketQuery
from declaration_kernel.domain.types import (
    DeclarationStatus,
    DeclarationType,
    DetectionSummary,
    LmaDeclaration,
    WeightTicketLine,
)
from declaration_kernel.logging_config import LogContext, get_logger
from declaration_kernel.selectors.declaration_selector import DeclarationSelector
from declaration_kernel.selectors.weight_ticket_selector import WeightTicketSelector
from declaration_kernel.services.base import BaseService
from declaration_kernel.services.declaration_store import DeclarationStore

logger = get_logger("services.declaration_detector")

Key = tuple[str, str]


@dataclass(frozen=True)
class _Aggregate:
    waste_stream_number: str
    period: Period
    total_weight: Decimal
    total_shipments: int


def aggregate_lines(
    lines: list[WeightTicketLine],
    tz: tzinfo = timezone.utc,
    exclude: Collection[Key] = frozenset(),
) -> dict[Key, _Aggregate]:
    """Sum weight and count lines per (waste stream, MMyyyy) key."""
    grouped: dict[Key, list[WeightTicketLine]] = defaultdict(list)
    periods: dict[Key, Period] = {}
    for line in lines:
        period = Period.of(line.weighed_at, tz)
        key = (line.waste_stream_number, period.format())
        if key in exclude:
            continue
        grouped[key].append(line)
        periods[key] = period
    return {
        key: _Aggregate(
            waste_stream_number=key[0],
            period=periods[key],
            total_weight=sum((line.weight for line in group), Decimal("0")),
            total_shipments=len(group),
        )
        for key, group in grouped.items()
    }


class DeclarationDetector(BaseService):
    """
    Late-declaration detection.

    Contract:
        ``detect_and_create_for_late_weight_tickets()`` is idempotent: with no
        new weight-ticket activity a second run leaves ids and totals as they
        were.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        weight_tickets: WeightTicketQuery | None = None,
        id_generator: DeclarationIdGenerator | None = None,
        cutoff_day: int = DEFAULT_CUTOFF_DAY,
        reporting_tz: tzinfo = timezone.utc,
    ):
        super().__init__(session, clock)
        self._weight_tickets = weight_tickets or WeightTicketSelector(session)
        self._ids = id_generator or DeclarationIdGenerator()
        self._cutoff_day = cutoff_day
        self._tz = reporting_tz
        self._selector = DeclarationSelector(session)
        self._store = DeclarationStore(session)

    def cutoff(self) -> Period:
        return cutoff_period(self._clock.local_now(self._tz), self._cutoff_day)

    def undeclared_late_keys(self) -> list[Key]:
        """Keys with late lines and no COMPLETED declaration, sorted."""
        lines, existing = self._load()
        completed = {d.key for d in existing if d.status == DeclarationStatus.COMPLETED}
        return sorted(aggregate_lines(lines, self._tz, completed))

    def detect_and_create_for_late_weight_tickets(self) -> DetectionSummary:
        cutoff = self.cutoff()
        lines, existing = self._load(cutoff)
        logger.info(
            "late_detection_started",
            extra={"cutoff": cutoff.format(), "lines": len(lines)},
        )

        completed_keys = {
            d.key for d in existing if d.status == DeclarationStatus.COMPLETED
        }
        completed_streams = {
            d.waste_stream_number
            for d in existing
            if d.status == DeclarationStatus.COMPLETED
        }
        by_key: dict[Key, list[LmaDeclaration]] = defaultdict(list)
        for declaration in existing:
            by_key[declaration.key].append(declaration)

        aggregates = aggregate_lines(lines, self._tz, completed_keys)

        # Decide everything before touching the database.
        to_insert: list[LmaDeclaration] = []
        to_delete: list[str] = []
        unchanged: list[str] = []
        skipped: list[Key] = []
        now = self._clock.now()

        for key in sorted(aggregates):
            aggregate = aggregates[key]
            current = by_key.get(key, [])
            if any(d.status != DeclarationStatus.WAITING_APPROVAL for d in current):
                skipped.append(key)
                logger.info(
                    "late_declaration_key_locked",
                    extra={
                        "waste_stream_number": key[0],
                        "period": key[1],
                        "statuses": sorted({d.status.value for d in current}),
                    },
                )
                continue

            candidate = LmaDeclaration(
                declaration_id="",
                waste_stream_number=aggregate.waste_stream_number,
                period=aggregate.period.format(),
                declaration_type=(
                    DeclarationType.MONTHLY_RECEIVAL
                    if aggregate.waste_stream_number in completed_streams
                    else DeclarationType.FIRST_RECEIVAL
                ),
                status=DeclarationStatus.WAITING_APPROVAL,
                total_weight=aggregate.total_weight,
                total_shipments=aggregate.total_shipments,
                transporters=(),
                created_at=now,
            )

            if len(current) == 1 and current[0].same_content(candidate):
                unchanged.append(current[0].declaration_id)
                continue

            superseded = [d.declaration_id for d in current]
            new_id = self._ids.next_id(avoid=superseded)
            to_delete.extend(superseded)
            to_insert.append(
                replace(candidate, declaration_id=new_id)
            )

        if to_delete:
            self._store.delete_declarations(to_delete)
        if to_insert:
            self._store.insert_declarations(to_insert)

        for declaration in to_insert:
            with LogContext.bind(
                declaration_id=declaration.declaration_id,
                waste_stream_number=declaration.waste_stream_number,
            ):
                logger.info(
                    "late_declaration_created",
                    extra={
                        "period": declaration.period,
                        "declaration_type": declaration.declaration_type.value,
                        "total_weight": declaration.total_weight,
                        "total_shipments": declaration.total_shipments,
                    },
                )

        summary = DetectionSummary(
            cutoff=cutoff,
            lines_scanned=len(lines),
            created=tuple(d.declaration_id for d in to_insert),
            superseded=tuple(to_delete),
            unchanged=tuple(unchanged),
            skipped_keys=tuple(skipped),
        )
        logger.info(
            "late_detection_completed",
            extra={
                "cutoff": cutoff.format(),
                "created_count": len(summary.created),
                "superseded": len(summary.superseded),
                "unchanged": len(summary.unchanged),
                "skipped": len(summary.skipped_keys),
            },
        )
        return summary

    def _load(
        self, cutoff: Period | None = None,
    ) -> tuple[list[WeightTicketLine], list[LmaDeclaration]]:
        boundary = late_boundary(cutoff or self.cutoff(), self._tz)
        lines = self._weight_tickets.lines_weighed_before(boundary)
        existing = self._selector.find_by_waste_streams(
            line.waste_stream_number for line in lines
        )
        return lines, existing
