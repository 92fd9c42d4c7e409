"""
WeightTicketSelector -- SQL implementation of the weight-ticket and
waste-stream read ports.

Timestamps are compared in UTC; the caller decides the reporting timezone
and passes aware boundaries.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone, tzinfo
from decimal import Decimal

from sqlalchemy import select

from declaration_kernel.db.base import as_utc
from declaration_kernel.domain.period import Period
from declaration_kernel.domain.types import (
    FirstReceivalCandidate,
    WasteStream,
    WeightTicketLine,
)
from declaration_kernel.logging_config import get_logger
from declaration_kernel.models.declaration import LmaDeclarationModel
from declaration_kernel.models.weight_ticket import WasteStreamModel, WeightTicketLineModel
from declaration_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.weight_tickets")


class WeightTicketSelector(BaseSelector):
    """Implements WeightTicketQuery, WasteStreamLookup and FirstReceivalQuery."""

    def lines_weighed_before(self, boundary: datetime) -> list[WeightTicketLine]:
        models = self.session.execute(
            select(WeightTicketLineModel)
            .where(WeightTicketLineModel.weighed_at < as_utc(boundary))
            .order_by(
                WeightTicketLineModel.weighed_at,
                WeightTicketLineModel.weight_ticket_id,
                WeightTicketLineModel.line_index,
            )
        ).scalars().all()
        return [m.to_dto() for m in models]

    def find_by_number(self, number: str) -> WasteStream | None:
        model = self.session.execute(
            select(WasteStreamModel).where(WasteStreamModel.number == number)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def find_by_numbers(self, numbers: list[str]) -> dict[str, WasteStream]:
        if not numbers:
            return {}
        models = self.session.execute(
            select(WasteStreamModel).where(WasteStreamModel.number.in_(numbers))
        ).scalars().all()
        return {m.number: m.to_dto() for m in models}

    def first_receival_candidates(
        self, period: Period, tz: tzinfo = timezone.utc,
    ) -> list[FirstReceivalCandidate]:
        """
        Waste streams with lines weighed in ``period`` and no declaration
        of any status.  Shipments count distinct weight tickets; transporters
        are the distinct non-empty carriers, sorted.
        """
        declared = select(LmaDeclarationModel.waste_stream_number).distinct()
        models = self.session.execute(
            select(WeightTicketLineModel).where(
                WeightTicketLineModel.weighed_at >= as_utc(period.start(tz)),
                WeightTicketLineModel.weighed_at < as_utc(period.next().start(tz)),
                WeightTicketLineModel.waste_stream_number.not_in(declared),
            )
        ).scalars().all()

        weights: dict[str, Decimal] = defaultdict(Decimal)
        tickets: dict[str, set[int]] = defaultdict(set)
        carriers: dict[str, set[str]] = defaultdict(set)
        for model in models:
            number = model.waste_stream_number
            weights[number] += Decimal(model.weight)
            tickets[number].add(model.weight_ticket_id)
            if model.carrier:
                carriers[number].add(model.carrier)

        streams = self.find_by_numbers(sorted(weights))
        candidates = []
        for number in sorted(weights):
            stream = streams.get(number)
            if stream is None:
                logger.warning(
                    "first_receival_stream_missing",
                    extra={"waste_stream_number": number, "period": period.format()},
                )
                continue
            candidates.append(
                FirstReceivalCandidate(
                    waste_stream=stream,
                    period=period,
                    transporters=tuple(sorted(carriers[number])),
                    total_weight=weights[number],
                    total_shipments=len(tickets[number]),
                )
            )
        return candidates
