"""
Read ports the pipeline consumes from the administration side.

The SQL implementations live in ``declaration_kernel.selectors``; services
accept any object satisfying these protocols, which is how tests swap in
in-memory fakes.
"""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Protocol, runtime_checkable

from declaration_kernel.domain.period import Period
from declaration_kernel.domain.types import (
    FirstReceivalCandidate,
    WasteStream,
    WeightTicketLine,
)


@runtime_checkable
class WeightTicketQuery(Protocol):
    def lines_weighed_before(self, boundary: datetime) -> list[WeightTicketLine]:
        """Every line weighed strictly before ``boundary``, oldest first."""
        ...


@runtime_checkable
class WasteStreamLookup(Protocol):
    def find_by_number(self, number: str) -> WasteStream | None: ...


@runtime_checkable
class FirstReceivalQuery(Protocol):
    def first_receival_candidates(
        self, period: Period, tz: tzinfo,
    ) -> list[FirstReceivalCandidate]:
        """Streams active in ``period`` that were never declared."""
        ...
