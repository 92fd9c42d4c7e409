"""
WasteStreamCompatibilityChecker -- can waste streams share one declaration?

Two waste streams may be aggregated together only when they originate from
the same pickup location, go to the same processor and are handed over by
the same consignor.  Pure predicate, ZERO I/O.
"""

from __future__ import annotations

from typing import Sequence

from declaration_kernel.domain.types import WasteStream

REASON_PICKUP_LOCATION = "Afvalstromen hebben verschillende ophaallocaties"
REASON_PROCESSOR = "Afvalstromen hebben verschillende ontvangende verwerkers"
REASON_CONSIGNOR = "Afvalstromen hebben verschillende afzenders"
EMPTY_INPUT_MESSAGE = (
    "Minstens één afvalstroomnummer is vereist om compatibiliteit te controleren"
)


class WasteStreamCompatibilityChecker:
    """Stateless; the instance exists so services can receive it injected."""

    def is_compatible_with(self, stream: WasteStream, reference: WasteStream) -> bool:
        return self._mismatch(stream, reference) is None

    def are_compatible(self, streams: Sequence[WasteStream]) -> bool:
        """
        True when every stream matches the first one.

        Raises:
            ValueError: ``streams`` is empty.
        """
        return self.incompatibility_reason(streams) is None

    def incompatibility_reason(self, streams: Sequence[WasteStream]) -> str | None:
        """Dutch reason for the first mismatch against the first stream, or None."""
        if not streams:
            raise ValueError(EMPTY_INPUT_MESSAGE)
        reference = streams[0]
        for stream in streams[1:]:
            reason = self._mismatch(stream, reference)
            if reason is not None:
                return reason
        return None

    @staticmethod
    def _mismatch(stream: WasteStream, reference: WasteStream) -> str | None:
        if stream.pickup_location != reference.pickup_location:
            return REASON_PICKUP_LOCATION
        if stream.processor_party_id != reference.processor_party_id:
            return REASON_PROCESSOR
        if _party_key(stream) != _party_key(reference):
            return REASON_CONSIGNOR
        return None


def _party_key(stream: WasteStream) -> str | None:
    # Private-person consignors have no company record and compare equal.
    return stream.consignor.company_id if stream.consignor else None
