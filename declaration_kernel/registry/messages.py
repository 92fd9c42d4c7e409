"""
Registry submission payloads and the first-receival message mapper.

The envelope/serialization layer lives behind ``RegistrySessions``; this
module only decides *what* goes into each message.  Field rules:

    - EURAL codes are sent without spaces, processing methods without dots.
    - Weight is an integer number of kilograms (half-up rounding).
    - Company names are sent only for parties outside the Netherlands; the
      chamber-of-commerce id identifies Dutch parties.
    - Transporters are one comma-joined string.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from declaration_kernel.domain.period import Period
from declaration_kernel.domain.types import (
    CollectionType,
    Company,
    LmaDeclaration,
    WasteStream,
)

_NETHERLANDS = frozenset({"nederland", "nl", "netherlands", "the netherlands"})


def is_netherlands(country: str | None) -> bool:
    return country is not None and country.strip().lower() in _NETHERLANDS


def kilograms(weight: Decimal) -> int:
    return int(weight.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class PartyMessage:
    chamber_of_commerce_id: str | None = None
    name: str | None = None
    country: str | None = None


@dataclass(frozen=True)
class ConsignorMessage:
    is_private: bool
    chamber_of_commerce_id: str | None = None
    name: str | None = None
    country: str | None = None


@dataclass(frozen=True)
class OriginMessage:
    postal_code: str | None = None
    building_number: str | None = None
    building_number_addition: str | None = None
    street_name: str | None = None
    city: str | None = None
    proximity_description: str | None = None
    country: str | None = None


@dataclass(frozen=True)
class FirstReceivalMessage:
    declarer_reference: str
    waste_stream_number: str
    route_collection: bool
    collectors_scheme: bool
    consignor: ConsignorMessage
    origin: OriginMessage
    destination: str  # processor party id
    sender: PartyMessage | None
    collector: PartyMessage | None
    dealer: PartyMessage | None
    broker: PartyMessage | None
    transporters: str
    waste_code: str
    waste_name: str
    processing_method: str
    total_weight: int
    total_shipments: int
    period: str  # MMyyyy


@dataclass(frozen=True)
class MonthlyReceivalMessage:
    declarer_reference: str
    waste_stream_number: str
    transporters: str
    total_weight: int
    total_shipments: int
    period: str  # raw stored period, not re-derived


def _party(company: Company | None) -> PartyMessage | None:
    if company is None:
        return None
    return PartyMessage(
        chamber_of_commerce_id=company.chamber_of_commerce_id,
        name=None if is_netherlands(company.country) else company.name,
        country=company.country,
    )


def _consignor(company: Company | None) -> ConsignorMessage:
    if company is None:
        return ConsignorMessage(is_private=True)
    return ConsignorMessage(
        is_private=False,
        chamber_of_commerce_id=company.chamber_of_commerce_id,
        name=None if is_netherlands(company.country) else company.name,
        country=company.country,
    )


def _origin(stream: WasteStream) -> OriginMessage:
    location = stream.pickup_location
    if location is None:
        return OriginMessage()
    return OriginMessage(
        postal_code=location.postal_code,
        building_number=location.building_number,
        building_number_addition=location.building_number_addition,
        street_name=location.street_name,
        city=location.city,
        proximity_description=location.proximity_description,
        country=location.country,
    )


class FirstReceivalMessageMapper:
    """Builds fully populated first-receival messages."""

    def map(
        self,
        declaration_id: str,
        waste_stream: WasteStream,
        transporters: Sequence[str],
        total_weight: Decimal,
        total_shipments: int,
        period: Period,
    ) -> FirstReceivalMessage:
        return FirstReceivalMessage(
            declarer_reference=declaration_id,
            waste_stream_number=waste_stream.number,
            route_collection=waste_stream.collection_type == CollectionType.ROUTE,
            collectors_scheme=(
                waste_stream.collection_type == CollectionType.COLLECTORS_SCHEME
            ),
            consignor=_consignor(waste_stream.consignor),
            origin=_origin(waste_stream),
            destination=waste_stream.processor_party_id,
            sender=_party(waste_stream.consignor),
            collector=_party(waste_stream.collector),
            dealer=_party(waste_stream.dealer),
            broker=_party(waste_stream.broker),
            transporters=",".join(transporters),
            waste_code=waste_stream.eural_code.replace(" ", ""),
            waste_name=waste_stream.name,
            processing_method=waste_stream.processing_method_code.replace(".", ""),
            total_weight=kilograms(total_weight),
            total_shipments=total_shipments,
            period=period.format(),
        )

    def map_declaration(
        self, declaration: LmaDeclaration, waste_stream: WasteStream, period: Period,
    ) -> FirstReceivalMessage:
        return self.map(
            declaration.declaration_id,
            waste_stream,
            declaration.transporters,
            declaration.total_weight,
            declaration.total_shipments,
            period,
        )


def monthly_receival_message(declaration: LmaDeclaration) -> MonthlyReceivalMessage:
    return MonthlyReceivalMessage(
        declarer_reference=declaration.declaration_id,
        waste_stream_number=declaration.waste_stream_number,
        transporters=",".join(declaration.transporters),
        total_weight=kilograms(declaration.total_weight),
        total_shipments=declaration.total_shipments,
        period=declaration.period,
    )
