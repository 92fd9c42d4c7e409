"""
Read models for collaborator-owned tables.

``weight_ticket_lines`` and ``waste_streams`` belong to the administration
side of the application.  The pipeline only reads them; the ORM classes
exist so the selectors can query them and tests can seed them.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from declaration_kernel.db.base import Base, UtcDateTime
from declaration_kernel.domain.types import (
    CollectionType,
    Company,
    PickupLocation,
    WasteStream,
    WeightTicketLine,
)


class WeightTicketLineModel(Base):
    __tablename__ = "weight_ticket_lines"

    __table_args__ = (
        Index("ix_weight_ticket_lines_stream_weighed", "waste_stream_number", "weighed_at"),
    )

    weight_ticket_id: Mapped[int] = mapped_column(Integer, nullable=False)
    line_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    waste_stream_number: Mapped[str] = mapped_column(String(12), nullable=False)
    weight: Mapped[Decimal] = mapped_column(nullable=False)
    carrier: Mapped[str | None] = mapped_column(String(64), nullable=True)
    weighed_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False)

    def to_dto(self) -> WeightTicketLine:
        return WeightTicketLine(
            weight_ticket_id=self.weight_ticket_id,
            line_index=self.line_index,
            waste_stream_number=self.waste_stream_number,
            weight=Decimal(self.weight),
            carrier=self.carrier,
            weighed_at=self.weighed_at,
        )


def _company(data: dict | None) -> Company | None:
    if not data:
        return None
    return Company(
        company_id=data["company_id"],
        name=data["name"],
        chamber_of_commerce_id=data.get("chamber_of_commerce_id"),
        country=data.get("country", "Nederland"),
        vihb_id=data.get("vihb_id"),
    )


def company_to_json(company: Company | None) -> dict | None:
    if company is None:
        return None
    return {
        "company_id": company.company_id,
        "name": company.name,
        "chamber_of_commerce_id": company.chamber_of_commerce_id,
        "country": company.country,
        "vihb_id": company.vihb_id,
    }


class WasteStreamModel(Base):
    __tablename__ = "waste_streams"

    number: Mapped[str] = mapped_column(String(12), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    eural_code: Mapped[str] = mapped_column(String(16), nullable=False)
    processing_method_code: Mapped[str] = mapped_column(String(16), nullable=False)
    processor_party_id: Mapped[str] = mapped_column(String(32), nullable=False)
    collection_type: Mapped[str] = mapped_column(
        String(32), nullable=False, default=CollectionType.DEFAULT.value,
    )
    pickup_location: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    consignor: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    collector: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    dealer: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    broker: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    def to_dto(self) -> WasteStream:
        location = self.pickup_location
        return WasteStream(
            number=self.number,
            name=self.name,
            eural_code=self.eural_code,
            processing_method_code=self.processing_method_code,
            processor_party_id=self.processor_party_id,
            collection_type=CollectionType(self.collection_type),
            pickup_location=PickupLocation(**location) if location else None,
            consignor=_company(self.consignor),
            collector=_company(self.collector),
            dealer=_company(self.dealer),
            broker=_company(self.broker),
        )

    @classmethod
    def from_dto(cls, dto: WasteStream) -> WasteStreamModel:
        location = dto.pickup_location
        return cls(
            number=dto.number,
            name=dto.name,
            eural_code=dto.eural_code,
            processing_method_code=dto.processing_method_code,
            processor_party_id=dto.processor_party_id,
            collection_type=dto.collection_type.value,
            pickup_location=asdict(location) if location else None,
            consignor=company_to_json(dto.consignor),
            collector=company_to_json(dto.collector),
            dealer=company_to_json(dto.dealer),
            broker=company_to_json(dto.broker),
        )
