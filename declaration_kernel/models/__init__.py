"""ORM models.  Importing this package registers every table on Base.metadata."""

from declaration_kernel.models.declaration import (
    LmaDeclarationModel,
    LmaDeclarationSessionModel,
    MonthlyWasteDeclarationJobModel,
)
from declaration_kernel.models.weight_ticket import WasteStreamModel, WeightTicketLineModel

__all__ = [
    "LmaDeclarationModel",
    "LmaDeclarationSessionModel",
    "MonthlyWasteDeclarationJobModel",
    "WasteStreamModel",
    "WeightTicketLineModel",
]
