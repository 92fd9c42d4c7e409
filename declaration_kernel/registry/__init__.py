"""Registry boundary: submission messages, the session port, response model."""

from declaration_kernel.registry.client import RegistrySessions, load_registry_adapter
from declaration_kernel.registry.messages import (
    FirstReceivalMessage,
    FirstReceivalMessageMapper,
    MonthlyReceivalMessage,
    monthly_receival_message,
)
from declaration_kernel.registry.types import (
    NOT_PROCESSED_CODE,
    CollectionKind,
    ItemCollection,
    RegistryError,
    RegistryItemResult,
    ResponseDetails,
    RetrievalResponse,
    StatusBlock,
)

__all__ = [
    "RegistrySessions",
    "load_registry_adapter",
    "FirstReceivalMessage",
    "FirstReceivalMessageMapper",
    "MonthlyReceivalMessage",
    "monthly_receival_message",
    "NOT_PROCESSED_CODE",
    "CollectionKind",
    "ItemCollection",
    "RegistryError",
    "RegistryItemResult",
    "ResponseDetails",
    "RetrievalResponse",
    "StatusBlock",
]
