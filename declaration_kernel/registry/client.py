"""
RegistrySessions -- the outbound port to the national waste registry.

Implementations wrap the SOAP transport.  Both ``declare_*`` calls open a
session on the registry side and return its id; ``retrieve`` polls it.
Every call is blocking and must honour ``timeout`` (seconds).  Transport
failures are raised as ``RegistryTransportError``; callers treat them like
any other failure and never retry within the same invocation.
"""

from __future__ import annotations

import importlib
from typing import Protocol, Sequence, runtime_checkable
from uuid import UUID

from declaration_kernel.registry.messages import (
    FirstReceivalMessage,
    MonthlyReceivalMessage,
)
from declaration_kernel.registry.types import RetrievalResponse


@runtime_checkable
class RegistrySessions(Protocol):
    def declare_first_receivals(
        self, messages: Sequence[FirstReceivalMessage], timeout: float,
    ) -> UUID: ...

    def declare_monthly_receivals(
        self, messages: Sequence[MonthlyReceivalMessage], timeout: float,
    ) -> UUID: ...

    def retrieve(self, session_id: UUID, timeout: float) -> RetrievalResponse: ...


def load_registry_adapter(spec: str) -> RegistrySessions:
    """
    Build the adapter named by ``"package.module:factory"``.

    Raises:
        ValueError: malformed spec, or the factory did not return a
            RegistrySessions implementation.
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Registry adapter must be 'module:factory', got {spec!r}")
    factory = getattr(importlib.import_module(module_name), attr)
    adapter = factory()
    if not isinstance(adapter, RegistrySessions):
        raise ValueError(f"{spec} did not return a RegistrySessions implementation")
    return adapter
