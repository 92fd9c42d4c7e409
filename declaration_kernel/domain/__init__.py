"""Pure domain layer: periods, clock, value types, ports.  ZERO I/O."""

from declaration_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from declaration_kernel.domain.compatibility import WasteStreamCompatibilityChecker
from declaration_kernel.domain.identifiers import DeclarationIdGenerator
from declaration_kernel.domain.period import Period, cutoff_period, late_boundary
from declaration_kernel.domain.types import (
    ApprovalResult,
    DeclarationStatus,
    DeclarationType,
    JobStatus,
    JobType,
    LmaDeclaration,
    LmaDeclarationSession,
    MonthlyWasteDeclarationJob,
    ResolutionOutcome,
    SessionResolution,
    SessionStatus,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "WasteStreamCompatibilityChecker",
    "DeclarationIdGenerator",
    "Period",
    "cutoff_period",
    "late_boundary",
    "ApprovalResult",
    "DeclarationStatus",
    "DeclarationType",
    "JobStatus",
    "JobType",
    "LmaDeclaration",
    "LmaDeclarationSession",
    "MonthlyWasteDeclarationJob",
    "ResolutionOutcome",
    "SessionResolution",
    "SessionStatus",
]
