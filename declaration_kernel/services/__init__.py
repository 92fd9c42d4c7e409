"""Kernel services: flush-only writers around the declaration state machine."""

from declaration_kernel.services.approval_service import DeclarationApprovalService
from declaration_kernel.services.base import BaseService
from declaration_kernel.services.declaration_detector import DeclarationDetector
from declaration_kernel.services.declaration_store import DeclarationStore
from declaration_kernel.services.first_receival_declarator import FirstReceivalDeclarator
from declaration_kernel.services.job_scheduler import JobScheduler
from declaration_kernel.services.session_resolver import SessionResultResolver

__all__ = [
    "BaseService",
    "DeclarationApprovalService",
    "DeclarationDetector",
    "DeclarationStore",
    "FirstReceivalDeclarator",
    "JobScheduler",
    "SessionResultResolver",
]
