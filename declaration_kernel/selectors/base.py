"""
Module: declaration_kernel.selectors.base
Responsibility: Common base for the read side (declarations, sessions, jobs,
    weight tickets, waste streams).
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Selectors never add, delete, flush or commit.  Rows that a service is
      about to transition are locked by DeclarationStore, not here.
    - Results are frozen domain DTOs, never ORM instances, so nothing a
      caller does to a result can leak back into the session.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):

    def __init__(self, session: Session):
        self.session = session
