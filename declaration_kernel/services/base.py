"""
BaseService -- shared constructor for the declaration services.

Every service works inside the caller's SQLAlchemy ``Session`` and writes
with ``session.flush()`` only.  The caller (scheduler tick, CLI command or
test) commits or rolls back, one transaction per entry-point invocation.
Services that process several jobs or sessions open a SAVEPOINT per item
(``session.begin_nested()``) so one failing item leaves the others intact.

Time comes from the injected ``Clock``; without one the system clock is used.
"""

from abc import ABC

from sqlalchemy.orm import Session

from declaration_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Non-goals:
        - Does NOT commit or roll back the outer transaction.
        - Does NOT answer read-only queries; those live in selectors/.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()
