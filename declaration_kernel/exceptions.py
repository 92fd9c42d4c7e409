"""
Typed Exception Hierarchy for the Declaration Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The compliance pipeline must tell a benign "not ready yet" apart from a
terminal failure, and a missing record apart from a record in the wrong
state.  Callers catch by type and read the machine-readable ``code``:

    try:
        period = Period.parse(declaration.period)
    except PeriodFormatError as e:
        mark_failed(declaration, e.code, str(e))

Every exception carries a CODE class attribute and structured fields.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    DeclarationKernelError (base)
    |
    +-- DeclarationValidationError
    |   +-- PeriodFormatError
    |
    +-- NotFoundError
    |   +-- DeclarationNotFoundError
    |   +-- WasteStreamNotFoundError
    |   +-- SessionNotFoundError
    |
    +-- StateConflictError
    |   +-- DeclarationStateError
    |   +-- SessionStateError
    |   +-- JobStateError
    |
    +-- ExternalProtocolError
    |   +-- RegistryTransportError
    |   +-- RegistryRequestError
    |
    +-- PartialFailureError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_PERIOD              | Period is not a valid MMyyyy / month
----------------|-----------------------------|-----------------------------------------
Not found       | DECLARATION_NOT_FOUND       | Declaration id doesn't exist
                | WASTE_STREAM_NOT_FOUND      | Waste stream number doesn't exist
                | SESSION_NOT_FOUND           | Session id doesn't exist
----------------|-----------------------------|-----------------------------------------
State           | DECLARATION_STATE_CONFLICT  | Declaration not in expected status
                | SESSION_STATE_CONFLICT      | Session already finalized
                | JOB_STATE_CONFLICT          | Job already completed
----------------|-----------------------------|-----------------------------------------
Registry        | REGISTRY_TRANSPORT_ERROR    | Network failure / timeout
                | REGISTRY_REQUEST_ERROR      | Registry rejected the request
----------------|-----------------------------|-----------------------------------------
Partial         | SESSION_PARTIAL_FAILURE     | Mixed per-declaration outcomes

Propagation: validation, not-found and state errors raised while approving
are converted into an ``ApprovalResult`` at the approval boundary.  Storage
errors (SQLAlchemy) are never wrapped and always propagate.
"""


class DeclarationKernelError(Exception):
    """
    Base exception for all declaration kernel errors.

    All subclasses must have a `code` class attribute
    for machine-readable error identification.
    """

    code: str = "DECLARATION_KERNEL_ERROR"


# Validation exceptions


class DeclarationValidationError(DeclarationKernelError):
    """Base exception for malformed declaration data."""

    code: str = "DECLARATION_VALIDATION_ERROR"


class PeriodFormatError(DeclarationValidationError):
    """Period string or month/year pair is not a valid reporting period."""

    code: str = "INVALID_PERIOD"

    def __init__(self, value: str, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Ongeldige periode '{value}': {reason}")


# Not-found exceptions


class NotFoundError(DeclarationKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class DeclarationNotFoundError(NotFoundError):
    """Declaration with given id was not found."""

    code: str = "DECLARATION_NOT_FOUND"

    def __init__(self, declaration_id: str):
        self.declaration_id = declaration_id
        super().__init__(f"Declaratie niet gevonden: {declaration_id}")


class WasteStreamNotFoundError(NotFoundError):
    """Waste stream with given number was not found."""

    code: str = "WASTE_STREAM_NOT_FOUND"

    def __init__(self, waste_stream_number: str):
        self.waste_stream_number = waste_stream_number
        super().__init__(f"Afvalstroomnummer niet gevonden: {waste_stream_number}")


class SessionNotFoundError(NotFoundError):
    """Declaration session with given id was not found."""

    code: str = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Meldingsessie niet gevonden: {session_id}")


# State-conflict exceptions


class StateConflictError(DeclarationKernelError):
    """Base exception for transitions requested from the wrong status."""

    code: str = "STATE_CONFLICT"


class DeclarationStateError(StateConflictError):
    """Declaration is not in the status the transition requires."""

    code: str = "DECLARATION_STATE_CONFLICT"

    def __init__(self, declaration_id: str, status: str, expected: str):
        self.declaration_id = declaration_id
        self.status = status
        self.expected = expected
        super().__init__(f"Melding is niet in goedkeuringsstatus: {status}")


class SessionStateError(StateConflictError):
    """Session was already finalized."""

    code: str = "SESSION_STATE_CONFLICT"

    def __init__(self, session_id: str, status: str):
        self.session_id = session_id
        self.status = status
        super().__init__(f"Session {session_id} is already {status}")


class JobStateError(StateConflictError):
    """Job was already completed and cannot be reopened."""

    code: str = "JOB_STATE_CONFLICT"

    def __init__(self, job_id: str, status: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Job {job_id} is already {status}")


# External protocol exceptions


class ExternalProtocolError(DeclarationKernelError):
    """Base exception for failures at the registry boundary."""

    code: str = "EXTERNAL_PROTOCOL_ERROR"


class RegistryTransportError(ExternalProtocolError):
    """
    The registry call did not complete (connection failure, timeout).

    Treated exactly like any other submission/retrieval failure; the
    pipeline never retries within the same invocation.
    """

    code: str = "REGISTRY_TRANSPORT_ERROR"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Registry {operation} failed: {reason}")


class RegistryRequestError(ExternalProtocolError):
    """
    The registry answered with request-level errors.

    The resolver logs it and fails the session with ``errors``.
    """

    code: str = "REGISTRY_REQUEST_ERROR"

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors) or "Registry request rejected")


# Partial failure


class PartialFailureError(DeclarationKernelError):
    """
    A session resolved with mixed per-declaration outcomes.

    Declarations that succeeded keep their COMPLETED status; the session is
    FAILED.  The resolver logs one with the session outcome; callers that
    want to escalate a resolution may raise it.
    """

    code: str = "SESSION_PARTIAL_FAILURE"

    def __init__(self, session_id: str, completed: list[str], failed: list[str]):
        self.session_id = session_id
        self.completed = completed
        self.failed = failed
        super().__init__(
            f"Session {session_id} partially failed: "
            f"{len(completed)} completed, {len(failed)} failed"
        )
