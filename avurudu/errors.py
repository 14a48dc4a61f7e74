"""Error taxonomy shared by every store operation.

Each failure carries a machine-checkable :class:`ErrorKind`; the message is
for humans and logs only.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    INVALID_INPUT = 'invalid_input'
    NOT_FOUND = 'not_found'
    CONFLICT = 'conflict'
    STORE = 'store'
    INITIALIZATION = 'initialization'


_STATUS_CODES = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.STORE: 500,
    ErrorKind.INITIALIZATION: 500,
}


class AvuruduError(Exception):
    """Base class for all registration-core failures.

    Attributes:
        kind:      Discriminator used by callers for control flow.
        message:   Human-readable description.
        details:   Structured payload (e.g. ``{'participant_count': 2}``).
        operation: Name of the operation that failed, when known.
        entity:    Entity the failure concerns (``'game'``, ``'participant'``).
    """

    kind = ErrorKind.STORE

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None,
                 operation: Optional[str] = None, entity: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})
        self.operation = operation
        self.entity = entity

    @property
    def status_code(self) -> int:
        """Advisory HTTP status for the web layer."""
        return _STATUS_CODES[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        payload = {'error': self.message, 'kind': self.kind.value}
        if self.details:
            payload['details'] = self.details
        return payload


class InvalidInputError(AvuruduError):
    """Caller-supplied data failed a precondition."""
    kind = ErrorKind.INVALID_INPUT


class NotFoundError(AvuruduError):
    """A referenced game or participant does not exist."""
    kind = ErrorKind.NOT_FOUND


class ConflictError(AvuruduError):
    """A uniqueness or referential-integrity rule would be violated."""
    kind = ErrorKind.CONFLICT


class StoreError(AvuruduError):
    """The backing database failed."""
    kind = ErrorKind.STORE


class InitializationError(AvuruduError):
    """Schema creation or seeding failed at startup."""
    kind = ErrorKind.INITIALIZATION
