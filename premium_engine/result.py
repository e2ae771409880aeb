"""Tagged results returned by the service layer.

Services never raise for expected business outcomes. They return ``Ok(value)``
or ``Err(kind, message, details)`` and the HTTP layer turns an ``Err`` into a
response in exactly one place (see ``unwrap`` and ``errors.register_error_handlers``).
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


HTTP_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.INTERNAL_ERROR: 500,
}


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str
    details: Optional[dict[str, Any]] = field(default=None)

    @property
    def ok(self) -> bool:
        return False

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]

    def to_dict(self) -> dict:
        return {"code": self.kind.value, "message": self.message, "details": self.details}


Result = Union[Ok[T], Err]


def not_found(message: str, **details) -> Err:
    return Err(ErrorKind.NOT_FOUND, message, details or None)


def forbidden(message: str, **details) -> Err:
    return Err(ErrorKind.FORBIDDEN, message, details or None)


def invalid(message: str, **details) -> Err:
    return Err(ErrorKind.VALIDATION_ERROR, message, details or None)


class ServiceError(Exception):
    """Carries an ``Err`` out of a route handler to the app-level exception handler."""

    def __init__(self, err: Err):
        super().__init__(err.message)
        self.err = err


def unwrap(result: "Result[T]") -> T:
    if isinstance(result, Err):
        raise ServiceError(result)
    return result.value


def get_or_404(db, model, row_id: int, label: str):
    """Row by primary key, or a ``ServiceError`` carrying "<label> not found"."""
    row = db.get(model, row_id)
    if not row:
        raise ServiceError(not_found(f"{label} not found", id=row_id))
    return row
