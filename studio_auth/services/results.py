from dataclasses import dataclass, field
from enum import Enum

from fastapi import status


class ErrorKind(str, Enum):
    validation = "validation"
    conflict = "conflict"
    not_found = "not_found"
    invalid_credentials = "invalid_credentials"
    token_required = "token_required"
    unauthorized = "unauthorized"
    token_invalid = "token_invalid"
    delivery_failed = "delivery_failed"


ERROR_STATUS = {
    ErrorKind.validation: status.HTTP_400_BAD_REQUEST,
    ErrorKind.conflict: status.HTTP_400_BAD_REQUEST,
    ErrorKind.not_found: status.HTTP_404_NOT_FOUND,
    ErrorKind.invalid_credentials: status.HTTP_400_BAD_REQUEST,
    ErrorKind.token_required: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.unauthorized: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.token_invalid: status.HTTP_403_FORBIDDEN,
    ErrorKind.delivery_failed: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@dataclass(frozen=True)
class AuthError:
    kind: ErrorKind
    message: str

    @property
    def status_code(self) -> int:
        return ERROR_STATUS[self.kind]


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a flow-controller operation.

    Expected failures (unknown user, bad code, duplicate email...) come back as
    an ``AuthError``; only unexpected faults are raised.
    """

    message: str = ""
    data: dict = field(default_factory=dict)
    error: AuthError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, message: str, **data) -> "AuthResult":
        return cls(message=message, data=data)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "AuthResult":
        return cls(message=message, error=AuthError(kind, message))
