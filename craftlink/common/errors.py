import enum
from typing import Dict, List, Optional


class ErrorKind(enum.Enum):
    """Failure kinds raised by the service layer. Each carries its wire status and code."""

    BAD_REQUEST = (400, "BAD_REQUEST")
    UNAUTHORIZED = (401, "UNAUTHORIZED")
    INVALID_TOKEN = (401, "INVALID_TOKEN")
    TOKEN_EXPIRED = (401, "TOKEN_EXPIRED")
    FORBIDDEN = (403, "FORBIDDEN")
    NOT_FOUND = (404, "NOT_FOUND")
    CONFLICT = (409, "CONFLICT")
    VALIDATION = (422, "VALIDATION_ERROR")
    RATE_LIMIT = (429, "RATE_LIMIT_EXCEEDED")
    INTERNAL = (500, "INTERNAL_ERROR")

    def __init__(self, status_code: int, code: str):
        self.status_code = status_code
        self.code = code


_DEFAULT_MESSAGES = {
    ErrorKind.BAD_REQUEST: "Bad request",
    ErrorKind.UNAUTHORIZED: "Unauthorized",
    ErrorKind.INVALID_TOKEN: "Invalid authentication token",
    ErrorKind.TOKEN_EXPIRED: "Authentication token has expired",
    ErrorKind.FORBIDDEN: "Forbidden",
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.CONFLICT: "Resource already exists",
    ErrorKind.VALIDATION: "Validation failed",
    ErrorKind.RATE_LIMIT: "Too many requests",
    ErrorKind.INTERNAL: "Internal server error",
}


class AppError(Exception):
    """
    Single typed failure for the service layer.
    Translation to HTTP happens only in the registered exception handlers.
    """

    def __init__(self, kind: ErrorKind, message: Optional[str] = None,
                 errors: Optional[Dict[str, List[str]]] = None,
                 headers: Optional[Dict[str, str]] = None):
        self.kind = kind
        self.message = message or _DEFAULT_MESSAGES[kind]
        self.errors = errors
        self.headers = headers
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @property
    def code(self) -> str:
        return self.kind.code

    def __repr__(self) -> str:
        return f"AppError({self.kind.name}, {self.message!r})"


def not_found(resource: str = "Resource") -> AppError:
    return AppError(ErrorKind.NOT_FOUND, f"{resource} not found")
