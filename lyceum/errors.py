"""
Domain errors raised by services and surfaced by the API as structured responses.

Each error carries the HTTP status it maps to; ``to_dict`` gives the response
body (minus request metadata, which the exception handler adds).
"""

from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base class for recoverable application errors."""

    status_code: int = 500
    code: str = "app_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def extra(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        body.update(self.extra())
        return body


class ValidationError(AppError):
    """Bad input: out-of-range score, short reflection, malformed field."""

    status_code = 400
    code = "validation_error"

    def __init__(self, message: str, invalid_fields: Optional[List[str]] = None):
        super().__init__(message)
        self.invalid_fields = invalid_fields or []

    def extra(self) -> Dict[str, Any]:
        return {"invalid_fields": self.invalid_fields}


class SequenceError(AppError):
    """An event arrived out of order for the current progress status."""

    status_code = 409
    code = "sequence_error"

    def __init__(self, message: str, current_status: Optional[str] = None, event: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status
        self.event = event

    def extra(self) -> Dict[str, Any]:
        return {"current_status": self.current_status, "event": self.event}


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found" if identifier is None else f"{resource} not found: {identifier}"
        super().__init__(message)
        self.resource = resource


class ConflictError(AppError):
    status_code = 409
    code = "conflict"


class CircularDependencyError(AppError):
    """Adding an edge would close a cycle; ``path`` lists the cycle's nodes."""

    status_code = 400
    code = "circular_dependency"

    def __init__(self, message: str, path: List[str]):
        super().__init__(message)
        self.path = path

    def extra(self) -> Dict[str, Any]:
        return {"path": self.path}


class DependencyError(AppError):
    """A record cannot be removed while other records depend on it."""

    status_code = 400
    code = "dependency_error"

    def __init__(self, message: str, dependencies: List[str]):
        super().__init__(message)
        self.dependencies = dependencies

    def extra(self) -> Dict[str, Any]:
        return {"dependencies": self.dependencies}


class UnauthorizedError(AppError):
    status_code = 401
    code = "unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    code = "forbidden"
