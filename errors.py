"""
Error kinds raised by the Poetic Vault stores.

Every failure carries a stable `kind` and a human readable `message`; the
HTTP layer maps `status_code` straight onto the response.
"""

from typing import Dict, List, Optional


class ServiceError(Exception):
    kind = "Internal"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class ValidationFailure(ServiceError):
    """Input broke one or more field constraints. `errors` lists all of them."""

    kind = "ValidationFailure"
    status_code = 400

    def __init__(self, errors: List[Dict[str, str]], message: Optional[str] = None):
        super().__init__(message or "Validation failed")
        self.errors = errors

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["errors"] = self.errors
        return d


class Conflict(ServiceError):
    kind = "Conflict"
    status_code = 409


class Unauthorized(ServiceError):
    kind = "Unauthorized"
    status_code = 401


class Forbidden(ServiceError):
    kind = "Forbidden"
    status_code = 403


class NotFound(ServiceError):
    kind = "NotFound"
    status_code = 404


class UpstreamFailure(ServiceError):
    kind = "UpstreamFailure"
    status_code = 502


class Internal(ServiceError):
    kind = "Internal"
    status_code = 500
