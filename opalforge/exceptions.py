from http import HTTPStatus
from typing import Optional


class OpalForgeError(Exception):
    """Base class for exceptions raised by the certificate service."""

    status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    kind: str = "OpalForgeError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

class ValidationError(OpalForgeError):
    """Raised when required input is missing or malformed."""

    status_code = HTTPStatus.BAD_REQUEST
    kind = "ValidationError"

class ConflictError(OpalForgeError):
    """Raised when a certificate with the same ID already exists."""

    status_code = HTTPStatus.CONFLICT
    kind = "ConflictError"

class NotFoundError(OpalForgeError):
    """Raised when a certificate is in neither the cache nor the durable store."""

    status_code = HTTPStatus.NOT_FOUND
    kind = "NotFoundError"

class DependencyError(OpalForgeError):
    """Raised when the durable store, the cache or the remote rendering API fails.

    When the failure comes from an upstream HTTP service its status and body are kept
    verbatim so they can be reported to the caller.
    """

    kind = "DependencyError"

    def __init__(
        self, message: str, upstream_status: Optional[int] = None, upstream_body: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body
