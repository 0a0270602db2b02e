"""Domain errors that map onto HTTP status codes.

Routes and services raise these; the API layer converts them into
``{"error": message}`` responses with the carried status.
"""

from __future__ import annotations

from typing import Any


class PebloqError(Exception):
    """Base exception for request-level failures."""

    status_code: int = 500

    def __init__(self, message: str, *, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(PebloqError):
    """Raised for malformed or semantically invalid input."""

    status_code = 400


class UnauthorizedError(PebloqError):
    """Raised when no valid session accompanies the request."""

    status_code = 401


class ForbiddenError(PebloqError):
    """Raised when the caller is not allowed to perform the operation."""

    status_code = 403


class NotFoundError(PebloqError):
    status_code = 404


class ConflictError(PebloqError):
    status_code = 409


class TooEarlyError(PebloqError):
    """Raised when a transaction exists but lacks the required confirmations."""

    status_code = 425


class UpstreamUnavailableError(PebloqError):
    """Raised when a required upstream (RPC, database) cannot be reached."""

    status_code = 503
