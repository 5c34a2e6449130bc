"""
Error taxonomy.

Every failure an API handler can surface maps to exactly one of these,
and each carries the HTTP status it renders as:

    Unauthenticated  401  no session, or the session did not validate
    Forbidden        403  valid session, insufficient role
    ValidationError  400  malformed input
    NotFound         404  resource absent
    UpstreamFailure  500  identity provider or data store failed

"Who are you" (401) is kept distinct from "you can't do that" (403).
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base class for errors that render as a JSON ``{"error": ...}`` body."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class Unauthenticated(AppError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(AppError):
    status_code = 403
    default_message = "Forbidden"


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid input"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class UpstreamFailure(AppError):
    """
    Identity provider or data store unreachable, erroring, or returning
    a payload of the wrong shape.

    The message is for logs only. Clients always get the generic body.
    """

    status_code = 500

    def to_body(self) -> dict[str, Any]:
        return {"error": self.default_message}
