"""Error taxonomy shared by the guards, the store and the HTTP layer.

Every `ApiError` renders as `{"message": ...}` with its status code
(see `medinova.api.server`). `SigningError` is a configuration fault and is
deliberately not an `ApiError`.
"""

from __future__ import annotations

from typing import Dict, Optional


class ApiError(Exception):
    status_code: int = 500
    default_message: str = "internal_error"

    def __init__(self, message: Optional[str] = None, *, headers: Optional[Dict[str, str]] = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)


class BadRequest(ApiError):
    status_code = 400
    default_message = "bad_request"


class Unauthenticated(ApiError):
    status_code = 401
    default_message = "unauthorized access"


class Forbidden(ApiError):
    status_code = 403
    default_message = "forbidden access"


class NotFound(ApiError):
    status_code = 404
    default_message = "not_found"


class Internal(ApiError):
    status_code = 500
    default_message = "internal_error"


class SigningError(RuntimeError):
    """The token signing secret is missing or unusable."""


class StoreClosedError(RuntimeError):
    """An operation was attempted on a DocumentStore that is not open."""


class DuplicateKeyError(ValueError):
    """An insert collided with an existing value of a unique field."""
