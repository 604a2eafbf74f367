# homelead/services/errors.py
from __future__ import annotations


class HomeleadError(Exception):
    """Base for domain errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(HomeleadError):
    status_code = 404


class Forbidden(HomeleadError):
    status_code = 403


class ValidationFailed(HomeleadError):
    status_code = 400


class AuthenticationFailed(HomeleadError):
    status_code = 401


class Conflict(HomeleadError):
    status_code = 409
