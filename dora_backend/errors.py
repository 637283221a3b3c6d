# dora_backend/errors.py

from __future__ import annotations

from typing import Any, Optional


class DashboardError(Exception):
    """Base for errors that map onto an HTTP status + `{error}` body."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None, public_details: bool = False):
        super().__init__(message)
        self.message = message
        self.details = details
        # details that are always safe to show (e.g. the rejected field names)
        self.public_details = public_details

    def to_dict(self, expose_details: bool = False) -> dict:
        body = {"error": self.message}
        if self.details is not None and (self.public_details or expose_details):
            body["details"] = self.details
        return body


class ValidationError(DashboardError):
    status_code = 400


class NotFoundError(DashboardError):
    status_code = 404


class UpstreamError(DashboardError):
    """Database failure of any kind. Never retried."""

    status_code = 500
