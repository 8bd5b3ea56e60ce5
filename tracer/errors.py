"""Typed failures raised by the core.

Routers never build these; services raise them and the app-level handler in
``tracer.main`` turns them into JSON responses.
"""

from enum import Enum

class DenyReason(str, Enum):
    not_owner = "not-owner"
    not_member = "not-member"
    insufficient_role = "insufficient-role"
    inactive = "inactive"

class TracerError(Exception):
    status_code: int = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

class NotFound(TracerError):
    status_code = 404

class Forbidden(TracerError):
    status_code = 403

    def __init__(self, reason: DenyReason, detail: str = "forbidden"):
        super().__init__(detail)
        self.reason = reason

class InvalidOperation(TracerError):
    status_code = 400

class ValidationError(TracerError):
    status_code = 422
