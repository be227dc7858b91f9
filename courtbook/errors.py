"""Errors raised by booking and scheduling code.

Each error carries the HTTP status it maps to; the app registers a single
handler that renders them as ``{"detail": ...}`` like ``HTTPException``.
"""


class CourtbookError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class BadRequest(CourtbookError):
    status_code = 400


class Unauthorized(CourtbookError):
    status_code = 401


class Forbidden(CourtbookError):
    status_code = 403


class NotFound(CourtbookError):
    status_code = 404


class Conflict(CourtbookError):
    status_code = 409
