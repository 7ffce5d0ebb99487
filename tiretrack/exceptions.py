# tiretrack/exceptions.py
"""
Domain errors raised by the service layer.
main.py maps each one to an HTTP status; the import engine records them per row.
"""


class TireTrackError(Exception):
    """Base class for all expected, user-facing failures."""

    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(TireTrackError):
    status_code = 422


class InvalidPositionError(ValidationError):
    def __init__(self, raw: str):
        super().__init__(f"Unrecognized tire position: {raw!r}")
        self.raw = raw


class NotFoundError(TireTrackError):
    status_code = 404


class ConflictError(TireTrackError):
    status_code = 409


class AuthError(TireTrackError):
    status_code = 401


class RateLimitError(TireTrackError):
    status_code = 429

    def __init__(self, detail: str, retry_after: int = 0):
        super().__init__(detail)
        self.retry_after = retry_after
