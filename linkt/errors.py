"""
Typed failures raised by the share store and mapped to HTTP responses.
"""


class ShareError(Exception):
    """Base error carrying the HTTP status it renders as."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ShareError):
    """Bad code shape, missing payload or oversized payload."""
    status_code = 400


class Unauthorized(ShareError):
    status_code = 401


class NotFound(ShareError):
    status_code = 404


class Expired(ShareError):
    """Entry exists but is past its time-to-live."""
    status_code = 410


class StorageFailure(ShareError):
    status_code = 500
