"""
Exception hierarchy for paste operations.
Each error carries the HTTP status the web layer answers with.
"""
from typing import Optional

GENERIC_DELETE_ERROR = "Invalid Paste ID or Key"


class PasteError(Exception):
    """Base class for all paste errors."""

    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class PasteValidationError(PasteError):
    status_code = 400
    default_message = "Invalid paste request"


class PasteNotFound(PasteError):
    status_code = 404
    default_message = "Paste not found or expired"


class PasteAuthorizationError(PasteError):
    status_code = 403
    default_message = GENERIC_DELETE_ERROR


class PasteConflict(PasteError):
    status_code = 409
    default_message = "Paste ID already exists"


class PayloadTooLarge(PasteError):
    status_code = 413
    default_message = "Content too big!"


class StorageUnavailable(PasteError):
    """Backend could not be reached."""

    status_code = 503
    default_message = "Storage backend unavailable"


class StorageIOError(PasteError):
    """Filesystem or transport failure while talking to a backend."""

    status_code = 500
    default_message = "Storage I/O failure"
