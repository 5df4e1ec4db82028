class TransferError(Exception):
    """Base error for the transfer lifecycle.

    Carries the HTTP status and the short error code rendered to clients.
    """

    status_code = 500
    code = "error"
    default_message = "request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TransferError):
    status_code = 400
    code = "bad_request"
    default_message = "invalid request parameters"


class UnauthorizedError(TransferError):
    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized"


class ForbiddenError(TransferError):
    status_code = 403
    code = "forbidden"
    default_message = "Secret word mismatch."


class NotFoundError(TransferError):
    status_code = 404
    code = "not_found"
    default_message = "Invalid code."


class GoneError(TransferError):
    status_code = 410
    code = "expired"
    default_message = "Code expired."


class StorageError(TransferError):
    status_code = 500
    code = "error"
    default_message = "storage failure"


class CodeConflictError(Exception):
    """Raised by the record store when a code is already taken."""

    def __init__(self, code: str):
        self.transfer_code = code
        super().__init__(f"transfer code already in use: {code}")
