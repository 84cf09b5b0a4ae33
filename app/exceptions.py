"""
Domain errors raised by the storage layer and the services.

Each error carries the HTTP status the API answers with; the mapping is
applied in one place by the exception handler registered in ``app.main``.
Routers never catch these.
"""


class BoardError(Exception):
    status_code: int = 500
    detail: str = "Internal server error"

    def __init__(self, detail: str | None = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class NotFound(BoardError):
    status_code = 404
    detail = "Not found"


class Forbidden(BoardError):
    status_code = 403
    detail = "Permission denied"


class Unauthenticated(BoardError):
    status_code = 401
    detail = "Login required"


class DuplicateEmail(BoardError):
    status_code = 409
    detail = "Duplicate email"


class DuplicateNickname(BoardError):
    status_code = 409
    detail = "Duplicate nickname"


class ValidationError(BoardError):
    status_code = 400
    detail = "Missing required fields"


class InvalidCredentials(BoardError):
    status_code = 401
    detail = "Invalid credentials"


class StorageUnavailable(BoardError):
    status_code = 500
    detail = "Storage unavailable"


class CorruptData(BoardError):
    status_code = 500
    detail = "Stored data is corrupt"
