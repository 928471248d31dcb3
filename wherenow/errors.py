"""Error taxonomy — every failure carries a machine-readable code and an HTTP status."""


class ApiError(Exception):
    status = 500

    def __init__(self, code: str, status: int | None = None):
        super().__init__(code)
        self.code = code
        if status is not None:
            self.status = status

    def to_dict(self) -> dict:
        return {"error": self.code}


class BadRequest(ApiError):
    status = 400


class Unauthorized(ApiError):
    status = 401

    def __init__(self, code: str = "unauthorized"):
        super().__init__(code)


class NotFound(ApiError):
    status = 404


class PayloadTooLarge(ApiError):
    status = 413

    def __init__(self, code: str = "payload_too_large"):
        super().__init__(code)


class StorageError(ApiError):
    """I/O failure on the location log. Chain the causing OSError with ``raise ... from``."""

    status = 500
