"""Application exception types."""

from voicememo.schemas.error import ErrorResponse


class ApiError(Exception):
    """Structured API error that maps directly to contract error payloads."""

    def __init__(self, status_code: int, code: str, message: str, details: dict | None = None) -> None:
        self.status_code = status_code
        self.payload = ErrorResponse(code=code, message=message, details=details)
        super().__init__(message)


def not_found() -> ApiError:
    return ApiError(status_code=404, code="RESOURCE_NOT_FOUND", message="Resource not found")


def validation_error(message: str, details: dict | None = None) -> ApiError:
    return ApiError(status_code=400, code="VALIDATION_ERROR", message=message, details=details)


__all__ = ["ApiError", "not_found", "validation_error"]
