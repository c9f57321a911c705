from typing import Optional


class AppError(Exception):
    """Base application error."""


class InputError(AppError):
    """Raised when source URL, CLI arguments or credentials are invalid."""


class HttpRequestError(AppError):
    """Raised when an HTTP request fails.

    Args:
        message: Error summary.
        status_code: HTTP status code, 0 for network errors.
        body: Raw response body text.
    """

    def __init__(self, message: str, status_code: int = 0, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ApiResponseError(AppError):
    """Raised when Notion/Feishu API returns an error payload.

    Args:
        message: Error summary.
        code: Destination error code (int for Feishu, str for Notion).
        msg: Destination error message.
        status_code: HTTP status code when known.
    """

    def __init__(
        self,
        message: str,
        code: object = None,
        msg: str = "",
        status_code: int = 0
    ) -> None:
        super().__init__(message)
        self.code = code
        self.msg = msg
        self.status_code = status_code


class FetchError(AppError):
    """Raised when the source page or an image cannot be fetched."""


class RemoteWriteError(AppError):
    """Classified destination failure.

    Args:
        cause: Stable cause name from the error translator.
        message: Human readable message.
        detail: Original destination message.
        created_id: Container id created before the failure, if any.
    """

    def __init__(
        self,
        cause: str,
        message: str,
        detail: str = "",
        created_id: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.message = message
        self.detail = detail
        self.created_id = created_id


class SchemaError(RemoteWriteError):
    """Raised when a destination lacks an expected property or field."""

    def __init__(
        self,
        message: str,
        detail: str = "",
        created_id: Optional[str] = None
    ) -> None:
        super().__init__(
            cause = "SchemaMismatch",
            message = message,
            detail = detail,
            created_id = created_id
        )
