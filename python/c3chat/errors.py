"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"
    E_QUOTA_EXCEEDED = "E_QUOTA_EXCEEDED"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_USER_NOT_FOUND = "E_USER_NOT_FOUND"
    E_CHAT_NOT_FOUND = "E_CHAT_NOT_FOUND"
    E_KEY_NOT_FOUND = "E_KEY_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_UNSUPPORTED_PROVIDER = "E_UNSUPPORTED_PROVIDER"
    E_NO_CREDENTIAL = "E_NO_CREDENTIAL"

    # Server errors
    E_AUTH_UNAVAILABLE = "E_AUTH_UNAVAILABLE"  # 503
    E_PROVIDER_INVOCATION = "E_PROVIDER_INVOCATION"  # 502
    E_PERSISTENCE = "E_PERSISTENCE"  # 500
    E_INTERNAL = "E_INTERNAL"  # 500


ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_QUOTA_EXCEEDED: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_USER_NOT_FOUND: 404,
    ApiErrorCode.E_CHAT_NOT_FOUND: 404,
    ApiErrorCode.E_KEY_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_UNSUPPORTED_PROVIDER: 400,
    ApiErrorCode.E_NO_CREDENTIAL: 400,
    ApiErrorCode.E_AUTH_UNAVAILABLE: 503,
    ApiErrorCode.E_PROVIDER_INVOCATION: 502,
    ApiErrorCode.E_PERSISTENCE: 500,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class QuotaExceededError(ApiError):
    """Free usage exhausted and no stored key for the provider."""

    def __init__(self, message: str = "Free usage limit reached. Please add your own API key."):
        super().__init__(ApiErrorCode.E_QUOTA_EXCEEDED, message)


class PersistenceError(ApiError):
    """A write to the database failed after the provider call succeeded."""

    def __init__(self, message: str = "Failed to save the reply. Please try again."):
        super().__init__(ApiErrorCode.E_PERSISTENCE, message)
