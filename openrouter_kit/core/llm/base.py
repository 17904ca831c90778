from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from pydantic import ValidationError

if TYPE_CHECKING:
    from openrouter_kit.api.models import ChatCompletionResponse, ErrorResponse


DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


class HTTPMethod(str, Enum):
    GET = "GET"
    POST = "POST"


class Endpoint(str, Enum):
    """Remote endpoints consumed by the client."""

    CHAT_COMPLETIONS = "/chat/completions"
    MODELS = "/models"
    CREDITS = "/credits"

    @property
    def path(self) -> str:
        return self.value


class OpenRouterError(RuntimeError):
    """Base error for OpenRouter interaction failures."""


class InvalidResponseError(OpenRouterError):
    """Raised when a reply cannot be recognised as the expected response."""

    def __init__(self, message: str = "Invalid response from server") -> None:
        super().__init__(message)


class InvalidStatusCodeError(OpenRouterError):
    """Raised for a non-2xx reply whose body is not a structured error."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"Invalid status code: {status_code}")


class ErrorResponseError(OpenRouterError):
    """Raised for a non-2xx reply carrying a structured error body."""

    def __init__(self, response: ErrorResponse) -> None:
        self.response = response
        super().__init__(f"API Error ({self.code}): {self.message}")

    @property
    def code(self) -> int:
        return self.response.error.code

    @property
    def message(self) -> str:
        return self.response.error.message


class MissingContentError(OpenRouterError):
    """Raised when a completion carries no text content to decode."""

    def __init__(self, response: ChatCompletionResponse) -> None:
        self.response = response
        super().__init__("Completion response contains no message content")


class InvalidResponseDataError(OpenRouterError):
    """Raised when message content cannot be turned into UTF-8 bytes."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid response data: {reason}")


class DecodingFailedError(OpenRouterError):
    """Raised when message content does not decode into the requested type.

    The raw bytes are kept so callers can inspect malformed model output.
    """

    def __init__(self, underlying_error: Exception, data: bytes) -> None:
        self.underlying_error = underlying_error
        self.data = data
        super().__init__(f"Failed to decode structured response: {underlying_error}")


class SchemaDerivationError(OpenRouterError):
    """Raised when a JSON schema cannot be derived for a type."""


def error_from_status(status_code: int, body: bytes) -> OpenRouterError:
    """Build the error for a non-2xx reply from its (possibly partial) body."""

    from openrouter_kit.api.models import ErrorResponse

    try:
        return ErrorResponseError(ErrorResponse.model_validate_json(body))
    except ValidationError:
        return InvalidStatusCodeError(status_code)
