"""OpenRouter integration layer."""

from .base import (
    DecodingFailedError,
    Endpoint,
    ErrorResponseError,
    InvalidResponseDataError,
    InvalidResponseError,
    InvalidStatusCodeError,
    MissingContentError,
    OpenRouterError,
    SchemaDerivationError,
)
from .client import OpenRouterClient
from .factory import create_client
from .schema import SchemaConvertible, SchemaEnvelope, SchemaNode, SchemaType, SchemaValue
from .schema_compiler import SchemaCompiler, derive_schema, enum_schema
from .streaming import ChatCompletionStream, StreamingSession

__all__ = [
    "ChatCompletionStream",
    "DecodingFailedError",
    "Endpoint",
    "ErrorResponseError",
    "InvalidResponseDataError",
    "InvalidResponseError",
    "InvalidStatusCodeError",
    "MissingContentError",
    "OpenRouterClient",
    "OpenRouterError",
    "SchemaCompiler",
    "SchemaConvertible",
    "SchemaDerivationError",
    "SchemaEnvelope",
    "SchemaNode",
    "SchemaType",
    "SchemaValue",
    "StreamingSession",
    "create_client",
    "derive_schema",
    "enum_schema",
]
