from __future__ import annotations

import logging
from typing import Any, Type, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic.errors import PydanticSchemaGenerationError

from openrouter_kit.api.models import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    GetCreditsResponse,
    ListAvailableModelsResponse,
    ResponseFormat,
)
from openrouter_kit.core.llm.base import (
    DEFAULT_BASE_URL,
    DecodingFailedError,
    Endpoint,
    HTTPMethod,
    InvalidResponseDataError,
    InvalidResponseError,
    MissingContentError,
    SchemaDerivationError,
    error_from_status,
)
from openrouter_kit.core.llm.schema_compiler import SchemaCompiler
from openrouter_kit.core.llm.streaming import MAX_ERROR_BODY_BYTES, ChatCompletionStream, StreamingSession
from openrouter_kit.core.llm.utils import truncate

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class OpenRouterClient:
    """Async client for the OpenRouter API.

    Plain requests may run concurrently over the shared ``httpx.AsyncClient``.
    Streaming goes through a single ``StreamingSession``: starting a stream
    cancels the one already running.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float | None = 120.0,
        proxy: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        max_error_body_bytes: int = MAX_ERROR_BODY_BYTES,
    ) -> None:
        client_kwargs: dict[str, Any] = {
            "base_url": base_url.rstrip("/"),
            "headers": {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            "timeout": timeout,
        }
        if proxy and proxy.strip():
            client_kwargs["proxy"] = proxy
        if transport is not None:
            client_kwargs["transport"] = transport
        self._http = httpx.AsyncClient(**client_kwargs)
        self._compiler = SchemaCompiler()
        self._streaming = StreamingSession(self._http, max_error_body_bytes=max_error_body_bytes)

    @property
    def base_url(self) -> str:
        return str(self._http.base_url)

    async def __aenter__(self) -> "OpenRouterClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._streaming.stop_streaming()
        await self._http.aclose()

    # Plain requests ---------------------------------------------------

    async def _perform_request(self, method: HTTPMethod, endpoint: Endpoint, body: str | None = None) -> bytes:
        logger.debug(f"{method.value} {endpoint.path}")
        response = await self._http.request(method.value, endpoint.path, content=body)
        if not response.is_success:
            raise error_from_status(response.status_code, response.content)
        return response.content

    async def _perform_decodable_request(
        self, response_model: Type[M], method: HTTPMethod, endpoint: Endpoint, body: str | None = None
    ) -> M:
        data = await self._perform_request(method, endpoint, body)
        try:
            return response_model.model_validate_json(data)
        except ValidationError as err:
            raise InvalidResponseError(
                f"Unexpected {endpoint.path} response body: {truncate(data.decode('utf-8', errors='replace'))}"
            ) from err

    async def get_available_models(self) -> ListAvailableModelsResponse:
        return await self._perform_decodable_request(ListAvailableModelsResponse, HTTPMethod.GET, Endpoint.MODELS)

    async def get_credits(self) -> GetCreditsResponse:
        return await self._perform_decodable_request(GetCreditsResponse, HTTPMethod.GET, Endpoint.CREDITS)

    async def get_chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        """Send the request as given and return the full completion."""
        return await self._perform_decodable_request(
            ChatCompletionResponse, HTTPMethod.POST, Endpoint.CHAT_COMPLETIONS, request.to_payload()
        )

    # Structured output ------------------------------------------------

    async def get_structured_completion(self, request: ChatCompletionRequest, response_type: Type[T]) -> T:
        """Request a completion constrained to ``response_type`` and decode it.

        The schema is derived from ``response_type`` and sent as a strict
        ``json_schema`` response format under the type's name; any
        ``response_format`` already on ``request`` is replaced and streaming is
        disabled. The caller's request is left untouched.

        ``response_type`` must also be decodable by pydantic (a model, a
        dataclass, or a type with ``__get_pydantic_core_schema__``). This is
        checked before anything is sent.

        Raises:
            SchemaDerivationError: no schema or no decoder for ``response_type``.
            MissingContentError: the reply has no choice or no text.
            InvalidResponseDataError: the text cannot be encoded as UTF-8. Replies
                carrying unpaired surrogates are already rejected while the body
                is validated, as ``InvalidResponseError``, so this is a guard only.
            DecodingFailedError: the text is not valid JSON for ``response_type``.
        """
        envelope = self._compiler.compile(response_type, name=response_type.__name__, strict=True)
        try:
            adapter = TypeAdapter(response_type)
        except PydanticSchemaGenerationError as err:
            raise SchemaDerivationError(f"Cannot decode responses into {response_type.__name__}: {err}") from err
        structured_request = request.model_copy(
            update={"stream": False, "response_format": ResponseFormat(json_schema=envelope)}
        )

        response = await self.get_chat_completion(structured_request)

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise MissingContentError(response)

        try:
            data = content.encode("utf-8")
        except UnicodeEncodeError as err:
            raise InvalidResponseDataError(f"Could not encode response content as UTF-8: {err}") from err

        try:
            return adapter.validate_json(data)
        except ValidationError as err:
            logger.warning(
                "Structured response failed to decode",
                extra={"model": request.model, "schema_name": envelope.name, "content": truncate(content)},
            )
            raise DecodingFailedError(err, data) from err

    # Streaming --------------------------------------------------------

    async def stream_chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionStream:
        """Start streaming ``request``, cancelling any stream already running."""
        return await self._streaming.start_stream(request)

    async def stop_streaming(self) -> None:
        await self._streaming.stop_streaming()

    @property
    def is_streaming(self) -> bool:
        return self._streaming.is_active
