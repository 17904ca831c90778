import asyncio
import json
from decimal import Decimal

import httpx
import pytest
from pydantic import BaseModel, Field

from openrouter_kit.api.models import ChatCompletionRequest, ChatMessage, ResponseFormat
from openrouter_kit.core.llm.base import (
    DecodingFailedError,
    ErrorResponseError,
    InvalidResponseError,
    InvalidStatusCodeError,
    MissingContentError,
    SchemaDerivationError,
)
from openrouter_kit.core.llm.client import OpenRouterClient
from openrouter_kit.core.llm.schema import SchemaEnvelope, SchemaNode


class WeatherResponse(BaseModel):
    location: str = Field(description="The city and state, e.g. San Francisco, CA")
    temperature: float
    unit: str


def completion_body(content):
    return {
        "id": "gen-123",
        "provider": "OpenAI",
        "model": "openai/gpt-4o",
        "object": "chat.completion",
        "created": 1735689600,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 12, "completion_tokens": 9, "total_tokens": 21},
    }


def make_client(handler):
    return OpenRouterClient(
        api_key="sk-test",
        base_url="https://openrouter.test/api/v1",
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture()
def request_():
    return ChatCompletionRequest(
        model="openai/gpt-4o",
        messages=[ChatMessage(role="user", content="What is the weather like in Tokyo?")],
    )


def test_structured_completion_decodes_content(request_):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        content = json.dumps({"location": "Tokyo", "temperature": 18.0, "unit": "celsius"})
        return httpx.Response(200, json=completion_body(content))

    async def run():
        async with make_client(handler) as client:
            return await client.get_structured_completion(request_, WeatherResponse)

    weather = asyncio.run(run())
    assert weather == WeatherResponse(location="Tokyo", temperature=18.0, unit="celsius")

    sent = seen[0]
    assert sent.method == "POST"
    assert str(sent.url) == "https://openrouter.test/api/v1/chat/completions"
    assert sent.headers["Authorization"] == "Bearer sk-test"
    assert sent.headers["Content-Type"] == "application/json"

    body = json.loads(sent.content)
    assert body["stream"] is False
    assert body["response_format"]["type"] == "json_schema"
    envelope = body["response_format"]["json_schema"]
    assert envelope["name"] == "WeatherResponse"
    assert envelope["strict"] is True
    assert envelope["schema"]["required"] == ["location", "temperature", "unit"]
    assert envelope["schema"]["additionalProperties"] is False


def test_structured_completion_leaves_request_untouched(request_):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=completion_body('{"location": "Tokyo", "temperature": 1, "unit": "c"}'))

    original = request_.model_copy(
        update={
            "stream": True,
            "response_format": ResponseFormat(
                json_schema=SchemaEnvelope(name="Other", schema=SchemaNode.object(properties={}, required=[]))
            ),
        }
    )

    async def run():
        async with make_client(handler) as client:
            await client.get_structured_completion(original, WeatherResponse)

    asyncio.run(run())
    assert original.stream is True
    assert original.response_format.json_schema.name == "Other"


def test_structured_completion_keeps_raw_bytes_on_decode_failure(request_):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=completion_body("not json"))

    async def run():
        async with make_client(handler) as client:
            await client.get_structured_completion(request_, WeatherResponse)

    with pytest.raises(DecodingFailedError) as exc_info:
        asyncio.run(run())
    assert exc_info.value.data == b"not json"
    assert exc_info.value.underlying_error is not None


def test_structured_completion_wrong_shape_fails_decoding(request_):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=completion_body('{"location": "Tokyo"}'))

    async def run():
        async with make_client(handler) as client:
            await client.get_structured_completion(request_, WeatherResponse)

    with pytest.raises(DecodingFailedError):
        asyncio.run(run())


class Coordinate:
    @classmethod
    def describe_schema(cls) -> SchemaNode:
        return SchemaNode.object(
            properties={"lat": SchemaNode.number(), "lon": SchemaNode.number()},
            required=["lat", "lon"],
        )


class Forecast(BaseModel):
    summary: str

    @classmethod
    def describe_schema(cls) -> SchemaNode:
        return SchemaNode.object(
            properties={"summary": SchemaNode.string(description="One sentence", max_length=120)},
            required=["summary"],
        )


def test_structured_completion_rejects_undecodable_type_before_sending(request_):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=completion_body('{"lat": 1.5, "lon": 2.5}'))

    async def run():
        async with make_client(handler) as client:
            await client.get_structured_completion(request_, Coordinate)

    with pytest.raises(SchemaDerivationError, match="Coordinate"):
        asyncio.run(run())
    assert seen == []


def test_structured_completion_uses_self_described_schema(request_):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=completion_body('{"summary": "Sunny all day."}'))

    async def run():
        async with make_client(handler) as client:
            return await client.get_structured_completion(request_, Forecast)

    forecast = asyncio.run(run())
    assert forecast == Forecast(summary="Sunny all day.")
    envelope = seen[0]["response_format"]["json_schema"]
    assert envelope["name"] == "Forecast"
    assert envelope["schema"]["properties"]["summary"] == {
        "type": "string",
        "description": "One sentence",
        "maxLength": 120,
    }


@pytest.mark.parametrize(
    "choices",
    [
        [],
        [{"index": 0, "message": {"role": "assistant", "content": None}}],
        [{"index": 0, "message": {"role": "assistant", "content": ""}}],
    ],
)
def test_structured_completion_without_content(request_, choices):
    body = completion_body("unused")
    body["choices"] = choices

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    async def run():
        async with make_client(handler) as client:
            await client.get_structured_completion(request_, WeatherResponse)

    with pytest.raises(MissingContentError) as exc_info:
        asyncio.run(run())
    assert exc_info.value.response.id == "gen-123"
    assert len(exc_info.value.response.choices) == len(choices)


def test_error_body_becomes_error_response(request_):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"code": 401, "message": "No auth credentials found"}})

    async def run():
        async with make_client(handler) as client:
            await client.get_chat_completion(request_)

    with pytest.raises(ErrorResponseError) as exc_info:
        asyncio.run(run())
    assert exc_info.value.code == 401
    assert exc_info.value.message == "No auth credentials found"


def test_unstructured_error_body_becomes_status_error(request_):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad gateway</html>")

    async def run():
        async with make_client(handler) as client:
            await client.get_chat_completion(request_)

    with pytest.raises(InvalidStatusCodeError) as exc_info:
        asyncio.run(run())
    assert exc_info.value.status_code == 502


def test_unexpected_success_body_is_invalid_response(request_):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"unexpected": True})

    async def run():
        async with make_client(handler) as client:
            await client.get_chat_completion(request_)

    with pytest.raises(InvalidResponseError):
        asyncio.run(run())


def test_chat_completion_sends_request_as_given(request_):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=completion_body("Hello!"))

    async def run():
        async with make_client(handler) as client:
            return await client.get_chat_completion(request_.model_copy(update={"temperature": 0.2}))

    response = asyncio.run(run())
    assert response.choices[0].message.content == "Hello!"
    assert response.usage.total_tokens == 21
    assert seen[0] == {
        "model": "openai/gpt-4o",
        "messages": [{"role": "user", "content": "What is the weather like in Tokyo?"}],
        "temperature": 0.2,
    }


def test_models_pricing_is_decimal():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/api/v1/models"
        return httpx.Response(
            200,
            json={
                "data": [
                    {
                        "id": "openai/gpt-4o",
                        "name": "OpenAI: GPT-4o",
                        "created": 1715367049,
                        "description": "GPT-4o",
                        "context_length": 128000,
                        "architecture": {"modality": "text+image->text", "tokenizer": "GPT"},
                        "top_provider": {"context_length": 128000, "max_completion_tokens": 16384, "is_moderated": True},
                        "pricing": {
                            "prompt": "0.0000025",
                            "completion": "0.00001",
                            "image": "0.003613",
                            "request": "0",
                            "web_search": "",
                        },
                        "per_request_limits": None,
                    }
                ]
            },
        )

    async def run():
        async with make_client(handler) as client:
            return await client.get_available_models()

    response = asyncio.run(run())
    pricing = response.data[0].pricing
    assert pricing.prompt == Decimal("0.0000025")
    assert pricing.completion == Decimal("0.00001")
    assert pricing.image == Decimal("0.003613")
    assert pricing.request == Decimal("0")
    assert pricing.web_search is None
    assert pricing.internal_reasoning is None
    assert response.data[0].top_provider.is_moderated is True


def test_credits_outstanding_balance():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/credits"
        return httpx.Response(200, json={"data": {"total_credits": 50.5, "total_usage": 20.25}})

    async def run():
        async with make_client(handler) as client:
            return await client.get_credits()

    credits = asyncio.run(run()).data
    assert credits.outstanding_credits == pytest.approx(30.25)


def test_transport_failure_propagates(request_):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def run():
        async with make_client(handler) as client:
            await client.get_chat_completion(request_)

    with pytest.raises(httpx.ConnectError):
        asyncio.run(run())
