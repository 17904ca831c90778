"""OpenRouter wire models for requests and responses."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    PlainValidator,
    field_serializer,
)

from openrouter_kit.core.llm.schema import SchemaEnvelope
from openrouter_kit.core.llm.utils import parse_decimal

DecimalString = Annotated[
    Decimal,
    BeforeValidator(parse_decimal),
    PlainSerializer(str, return_type=str, when_used="json-unless-none"),
]
OptionalDecimalString = Annotated[
    Decimal | None,
    BeforeValidator(parse_decimal),
    PlainSerializer(str, return_type=str, when_used="json-unless-none"),
]


class ChatMessage(BaseModel):
    """Chat message."""

    role: Literal["system", "user", "assistant", "tool"] = Field(default="user", description="Sender role")
    content: str = Field(description="Message content")


# Requests -------------------------------------------------------------


class ProviderPreferences(BaseModel):
    """Provider routing hints."""

    model_config = ConfigDict(frozen=True)

    sort: str | None = Field(default=None, description="Provider sort strategy, e.g. 'price' or 'throughput'")


class ReasoningEffort(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ReasoningConfig(BaseModel):
    """Reasoning token settings."""

    model_config = ConfigDict(frozen=True)

    effort: ReasoningEffort | None = Field(default=None, description="Reasoning effort")
    max_tokens: int | None = Field(default=None, description="Reasoning token budget")
    exclude: bool | None = Field(default=None, description="Exclude reasoning from the response")


def _ensure_envelope(value: Any) -> SchemaEnvelope:
    if not isinstance(value, SchemaEnvelope):
        raise ValueError(f"Expected SchemaEnvelope, got {type(value).__name__}")
    return value


class ResponseFormat(BaseModel):
    """Structured output format carrying a JSON schema envelope."""

    model_config = ConfigDict(frozen=True)

    type: Literal["json_schema"] = "json_schema"
    json_schema: Annotated[SchemaEnvelope, PlainValidator(_ensure_envelope)] = Field(
        description="Named schema the reply must conform to"
    )

    @field_serializer("json_schema")
    def _serialize_schema(self, envelope: SchemaEnvelope) -> Dict[str, Any]:
        return envelope.to_dict()


class ChatCompletionRequest(BaseModel):
    """Request for creating chat completion."""

    model_config = ConfigDict(frozen=True)

    model: str = Field(description="Model identifier, e.g. 'openai/gpt-4o'")
    messages: List[ChatMessage] = Field(description="List of messages")
    stream: bool | None = Field(default=None, description="Enable streaming mode")
    max_tokens: int | None = Field(default=None, description="Maximum number of tokens")
    temperature: float | None = Field(default=None, description="Generation temperature")
    seed: int | None = Field(default=None, description="Sampling seed")
    top_p: float | None = None
    top_k: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    repetition_penalty: float | None = None
    logit_bias: Dict[str, float] | None = Field(default=None, description="Token id to bias")
    top_logprobs: int | None = None
    min_p: float | None = None
    top_a: float | None = None
    transforms: List[str] | None = Field(default=None, description="Prompt transforms, e.g. 'middle-out'")
    models: List[str] | None = Field(default=None, description="Fallback models for routing")
    route: str | None = Field(default=None, description="Routing strategy, e.g. 'fallback'")
    provider: ProviderPreferences | None = None
    reasoning: ReasoningConfig | None = None
    response_format: ResponseFormat | None = None

    def to_payload(self) -> str:
        """JSON body with unset fields omitted."""
        return self.model_dump_json(exclude_none=True)


# Responses ------------------------------------------------------------


class ErrorDetails(BaseModel):
    code: int = Field(description="Error code, usually the HTTP status")
    message: str = Field(description="Human readable error")
    metadata: Dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Structured error body returned with non-2xx replies."""

    error: ErrorDetails


class Usage(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class AssistantMessage(BaseModel):
    role: Literal["system", "user", "assistant", "tool"] = "assistant"
    content: str | None = None


class ChatCompletionChoice(BaseModel):
    """Choice in chat completion response."""

    index: int = Field(default=0, description="Choice index")
    message: AssistantMessage = Field(description="Response message")
    finish_reason: str | None = Field(default=None, description="Finish reason")
    native_finish_reason: str | None = None
    logprobs: Any | None = None


class ChatCompletionResponse(BaseModel):
    """Chat completion response (non-streaming)."""

    id: str = Field(description="Response ID")
    provider: str | None = Field(default=None, description="Upstream provider that served the request")
    model: str = Field(description="Model used")
    object: str = "chat.completion"
    created: int = Field(description="Creation time")
    choices: List[ChatCompletionChoice] = Field(description="List of choices")
    usage: Usage | None = Field(default=None, description="Usage information")


class Delta(BaseModel):
    role: str | None = None
    content: str | None = None


class ChunkChoice(BaseModel):
    index: int = 0
    delta: Delta
    finish_reason: str | None = None
    native_finish_reason: str | None = None


class ChatCompletionChunk(BaseModel):
    """One incremental unit of a streaming completion."""

    id: str
    provider: str | None = None
    model: str
    object: str = "chat.completion.chunk"
    created: datetime
    choices: List[ChunkChoice]
    usage: Usage | None = None

    @property
    def text(self) -> str:
        return "".join(choice.delta.content or "" for choice in self.choices)


class Architecture(BaseModel):
    modality: str
    tokenizer: str


class TopProvider(BaseModel):
    context_length: int | None = None
    max_completion_tokens: int | None = None
    is_moderated: bool


class Pricing(BaseModel):
    """Per-token and per-request prices in USD, parsed exactly."""

    prompt: DecimalString
    completion: DecimalString
    image: OptionalDecimalString = None
    request: OptionalDecimalString = None
    input_cache_read: OptionalDecimalString = None
    input_cache_write: OptionalDecimalString = None
    web_search: OptionalDecimalString = None
    internal_reasoning: OptionalDecimalString = None


class OpenRouterModel(BaseModel):
    id: str
    name: str
    created: datetime
    description: str = ""
    context_length: int | None = None
    architecture: Architecture
    top_provider: TopProvider
    pricing: Pricing
    per_request_limits: Dict[str, str] | None = None


class ListAvailableModelsResponse(BaseModel):
    data: List[OpenRouterModel]


class OpenRouterCredits(BaseModel):
    total_credits: float
    total_usage: float

    @property
    def outstanding_credits(self) -> float:
        return self.total_credits - self.total_usage


class GetCreditsResponse(BaseModel):
    data: OpenRouterCredits
