from typing import Annotated, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeFloat,
    NonNegativeInt,
    PositiveFloat,
    PositiveInt,
    TypeAdapter,
)

from shared.constants import DEFAULT_MODEL, DEFAULT_TEMPERATURE

ChatRole = Literal["user", "assistant"]
# providers may report fractional counters; ints stay ints
TokenCount = Union[NonNegativeInt, NonNegativeFloat]


class ChatTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: ChatRole
    text: str


class RequestSettings(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    model: str = DEFAULT_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    concise_mode: bool = Field(default=False, alias="conciseMode")
    persona: str = ""


class UsageStats(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    prompt_tokens: TokenCount = Field(alias="promptTokens")
    completion_tokens: TokenCount = Field(alias="completionTokens")
    total_tokens: Union[PositiveInt, PositiveFloat] = Field(alias="totalTokens")


class ChatPayload(BaseModel):
    messages: list[ChatTurn] = Field(default_factory=list)
    settings: RequestSettings = Field(default_factory=RequestSettings)


class ChatResponse(BaseModel):
    text: str
    usage: UsageStats | None = None


class ErrorResponse(BaseModel):
    error: str


class ChunkEvent(BaseModel):
    type: Literal["chunk"] = "chunk"
    text: str


class UsageEvent(BaseModel):
    type: Literal["usage"] = "usage"
    usage: UsageStats


class DoneEvent(BaseModel):
    type: Literal["done"] = "done"


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: str


StreamEvent = Annotated[
    Union[ChunkEvent, UsageEvent, DoneEvent, ErrorEvent],
    Field(discriminator="type"),
]

stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)
