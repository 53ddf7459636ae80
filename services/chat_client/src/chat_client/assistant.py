import logging
import math
import random
import time
from collections.abc import Sequence
from typing import Literal

import httpx
from pydantic import BaseModel

from chat_client.relay_client import ChunkCallback, stream_chat
from chat_client.settings import ClientSettings, get_client_settings
from shared.errors import ChatRelayError
from shared.schemas import ChatTurn, RequestSettings

logger = logging.getLogger(__name__)

FALLBACK_NOTICE = "Live API failed. Using mock reply instead."

_RESPONSE_FRAGMENTS = (
    "That is an interesting prompt.",
    "I can help you break this down.",
    "Here is a clean way to think about it.",
    "This is a strong direction to continue with.",
)


class ReplyMeta(BaseModel):
    model: str
    temperature: float
    source: Literal["live", "mock"]
    duration_ms: float
    prompt_tokens: int | float
    completion_tokens: int | float
    total_tokens: int | float


class AssistantReply(BaseModel):
    text: str
    meta: ReplyMeta
    error: str | None = None


class UsageTally(BaseModel):
    prompt_tokens: int | float = 0
    completion_tokens: int | float = 0
    total_tokens: int | float = 0
    avg_response_ms: float = 0.0
    last_response_ms: float | None = None
    responses: int = 0
    error_count: int = 0

    def record(self, reply: AssistantReply) -> None:
        if reply.error is not None:
            self.error_count += 1
            return
        meta = reply.meta
        responses = self.responses + 1
        self.avg_response_ms = (self.avg_response_ms * self.responses + meta.duration_ms) / responses
        self.responses = responses
        self.last_response_ms = meta.duration_ms
        self.prompt_tokens += meta.prompt_tokens
        self.completion_tokens += meta.completion_tokens
        self.total_tokens += meta.total_tokens


def estimate_tokens(text: str) -> int:
    return max(1, math.ceil(len(text.strip()) / 4))


def create_mock_reply(
    user_text: str,
    chat_settings: RequestSettings,
    rng: random.Random | None = None,
) -> str:
    rng = rng or random.Random()
    persona = chat_settings.persona.strip()
    prefix = f"{persona}: " if persona else "Assistant: "
    base = rng.choice(_RESPONSE_FRAGMENTS)
    model_note = f"({chat_settings.model}, temp {chat_settings.temperature:.1f})"

    if chat_settings.concise_mode:
        return f"{prefix}{base} {model_note}"
    return (
        f'{prefix}{base} You said "{user_text.strip()}". '
        f"I can expand this into a step-by-step answer when you are ready. {model_note}"
    )


def _meta(chat_settings, source, started, prompt_tokens, completion_tokens) -> ReplyMeta:
    return ReplyMeta(
        model=chat_settings.model,
        temperature=chat_settings.temperature,
        source=source,
        duration_ms=(time.perf_counter() - started) * 1000,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
    )


async def build_assistant_reply(
    conversation: Sequence[ChatTurn],
    prompt_text: str,
    chat_settings: RequestSettings,
    *,
    use_relay: bool = True,
    on_chunk: ChunkCallback | None = None,
    settings: ClientSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    rng: random.Random | None = None,
) -> AssistantReply:
    started = time.perf_counter()
    if not use_relay:
        text = create_mock_reply(prompt_text, chat_settings, rng)
        meta = _meta(chat_settings, "mock", started, estimate_tokens(prompt_text), estimate_tokens(text))
        return AssistantReply(text=text, meta=meta)

    settings = settings or get_client_settings()
    try:
        response = await stream_chat(settings, conversation, chat_settings, on_chunk, transport)
    except ChatRelayError as exc:
        logger.warning("live reply failed code=%s, falling back to mock reply", exc.code)
        text = f"{FALLBACK_NOTICE}\n{create_mock_reply(prompt_text, chat_settings, rng)}"
        meta = _meta(chat_settings, "mock", started, estimate_tokens(prompt_text), estimate_tokens(text))
        return AssistantReply(text=text, meta=meta, error=exc.message)

    if response.usage is not None:
        prompt_tokens = response.usage.prompt_tokens
        completion_tokens = response.usage.completion_tokens
    else:
        prompt_tokens = estimate_tokens(prompt_text)
        completion_tokens = estimate_tokens(response.text)
    meta = _meta(chat_settings, "live", started, prompt_tokens, completion_tokens)
    return AssistantReply(text=response.text, meta=meta)
