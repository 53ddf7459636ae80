import asyncio
import json
import logging
from collections.abc import Callable, Sequence

import httpx
from pydantic import ValidationError

from chat_client.settings import ClientSettings
from shared.errors import ChatRelayError, EmptyResponseError, MalformedEventError
from shared.request_id import request_id_headers
from shared.schemas import (
    ChatResponse,
    ChatTurn,
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    RequestSettings,
    StreamEvent,
    UsageEvent,
    UsageStats,
    stream_event_adapter,
)
from shared.sse import LineBuffer, data_payload

CHAT_PATH = "/api/chat"
STREAM_PATH = "/api/chat/stream"

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], None]


class RelayError(ChatRelayError):
    code = "relay_error"


class RelayTimeoutError(RelayError):
    status_code = 504
    code = "relay_timeout"

    def __init__(self, seconds: float) -> None:
        super().__init__(
            f"Request timed out after {seconds:g}s. Try again or choose a faster model."
        )
        self.seconds = seconds


def decode_stream_event(payload: str) -> StreamEvent:
    try:
        return stream_event_adapter.validate_json(payload)
    except ValidationError as exc:
        raise MalformedEventError(f"unrecognised stream event: {exc.error_count()} errors") from exc


class StreamConsumer:
    # on_chunk runs synchronously per chunk frame; an error frame abandons the text
    def __init__(self, on_chunk: ChunkCallback | None = None) -> None:
        self._lines = LineBuffer()
        self._on_chunk = on_chunk
        self.text = ""
        self.usage: UsageStats | None = None
        self.done = False

    def feed(self, chunk: bytes | str) -> None:
        for line in self._lines.feed(chunk):
            if self.done:
                return
            payload = data_payload(line)
            if payload is None:
                continue
            try:
                event = decode_stream_event(payload)
            except MalformedEventError as exc:
                logger.debug("skipping relay frame: %s", exc)
                continue
            self._apply(event)

    def _apply(self, event: StreamEvent) -> None:
        if isinstance(event, ChunkEvent):
            self.text += event.text
            if self._on_chunk is not None:
                self._on_chunk(event.text)
        elif isinstance(event, UsageEvent):
            self.usage = event.usage
        elif isinstance(event, ErrorEvent):
            raise RelayError(event.error or "Streaming request failed.", status_code=502)
        elif isinstance(event, DoneEvent):
            self.done = True

    def result(self) -> ChatResponse:
        if not self.text.strip():
            raise EmptyResponseError("API returned an empty streamed response.")
        return ChatResponse(text=self.text, usage=self.usage)


def _request_body(turns: Sequence[ChatTurn], chat_settings: RequestSettings) -> dict:
    return {
        "messages": [turn.model_dump() for turn in turns],
        "settings": chat_settings.model_dump(by_alias=True),
    }


def _headers() -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    headers.update(request_id_headers())
    return headers


def _status_error(status_code: int, raw: bytes) -> RelayError:
    text = raw.decode("utf-8", "ignore")
    message = f"API error {status_code}"
    try:
        data = json.loads(text)
    except ValueError:
        if text.strip():
            message = f"{message}: {text[:180]}"
    else:
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, str) and error.strip():
            message = error
    return RelayError(message, status_code=status_code)


def _client(settings: ClientSettings, transport: httpx.AsyncBaseTransport | None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.relay_url,
        transport=transport,
        timeout=httpx.Timeout(None),
    )


async def _stream_chat(
    settings: ClientSettings,
    turns: Sequence[ChatTurn],
    chat_settings: RequestSettings,
    on_chunk: ChunkCallback | None,
    transport: httpx.AsyncBaseTransport | None,
) -> ChatResponse:
    consumer = StreamConsumer(on_chunk)
    body = _request_body(turns, chat_settings)
    async with _client(settings, transport) as client:
        async with client.stream("POST", STREAM_PATH, json=body, headers=_headers()) as resp:
            if not resp.is_success:
                raise _status_error(resp.status_code, await resp.aread())
            async for chunk in resp.aiter_bytes():
                consumer.feed(chunk)
                if consumer.done:
                    break
    return consumer.result()


async def _with_deadline(settings: ClientSettings, coro):
    try:
        return await asyncio.wait_for(coro, timeout=settings.relay_timeout_seconds)
    except asyncio.TimeoutError:
        raise RelayTimeoutError(settings.relay_timeout_seconds) from None
    except httpx.RequestError as exc:
        logger.warning("relay unreachable: %s", exc.__class__.__name__)
        raise RelayError("Failed to reach the chat relay.", status_code=502) from exc


async def stream_chat(
    settings: ClientSettings,
    turns: Sequence[ChatTurn],
    chat_settings: RequestSettings,
    on_chunk: ChunkCallback | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ChatResponse:
    return await _with_deadline(
        settings, _stream_chat(settings, turns, chat_settings, on_chunk, transport)
    )


async def _send_chat(
    settings: ClientSettings,
    turns: Sequence[ChatTurn],
    chat_settings: RequestSettings,
    transport: httpx.AsyncBaseTransport | None,
) -> ChatResponse:
    body = _request_body(turns, chat_settings)
    async with _client(settings, transport) as client:
        resp = await client.post(CHAT_PATH, json=body, headers=_headers())
    if not resp.is_success:
        raise _status_error(resp.status_code, resp.content)
    reply = ChatResponse.model_validate(resp.json())
    if not reply.text.strip():
        raise EmptyResponseError("API returned an empty response.")
    return reply


async def send_chat(
    settings: ClientSettings,
    turns: Sequence[ChatTurn],
    chat_settings: RequestSettings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ChatResponse:
    return await _with_deadline(settings, _send_chat(settings, turns, chat_settings, transport))
