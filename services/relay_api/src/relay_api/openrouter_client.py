import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable
from typing import TypeVar

import httpx

from relay_api.prompting import build_upstream_body
from relay_api.reframer import UpstreamReframer, content_text, parse_usage
from relay_api.settings import Settings
from shared.errors import (
    ConfigurationError,
    EmptyResponseError,
    StreamUnavailableError,
    UpstreamConnectionError,
    UpstreamHttpError,
    UpstreamTimeoutError,
)
from shared.schemas import ChatPayload, ChatResponse, ChunkEvent, DoneEvent, UsageEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Deadline:
    """Wall-clock budget shared by every await of one relay call."""

    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        self._expires_at = asyncio.get_running_loop().time() + seconds

    def remaining(self) -> float:
        return self._expires_at - asyncio.get_running_loop().time()

    async def run(self, awaitable: Awaitable[T]) -> T:
        remaining = self.remaining()
        if remaining <= 0:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise UpstreamTimeoutError(self.seconds)
        try:
            return await asyncio.wait_for(awaitable, timeout=remaining)
        except asyncio.TimeoutError:
            raise UpstreamTimeoutError(self.seconds) from None
        except httpx.TimeoutException:
            raise UpstreamTimeoutError(self.seconds) from None
        except httpx.RequestError as exc:
            logger.warning("upstream transport error: %s", exc.__class__.__name__)
            raise UpstreamConnectionError("Failed to reach OpenRouter.") from exc


def _headers(settings: Settings) -> dict[str, str]:
    if not settings.openrouter_api_key:
        raise ConfigurationError("OPENROUTER_API_KEY is not set in your environment.")
    headers = {
        "Authorization": f"Bearer {settings.openrouter_api_key}",
        "Content-Type": "application/json",
    }
    if settings.openrouter_http_referer:
        headers["HTTP-Referer"] = settings.openrouter_http_referer
    if settings.openrouter_x_title:
        headers["X-Title"] = settings.openrouter_x_title
    return headers


def _http_error(status_code: int, raw: bytes) -> UpstreamHttpError:
    # OpenRouter error format: {"error": {"message": "...", "code": ...}}
    message = f"OpenRouter request failed with status {status_code}."
    try:
        payload = json.loads(raw) if raw else None
    except ValueError:
        logger.warning("non-json upstream error status=%s", status_code)
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        upstream_message = payload["error"].get("message")
        if isinstance(upstream_message, str):
            message = upstream_message
    return UpstreamHttpError(message, status_code=status_code)


def _message_content(data: dict):
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    return message.get("content")


def _new_client(transport: httpx.AsyncBaseTransport | None) -> httpx.AsyncClient:
    # the Deadline bounds the whole call, so httpx's per-operation timeouts are off
    return httpx.AsyncClient(transport=transport, timeout=httpx.Timeout(None))


async def create_chat_completion(
    settings: Settings,
    payload: ChatPayload,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ChatResponse:
    headers = _headers(settings)
    body = build_upstream_body(payload)
    deadline = Deadline(settings.chat_timeout_seconds)

    async with _new_client(transport) as client:
        resp = await deadline.run(
            client.post(settings.openrouter_chat_url, json=body, headers=headers)
        )

    if not resp.is_success:
        raise _http_error(resp.status_code, resp.content)

    try:
        data = resp.json() if resp.content else None
    except ValueError:
        data = None
    if not isinstance(data, dict):
        data = {}

    text = content_text(_message_content(data), separator="\n").strip()
    if not text:
        raise EmptyResponseError("OpenRouter returned an empty response.")

    return ChatResponse(text=text, usage=parse_usage(data.get("usage")))


class UpstreamStream:
    def __init__(self, client: httpx.AsyncClient, response: httpx.Response) -> None:
        self._client = client
        self._response = response
        self.closed = False

    async def events(self, deadline: Deadline) -> AsyncIterator[ChunkEvent | UsageEvent | DoneEvent]:
        reframer = UpstreamReframer()
        chunks = self._response.aiter_bytes()
        while True:
            chunk = await deadline.run(anext(chunks, None))
            if chunk is None:
                break
            for event in reframer.feed(chunk):
                yield event
            reframer.raise_for_error()
        for event in reframer.finish():
            yield event

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self._response.aclose()
        finally:
            await self._client.aclose()


async def open_chat_stream(
    settings: Settings,
    payload: ChatPayload,
    deadline: Deadline,
    transport: httpx.AsyncBaseTransport | None = None,
) -> UpstreamStream:
    headers = _headers(settings)
    body = build_upstream_body(payload, stream=True)

    client = _new_client(transport)
    try:
        request = client.build_request(
            "POST", settings.openrouter_chat_url, json=body, headers=headers
        )
        resp = await deadline.run(client.send(request, stream=True))
    except BaseException:
        await client.aclose()
        raise

    stream = UpstreamStream(client, resp)
    try:
        if not resp.is_success:
            raw = await deadline.run(resp.aread())
            raise _http_error(resp.status_code, raw)
        if resp.headers.get("content-length") == "0":
            raise StreamUnavailableError("OpenRouter stream is unavailable.")
    except BaseException:
        await stream.aclose()
        raise
    return stream
