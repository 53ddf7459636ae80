import json
import logging

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from relay_api.logging_config import configure_logging
from relay_api.openrouter_client import Deadline, create_chat_completion, open_chat_stream
from relay_api.prompting import normalize_payload
from relay_api.relay import SSE_HEADERS, relay_events
from relay_api.settings import get_settings
from shared.errors import BadRequestError, ChatRelayError, PayloadTooLargeError
from shared.request_id import REQUEST_ID_HEADER, bind_request_id
from shared.schemas import ChatPayload, ChatResponse, ErrorResponse

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Chat Relay API")

_ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (400, 413, 500, 502, 504)
}


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = bind_request_id(request.headers.get(REQUEST_ID_HEADER))
    if settings.app_env.lower() == "prod":
        if request.url.path in ("/docs", "/openapi.json"):
            return JSONResponse(status_code=404, content={"error": "not found"})
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.exception_handler(ChatRelayError)
async def relay_error_handler(_request: Request, exc: ChatRelayError):
    logger.warning("relay error code=%s status=%s", exc.code, exc.status_code)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def get_upstream_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for provider calls; None means real network I/O."""
    return None


async def read_chat_payload(request: Request) -> ChatPayload:
    raw = await request.body()
    if len(raw) > settings.max_body_bytes:
        raise PayloadTooLargeError("Request body is too large.")
    data = {}
    if raw.strip():
        try:
            data = json.loads(raw)
        except ValueError:
            raise BadRequestError("Request body must be valid JSON.")
    return normalize_payload(data, settings.chat_context_limit)


@app.get("/api/health")
def health():
    return {"ok": True}


@app.post(
    "/api/chat",
    response_model=ChatResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
)
async def chat(
    payload: ChatPayload = Depends(read_chat_payload),
    transport: httpx.AsyncBaseTransport | None = Depends(get_upstream_transport),
):
    logger.info(
        "chat request model=%s turns=%s", payload.settings.model, len(payload.messages)
    )
    return await create_chat_completion(settings, payload, transport)


@app.post("/api/chat/stream", responses=_ERROR_RESPONSES)
async def chat_stream(
    request: Request,
    payload: ChatPayload = Depends(read_chat_payload),
    transport: httpx.AsyncBaseTransport | None = Depends(get_upstream_transport),
):
    logger.info(
        "chat stream request model=%s turns=%s", payload.settings.model, len(payload.messages)
    )
    deadline = Deadline(settings.stream_timeout_seconds)
    # failures up to here become JSON errors; after this point only stream events
    upstream = await open_chat_stream(settings, payload, deadline, transport)
    return StreamingResponse(
        relay_events(upstream, deadline, request.is_disconnected),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
