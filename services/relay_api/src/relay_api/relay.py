import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from relay_api.openrouter_client import Deadline, UpstreamStream
from shared.errors import ChatRelayError
from shared.schemas import ErrorEvent
from shared.sse import format_event

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def relay_events(
    upstream: UpstreamStream,
    deadline: Deadline,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[str]:
    # closing or cancelling this generator also closes the upstream response
    try:
        async for event in upstream.events(deadline):
            if is_disconnected is not None and await is_disconnected():
                logger.info("client disconnected, cancelling upstream stream")
                return
            yield format_event(event)
    except ChatRelayError as exc:
        logger.warning("stream failed after framing code=%s status=%s", exc.code, exc.status_code)
        yield format_event(ErrorEvent(error=exc.message))
    except Exception:
        logger.exception("unexpected failure while relaying stream")
        yield format_event(ErrorEvent(error="Failed to call OpenRouter API."))
    finally:
        # shielded so the upstream connection is released even mid-cancellation
        await asyncio.shield(upstream.aclose())
