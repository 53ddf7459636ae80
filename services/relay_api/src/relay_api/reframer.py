import logging
import math
from typing import Any

from shared.errors import MalformedEventError, UpstreamStreamError
from shared.schemas import ChunkEvent, DoneEvent, UsageEvent, UsageStats
from shared.sse import LineBuffer, data_payload, decode_json

logger = logging.getLogger(__name__)

_USAGE_KEYS = ("prompt_tokens", "completion_tokens", "total_tokens")


def _finite_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def parse_usage(raw: Any) -> UsageStats | None:
    """Provider usage block, or None unless all counters are finite and total > 0."""
    if not isinstance(raw, dict):
        return None
    values = [raw.get(key) for key in _USAGE_KEYS]
    if not all(_finite_number(value) for value in values):
        return None
    prompt_tokens, completion_tokens, total_tokens = values
    if total_tokens <= 0 or prompt_tokens < 0 or completion_tokens < 0:
        return None
    return UsageStats(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
    )


def content_text(content: Any, separator: str = "") -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return separator.join(
            part["text"] if isinstance(part, dict) and isinstance(part.get("text"), str) else ""
            for part in content
        )
    return ""


def _delta_content(payload: dict) -> Any:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    return delta.get("content")


class UpstreamReframer:
    # usage is held back until finish(); an in-band error is raised after the
    # chunks that preceded it have been handed out
    def __init__(self) -> None:
        self._lines = LineBuffer()
        self.usage: UsageStats | None = None
        self.error: UpstreamStreamError | None = None

    def feed(self, chunk: bytes | str) -> list[ChunkEvent]:
        self.raise_for_error()
        events = []
        for line in self._lines.feed(chunk):
            text = self._handle_line(line)
            if self.error is not None:
                break
            if text:
                events.append(ChunkEvent(text=text))
        return events

    def finish(self) -> list[UsageEvent | DoneEvent]:
        self.raise_for_error()
        if self._lines.pending.strip():
            logger.debug("dropping unterminated trailing line from upstream")
        events: list[UsageEvent | DoneEvent] = []
        if self.usage is not None:
            events.append(UsageEvent(usage=self.usage))
        events.append(DoneEvent())
        return events

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def _handle_line(self, line: str) -> str:
        payload_text = data_payload(line)
        if payload_text is None:
            return ""
        try:
            payload = decode_json(payload_text)
        except MalformedEventError as exc:
            logger.debug("skipping upstream frame: %s", exc)
            return ""
        if not isinstance(payload, dict):
            return ""

        error = payload.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            self.error = UpstreamStreamError(
                message if isinstance(message, str) and message else "OpenRouter stream failed."
            )
            return ""

        usage = parse_usage(payload.get("usage"))
        if usage is not None:
            self.usage = usage
        return content_text(_delta_content(payload))
