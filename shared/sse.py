import codecs
import json
from typing import Any

from pydantic import BaseModel

from shared.errors import MalformedEventError

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class LineBuffer:
    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[str]:
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return lines


def data_payload(line: str) -> str | None:
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX):].strip()
    if not payload or payload == DONE_SENTINEL:
        return None
    return payload


def decode_json(payload: str) -> Any:
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedEventError(f"malformed event payload: {exc.msg}") from exc


def format_event(event: BaseModel) -> str:
    return f"{DATA_PREFIX} {event.model_dump_json(by_alias=True)}\n\n"
