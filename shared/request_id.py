import uuid
from contextvars import ContextVar

REQUEST_ID_HEADER = "X-Request-ID"

_request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")


def bind_request_id(value: str | None = None) -> str:
    request_id = value or str(uuid.uuid4())
    _request_id_ctx.set(request_id)
    return request_id


def current_request_id() -> str:
    return _request_id_ctx.get()


def request_id_headers() -> dict[str, str]:
    request_id = current_request_id()
    if request_id == "-":
        return {}
    return {REQUEST_ID_HEADER: request_id}
