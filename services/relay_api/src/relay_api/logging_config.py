import logging
import logging.config
import re

from shared.request_id import current_request_id

_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_SECRET_KV_RE = re.compile(
    r"(?i)\b(authorization|api_key|apikey|openrouter_api_key|token|secret|cookie)\b\s*[:=]\s*([^\s,;]+)"
)
_BEARER_RE = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9\-._~+/]+=*")
_OPENROUTER_KEY_RE = re.compile(r"\bsk-or-[A-Za-z0-9\-_]+")
# chat turns travel as "content" upstream and "text" on our own wire
_CHAT_JSON_RE = re.compile(r'(?i)("(?:content|text)"\s*:\s*")(?:[^"\\]|\\.)*(")')


def _redact_text(text: str) -> str:
    text = _EMAIL_RE.sub("[redacted_email]", text)
    text = _CHAT_JSON_RE.sub(r"\1[redacted]\2", text)
    text = _BEARER_RE.sub("Bearer [redacted]", text)
    text = _OPENROUTER_KEY_RE.sub("[redacted_key]", text)
    text = _SECRET_KV_RE.sub(r"\1=[redacted]", text)
    return text


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = current_request_id()
        return True


class RedactionFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = _redact_text(record.getMessage())
        record.args = ()
        return True


def configure_logging(log_level: str) -> None:
    console = {
        "handlers": ["console"],
        "level": log_level,
        "propagate": False,
    }
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "request_id": {"()": "relay_api.logging_config.RequestIdFilter"},
                "redact": {"()": "relay_api.logging_config.RedactionFilter"},
            },
            "formatters": {
                "standard": {
                    "format": "%(levelname)s %(name)s request_id=%(request_id)s %(message)s"
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "filters": ["request_id", "redact"],
                    "level": log_level,
                }
            },
            "loggers": {
                "uvicorn": dict(console),
                "uvicorn.error": dict(console),
                "uvicorn.access": dict(console),
                "httpx": {**console, "level": "WARNING"},
            },
            "root": {"handlers": ["console"], "level": log_level},
        }
    )
