import math
from typing import Any

from shared.constants import (
    CHAT_CONTEXT_LIMIT,
    CONCISE_MAX_TOKENS,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_TEMPERATURE,
    PERSONA_SYSTEM_PROMPT,
)
from shared.schemas import ChatPayload, ChatTurn, RequestSettings

_ROLES = ("user", "assistant")


def normalize_turns(raw: Any, limit: int = CHAT_CONTEXT_LIMIT) -> list[ChatTurn]:
    if not isinstance(raw, list):
        return []
    turns = [
        ChatTurn(role=item["role"], text=item["text"])
        for item in raw
        if isinstance(item, dict)
        and item.get("role") in _ROLES
        and isinstance(item.get("text"), str)
    ]
    return turns[-limit:]


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def normalize_settings(raw: Any) -> RequestSettings:
    if not isinstance(raw, dict):
        return RequestSettings()

    model = raw.get("model")
    temperature = raw.get("temperature")
    concise_mode = raw.get("conciseMode")
    persona = raw.get("persona")
    return RequestSettings(
        model=model if isinstance(model, str) and model.strip() else DEFAULT_MODEL,
        temperature=float(temperature) if _is_number(temperature) else DEFAULT_TEMPERATURE,
        concise_mode=concise_mode if isinstance(concise_mode, bool) else False,
        persona=persona if isinstance(persona, str) else "",
    )


def normalize_payload(raw: Any, limit: int = CHAT_CONTEXT_LIMIT) -> ChatPayload:
    body = raw if isinstance(raw, dict) else {}
    return ChatPayload(
        messages=normalize_turns(body.get("messages"), limit),
        settings=normalize_settings(body.get("settings")),
    )


def system_prompt(persona: str) -> str:
    persona = persona.strip()
    if not persona:
        return DEFAULT_SYSTEM_PROMPT
    return PERSONA_SYSTEM_PROMPT.format(persona=persona)


def build_upstream_body(payload: ChatPayload, stream: bool = False) -> dict:
    settings = payload.settings
    body: dict[str, Any] = {
        "model": settings.model,
        "temperature": settings.temperature,
        "max_tokens": CONCISE_MAX_TOKENS if settings.concise_mode else DEFAULT_MAX_TOKENS,
        "messages": [
            {"role": "system", "content": system_prompt(settings.persona)},
            *({"role": turn.role, "content": turn.text} for turn in payload.messages),
        ],
    }
    if stream:
        body["stream"] = True
        body["stream_options"] = {"include_usage": True}
    return body
