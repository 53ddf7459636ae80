import random

import pytest

from chat_client.assistant import (
    FALLBACK_NOTICE,
    AssistantReply,
    ReplyMeta,
    UsageTally,
    build_assistant_reply,
    create_mock_reply,
    estimate_tokens,
)
from shared.schemas import ChatTurn, RequestSettings

SETTINGS = RequestSettings(model="openai/gpt-4.1-mini", temperature=0.55, persona="  Chef ")
CONVERSATION = [ChatTurn(role="user", text="What should I eat for dinner")]


def test_estimate_tokens():
    assert estimate_tokens("") == 1
    assert estimate_tokens("   abcd   ") == 1
    assert estimate_tokens("abcde") == 2


def test_mock_reply_full_and_concise():
    full = create_mock_reply(" soup? ", SETTINGS, random.Random(3))
    assert full.startswith("Chef: ")
    assert 'You said "soup?".' in full
    assert full.endswith("(openai/gpt-4.1-mini, temp 0.6)")

    concise = create_mock_reply("soup?", RequestSettings(concise_mode=True), random.Random(3))
    assert concise.startswith("Assistant: ")
    assert "You said" not in concise
    assert concise.endswith("(openai/gpt-4.1-nano, temp 0.6)")


async def test_live_reply_uses_relay_usage(client_settings, relay):
    relay.stream(
        {"type": "chunk", "text": "Pasta"},
        {"type": "chunk", "text": " tonight."},
        {"type": "usage", "usage": {"promptTokens": 12, "completionTokens": 3, "totalTokens": 15}},
        {"type": "done"},
    )
    seen = []

    reply = await build_assistant_reply(
        CONVERSATION,
        "What should I eat for dinner",
        SETTINGS,
        on_chunk=seen.append,
        settings=client_settings,
        transport=relay.transport,
    )

    assert reply.text == "Pasta tonight."
    assert reply.error is None
    assert seen == ["Pasta", " tonight."]
    assert reply.meta.source == "live"
    assert (reply.meta.prompt_tokens, reply.meta.completion_tokens, reply.meta.total_tokens) == (12, 3, 15)


async def test_live_reply_estimates_without_usage(client_settings, relay):
    relay.stream({"type": "chunk", "text": "12345678"}, {"type": "done"})

    reply = await build_assistant_reply(
        CONVERSATION, "abcd", SETTINGS, settings=client_settings, transport=relay.transport
    )

    assert (reply.meta.prompt_tokens, reply.meta.completion_tokens) == (1, 2)


async def test_relay_failure_falls_back_to_mock_reply(client_settings, relay):
    relay.respond(500, b'{"error": "OPENROUTER_API_KEY is not set in your environment."}')

    reply = await build_assistant_reply(
        CONVERSATION,
        "What should I eat for dinner",
        SETTINGS,
        settings=client_settings,
        transport=relay.transport,
        rng=random.Random(1),
    )

    assert reply.error == "OPENROUTER_API_KEY is not set in your environment."
    assert reply.text.startswith(FALLBACK_NOTICE + "\nChef: ")
    assert reply.meta.source == "mock"


async def test_mock_mode_skips_relay(relay):
    reply = await build_assistant_reply(
        CONVERSATION, "hello", SETTINGS, use_relay=False, transport=relay.transport
    )

    assert relay.requests == []
    assert reply.meta.source == "mock"
    assert reply.error is None


def _reply(duration_ms, tokens, error=None):
    meta = ReplyMeta(
        model="m",
        temperature=0.6,
        source="live",
        duration_ms=duration_ms,
        prompt_tokens=tokens,
        completion_tokens=tokens,
        total_tokens=tokens * 2,
    )
    return AssistantReply(text="x", meta=meta, error=error)


def test_usage_tally():
    tally = UsageTally()
    tally.record(_reply(100, 1))
    tally.record(_reply(300, 2))
    tally.record(_reply(900, 5, error="boom"))

    assert tally.responses == 2
    assert tally.error_count == 1
    assert tally.avg_response_ms == pytest.approx(200)
    assert tally.last_response_ms == 300
    assert tally.total_tokens == 6
