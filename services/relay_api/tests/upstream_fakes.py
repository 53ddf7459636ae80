import asyncio
import json

import httpx


class ScriptedStream(httpx.AsyncByteStream):
    """Upstream body that yields fixed chunks and records when it is closed."""

    def __init__(self, chunks, hang=False):
        self.chunks = list(chunks)
        self.hang = hang
        self.sent = 0
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            self.sent += 1
            yield chunk
        if self.hang:
            await asyncio.sleep(3600)

    async def aclose(self):
        self.closed = True


class FakeUpstream:
    """Records provider requests and answers them with a prepared response."""

    def __init__(self):
        self.requests = []
        self.cancelled = False
        self.delay = 0.0
        self.status_code = 200
        self.stream = ScriptedStream([])
        self.content = None

    def reply_stream(self, chunks, hang=False):
        self.stream = ScriptedStream(chunks, hang=hang)
        return self.stream

    def reply_json(self, payload, status_code=200):
        self.reply_raw(json.dumps(payload).encode(), status_code)

    def reply_raw(self, content, status_code=200):
        self.status_code = status_code
        self.content = content

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.content is not None:
            return httpx.Response(
                self.status_code,
                headers={"Content-Length": str(len(self.content))},
                content=self.content,
            )
        return httpx.Response(
            self.status_code,
            headers={"Content-Type": "text/event-stream"},
            stream=self.stream,
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def last_body(self) -> dict:
        return json.loads(self.requests[-1].content)


def sse(*payloads) -> bytes:
    frames = []
    for payload in payloads:
        text = payload if isinstance(payload, str) else json.dumps(payload)
        frames.append(f"data: {text}\n\n")
    return "".join(frames).encode()


def delta(text) -> dict:
    return {"choices": [{"index": 0, "delta": {"content": text}}]}


def usage(prompt=3, completion=2, total=5) -> dict:
    return {
        "choices": [],
        "usage": {
            "prompt_tokens": prompt,
            "completion_tokens": completion,
            "total_tokens": total,
        },
    }
