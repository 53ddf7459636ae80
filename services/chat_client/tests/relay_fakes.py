import asyncio
import json

import httpx


class ChunkedStream(httpx.AsyncByteStream):
    def __init__(self, chunks, hang=False):
        self.chunks = list(chunks)
        self.hang = hang

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.hang:
            await asyncio.sleep(3600)


class FakeRelay:
    """Stands in for the relay's HTTP surface with canned responses."""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.chunks = []
        self.content = None
        self.hang = False

    def stream(self, *events, split=None, hang=False):
        body = "".join(
            f"data: {event if isinstance(event, str) else json.dumps(event)}\n\n"
            for event in events
        ).encode()
        if split:
            self.chunks = [body[i:i + split] for i in range(0, len(body), split)]
        else:
            self.chunks = [body]
        self.hang = hang

    def respond(self, status_code, content: bytes):
        self.status_code = status_code
        self.content = content

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(
            self.status_code,
            headers={"Content-Type": "text/event-stream"},
            stream=ChunkedStream(self.chunks, hang=self.hang),
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def last_body(self) -> dict:
        return json.loads(self.requests[-1].content)
