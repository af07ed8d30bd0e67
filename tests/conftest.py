"""Pytest configuration and fixtures for bagel-client tests."""

from __future__ import annotations

import asyncio
import base64
import json
from collections import defaultdict
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from bagel_client.client import BagelClient
from bagel_client.settings import BagelSettings, reset_settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterable
    from pathlib import Path

# Test constants
TEST_BASE_URL = "http://bagel.test:7865"
TEST_UPLOAD_PATH = "/tmp/gradio/0f3a/sample.png"
TEST_IMAGE_URL = "http://bagel.test:7865/gradio_api/file=/tmp/gradio/out/image.webp"

JOIN = "/gradio_api/queue/join"
DATA = "/gradio_api/queue/data"
UPLOAD = "/gradio_api/upload"
PROGRESS = "/gradio_api/upload_progress"


def sse_frame(payload: dict[str, Any] | str) -> bytes:
    """Encode one SSE frame, terminated by a blank line."""
    body = payload if isinstance(payload, str) else json.dumps(payload)
    return f"data: {body}\n\n".encode()


class FakeBagelServer:
    """httpx.MockTransport handler imitating the BAGEL queue endpoints.

    Streams are iterables of byte chunks; an Exception among them is raised
    when the client reaches it. ``served`` counts chunks handed out per path
    and ``closed`` records paths whose stream has been torn down.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.streams: dict[str, Iterable[bytes | Exception]] = {}
        self.json_responses: dict[str, Any] = {
            JOIN: {"event_id": "evt-join"},
            UPLOAD: [TEST_UPLOAD_PATH],
        }
        self.status: dict[str, int] = {}
        self.errors: dict[str, Exception] = {}
        self.files: dict[str, bytes] = {}
        self.served: dict[str, int] = defaultdict(int)
        self.closed: set[str] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.errors:
            raise self.errors[path]

        status = self.status.get(path, 200)
        if path in self.streams:
            return httpx.Response(
                status,
                headers={"content-type": "text/event-stream"},
                content=self._stream(path),
            )
        if path in self.files:
            return httpx.Response(status, content=self.files[path])
        return httpx.Response(status, json=self.json_responses.get(path))

    async def _stream(self, path: str) -> AsyncIterator[bytes]:
        try:
            for chunk in self.streams[path]:
                await asyncio.sleep(0)
                if isinstance(chunk, Exception):
                    raise chunk
                self.served[path] += 1
                yield chunk
        finally:
            self.closed.add(path)

    def calls(self) -> list[str]:
        """Method and path of every request, in order."""
        return [f"{r.method} {r.url.path}" for r in self.requests]

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def join_body(self, index: int = 0) -> dict[str, Any]:
        """Decoded JSON body of a queue/join request."""
        return json.loads(self.requests_to(JOIN)[index].content)

    def complete_job(self, output: dict[str, Any], **extra: Any) -> None:
        """Serve a job stream that estimates, starts and completes."""
        self.streams[DATA] = [
            sse_frame({"msg": "estimation", "event_id": "e1", "rank": 0}),
            sse_frame({"msg": "process_starts", "event_id": "e1"}),
            sse_frame({"msg": "process_completed", "output": output, **extra}),
        ]

    def complete_upload(self) -> None:
        """Serve an upload progress stream that reports completion."""
        self.streams[PROGRESS] = [
            sse_frame({"msg": "update", "orig_name": "sample.png", "chunk_size": 68}),
            sse_frame({"msg": "done"}),
        ]


@pytest.fixture(autouse=True)
def reset_settings_after_test():
    """Reset settings singleton after each test."""
    yield
    reset_settings()


@pytest.fixture
def run() -> Callable:
    """Run a coroutine to completion."""
    return asyncio.run


@pytest.fixture
def settings() -> BagelSettings:
    """Settings pointing at the fake server."""
    return BagelSettings(base_url=TEST_BASE_URL)


@pytest.fixture
def fake_server() -> FakeBagelServer:
    """A fresh fake server."""
    return FakeBagelServer()


@pytest.fixture
def client(settings: BagelSettings, fake_server: FakeBagelServer) -> BagelClient:
    """Client wired to the fake server through httpx.MockTransport."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_server.handler))
    return BagelClient(settings=settings, http_client=http_client)


@pytest.fixture
def sample_image_bytes() -> bytes:
    """Return sample PNG image bytes (1x1 red pixel)."""
    return base64.b64decode(
        "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8z8DwHwAFBQIA"
        "X8jx0gAAAABJRU5ErkJggg=="
    )


@pytest.fixture
def sample_image_path(tmp_path: Path, sample_image_bytes: bytes) -> Path:
    """Create a temporary sample image file."""
    image_path = tmp_path / "sample.png"
    image_path.write_bytes(sample_image_bytes)
    return image_path
