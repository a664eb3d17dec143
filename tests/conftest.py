"""Shared test fixtures for the genai-client test suite."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

import httpx
import pytest

from genai_client.ai.client import GoogleGenerativeAI
from genai_client.ai.transport import Transport

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

API_KEY = "AIzaSyTestKey0123456789"

Handler = Callable[[httpx.Request], Union[httpx.Response, Awaitable[httpx.Response]]]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_candidate(
    text: str = "Hello",
    index: int | None = 0,
    role: str | None = "model",
    finish_reason: str | None = "STOP",
    **extra: Any,
) -> dict[str, Any]:
    """Create a minimal candidate dict as returned on the wire."""
    content: dict[str, Any] = {"parts": [{"text": text}]}
    if role is not None:
        content["role"] = role
    candidate: dict[str, Any] = {"content": content, **extra}
    if index is not None:
        candidate["index"] = index
    if finish_reason is not None:
        candidate["finishReason"] = finish_reason
    return candidate


def make_response(text: str = "Hello", **candidate_fields: Any) -> dict[str, Any]:
    """Create a one-candidate ``GenerateContentResponse`` dict."""
    return {
        "candidates": [make_candidate(text, **candidate_fields)],
        "usageMetadata": {"promptTokenCount": 1, "candidatesTokenCount": 1, "totalTokenCount": 2},
    }


def sse_frame(payload: dict[str, Any], sep: str = "\n\n") -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}{sep}"


def sse_body(*payloads: dict[str, Any], sep: str = "\n\n") -> bytes:
    return "".join(sse_frame(p, sep) for p in payloads).encode("utf-8")


def split_every(data: bytes, size: int) -> list[bytes]:
    """Split *data* into chunks of *size* bytes (last one may be shorter)."""
    return [data[i:i + size] for i in range(0, len(data), size)]


async def iter_chunks(*chunks: bytes | str) -> AsyncIterator[bytes | str]:
    for chunk in chunks:
        await asyncio.sleep(0)
        yield chunk


def json_response(data: dict[str, Any], status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=data)


def error_response(
    status: int,
    message: str,
    details: list[Any] | None = None,
) -> httpx.Response:
    error: dict[str, Any] = {"code": status, "message": message}
    if details is not None:
        error["details"] = details
    return httpx.Response(status, json={"error": error})


def sse_response(*chunks: bytes) -> httpx.Response:
    """Streaming response whose body arrives in the given chunks."""

    async def body() -> AsyncIterator[bytes]:
        for chunk in chunks:
            await asyncio.sleep(0)
            yield chunk

    return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body())


# ---------------------------------------------------------------------------
# Mock service
# ---------------------------------------------------------------------------


class MockGenAIServer:
    """Scripted ``httpx.MockTransport`` handler recording every request.

    Each queued item is either a ready :class:`httpx.Response` or a handler
    called with the request (sync or async).  Requests beyond the script
    fail the test.
    """

    def __init__(self, *responses: httpx.Response | Handler) -> None:
        self._responses: list[httpx.Response | Handler] = list(responses)
        self.requests: list[httpx.Request] = []

    def queue(self, *responses: httpx.Response | Handler) -> None:
        self._responses.extend(responses)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._responses:
            raise AssertionError(f"Unexpected request to {request.url}")
        item = self._responses.pop(0)
        if isinstance(item, httpx.Response):
            return item
        result = item(request)
        if not isinstance(result, httpx.Response):
            result = await result
        return result

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def server() -> MockGenAIServer:
    """Provide an empty scripted server; tests queue responses on it."""
    return MockGenAIServer()


@pytest.fixture
async def transport(server: MockGenAIServer) -> AsyncIterator[Transport]:
    t = Transport(transport=server.transport)
    yield t
    await t.aclose()


@pytest.fixture
async def genai(server: MockGenAIServer) -> AsyncIterator[GoogleGenerativeAI]:
    client = GoogleGenerativeAI(API_KEY, transport=server.transport)
    yield client
    await client.aclose()


@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Provide a temporary project directory with a .genai folder."""
    (tmp_path / ".genai").mkdir()
    return tmp_path


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove every variable the library reads from the environment."""
    for var in (
        "GEMINI_API_KEY",
        "GOOGLE_API_KEY",
        "GENAI_API_KEY",
        "GENAI_BASE_URL",
        "GENAI_API_VERSION",
        "GENAI_API_CLIENT",
        "GENAI_TIMEOUT_MS",
        "GENAI_FALLBACK_MODELS",
    ):
        monkeypatch.delenv(var, raising=False)
    return monkeypatch
