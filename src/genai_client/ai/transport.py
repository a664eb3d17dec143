"""HTTP transport for built requests.

One :meth:`Transport.send` call performs exactly one outbound request.
Retrying is left to :mod:`genai_client.fallback.orchestrator`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, Awaitable, TypeVar

import httpx

from genai_client.ai.errors import (
    FetchError,
    GoogleGenerativeAIError,
    ParseError,
    RequestAbortedError,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from genai_client.ai.request import BuiltRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AbortScope:
    """Single cancellation source for one request.

    A ``timeout_ms`` timer and an external ``asyncio.Event`` both feed the
    same internal event.  Every awaited step of the request (the call
    itself and each body read when streaming) is raced against it.
    """

    def __init__(
        self,
        timeout_ms: float | None = None,
        abort_event: asyncio.Event | None = None,
    ) -> None:
        loop = asyncio.get_running_loop()
        self._aborted = asyncio.Event()
        self._timer: asyncio.TimerHandle | None = None
        self._watcher: asyncio.Task[None] | None = None

        if timeout_ms is not None and timeout_ms >= 0:
            self._timer = loop.call_later(timeout_ms / 1000, self._aborted.set)
        if abort_event is not None:
            if abort_event.is_set():
                self._aborted.set()
            else:
                self._watcher = loop.create_task(self._watch(abort_event))

    @property
    def aborted(self) -> bool:
        return self._aborted.is_set()

    async def _watch(self, abort_event: asyncio.Event) -> None:
        await abort_event.wait()
        self._aborted.set()

    async def run(self, awaitable: Awaitable[T], url: str) -> T:
        """Await *awaitable* unless the scope aborts first."""
        task = asyncio.ensure_future(awaitable)
        if self.aborted:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise RequestAbortedError(f"Error fetching from {url}: The operation was aborted.")

        waiter = asyncio.ensure_future(self._aborted.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if task.done():
            waiter.cancel()
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise RequestAbortedError(f"Error fetching from {url}: The operation was aborted.")

    def close(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._watcher is not None:
            self._watcher.cancel()
            self._watcher = None


class Transport:
    """Thin wrapper around :class:`httpx.AsyncClient`.

    Parameters
    ----------
    client:
        An existing client to reuse.  When omitted a client is created and
        owned (closed by :meth:`aclose`).
    transport:
        Optional ``httpx`` transport for the owned client, e.g.
        :class:`httpx.MockTransport` in tests.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(transport=transport, timeout=None)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def send_json(self, request: BuiltRequest) -> dict[str, Any]:
        """Send *request* and return the decoded JSON body."""
        scope = _scope_for(request)
        try:
            response = await self._send(request, scope, stream=False)
            try:
                return response.json()
            except ValueError as exc:
                raise ParseError(
                    f"Error parsing JSON response from {request.url}: {exc}",
                    raw_text=response.text,
                ) from exc
        finally:
            scope.close()

    async def send_stream(self, request: BuiltRequest) -> AsyncIterator[bytes]:
        """Send *request* and return an iterator over the raw body bytes.

        Raises for non-2xx statuses before returning.  The cancellation
        scope stays armed until the body is exhausted or the iterator is
        closed.
        """
        scope = _scope_for(request)
        try:
            response = await self._send(request, scope, stream=True)
        except BaseException:
            scope.close()
            raise
        return _iter_body(response, scope, request.url)

    async def _send(
        self,
        request: BuiltRequest,
        scope: AbortScope,
        *,
        stream: bool,
    ) -> httpx.Response:
        logger.debug("%s %s (stream=%s)", request.method, request.url, stream)
        http_request = self._client.build_request(
            request.method,
            request.url,
            headers=request.headers,
            content=request.body.encode("utf-8"),
        )
        try:
            response = await scope.run(
                self._client.send(http_request, stream=stream),
                request.url,
            )
        except (GoogleGenerativeAIError, asyncio.CancelledError):
            raise
        except (httpx.HTTPError, OSError) as exc:
            raise GoogleGenerativeAIError(
                f"Error fetching from {request.url}: {exc}"
            ) from exc

        if not response.is_success:
            try:
                await response.aread()
            finally:
                await response.aclose()
            raise _error_from_response(response, request.url)
        return response


def _scope_for(request: BuiltRequest) -> AbortScope:
    options = request.request_options
    return AbortScope(timeout_ms=options.timeout_ms, abort_event=options.abort_event)


def _error_from_response(response: httpx.Response, url: str) -> FetchError:
    """Build a :class:`FetchError` from an error body, if one can be parsed."""
    message = ""
    details: list[Any] | None = None
    try:
        payload = response.json()
        error = payload["error"]
        message = error["message"]
        if error.get("details"):
            details = error["details"]
            message += f" {json.dumps(details)}"
    except (ValueError, KeyError, TypeError):
        pass
    status_text = response.reason_phrase
    logger.debug("Request to %s failed with %s %s", url, response.status_code, status_text)
    return FetchError(
        f"Error fetching from {url}: [{response.status_code} {status_text}] {message}".rstrip(),
        status=response.status_code,
        status_text=status_text,
        error_details=details,
    )


async def _read_next(iterator: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return None


async def _iter_body(
    response: httpx.Response,
    scope: AbortScope,
    url: str,
) -> AsyncIterator[bytes]:
    iterator = response.aiter_bytes()
    try:
        while True:
            try:
                chunk = await scope.run(_read_next(iterator), url)
            except httpx.HTTPError as exc:
                raise GoogleGenerativeAIError(f"Error reading from {url}: {exc}") from exc
            if chunk is None:
                return
            yield chunk
    finally:
        scope.close()
        await response.aclose()
