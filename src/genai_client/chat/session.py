"""Multi-turn chat with strictly ordered history.

Every send is queued behind the *settlement* of the previous one, so the
history always reflects turns in the order they were issued, even when a
caller fires several sends without awaiting them.  History only changes in
the commit step of a turn: two entries on success, none on failure.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from genai_client.ai.content import format_new_content
from genai_client.ai.operations import generate_content, generate_content_stream
from genai_client.ai.response import format_block_error_message
from genai_client.ai.types import (
    Content,
    ContentInput,
    RequestOptions,
    Role,
    StartChatParams,
    merge_request_options,
    to_wire,
)
from genai_client.ai.utils.validation import validate_chat_history

if TYPE_CHECKING:
    from genai_client.ai.response import EnhancedGenerateContentResponse
    from genai_client.ai.stream import GenerateContentStreamResult
    from genai_client.ai.transport import Transport
    from genai_client.ai.types import GenerateContentResponse, SingleRequestOptions

logger = logging.getLogger(__name__)


class ChatSession:
    """Conversation bound to one model.

    Parameters
    ----------
    api_key:
        Key sent with every turn.
    model:
        Fully qualified model name (``models/...``).
    params:
        Initial history and generation parameters.  A supplied history is
        validated before the session is usable.
    request_options:
        Session-wide transport options; per-call options override them.
    transport:
        Shared HTTP transport.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        params: StartChatParams | None = None,
        request_options: RequestOptions | None = None,
        *,
        transport: Transport,
    ) -> None:
        self.model = model
        self.params = params or StartChatParams()
        self._api_key = api_key
        self._request_options = request_options or RequestOptions()
        self._transport = transport
        self._history: list[Content] = []
        # Settles when every turn issued so far has settled.
        self._send_tail: asyncio.Future[None] | None = None
        self._background: set[asyncio.Task[None]] = set()

        if self.params.history:
            validate_chat_history(self.params.history)
            self._history = [
                item if isinstance(item, Content) else Content.model_validate(item)
                for item in self.params.history
            ]

    async def get_history(self) -> list[Content]:
        """Return a snapshot of the history once all queued turns settle."""
        if self._send_tail is not None:
            await asyncio.shield(self._send_tail)
        return list(self._history)

    async def send_message(
        self,
        request: ContentInput,
        request_options: SingleRequestOptions | None = None,
    ) -> EnhancedGenerateContentResponse:
        """Send one turn and commit it to history on success.

        Input errors raise immediately.  Transport and parse errors are
        raised to this caller only; the queue is released either way and
        later turns proceed.
        """
        new_content = format_new_content(request)
        previous, settled = self._enqueue()
        try:
            if previous is not None:
                await asyncio.shield(previous)
            response = await generate_content(
                self._transport,
                self._api_key,
                self.model,
                self._request_body(new_content),
                merge_request_options(self._request_options, request_options),
            )
            self._commit(new_content, response, "sendMessage")
            return response
        finally:
            self._release_after(previous, settled)

    async def send_message_stream(
        self,
        request: ContentInput,
        request_options: SingleRequestOptions | None = None,
    ) -> GenerateContentStreamResult:
        """Send one turn and return its live stream immediately.

        The history commit runs in the background once the aggregated
        response is available; a failure there is logged, not raised.
        """
        new_content = format_new_content(request)
        previous, settled = self._enqueue()
        try:
            if previous is not None:
                await asyncio.shield(previous)
            result = await generate_content_stream(
                self._transport,
                self._api_key,
                self.model,
                self._request_body(new_content),
                merge_request_options(self._request_options, request_options),
            )
        except BaseException:
            self._release_after(previous, settled)
            raise

        task = asyncio.get_running_loop().create_task(
            self._commit_stream(new_content, result, settled)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return result

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _enqueue(self) -> tuple[asyncio.Future[None] | None, asyncio.Future[None]]:
        """Append a new settlement future to the queue; return (previous, own)."""
        previous = self._send_tail
        settled: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._send_tail = settled
        return previous, settled

    @staticmethod
    def _release_after(
        previous: asyncio.Future[None] | None,
        settled: asyncio.Future[None],
    ) -> None:
        # A cancelled caller must not let the next turn overtake a turn
        # that is still running.
        if previous is None or previous.done():
            _settle(settled)
        else:
            previous.add_done_callback(lambda _fut: _settle(settled))

    def _request_body(self, new_content: Content) -> dict[str, Any]:
        return to_wire(
            {
                "safetySettings": self.params.safety_settings,
                "generationConfig": self.params.generation_config,
                "tools": self.params.tools,
                "toolConfig": self.params.tool_config,
                "systemInstruction": self.params.system_instruction,
                "cachedContent": self.params.cached_content,
                "contents": [*self._history, new_content],
            }
        )

    def _commit(
        self,
        new_content: Content,
        response: GenerateContentResponse,
        operation: str,
    ) -> None:
        if response.candidates:
            model_content = response.candidates[0].content or Content(parts=[])
            if not model_content.role:
                model_content = model_content.model_copy(update={"role": Role.MODEL.value})
            self._history.append(new_content)
            self._history.append(model_content)
            return

        explanation = format_block_error_message(response) or "No candidates were returned"
        logger.warning(
            "%s() was unsuccessful. %s. Inspect response object for details.",
            operation,
            explanation,
        )

    async def _commit_stream(
        self,
        new_content: Content,
        result: GenerateContentStreamResult,
        settled: asyncio.Future[None],
    ) -> None:
        try:
            response = await result.response
            self._commit(new_content, response, "sendMessageStream")
        except Exception:
            logger.error("Streamed chat turn failed; history left unchanged", exc_info=True)
        finally:
            _settle(settled)


def _settle(future: asyncio.Future[None]) -> None:
    if not future.done():
        future.set_result(None)
