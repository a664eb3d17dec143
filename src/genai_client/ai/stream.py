"""SSE stream decoding and aggregation.

The body of a ``streamGenerateContent?alt=sse`` call is decoded into JSON
chunks, then teed: one branch is handed to the caller as a live sequence of
partial responses, the other is folded in the background into a single
aggregated response.
"""

from __future__ import annotations

import asyncio
import codecs
import json
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from genai_client.ai.errors import ParseError
from genai_client.ai.response import EnhancedGenerateContentResponse, to_enhanced_response
from genai_client.ai.types import PART_KINDS, Role
from genai_client.ai.utils.event_stream import tee

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

# One SSE frame at the head of the buffer.  The payload may not span lines.
RESPONSE_LINE_RE = re.compile(r"^data: ([^\r\n]*)(?:\n\n|\r\r|\r\n\r\n)")

# Candidate fields replaced wholesale by each chunk.
_OVERWRITTEN_CANDIDATE_FIELDS = (
    "citationMetadata",
    "groundingMetadata",
    "finishReason",
    "finishMessage",
    "safetyRatings",
)


@dataclass(frozen=True)
class GenerateContentStreamResult:
    """Live partial responses plus the aggregate once the stream ends."""

    stream: AsyncIterator[EnhancedGenerateContentResponse]
    response: asyncio.Task[EnhancedGenerateContentResponse]


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


async def decode_stream(source: AsyncIterator[bytes | str]) -> AsyncIterator[dict[str, Any]]:
    """Yield one parsed JSON object per ``data: <json>`` frame.

    Bytes are decoded as strict UTF-8; chunk boundaries may fall anywhere,
    including inside a multi-byte character or a frame delimiter.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="strict")
    buffer = ""
    async for chunk in source:
        buffer += _decode(decoder, chunk)
        match = RESPONSE_LINE_RE.match(buffer)
        while match:
            raw = match.group(1)
            try:
                parsed = json.loads(raw)
            except ValueError as exc:
                raise ParseError(f'Error parsing JSON response: "{raw}"', raw_text=raw) from exc
            yield parsed
            buffer = buffer[match.end():]
            match = RESPONSE_LINE_RE.match(buffer)

    buffer += _decode(decoder, b"", final=True)
    if buffer.strip():
        raise ParseError("Failed to parse stream", raw_text=buffer)


def _decode(decoder: codecs.IncrementalDecoder, chunk: bytes | str, final: bool = False) -> str:
    if isinstance(chunk, str):
        return chunk
    try:
        return decoder.decode(chunk, final=final)
    except UnicodeDecodeError as exc:
        raise ParseError(f"Failed to decode stream as UTF-8: {exc}") from exc


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def aggregate_responses(responses: Iterable[dict[str, Any]]) -> dict[str, Any]:
    """Fold partial responses into one response dict.

    * ``promptFeedback`` comes from the last chunk.
    * Candidates merge by ``index``; metadata fields take the latest chunk's
      value while content parts are appended in arrival order.
    * A part with no recognised payload becomes an empty text part so that
      positions are preserved.
    * ``usageMetadata`` is overwritten whenever a chunk carries it.
    """
    chunks = list(responses)
    last = chunks[-1] if chunks else {}
    aggregated: dict[str, Any] = {"promptFeedback": last.get("promptFeedback")}
    candidates: dict[int, dict[str, Any]] = {}

    for chunk in chunks:
        for candidate in chunk.get("candidates") or []:
            index = candidate.get("index") or 0
            merged = candidates.setdefault(index, {"index": index})
            for name in _OVERWRITTEN_CANDIDATE_FIELDS:
                merged[name] = candidate.get(name)

            content = candidate.get("content") or {}
            parts = content.get("parts")
            if parts:
                merged_content = merged.setdefault(
                    "content",
                    {"role": content.get("role") or Role.USER.value, "parts": []},
                )
                for part in parts:
                    merged_content["parts"].append(_normalise_part(part))

        if chunk.get("usageMetadata"):
            aggregated["usageMetadata"] = chunk["usageMetadata"]

    if candidates:
        aggregated["candidates"] = [candidates[i] for i in sorted(candidates)]
    return aggregated


def _normalise_part(part: dict[str, Any]) -> dict[str, Any]:
    normalised = {kind: part[kind] for kind in PART_KINDS if part.get(kind)}
    if not normalised:
        normalised["text"] = ""
    return normalised


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def process_stream(source: AsyncIterator[bytes | str]) -> GenerateContentStreamResult:
    """Decode *source* and expose it both live and aggregated.

    Must be called from within a running event loop; decoding starts
    immediately in the background.
    """
    live, collected = tee(decode_stream(source), 2)
    loop = asyncio.get_running_loop()
    response = loop.create_task(_aggregate(collected))
    response.add_done_callback(_mark_retrieved)
    return GenerateContentStreamResult(stream=_live_responses(live), response=response)


async def _live_responses(
    chunks: AsyncIterator[dict[str, Any]],
) -> AsyncIterator[EnhancedGenerateContentResponse]:
    async for chunk in chunks:
        yield to_enhanced_response(chunk)


async def _aggregate(chunks: AsyncIterator[dict[str, Any]]) -> EnhancedGenerateContentResponse:
    collected = []
    async for chunk in chunks:
        # Shape errors must surface as ParseError before the merge reads the chunk.
        to_enhanced_response(chunk)
        collected.append(chunk)
    return to_enhanced_response(aggregate_responses(collected))


def _mark_retrieved(task: asyncio.Task[Any]) -> None:
    # The caller may only consume the live branch; the same failure is
    # raised there, so the aggregate's copy must not be reported as lost.
    if not task.cancelled():
        task.exception()
