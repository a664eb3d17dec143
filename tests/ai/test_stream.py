"""Tests for genai_client.ai.stream — SSE decoding, tee and aggregation."""

from __future__ import annotations

import pytest

from genai_client.ai.errors import ParseError
from genai_client.ai.stream import aggregate_responses, decode_stream, process_stream
from tests.conftest import iter_chunks, make_candidate, sse_body, split_every

FRAMES = [
    {"candidates": [make_candidate("Hel", finish_reason=None)]},
    {"candidates": [make_candidate("lo ", finish_reason=None)]},
    {"candidates": [make_candidate("wörld ☃", finish_reason="STOP")]},
]


async def _decode(*chunks: bytes | str) -> list[dict]:
    return [chunk async for chunk in decode_stream(iter_chunks(*chunks))]


class TestDecodeStream:
    async def test_frames_in_order(self) -> None:
        assert await _decode(sse_body(*FRAMES)) == FRAMES

    @pytest.mark.parametrize("size", [1, 2, 3, 7, 64])
    async def test_chunk_boundaries_anywhere(self, size: int) -> None:
        # Splits land inside delimiters and multi-byte characters.
        chunks = split_every(sse_body(*FRAMES), size)
        assert await _decode(*chunks) == FRAMES

    @pytest.mark.parametrize("sep", ["\n\n", "\r\r", "\r\n\r\n"])
    async def test_line_ending_variants(self, sep: str) -> None:
        assert await _decode(sse_body(*FRAMES, sep=sep)) == FRAMES

    async def test_text_chunks(self) -> None:
        assert await _decode('data: {"a": 1}\n', "\n") == [{"a": 1}]

    async def test_empty_stream(self) -> None:
        assert await _decode() == []

    async def test_trailing_whitespace_ok(self) -> None:
        assert await _decode(b'data: {"a": 1}\n\n  \n') == [{"a": 1}]

    async def test_bad_json(self) -> None:
        with pytest.raises(ParseError, match='Error parsing JSON response: "{oops"') as exc_info:
            await _decode(b"data: {oops\n\n")
        assert exc_info.value.raw_text == "{oops"

    async def test_incomplete_trailing_frame(self) -> None:
        with pytest.raises(ParseError, match="Failed to parse stream"):
            await _decode(b'data: {"a": 1}\n\ndata: {"b": 2}')

    async def test_frames_before_error_are_yielded(self) -> None:
        received = []
        with pytest.raises(ParseError):
            async for chunk in decode_stream(iter_chunks(b'data: {"a": 1}\n\ndata: nope\n\n')):
                received.append(chunk)
        assert received == [{"a": 1}]

    async def test_invalid_utf8_is_fatal(self) -> None:
        with pytest.raises(ParseError, match="UTF-8"):
            await _decode(b"data: \xff\xfe\n\n")

    async def test_truncated_utf8_is_fatal(self) -> None:
        with pytest.raises(ParseError):
            await _decode('data: {"a": "é"}\n\n'.encode()[:-5])


class TestAggregateResponses:
    def test_parts_appended_in_arrival_order(self) -> None:
        aggregated = aggregate_responses(FRAMES)
        candidate = aggregated["candidates"][0]
        assert [p["text"] for p in candidate["content"]["parts"]] == ["Hel", "lo ", "wörld ☃"]
        assert candidate["finishReason"] == "STOP"

    def test_metadata_overwritten_by_latest(self) -> None:
        aggregated = aggregate_responses(
            [
                {"candidates": [make_candidate("a", finish_reason=None, citationMetadata={"citationSources": [{"uri": "1"}]})]},
                {"candidates": [make_candidate("b", finish_reason="MAX_TOKENS")]},
            ]
        )
        candidate = aggregated["candidates"][0]
        assert candidate["finishReason"] == "MAX_TOKENS"
        assert candidate["citationMetadata"] is None

    def test_role_defaults_to_user_and_keeps_first(self) -> None:
        aggregated = aggregate_responses(
            [
                {"candidates": [make_candidate("a", role=None)]},
                {"candidates": [make_candidate("b", role="model")]},
            ]
        )
        assert aggregated["candidates"][0]["content"]["role"] == "user"

    def test_candidates_merged_by_index(self) -> None:
        aggregated = aggregate_responses(
            [
                {"candidates": [make_candidate("a0", index=0), make_candidate("a1", index=1)]},
                {"candidates": [make_candidate("b1", index=1)]},
                {"candidates": [make_candidate("b0")]},
            ]
        )
        texts = [
            [p["text"] for p in c["content"]["parts"]] for c in aggregated["candidates"]
        ]
        assert texts == [["a0", "b0"], ["a1", "b1"]]

    def test_missing_index_means_zero(self) -> None:
        aggregated = aggregate_responses(
            [{"candidates": [make_candidate("a", index=None)]}, {"candidates": [make_candidate("b")]}]
        )
        assert len(aggregated["candidates"]) == 1

    def test_unknown_part_becomes_empty_text(self) -> None:
        aggregated = aggregate_responses(
            [
                {
                    "candidates": [
                        {
                            "index": 0,
                            "content": {
                                "role": "model",
                                "parts": [{"text": "a"}, {"thought": True}, {"functionCall": {"name": "f"}}],
                            },
                        }
                    ]
                }
            ]
        )
        parts = aggregated["candidates"][0]["content"]["parts"]
        assert parts == [{"text": "a"}, {"text": ""}, {"functionCall": {"name": "f"}}]

    def test_prompt_feedback_from_last_chunk(self) -> None:
        aggregated = aggregate_responses(
            [
                {"promptFeedback": {"blockReason": "SAFETY"}},
                {"candidates": [make_candidate("a")], "promptFeedback": {"safetyRatings": []}},
            ]
        )
        assert aggregated["promptFeedback"] == {"safetyRatings": []}

    def test_usage_metadata_latest_wins(self) -> None:
        aggregated = aggregate_responses(
            [
                {"usageMetadata": {"totalTokenCount": 1}},
                {"candidates": [make_candidate("a")]},
                {"usageMetadata": {"totalTokenCount": 9}},
            ]
        )
        assert aggregated["usageMetadata"] == {"totalTokenCount": 9}

    def test_no_chunks(self) -> None:
        assert aggregate_responses([]) == {"promptFeedback": None}


class TestProcessStream:
    async def test_hi_hello(self) -> None:
        frame = {
            "candidates": [
                {
                    "index": 0,
                    "content": {"role": "model", "parts": [{"text": "Hello"}]},
                    "finishReason": "STOP",
                }
            ]
        }
        result = process_stream(iter_chunks(sse_body(frame)))
        response = await result.response
        assert response.text() == "Hello"

    async def test_live_and_aggregate_agree(self) -> None:
        result = process_stream(iter_chunks(*split_every(sse_body(*FRAMES), 5)))
        live = [chunk.text() async for chunk in result.stream]
        aggregate = await result.response
        assert "".join(live) == aggregate.text() == "Hello wörld ☃"

    async def test_aggregate_without_consuming_live(self) -> None:
        result = process_stream(iter_chunks(sse_body(*FRAMES)))
        assert (await result.response).text() == "Hello wörld ☃"

    async def test_live_without_awaiting_aggregate(self) -> None:
        result = process_stream(iter_chunks(sse_body(*FRAMES)))
        assert len([c async for c in result.stream]) == 3
        assert (await result.response).candidates is not None

    async def test_parse_error_reaches_both(self) -> None:
        result = process_stream(iter_chunks(sse_body(FRAMES[0]), b"data: {bad\n\n"))
        received = []
        with pytest.raises(ParseError):
            async for chunk in result.stream:
                received.append(chunk)
        assert len(received) == 1
        with pytest.raises(ParseError):
            await result.response

    async def test_later_finish_reason_keeps_text(self) -> None:
        frames = [
            {"candidates": [make_candidate("Hel", finish_reason=None)]},
            {"candidates": [make_candidate("lo", finish_reason="IMAGE_SAFETY")]},
        ]
        result = process_stream(iter_chunks(sse_body(*frames)))
        assert [chunk.text() async for chunk in result.stream] == ["Hel", "lo"]
        assert (await result.response).text() == "Hello"

    async def test_unexpected_shape_is_parse_error(self) -> None:
        result = process_stream(iter_chunks(sse_body({"candidates": "oops"})))
        with pytest.raises(ParseError, match="Unexpected response shape"):
            async for _ in result.stream:
                pass
        with pytest.raises(ParseError):
            await result.response

    async def test_non_object_frame_is_parse_error(self) -> None:
        result = process_stream(iter_chunks(b"data: [1, 2]\n\n"))
        with pytest.raises(ParseError):
            await result.response
