"""Derived accessors over a :class:`GenerateContentResponse`.

Only the first candidate is ever read; other candidates remain available
on ``response.candidates``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, TypeVar

import pydantic

from genai_client.ai.errors import BlockedResponseError, ParseError
from genai_client.ai.types import (
    BLOCKED_FINISH_REASONS,
    Candidate,
    FunctionCall,
    GenerateContentResponse,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=pydantic.BaseModel)


class EnhancedGenerateContentResponse(GenerateContentResponse):
    """Response with ``text()``, ``function_call()`` and ``function_calls()``."""

    def text(self) -> str:
        """Concatenate the text of the first candidate.

        Executable code and code-execution results are rendered as fenced
        blocks at their original position.

        Raises
        ------
        BlockedResponseError
            If the first candidate finished for a blocking reason, or there
            are no candidates and the prompt was blocked.
        """
        if self.candidates:
            self._check_first_candidate("text")
            return get_text(self)
        if self.prompt_feedback is not None:
            raise BlockedResponseError(
                f"Text not available. {format_block_error_message(self)}", self
            )
        return ""

    def function_call(self) -> FunctionCall | None:
        """Return the first function call of the first candidate.

        Deprecated; prefer :meth:`function_calls`.
        """
        if self.candidates:
            self._check_first_candidate("function calls")
            logger.warning(
                "response.function_call() is deprecated. Use response.function_calls() instead."
            )
            calls = get_function_calls(self)
            return calls[0] if calls else None
        if self.prompt_feedback is not None:
            raise BlockedResponseError(
                f"Function call not available. {format_block_error_message(self)}", self
            )
        return None

    def function_calls(self) -> list[FunctionCall] | None:
        """Return every function call of the first candidate, or ``None``."""
        if self.candidates:
            self._check_first_candidate("function calls")
            return get_function_calls(self)
        if self.prompt_feedback is not None:
            raise BlockedResponseError(
                f"Function call not available. {format_block_error_message(self)}", self
            )
        return None

    def _check_first_candidate(self, what: str) -> None:
        assert self.candidates
        if len(self.candidates) > 1:
            logger.warning(
                "This response had %d candidates. Returning %s from the first "
                "candidate only. Access response.candidates directly to use the "
                "other candidates.",
                len(self.candidates),
                what,
            )
        if had_bad_finish_reason(self.candidates[0]):
            raise BlockedResponseError(format_block_error_message(self), self)


def add_helpers(
    response: GenerateContentResponse | dict[str, Any],
) -> EnhancedGenerateContentResponse:
    """Wrap a raw response (model or wire dict) with the derived accessors."""
    if isinstance(response, EnhancedGenerateContentResponse):
        return response
    if isinstance(response, GenerateContentResponse):
        response = response.model_dump(by_alias=True, exclude_none=True)
    return EnhancedGenerateContentResponse.model_validate(response)


def validate_response(model: type[M], data: dict[str, Any]) -> M:
    """Validate a decoded response body, raising :class:`ParseError` on a shape mismatch."""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ParseError(f"Unexpected response shape: {exc}", raw_text=json.dumps(data)) from exc


def to_enhanced_response(data: dict[str, Any]) -> EnhancedGenerateContentResponse:
    return validate_response(EnhancedGenerateContentResponse, data)


def get_text(response: GenerateContentResponse) -> str:
    """Text of the first candidate, code parts rendered as fenced blocks."""
    chunks: list[str] = []
    for part in _first_candidate_parts(response):
        if part.text:
            chunks.append(part.text)
        if part.executable_code is not None:
            chunks.append(
                f"\n```{part.executable_code.language.value}\n"
                f"{part.executable_code.code}\n```\n"
            )
        if part.code_execution_result is not None:
            chunks.append(f"\n```\n{part.code_execution_result.output}\n```\n")
    return "".join(chunks)


def get_function_calls(response: GenerateContentResponse) -> list[FunctionCall] | None:
    calls = [
        part.function_call
        for part in _first_candidate_parts(response)
        if part.function_call is not None
    ]
    return calls or None


def _first_candidate_parts(response: GenerateContentResponse) -> list[Any]:
    if not response.candidates:
        return []
    content = response.candidates[0].content
    if content is None:
        return []
    return list(content.parts)


def had_bad_finish_reason(candidate: Candidate) -> bool:
    return candidate.finish_reason is not None and candidate.finish_reason in BLOCKED_FINISH_REASONS


def format_block_error_message(response: GenerateContentResponse) -> str:
    """Human-readable explanation of why a response was blocked.

    Returns an empty string when nothing was blocked.
    """
    message = ""
    if not response.candidates and response.prompt_feedback is not None:
        feedback = response.prompt_feedback
        message += "Response was blocked"
        if feedback.block_reason is not None:
            message += f" due to {feedback.block_reason.value}"
        if feedback.block_reason_message:
            message += f": {feedback.block_reason_message}"
    elif response.candidates:
        first = response.candidates[0]
        if had_bad_finish_reason(first):
            assert first.finish_reason is not None
            message += f"Candidate was blocked due to {first.finish_reason.value}"
            if first.finish_message:
                message += f": {first.finish_message}"
    return message
