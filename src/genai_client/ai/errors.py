"""Exception hierarchy for the generative-content client."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from genai_client.ai.types import GenerateContentResponse

ERROR_PREFIX = "[GoogleGenerativeAI Error]: "


class GoogleGenerativeAIError(Exception):
    """Base class for every error raised by the client.

    The message is prefixed so that errors surfacing in logs are easy to
    attribute; :attr:`detail` keeps the unprefixed text.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"{ERROR_PREFIX}{message}")
        self.detail = message


class ConfigError(GoogleGenerativeAIError):
    """Bad client configuration or malformed call arguments."""


class ValidationError(GoogleGenerativeAIError):
    """A conversation or part violates the role/part-kind rules."""


class FetchError(GoogleGenerativeAIError):
    """The service answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        status_text: str | None = None,
        error_details: list[Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.status_text = status_text
        self.error_details = error_details


class RequestAbortedError(GoogleGenerativeAIError):
    """The request was cancelled by its timeout or abort event."""


class ParseError(GoogleGenerativeAIError):
    """The SSE body could not be decoded into JSON chunks."""

    def __init__(self, message: str, raw_text: str | None = None) -> None:
        super().__init__(message)
        self.raw_text = raw_text


class BlockedResponseError(GoogleGenerativeAIError):
    """The prompt or the first candidate was blocked."""

    def __init__(self, message: str, response: GenerateContentResponse) -> None:
        super().__init__(message)
        self.response = response


class ModelFallbackError(GoogleGenerativeAIError):
    """Every model in a fallback list failed with a retryable error."""

    def __init__(
        self,
        message: str,
        attempted_models: list[str],
        last_error: BaseException | None,
        context: str,
    ) -> None:
        super().__init__(message)
        self.attempted_models = attempted_models
        self.last_error = last_error
        self.context = context


__all__ = (
    "BlockedResponseError",
    "ConfigError",
    "FetchError",
    "GoogleGenerativeAIError",
    "ModelFallbackError",
    "ParseError",
    "RequestAbortedError",
    "ValidationError",
)
