"""Core type definitions for the generative-content REST API.

Wire objects are frozen pydantic models with camelCase aliases so they can be
validated straight from the JSON the service returns and dumped back into
request bodies.  Enumerations are ``str`` enums; the ones the service reports
back in responses map values added after this release onto a catch-all
member instead of rejecting the response.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Role(str, Enum):
    """Author of a conversation turn."""

    USER = "user"
    MODEL = "model"
    FUNCTION = "function"
    SYSTEM = "system"


class Task(str, Enum):
    """Operation suffix appended to the model path (``models/x:<task>``)."""

    GENERATE_CONTENT = "generateContent"
    STREAM_GENERATE_CONTENT = "streamGenerateContent"
    COUNT_TOKENS = "countTokens"
    EMBED_CONTENT = "embedContent"
    BATCH_EMBED_CONTENTS = "batchEmbedContents"


class FinishReason(str, Enum):
    FINISH_REASON_UNSPECIFIED = "FINISH_REASON_UNSPECIFIED"
    STOP = "STOP"
    MAX_TOKENS = "MAX_TOKENS"
    SAFETY = "SAFETY"
    RECITATION = "RECITATION"
    LANGUAGE = "LANGUAGE"
    OTHER = "OTHER"
    BLOCKLIST = "BLOCKLIST"
    PROHIBITED_CONTENT = "PROHIBITED_CONTENT"
    SPII = "SPII"
    MALFORMED_FUNCTION_CALL = "MALFORMED_FUNCTION_CALL"
    IMAGE_SAFETY = "IMAGE_SAFETY"
    UNEXPECTED_TOOL_CALL = "UNEXPECTED_TOOL_CALL"
    TOO_MANY_TOOL_CALLS = "TOO_MANY_TOOL_CALLS"

    @classmethod
    def _missing_(cls, value: object) -> FinishReason | None:
        return cls.OTHER if isinstance(value, str) else None


class BlockReason(str, Enum):
    BLOCKED_REASON_UNSPECIFIED = "BLOCKED_REASON_UNSPECIFIED"
    SAFETY = "SAFETY"
    OTHER = "OTHER"
    BLOCKLIST = "BLOCKLIST"
    PROHIBITED_CONTENT = "PROHIBITED_CONTENT"
    IMAGE_SAFETY = "IMAGE_SAFETY"

    @classmethod
    def _missing_(cls, value: object) -> BlockReason | None:
        return cls.OTHER if isinstance(value, str) else None


class HarmCategory(str, Enum):
    HARM_CATEGORY_UNSPECIFIED = "HARM_CATEGORY_UNSPECIFIED"
    HARM_CATEGORY_HATE_SPEECH = "HARM_CATEGORY_HATE_SPEECH"
    HARM_CATEGORY_SEXUALLY_EXPLICIT = "HARM_CATEGORY_SEXUALLY_EXPLICIT"
    HARM_CATEGORY_HARASSMENT = "HARM_CATEGORY_HARASSMENT"
    HARM_CATEGORY_DANGEROUS_CONTENT = "HARM_CATEGORY_DANGEROUS_CONTENT"
    HARM_CATEGORY_CIVIC_INTEGRITY = "HARM_CATEGORY_CIVIC_INTEGRITY"

    @classmethod
    def _missing_(cls, value: object) -> HarmCategory | None:
        return cls.HARM_CATEGORY_UNSPECIFIED if isinstance(value, str) else None


class HarmBlockThreshold(str, Enum):
    HARM_BLOCK_THRESHOLD_UNSPECIFIED = "HARM_BLOCK_THRESHOLD_UNSPECIFIED"
    BLOCK_LOW_AND_ABOVE = "BLOCK_LOW_AND_ABOVE"
    BLOCK_MEDIUM_AND_ABOVE = "BLOCK_MEDIUM_AND_ABOVE"
    BLOCK_ONLY_HIGH = "BLOCK_ONLY_HIGH"
    BLOCK_NONE = "BLOCK_NONE"
    OFF = "OFF"


class HarmProbability(str, Enum):
    HARM_PROBABILITY_UNSPECIFIED = "HARM_PROBABILITY_UNSPECIFIED"
    NEGLIGIBLE = "NEGLIGIBLE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @classmethod
    def _missing_(cls, value: object) -> HarmProbability | None:
        return cls.HARM_PROBABILITY_UNSPECIFIED if isinstance(value, str) else None


class TaskType(str, Enum):
    """Embedding task hint."""

    TASK_TYPE_UNSPECIFIED = "TASK_TYPE_UNSPECIFIED"
    RETRIEVAL_QUERY = "RETRIEVAL_QUERY"
    RETRIEVAL_DOCUMENT = "RETRIEVAL_DOCUMENT"
    SEMANTIC_SIMILARITY = "SEMANTIC_SIMILARITY"
    CLASSIFICATION = "CLASSIFICATION"
    CLUSTERING = "CLUSTERING"


class FunctionCallingMode(str, Enum):
    MODE_UNSPECIFIED = "MODE_UNSPECIFIED"
    AUTO = "AUTO"
    ANY = "ANY"
    NONE = "NONE"


class ExecutableCodeLanguage(str, Enum):
    LANGUAGE_UNSPECIFIED = "LANGUAGE_UNSPECIFIED"
    PYTHON = "PYTHON"

    @classmethod
    def _missing_(cls, value: object) -> ExecutableCodeLanguage | None:
        return cls.LANGUAGE_UNSPECIFIED if isinstance(value, str) else None


class Outcome(str, Enum):
    OUTCOME_UNSPECIFIED = "OUTCOME_UNSPECIFIED"
    OUTCOME_OK = "OUTCOME_OK"
    OUTCOME_FAILED = "OUTCOME_FAILED"
    OUTCOME_DEADLINE_EXCEEDED = "OUTCOME_DEADLINE_EXCEEDED"

    @classmethod
    def _missing_(cls, value: object) -> Outcome | None:
        return cls.OUTCOME_UNSPECIFIED if isinstance(value, str) else None


# Finish reasons that mean the candidate's content must not be surfaced.
BLOCKED_FINISH_REASONS: frozenset[FinishReason] = frozenset(
    {FinishReason.RECITATION, FinishReason.SAFETY, FinishReason.LANGUAGE}
)


# ---------------------------------------------------------------------------
# Wire model base
# ---------------------------------------------------------------------------


class WireModel(BaseModel):
    """Base for JSON objects exchanged with the service.

    Fields are snake_case in Python and camelCase on the wire.  Unknown
    fields returned by newer API versions are kept rather than rejected.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
        protected_namespaces=(),
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump to the camelCase JSON shape, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def to_wire(value: Any) -> Any:
    """Recursively convert models / enums inside *value* to plain JSON data."""
    if isinstance(value, WireModel):
        return value.to_wire()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: to_wire(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [to_wire(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Parts and content
# ---------------------------------------------------------------------------


class Blob(WireModel):
    """Inline binary payload (base64 encoded)."""

    mime_type: str
    data: str


class FileData(WireModel):
    mime_type: str
    file_uri: str


class FunctionCall(WireModel):
    name: str
    args: dict[str, Any] = {}


class FunctionResponse(WireModel):
    name: str
    response: dict[str, Any] = {}


class ExecutableCode(WireModel):
    language: ExecutableCodeLanguage = ExecutableCodeLanguage.LANGUAGE_UNSPECIFIED
    code: str = ""


class CodeExecutionResult(WireModel):
    outcome: Outcome = Outcome.OUTCOME_UNSPECIFIED
    output: str = ""


# Wire names of every payload a Part may carry, in canonical order.
PART_KINDS: tuple[str, ...] = (
    "text",
    "inlineData",
    "functionCall",
    "functionResponse",
    "fileData",
    "executableCode",
    "codeExecutionResult",
)


class Part(WireModel):
    """One unit of payload within a :class:`Content`.

    Exactly one payload field is expected to be set, but the model does not
    enforce it; :meth:`kinds` reports whatever is present.
    """

    text: str | None = None
    inline_data: Blob | None = None
    function_call: FunctionCall | None = None
    function_response: FunctionResponse | None = None
    file_data: FileData | None = None
    executable_code: ExecutableCode | None = None
    code_execution_result: CodeExecutionResult | None = None

    def kinds(self) -> list[str]:
        """Return the wire names of the payloads present on this part."""
        return [kind for kind in PART_KINDS if getattr(self, _KIND_FIELDS[kind]) is not None]


_KIND_FIELDS: dict[str, str] = {
    "text": "text",
    "inlineData": "inline_data",
    "functionCall": "function_call",
    "functionResponse": "function_response",
    "fileData": "file_data",
    "executableCode": "executable_code",
    "codeExecutionResult": "code_execution_result",
}


class Content(WireModel):
    """A conversation turn.

    ``role`` is kept as a free string so that malformed history reaches
    :func:`~genai_client.ai.utils.validation.validate_chat_history` and is
    reported there instead of failing deep inside model validation.
    """

    role: str | None = None
    parts: list[Part] = []


# ---------------------------------------------------------------------------
# Request configuration (pass-through)
# ---------------------------------------------------------------------------


class SafetySetting(WireModel):
    category: HarmCategory
    threshold: HarmBlockThreshold


class GenerationConfig(WireModel):
    """Sampling configuration.  Unlisted fields are forwarded untouched."""

    candidate_count: int | None = None
    stop_sequences: list[str] | None = None
    max_output_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    response_mime_type: str | None = None
    response_schema: dict[str, Any] | None = None


class CachedContent(WireModel):
    name: str | None = None
    model: str | None = None
    display_name: str | None = None
    contents: list[Content] | None = None
    tools: list[dict[str, Any]] | None = None
    tool_config: dict[str, Any] | None = None
    system_instruction: Content | None = None
    ttl: str | None = None
    expire_time: str | None = None


# ---------------------------------------------------------------------------
# Response objects
# ---------------------------------------------------------------------------


class SafetyRating(WireModel):
    category: HarmCategory
    probability: HarmProbability
    blocked: bool | None = None


class CitationSource(WireModel):
    start_index: int | None = None
    end_index: int | None = None
    uri: str | None = None
    license: str | None = None


class CitationMetadata(WireModel):
    citation_sources: list[CitationSource] = []


class PromptFeedback(WireModel):
    block_reason: BlockReason | None = None
    block_reason_message: str | None = None
    safety_ratings: list[SafetyRating] = []


class UsageMetadata(WireModel):
    prompt_token_count: int | None = None
    candidates_token_count: int | None = None
    total_token_count: int | None = None
    cached_content_token_count: int | None = None


class Candidate(WireModel):
    index: int | None = None
    content: Content | None = None
    finish_reason: FinishReason | None = None
    finish_message: str | None = None
    safety_ratings: list[SafetyRating] | None = None
    citation_metadata: CitationMetadata | None = None
    grounding_metadata: dict[str, Any] | None = None


class GenerateContentResponse(WireModel):
    candidates: list[Candidate] | None = None
    prompt_feedback: PromptFeedback | None = None
    usage_metadata: UsageMetadata | None = None
    model_version: str | None = None


class CountTokensResponse(WireModel):
    total_tokens: int = 0
    cached_content_token_count: int | None = None


class ContentEmbedding(WireModel):
    values: list[float] = []


class EmbedContentResponse(WireModel):
    embedding: ContentEmbedding


class BatchEmbedContentsResponse(WireModel):
    embeddings: list[ContentEmbedding] = []


# ---------------------------------------------------------------------------
# Caller-side input aliases
# ---------------------------------------------------------------------------

PartLike = Union[str, Part, dict[str, Any]]
"""A part given by the caller: bare string, :class:`Part`, or wire dict."""

ContentInput = Union[str, list[PartLike]]
"""Input accepted by single-turn helpers: a string or a list of parts."""


# ---------------------------------------------------------------------------
# Model / request options
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModelParams:
    """Parameters fixed when a generative model handle is created."""

    model: str
    generation_config: GenerationConfig | dict[str, Any] | None = None
    safety_settings: list[SafetySetting | dict[str, Any]] | None = None
    tools: list[dict[str, Any]] | None = None
    tool_config: dict[str, Any] | None = None
    system_instruction: str | Part | Content | dict[str, Any] | None = None
    cached_content: CachedContent | None = None


@dataclass(frozen=True)
class StartChatParams:
    """Parameters for a chat session.  Unset fields inherit from the model."""

    history: list[Content | dict[str, Any]] | None = None
    generation_config: GenerationConfig | dict[str, Any] | None = None
    safety_settings: list[SafetySetting | dict[str, Any]] | None = None
    tools: list[dict[str, Any]] | None = None
    tool_config: dict[str, Any] | None = None
    system_instruction: Content | None = None
    cached_content: str | None = None


@dataclass(frozen=True)
class RequestOptions:
    """Transport-level options shared by every call on a model.

    ``timeout_ms`` and ``abort_event`` are merged into one cancellation
    scope per request; setting the event aborts only the in-flight call.
    """

    timeout_ms: float | None = None
    api_version: str | None = None
    api_client: str | None = None
    base_url: str | None = None
    custom_headers: dict[str, str] | None = None
    abort_event: asyncio.Event | None = field(default=None, compare=False)


SingleRequestOptions = RequestOptions
"""Per-call override; any field set here wins over the model-level value."""


def merge_request_options(
    base: RequestOptions | None,
    override: SingleRequestOptions | None,
) -> RequestOptions:
    """Overlay the non-``None`` fields of *override* onto *base*."""
    merged = base or RequestOptions()
    if override is None:
        return merged
    changes = {
        name: getattr(override, name)
        for name in (
            "timeout_ms",
            "api_version",
            "api_client",
            "base_url",
            "custom_headers",
            "abort_event",
        )
        if getattr(override, name) is not None
    }
    return replace(merged, **changes)
