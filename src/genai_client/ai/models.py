"""Generative model handle: model-level defaults plus every REST operation."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any

from genai_client.ai import operations
from genai_client.ai.content import (
    format_count_tokens_input,
    format_embed_content_input,
    format_generate_content_input,
    format_system_instruction,
)
from genai_client.ai.types import (
    ModelParams,
    RequestOptions,
    StartChatParams,
    merge_request_options,
    to_wire,
)
from genai_client.chat.session import ChatSession

if TYPE_CHECKING:
    from genai_client.ai.response import EnhancedGenerateContentResponse
    from genai_client.ai.stream import GenerateContentStreamResult
    from genai_client.ai.transport import Transport
    from genai_client.ai.types import (
        BatchEmbedContentsResponse,
        ContentInput,
        CountTokensResponse,
        EmbedContentResponse,
        SingleRequestOptions,
    )


def normalize_model_name(model: str) -> str:
    """Prefix bare model ids with ``models/``; tuned/other paths are kept."""
    return model if "/" in model else f"models/{model}"


class GenerativeModel:
    """A model bound to an API key, default parameters and request options."""

    def __init__(
        self,
        api_key: str,
        params: ModelParams,
        request_options: RequestOptions | None = None,
        *,
        transport: Transport,
    ) -> None:
        self.api_key = api_key
        self.model = normalize_model_name(params.model)
        self.generation_config = params.generation_config or {}
        self.safety_settings = params.safety_settings or []
        self.tools = params.tools
        self.tool_config = params.tool_config
        self.system_instruction = format_system_instruction(params.system_instruction)
        self.cached_content = params.cached_content
        self._params = replace(params, model=self.model)
        self._request_options = request_options or RequestOptions()
        self._transport = transport

    def __repr__(self) -> str:
        return f"GenerativeModel(model={self.model!r})"

    def _defaults(self) -> dict[str, Any]:
        return {
            "generationConfig": self.generation_config,
            "safetySettings": self.safety_settings,
            "tools": self.tools,
            "toolConfig": self.tool_config,
            "systemInstruction": self.system_instruction,
            "cachedContent": self.cached_content.name if self.cached_content else None,
        }

    def _options(self, request_options: SingleRequestOptions | None) -> RequestOptions:
        return merge_request_options(self._request_options, request_options)

    async def generate_content(
        self,
        request: ContentInput | dict[str, Any],
        request_options: SingleRequestOptions | None = None,
    ) -> EnhancedGenerateContentResponse:
        """Generate a complete response in one round trip."""
        body = to_wire({**self._defaults(), **format_generate_content_input(request)})
        return await operations.generate_content(
            self._transport, self.api_key, self.model, body, self._options(request_options)
        )

    async def generate_content_stream(
        self,
        request: ContentInput | dict[str, Any],
        request_options: SingleRequestOptions | None = None,
    ) -> GenerateContentStreamResult:
        """Generate a response as a stream of partial results.

        ``result.stream`` yields each partial response as it arrives;
        ``await result.response`` gives the aggregate.
        """
        body = to_wire({**self._defaults(), **format_generate_content_input(request)})
        return await operations.generate_content_stream(
            self._transport, self.api_key, self.model, body, self._options(request_options)
        )

    def start_chat(self, params: StartChatParams | None = None) -> ChatSession:
        """Open a chat session; unset chat parameters inherit the model's."""
        params = params or StartChatParams()
        merged = replace(
            params,
            generation_config=params.generation_config or self.generation_config,
            safety_settings=params.safety_settings or self.safety_settings,
            tools=params.tools or self.tools,
            tool_config=params.tool_config or self.tool_config,
            system_instruction=params.system_instruction or self.system_instruction,
            cached_content=params.cached_content
            or (self.cached_content.name if self.cached_content else None),
        )
        return ChatSession(
            self.api_key,
            self.model,
            merged,
            self._request_options,
            transport=self._transport,
        )

    async def count_tokens(
        self,
        request: ContentInput | dict[str, Any],
        request_options: SingleRequestOptions | None = None,
    ) -> CountTokensResponse:
        body = format_count_tokens_input(request, self._params)
        return await operations.count_tokens(
            self._transport, self.api_key, self.model, body, self._options(request_options)
        )

    async def embed_content(
        self,
        request: ContentInput | dict[str, Any],
        request_options: SingleRequestOptions | None = None,
    ) -> EmbedContentResponse:
        body = format_embed_content_input(request)
        return await operations.embed_content(
            self._transport, self.api_key, self.model, body, self._options(request_options)
        )

    async def batch_embed_contents(
        self,
        request: dict[str, Any],
        request_options: SingleRequestOptions | None = None,
    ) -> BatchEmbedContentsResponse:
        """Embed ``request["requests"]``, each an ``embedContent`` body."""
        return await operations.batch_embed_contents(
            self._transport,
            self.api_key,
            self.model,
            to_wire(request),
            self._options(request_options),
        )
