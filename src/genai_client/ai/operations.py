"""One function per REST operation: build the request, send it, wrap the result."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from genai_client.ai.request import build_request
from genai_client.ai.response import (
    EnhancedGenerateContentResponse,
    to_enhanced_response,
    validate_response,
)
from genai_client.ai.stream import GenerateContentStreamResult, process_stream
from genai_client.ai.types import (
    BatchEmbedContentsResponse,
    CountTokensResponse,
    EmbedContentResponse,
    Task,
)

if TYPE_CHECKING:
    from genai_client.ai.transport import Transport
    from genai_client.ai.types import RequestOptions

logger = logging.getLogger(__name__)


async def generate_content(
    transport: Transport,
    api_key: str,
    model: str,
    params: dict[str, Any],
    request_options: RequestOptions | None = None,
) -> EnhancedGenerateContentResponse:
    request = build_request(
        model, Task.GENERATE_CONTENT, api_key, False, params, request_options
    )
    data = await transport.send_json(request)
    return to_enhanced_response(data)


async def generate_content_stream(
    transport: Transport,
    api_key: str,
    model: str,
    params: dict[str, Any],
    request_options: RequestOptions | None = None,
) -> GenerateContentStreamResult:
    """Start a streaming generate call.

    Returns once the service has accepted the request; the body is decoded
    in the background.
    """
    request = build_request(
        model, Task.STREAM_GENERATE_CONTENT, api_key, True, params, request_options
    )
    body = await transport.send_stream(request)
    return process_stream(body)


async def count_tokens(
    transport: Transport,
    api_key: str,
    model: str,
    params: dict[str, Any],
    request_options: RequestOptions | None = None,
) -> CountTokensResponse:
    request = build_request(model, Task.COUNT_TOKENS, api_key, False, params, request_options)
    return validate_response(CountTokensResponse, await transport.send_json(request))


async def embed_content(
    transport: Transport,
    api_key: str,
    model: str,
    params: dict[str, Any],
    request_options: RequestOptions | None = None,
) -> EmbedContentResponse:
    request = build_request(model, Task.EMBED_CONTENT, api_key, False, params, request_options)
    return validate_response(EmbedContentResponse, await transport.send_json(request))


async def batch_embed_contents(
    transport: Transport,
    api_key: str,
    model: str,
    params: dict[str, Any],
    request_options: RequestOptions | None = None,
) -> BatchEmbedContentsResponse:
    """Embed several requests at once; each request is tagged with *model*."""
    requests = [{**item, "model": model} for item in params.get("requests", [])]
    logger.debug("Batch-embedding %d requests with %s", len(requests), model)
    request = build_request(
        model,
        Task.BATCH_EMBED_CONTENTS,
        api_key,
        False,
        {"requests": requests},
        request_options,
    )
    return validate_response(BatchEmbedContentsResponse, await transport.send_json(request))
