"""Entry point: ``GoogleGenerativeAI(api_key).get_generative_model(...)``."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from genai_client.ai.errors import ConfigError
from genai_client.ai.models import GenerativeModel
from genai_client.ai.transport import Transport
from genai_client.ai.types import ModelParams

if TYPE_CHECKING:
    import httpx

    from genai_client.ai.types import CachedContent, RequestOptions


class GoogleGenerativeAI:
    """Factory for :class:`GenerativeModel` handles sharing one transport.

    Use as an async context manager, or call :meth:`aclose`, to release the
    underlying HTTP connection pool.
    """

    def __init__(
        self,
        api_key: str,
        *,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ConfigError("An API key is required to create a client.")
        self.api_key = api_key
        self._transport = Transport(client, transport=transport)

    async def __aenter__(self) -> GoogleGenerativeAI:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._transport.aclose()

    def get_generative_model(
        self,
        params: ModelParams,
        request_options: RequestOptions | None = None,
    ) -> GenerativeModel:
        if not params.model:
            raise ConfigError(
                "Must provide a model name. Example: "
                "client.get_generative_model(ModelParams(model='my-model-name'))"
            )
        return GenerativeModel(
            self.api_key, params, request_options, transport=self._transport
        )

    def get_generative_model_from_cached_content(
        self,
        cached_content: CachedContent,
        params: ModelParams | None = None,
        request_options: RequestOptions | None = None,
    ) -> GenerativeModel:
        """Create a model whose model, tools and system instruction come from a cache.

        Values in *params* that disagree with the cache are rejected; model
        names compare equal with or without the ``models/`` prefix.
        """
        if not cached_content.name:
            raise ConfigError("Cached content must contain a `name` field.")
        if not cached_content.model:
            raise ConfigError("Cached content must contain a `model` field.")

        if params is not None:
            if params.model and params.model.removeprefix("models/") != (
                cached_content.model.removeprefix("models/")
            ):
                raise ConfigError(
                    f'Different value for "model" specified in model params '
                    f"({params.model}) and cached content ({cached_content.model})"
                )
            if (
                params.system_instruction is not None
                and cached_content.system_instruction is not None
                and params.system_instruction != cached_content.system_instruction
            ):
                raise ConfigError(
                    'Different value for "system_instruction" specified in model '
                    "params and cached content"
                )

        base = params or ModelParams(model=cached_content.model)
        merged = replace(
            base,
            model=cached_content.model,
            tools=cached_content.tools,
            tool_config=cached_content.tool_config,
            system_instruction=cached_content.system_instruction,
            cached_content=cached_content,
        )
        return GenerativeModel(
            self.api_key, merged, request_options, transport=self._transport
        )
