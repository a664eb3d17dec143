"""Tests for genai_client.ai.client — the GoogleGenerativeAI entry point."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from genai_client.ai.client import GoogleGenerativeAI
from genai_client.ai.errors import ConfigError
from genai_client.ai.types import CachedContent, Content, ModelParams, Part
from tests.conftest import API_KEY, json_response, make_response

if TYPE_CHECKING:
    from tests.conftest import MockGenAIServer

CACHE = CachedContent(
    name="cachedContents/abc",
    model="models/gemini-x",
    tools=[{"functionDeclarations": [{"name": "lookup"}]}],
    system_instruction=Content(role="system", parts=[Part(text="cached sys")]),
)


class TestConstruction:
    def test_requires_api_key(self) -> None:
        with pytest.raises(ConfigError, match="API key"):
            GoogleGenerativeAI("")

    async def test_context_manager_closes(self, server: MockGenAIServer) -> None:
        client = httpx.AsyncClient(transport=server.transport)
        async with GoogleGenerativeAI(API_KEY, client=client) as genai:
            assert genai.api_key == API_KEY
        # A borrowed client stays usable after the SDK closes.
        assert not client.is_closed
        await client.aclose()

    async def test_requires_model_name(self, genai: GoogleGenerativeAI) -> None:
        with pytest.raises(ConfigError, match="Must provide a model name"):
            genai.get_generative_model(ModelParams(model=""))

    async def test_model_name_normalised(self, genai: GoogleGenerativeAI) -> None:
        assert genai.get_generative_model(ModelParams(model="gemini-x")).model == "models/gemini-x"


class TestCachedContent:
    async def test_model_from_cache(self, genai: GoogleGenerativeAI) -> None:
        model = genai.get_generative_model_from_cached_content(CACHE)
        assert model.model == "models/gemini-x"
        assert model.cached_content is CACHE
        assert model.tools == CACHE.tools
        assert model.system_instruction == CACHE.system_instruction

    async def test_requires_name(self, genai: GoogleGenerativeAI) -> None:
        with pytest.raises(ConfigError, match="`name`"):
            genai.get_generative_model_from_cached_content(CachedContent(model="models/x"))

    async def test_requires_model(self, genai: GoogleGenerativeAI) -> None:
        with pytest.raises(ConfigError, match="`model`"):
            genai.get_generative_model_from_cached_content(CachedContent(name="cachedContents/1"))

    async def test_conflicting_model(self, genai: GoogleGenerativeAI) -> None:
        with pytest.raises(ConfigError, match='Different value for "model"'):
            genai.get_generative_model_from_cached_content(CACHE, ModelParams(model="other"))

    async def test_models_prefix_ignored(self, genai: GoogleGenerativeAI) -> None:
        model = genai.get_generative_model_from_cached_content(
            CACHE, ModelParams(model="gemini-x", generation_config={"temperature": 0})
        )
        assert model.generation_config == {"temperature": 0}

    async def test_conflicting_system_instruction(self, genai: GoogleGenerativeAI) -> None:
        with pytest.raises(ConfigError, match='"system_instruction"'):
            genai.get_generative_model_from_cached_content(
                CACHE,
                ModelParams(
                    model="gemini-x",
                    system_instruction=Content(role="system", parts=[Part(text="other")]),
                ),
            )

    async def test_cache_name_sent(self, server: MockGenAIServer, genai: GoogleGenerativeAI) -> None:
        server.queue(json_response(make_response()))
        model = genai.get_generative_model_from_cached_content(CACHE)

        await model.generate_content("Hi")

        body = server.bodies()[0]
        assert body["cachedContent"] == "cachedContents/abc"
        assert body["tools"] == [{"functionDeclarations": [{"name": "lookup"}]}]
