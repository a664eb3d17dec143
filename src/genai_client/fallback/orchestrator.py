"""Retry a call across a prioritised list of model identifiers.

Only "model not found" failures move on to the next model; any other error
ends the attempt immediately and is raised unchanged.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

from genai_client.ai.client import GoogleGenerativeAI
from genai_client.ai.errors import ConfigError, FetchError, ModelFallbackError
from genai_client.ai.types import ModelParams
from genai_client.fallback.constants import API_KEY_MISSING, DOCS_URL, FALLBACK_ORDER

if TYPE_CHECKING:
    from collections.abc import Sequence

    import httpx

    from genai_client.ai.models import GenerativeModel
    from genai_client.ai.types import ContentInput, RequestOptions
    from genai_client.config.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def mask_api_key(api_key: str | None) -> str:
    """Return ``AIzaSyAB...wxyz`` style output; short keys become ``***``."""
    if not api_key or len(api_key) < 12:
        return "***"
    return f"{api_key[:8]}...{api_key[-4:]}"


def is_model_not_found_error(error: BaseException) -> bool:
    if isinstance(error, FetchError) and error.status == 404:
        return True
    message = str(error)
    return "404" in message or "not found" in message.lower()


def describe_exhaustion(models: Sequence[str], error: BaseException | None) -> str:
    """User-facing explanation for a fallback list that ran out."""
    return (
        f"No model available. Tried models: {', '.join(models)}\n\n"
        "Possible fixes:\n"
        "1. Check that your API key is valid\n"
        "2. Make sure the Generative Language API is enabled for the key's project\n"
        f"3. Visit {DOCS_URL} to verify your API key\n\n"
        f"Error: {error}"
    )


class ModelFallbackOrchestrator:
    """Run a call against each model of *models* until one succeeds.

    Parameters
    ----------
    api_key:
        Key used for every attempt.  A missing key fails before any call.
    models:
        Model identifiers in priority order.
    request_options:
        Transport options applied to every attempt.
    client, transport:
        Optional ``httpx`` client or transport for the underlying
        :class:`GoogleGenerativeAI`.
    """

    def __init__(
        self,
        api_key: str | None,
        models: Sequence[str] = FALLBACK_ORDER,
        *,
        request_options: RequestOptions | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.models = tuple(models)
        self._request_options = request_options
        self._http_client = client
        self._http_transport = transport
        self._genai: GoogleGenerativeAI | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ModelFallbackOrchestrator:
        """Build an orchestrator from loaded settings and the environment."""
        return cls(
            settings.resolve_api_key(),
            settings.fallback.models,
            request_options=settings.to_request_options(),
            transport=transport,
        )

    async def aclose(self) -> None:
        if self._genai is not None:
            await self._genai.aclose()
            self._genai = None

    def _client(self) -> GoogleGenerativeAI:
        if self._genai is None:
            assert self.api_key
            self._genai = GoogleGenerativeAI(
                self.api_key, client=self._http_client, transport=self._http_transport
            )
        return self._genai

    async def call(
        self,
        operation: Callable[[GenerativeModel], Awaitable[T]],
        context: str,
    ) -> T:
        """Return the result of the first model for which *operation* succeeds.

        Raises
        ------
        ConfigError
            If no API key is configured.
        ModelFallbackError
            If every model reported "not found".
        Exception
            Any other failure, unchanged, from the model that produced it.
        """
        log_prefix = f"[GENAI {context}]"
        if not self.api_key:
            logger.error("%s API key is missing", log_prefix)
            raise ConfigError(API_KEY_MISSING)

        logger.info("%s Starting request with key %s", log_prefix, mask_api_key(self.api_key))

        attempted: list[str] = []
        last_error: BaseException | None = None
        for model_name in self.models:
            attempted.append(model_name)
            logger.info("%s Trying model: %s", log_prefix, model_name)
            model = self._client().get_generative_model(
                ModelParams(model=model_name), self._request_options
            )
            try:
                result = await operation(model)
            except Exception as exc:
                logger.warning("%s Error with %s: %s", log_prefix, model_name, exc)
                if not is_model_not_found_error(exc):
                    raise
                last_error = exc
                logger.info("%s Model not found, trying next...", log_prefix)
                continue
            logger.info("%s Success with %s", log_prefix, model_name)
            return result

        raise ModelFallbackError(
            f"{context} failed: {describe_exhaustion(attempted, last_error)}",
            attempted_models=attempted,
            last_error=last_error,
            context=context,
        )

    async def generate_text(self, content: ContentInput, context: str) -> str:
        """Generate a response for *content* and return its text."""

        async def _generate(model: GenerativeModel) -> str:
            response = await model.generate_content(content)
            return response.text()

        text = await self.call(_generate, context)
        logger.debug("[GENAI %s] Received %d chars", context, len(text))
        return text
