"""Settings Pydantic models for genai-client configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field

from genai_client.ai.env_api_keys import get_env_api_key
from genai_client.ai.request import DEFAULT_API_VERSION, DEFAULT_BASE_URL
from genai_client.ai.types import RequestOptions
from genai_client.fallback.constants import FALLBACK_ORDER


class ClientConfig(BaseModel):
    """Connection settings shared by every request."""

    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    api_client: str | None = None
    timeout_ms: float | None = Field(default=None, ge=0)
    custom_headers: dict[str, str] = Field(default_factory=dict)

    model_config = {"extra": "ignore"}


class FallbackConfig(BaseModel):
    """Ordered model identifiers tried by the fallback orchestrator."""

    models: list[str] = Field(default_factory=lambda: list(FALLBACK_ORDER))

    model_config = {"extra": "ignore"}


class Settings(BaseModel):
    """Top-level settings model — the single source of truth for configuration."""

    client: ClientConfig = Field(default_factory=ClientConfig)
    fallback: FallbackConfig = Field(default_factory=FallbackConfig)

    model_config = {"extra": "ignore"}

    def resolve_api_key(self) -> str | None:
        """Configured key, else the one found in the environment."""
        return self.client.api_key or get_env_api_key()

    def to_request_options(self) -> RequestOptions:
        return RequestOptions(
            timeout_ms=self.client.timeout_ms,
            api_version=self.client.api_version,
            api_client=self.client.api_client,
            base_url=self.client.base_url,
            custom_headers=dict(self.client.custom_headers) or None,
        )
