"""Versioned endpoint URLs and request headers.

Nothing here performs I/O: identical inputs always produce an identical
:class:`BuiltRequest`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from genai_client.ai.errors import ConfigError
from genai_client.ai.types import RequestOptions, Task

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
DEFAULT_API_VERSION = "v1beta"

PACKAGE_VERSION = "0.1.0"
PACKAGE_LOG_HEADER = "genai-py"

API_KEY_HEADER = "x-goog-api-key"
CLIENT_HEADER = "x-goog-api-client"


@dataclass(frozen=True)
class RequestUrl:
    """``{base_url}/{api_version}/{model}:{task}[?alt=sse]``."""

    model: str
    task: Task
    stream: bool
    request_options: RequestOptions | None = None

    def __str__(self) -> str:
        options = self.request_options or RequestOptions()
        api_version = options.api_version or DEFAULT_API_VERSION
        base_url = (options.base_url or DEFAULT_BASE_URL).rstrip("/")
        url = f"{base_url}/{api_version}/{self.model}:{self.task.value}"
        if self.stream:
            url += "?alt=sse"
        return url


@dataclass(frozen=True)
class BuiltRequest:
    """A fully composed POST request, ready for the transport."""

    url: str
    headers: dict[str, str]
    body: str
    method: str = "POST"
    request_options: RequestOptions = field(default_factory=RequestOptions, compare=False)


def get_client_headers(request_options: RequestOptions | None) -> str:
    """Build the client signature: optional caller tag, then the SDK token."""
    tokens: list[str] = []
    if request_options is not None and request_options.api_client:
        tokens.append(request_options.api_client)
    tokens.append(f"{PACKAGE_LOG_HEADER}/{PACKAGE_VERSION}")
    return " ".join(tokens)


def get_headers(
    api_key: str,
    request_options: RequestOptions | None,
) -> dict[str, str]:
    """Return request headers, refusing custom values for reserved names."""
    headers: dict[str, str] = {
        "Content-Type": "application/json",
        CLIENT_HEADER: get_client_headers(request_options),
        API_KEY_HEADER: api_key,
    }
    custom = request_options.custom_headers if request_options else None
    if custom:
        for name, value in _iter_custom_headers(custom):
            lowered = name.lower()
            if lowered == API_KEY_HEADER:
                raise ConfigError(f"Cannot set reserved header name {lowered}")
            if lowered == CLIENT_HEADER:
                raise ConfigError(
                    f"Header name {lowered} can only be set using the api_client field"
                )
            headers[name] = value
    return headers


def _iter_custom_headers(custom: Mapping[str, Any]) -> list[tuple[str, str]]:
    try:
        return [(str(name), str(value)) for name, value in custom.items()]
    except AttributeError as exc:
        raise ConfigError(
            f"unable to convert custom_headers value {custom!r} to headers: {exc}"
        ) from exc


def build_request(
    model: str,
    task: Task,
    api_key: str,
    stream: bool,
    body: Mapping[str, Any] | str,
    request_options: RequestOptions | None = None,
) -> BuiltRequest:
    """Compose URL, headers and JSON body for one API call."""
    if not api_key:
        raise ConfigError("An API key is required to build a request.")
    url = RequestUrl(model=model, task=task, stream=stream, request_options=request_options)
    payload = body if isinstance(body, str) else json.dumps(body)
    return BuiltRequest(
        url=str(url),
        headers=get_headers(api_key, request_options),
        body=payload,
        request_options=request_options or RequestOptions(),
    )
