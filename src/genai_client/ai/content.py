"""Normalisation of caller input into request bodies.

Callers may hand over a bare string, a list of strings / parts, or a fully
formed request dict.  These helpers turn every accepted shape into the
camelCase JSON the service expects.
"""

from __future__ import annotations

from typing import Any

from genai_client.ai.errors import ConfigError, ValidationError
from genai_client.ai.types import (
    Content,
    ContentInput,
    ModelParams,
    Part,
    PartLike,
    Role,
    to_wire,
)


def _to_part(item: PartLike) -> Part:
    if isinstance(item, str):
        return Part(text=item)
    if isinstance(item, Part):
        return item
    if isinstance(item, dict):
        return Part.model_validate(item)
    raise ValidationError(f"Unsupported part type: {type(item).__name__}")


def format_new_content(request: ContentInput) -> Content:
    """Turn a single-turn input into one :class:`Content`.

    A list made only of function responses becomes a ``function`` turn;
    anything else is a ``user`` turn.  Mixing the two is rejected.
    """
    if isinstance(request, str):
        parts = [Part(text=request)]
    else:
        parts = [_to_part(item) for item in request]
    return _assign_role_to_parts(parts)


def _assign_role_to_parts(parts: list[Part]) -> Content:
    user_parts: list[Part] = []
    function_parts: list[Part] = []
    for part in parts:
        if part.function_response is not None:
            function_parts.append(part)
        else:
            user_parts.append(part)

    if user_parts and function_parts:
        raise ValidationError(
            "Within a single message, FunctionResponse cannot be mixed with other "
            "type of part in the request for sending chat message."
        )
    if not user_parts and not function_parts:
        raise ValidationError("No content is provided for sending chat message.")

    if user_parts:
        return Content(role=Role.USER.value, parts=user_parts)
    return Content(role=Role.FUNCTION.value, parts=function_parts)


def format_system_instruction(
    value: str | Part | Content | dict[str, Any] | None,
) -> Content | None:
    """Coerce a system instruction into a ``system`` :class:`Content`."""
    if value is None:
        return None
    if isinstance(value, str):
        return Content(role=Role.SYSTEM.value, parts=[Part(text=value)])
    if isinstance(value, Part):
        return Content(role=Role.SYSTEM.value, parts=[value])
    if isinstance(value, dict):
        if "parts" not in value:
            return Content(role=Role.SYSTEM.value, parts=[Part.model_validate(value)])
        value = Content.model_validate(value)
    if isinstance(value, Content):
        if value.role:
            return value
        return Content(role=Role.SYSTEM.value, parts=value.parts)
    raise ConfigError(f"Unsupported system instruction type: {type(value).__name__}")


def format_generate_content_input(
    request: ContentInput | dict[str, Any],
) -> dict[str, Any]:
    """Return a ``{"contents": [...], ...}`` dict for generate calls."""
    if isinstance(request, dict):
        if "contents" not in request:
            raise ConfigError("A request dict must include a 'contents' field.")
        formatted = dict(request)
    else:
        formatted = {"contents": [format_new_content(request)]}

    if formatted.get("systemInstruction") is not None:
        formatted["systemInstruction"] = format_system_instruction(
            formatted["systemInstruction"]
        )
    return to_wire(formatted)


def format_count_tokens_input(
    request: ContentInput | dict[str, Any],
    model_params: ModelParams,
) -> dict[str, Any]:
    """Wrap *request* into the ``generateContentRequest`` envelope.

    The envelope carries the model-level defaults so that the token count
    reflects what an actual generate call would send.
    """
    generate_request: dict[str, Any] = {
        "model": model_params.model,
        "generationConfig": model_params.generation_config,
        "safetySettings": model_params.safety_settings,
        "tools": model_params.tools,
        "toolConfig": model_params.tool_config,
        "systemInstruction": format_system_instruction(model_params.system_instruction),
        "cachedContent": (
            model_params.cached_content.name if model_params.cached_content else None
        ),
        "contents": [],
    }

    if isinstance(request, dict):
        has_contents = "contents" in request
        has_request = request.get("generateContentRequest") is not None
        if has_contents and has_request:
            raise ConfigError(
                "CountTokensRequest must have one of contents or "
                "generateContentRequest, not both."
            )
        if has_contents:
            generate_request["contents"] = request["contents"]
        elif has_request:
            generate_request.update(request["generateContentRequest"])
        else:
            raise ConfigError(
                "CountTokensRequest must have one of contents or generateContentRequest."
            )
    else:
        generate_request["contents"] = [format_new_content(request)]

    return {"generateContentRequest": to_wire(generate_request)}


def format_embed_content_input(
    request: ContentInput | dict[str, Any],
) -> dict[str, Any]:
    """Return an ``embedContent`` body; strings and part lists are wrapped."""
    if isinstance(request, (str, list)):
        return {"content": to_wire(format_new_content(request))}
    return to_wire(request)
