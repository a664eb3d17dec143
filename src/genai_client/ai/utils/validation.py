from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from genai_client.ai.errors import ValidationError
from genai_client.ai.types import PART_KINDS, Content, Part, Role

if TYPE_CHECKING:
    from collections.abc import Sequence

VALID_ROLES: tuple[str, ...] = tuple(role.value for role in Role)

# Part kinds each role may carry.  ``fileData`` is a user-side reference to
# an uploaded file, so it travels with the other user inputs.
VALID_PARTS_PER_ROLE: dict[str, tuple[str, ...]] = {
    Role.USER.value: ("text", "inlineData", "fileData"),
    Role.FUNCTION.value: ("functionResponse",),
    Role.MODEL.value: ("text", "functionCall", "executableCode", "codeExecutionResult"),
    Role.SYSTEM.value: ("text",),
}


def validate_chat_history(history: Sequence[Content | dict[str, Any]]) -> None:
    """Check a conversation against the role and part-kind rules.

    Raises :class:`~genai_client.ai.errors.ValidationError` on the first
    violation; the history itself is never modified.

    .. note::

       Checks run in a fixed order per entry: leading role, role validity,
       presence of parts, then the allowed part kinds for the role.
    """
    prev_content = False
    for position, content in enumerate(history):
        role, parts = _unpack(content)

        if not prev_content and role != Role.USER.value:
            raise ValidationError(
                f"First content should be with role 'user', got {role}"
            )

        if role not in VALID_ROLES:
            raise ValidationError(
                f"Each item should include role field. Got {role} but valid roles are: "
                f"{json.dumps(list(VALID_ROLES))}"
            )

        if not isinstance(parts, (list, tuple)):
            raise ValidationError(
                "Content should have 'parts' property with an array of Parts"
            )

        if len(parts) == 0:
            raise ValidationError(
                f"Each Content should have at least one part (content {position})"
            )

        counts = dict.fromkeys(PART_KINDS, 0)
        for part in parts:
            for kind in _part_kinds(part):
                counts[kind] += 1

        allowed = VALID_PARTS_PER_ROLE[role]
        for kind in PART_KINDS:
            if counts[kind] > 0 and kind not in allowed:
                raise ValidationError(
                    f"Content with role '{role}' can't contain '{kind}' part "
                    f"(content {position})"
                )

        prev_content = True


def _unpack(content: Content | dict[str, Any]) -> tuple[Any, Any]:
    if isinstance(content, Content):
        return content.role, content.parts
    if isinstance(content, dict):
        return content.get("role"), content.get("parts")
    raise ValidationError(f"Expected a Content object, got {type(content).__name__}")


def _part_kinds(part: Part | dict[str, Any]) -> list[str]:
    if isinstance(part, Part):
        return part.kinds()
    if isinstance(part, dict):
        return [kind for kind in PART_KINDS if kind in part]
    return []
