"""Settings loading.

Sources, lowest priority first; each one overrides keys of the previous:

  1. Built-in defaults (the :class:`Settings` field defaults)
  2. User-level ``~/.genai/settings.yaml``
  3. Project-level ``.genai/settings.yaml``
  4. ``GENAI_*`` environment variables
"""

from __future__ import annotations

import functools
import logging
import os
from typing import TYPE_CHECKING, Any, Callable

import yaml
from pydantic import ValidationError

from genai_client.config.settings import Settings

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

SETTINGS_DIR = ".genai"
SETTINGS_FILE = "settings.yaml"


def _comma_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


# env var -> (dotted settings path, converter)
ENV_OVERRIDES: dict[str, tuple[str, Callable[[str], Any]]] = {
    "GENAI_API_KEY": ("client.api_key", str),
    "GENAI_BASE_URL": ("client.base_url", str),
    "GENAI_API_VERSION": ("client.api_version", str),
    "GENAI_API_CLIENT": ("client.api_client", str),
    "GENAI_TIMEOUT_MS": ("client.timeout_ms", float),
    "GENAI_FALLBACK_MODELS": ("fallback.models", _comma_list),
}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return *base* updated with *override*, merging nested mappings."""
    merged = {**base}
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _merge(current, value)
        else:
            merged[key] = value
    return merged


def _nest(dotted_path: str, value: Any) -> dict[str, Any]:
    """``_nest("a.b", 1) == {"a": {"b": 1}}``"""
    *parents, leaf = dotted_path.split(".")
    nested: dict[str, Any] = {leaf: value}
    for parent in reversed(parents):
        nested = {parent: nested}
    return nested


def settings_files(project_dir: Path | None, user_dir: Path | None) -> list[Path]:
    """Candidate settings files, lowest priority first."""
    return [
        base / SETTINGS_DIR / SETTINGS_FILE
        for base in (user_dir, project_dir)
        if base is not None
    ]


def _file_layer(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    logger.debug("Loading settings from %s", path)
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"{path} must contain a mapping, not {type(loaded).__name__}")
    return loaded


def _env_layer() -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for env_var, (dotted_path, convert) in ENV_OVERRIDES.items():
        raw = os.environ.get(env_var)
        if raw is None:
            continue
        try:
            value = convert(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid value for {env_var}: {raw!r}") from exc
        layer = _merge(layer, _nest(dotted_path, value))
    return layer


async def load_settings(
    project_dir: Path | None = None,
    user_dir: Path | None = None,
) -> Settings:
    """Build :class:`Settings` from every configured source.

    Raises ``ValueError`` naming the file or variable that could not be
    read, or describing the schema violation.
    """
    layers = [_file_layer(path) for path in settings_files(project_dir, user_dir)]
    layers.append(_env_layer())
    merged = functools.reduce(_merge, layers, {})
    try:
        return Settings.model_validate(merged)
    except ValidationError as exc:
        raise ValueError(f"Invalid settings: {exc}") from exc
