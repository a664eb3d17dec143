from __future__ import annotations

import os

# Probed in order; the first non-empty value wins.
_ENV_KEY_VARS: tuple[str, ...] = ("GEMINI_API_KEY", "GOOGLE_API_KEY")


def get_env_api_key() -> str | None:
    """Return the first non-empty Gemini API key found in the environment.

    Returns ``None`` when none of the probed variables is set.
    """
    for var in _ENV_KEY_VARS:
        val = os.environ.get(var)
        if val:
            return val
    return None
