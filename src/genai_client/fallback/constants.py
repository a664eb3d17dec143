from __future__ import annotations

# Tried top to bottom; the next entry is used only when a model is not found.
FALLBACK_ORDER: tuple[str, ...] = (
    "gemini-2.5-flash",
    "gemini-2.0-flash",
    "gemini-1.5-flash-latest",
)

API_KEY_MISSING = "Gemini API key is required"

DOCS_URL = "https://ai.google.dev/"
