"""Environment configuration, text-to-speech defaults, and .env loading.

WHY: Centralizes the values that change between machines (API key,
endpoint, voice) so they are easy to find and override without touching
code. Tuning constants for the sync algorithms live in profiles.py; this
module only covers the outside world.

HOW: python-dotenv loads the .env file on import. Constants are plain
module-level strings and sets. load_api_key() provides a clear error when
the key is missing.

RULES:
- API key is loaded from .env via python-dotenv, never hardcoded
- All defaults can be overridden via environment variables
- VALID_VOICES lists the voices the speech endpoint accepts
- MAX_TTS_CHARS caps the text sent for synthesis (latency and cost)
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Remote text-to-speech endpoint
# ---------------------------------------------------------------------------

OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_TTS_MODEL = os.getenv("OPENAI_TTS_MODEL", "tts-1-hd")
DEFAULT_VOICE = os.getenv("SPEECH_SYNC_VOICE", "nova")
DEFAULT_RESPONSE_FORMAT = "mp3"
DEFAULT_SPEED = 1.0
TTS_TIMEOUT_S = float(os.getenv("SPEECH_SYNC_TTS_TIMEOUT", "30"))

MAX_TTS_CHARS = 2000
"""Longest text (in characters) sent to the speech endpoint in one request."""

VALID_VOICES: set[str] = {
    "alloy", "ash", "coral", "echo", "fable", "nova", "onyx", "sage", "shimmer",
}

# ---------------------------------------------------------------------------
# Sync tuning
# ---------------------------------------------------------------------------

DEFAULT_PROFILE = os.getenv("SPEECH_SYNC_PROFILE", "openai")
"""Name of the SyncConfig preset used when the caller does not pick one."""


def load_api_key() -> str:
    """Load the text-to-speech API key from the environment.

    WHY: The key is required for every synthesis request. Loading it from
    the environment (via .env) keeps it out of source code.

    HOW: Reads OPENAI_API_KEY from os.environ (populated by python-dotenv).

    RULES:
    - Raises ValueError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    key = os.getenv("OPENAI_API_KEY", "").strip()
    if not key:
        raise ValueError(
            "Text-to-speech API key not configured. "
            "Add OPENAI_API_KEY to the .env file in the app folder."
        )
    return key
