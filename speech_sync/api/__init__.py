"""Text-to-speech API package — async HTTP interface to the speech endpoint.

WHY: The polled and hybrid playback paths need finished audio for a piece
of text. This package keeps every request detail (auth, body fields,
error decoding) in one client so playback code only sees bytes.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. SpeechClient sends a
SpeechRequest (models.py) to the /audio/speech endpoint and returns the
raw encoded audio.

RULES:
- All HTTP calls go through SpeechClient (no direct httpx usage elsewhere)
- Authentication is via Bearer token from config
"""

from speech_sync.api.client import SpeechAPIError, SpeechClient
from speech_sync.api.models import SpeechRequest

__all__ = ["SpeechAPIError", "SpeechClient", "SpeechRequest"]
