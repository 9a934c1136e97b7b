"""Async HTTP client for the text-to-speech endpoint.

WHY: The polled playback path needs finished audio for the text being
read. This module hides the request details (auth, body, error
decoding) behind one async method so the audio source only handles bytes.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. SpeechClient is an
async context manager: enter it to get an authenticated client, exit to
close the connection pool. synthesize() POSTs a SpeechRequest to
/audio/speech and returns the encoded audio body.

RULES:
- Always use the async context manager (async with SpeechClient(...) as client:)
- Text longer than MAX_TTS_CHARS is truncated before sending
- Non-200 responses raise SpeechAPIError with the status and body text
- A 200 response with an empty body raises SpeechAPIError as well
- Status callback (on_status) is optional; when provided, called with status strings
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import httpx

from speech_sync.api.models import SpeechRequest
from speech_sync.config import (
    DEFAULT_RESPONSE_FORMAT,
    DEFAULT_SPEED,
    DEFAULT_VOICE,
    MAX_TTS_CHARS,
    OPENAI_BASE_URL,
    OPENAI_TTS_MODEL,
    TTS_TIMEOUT_S,
    load_api_key,
)

logger = logging.getLogger(__name__)


class SpeechAPIError(Exception):
    """Raised when the speech endpoint returns an error response.

    WHY: Callers need a typed exception to distinguish endpoint errors
    from network errors or other failures.

    HOW: Wraps the HTTP status code and response body.

    RULES:
    - Always include status_code and message
    - message is the response body text or a summary
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Speech API error {status_code}: {message}")


class SpeechClient:
    """Async client for the text-to-speech endpoint.

    RULES:
    - Use as: async with SpeechClient() as client: ...
    - api_key defaults to load_api_key() from .env
    - base_url defaults to OPENAI_BASE_URL from config
    - transport is only for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or load_api_key()
        self._base_url = (base_url or OPENAI_BASE_URL).rstrip("/")
        self._model = model or OPENAI_TTS_MODEL
        self._timeout_s = timeout_s or TTS_TIMEOUT_S
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> SpeechClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=httpx.Timeout(self._timeout_s),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "SpeechClient must be used as an async context manager: "
                "async with SpeechClient() as client: ..."
            )
        return self._client

    async def synthesize(
        self,
        text: str,
        voice: str = DEFAULT_VOICE,
        model: str | None = None,
        speed: float = DEFAULT_SPEED,
        response_format: str = DEFAULT_RESPONSE_FORMAT,
        on_status: Callable[[str], None] | None = None,
    ) -> bytes:
        """Synthesize ``text`` and return the encoded audio.

        RULES:
        - Raises ValueError (before any request) on an invalid voice,
          speed, or empty text
        - Raises SpeechAPIError on non-200 responses or an empty body
        - httpx transport errors propagate unchanged

        Args:
            text: Text to speak; truncated to MAX_TTS_CHARS.
            voice: Voice name from VALID_VOICES.
            model: Overrides the client model for this request.
            speed: Speaking rate multiplier.
            response_format: Audio container requested from the endpoint.
            on_status: Optional callback for status updates.

        Returns:
            The raw audio bytes in ``response_format``.
        """
        client = self._ensure_client()
        if len(text) > MAX_TTS_CHARS:
            logger.info("Truncating %d chars to %d for synthesis", len(text), MAX_TTS_CHARS)
            text = text[:MAX_TTS_CHARS]

        request = SpeechRequest(
            input=text,
            voice=voice,
            model=model or self._model,
            speed=speed,
            response_format=response_format,
        )
        request.validate()

        if on_status:
            on_status("Synthesizing {} chars with voice {}...".format(len(text), voice))

        resp = await client.post("/audio/speech", json=request.to_dict())
        if resp.status_code != 200:
            raise SpeechAPIError(resp.status_code, resp.text)

        audio = resp.content
        if not audio:
            raise SpeechAPIError(resp.status_code, "No audio data received")

        if on_status:
            on_status("Received {} bytes of audio.".format(len(audio)))
        return audio
