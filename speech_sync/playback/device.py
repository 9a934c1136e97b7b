"""Real audio: remote synthesis decoded with soundfile, played with sounddevice.

WHY: The polled path needs an audio clip whose playback position can be
read at any moment. Decoding the synthesized file into frames and feeding
them to an output stream ourselves gives an exact, frame-counted clock.

HOW: OpenAISpeechSource fetches audio with SpeechClient, decodes it with
soundfile into a float32 frame array, and wraps it in a SoundDevicePlayer.
The player opens a sounddevice OutputStream whose callback copies frames
from a cursor; position is cursor / samplerate.

RULES:
- sounddevice is imported when a player is created, so machines without
  PortAudio can still import this module (and run simulate/timeline)
- Every fetch, decode, or device failure surfaces as AudioUnavailableError
- pause() keeps the cursor; stop() rewinds it to 0
"""

from __future__ import annotations

import io
import logging
from typing import Optional

import httpx
import numpy as np
import soundfile as sf

from speech_sync.api.client import SpeechAPIError, SpeechClient
from speech_sync.config import DEFAULT_SPEED, DEFAULT_VOICE, MAX_TTS_CHARS
from speech_sync.core.tokenizer import preprocess_for_speech
from speech_sync.playback.backends import AudioPlayer, AudioSource, AudioUnavailableError

logger = logging.getLogger(__name__)


class SoundDevicePlayer(AudioPlayer):
    """Play a decoded frame array through the default output device.

    Args:
        frames: Audio samples shaped (n_frames, channels).
        samplerate: Frames per second.
    """

    def __init__(self, frames: np.ndarray, samplerate: int) -> None:
        import sounddevice as sd

        self._sd = sd
        if frames.ndim == 1:
            frames = frames.reshape(-1, 1)
        self._frames = np.ascontiguousarray(frames, dtype=np.float32)
        self._samplerate = samplerate
        self._cursor = 0
        self._stream: Optional[sd.OutputStream] = None

    @property
    def duration(self) -> float:
        if self._samplerate <= 0:
            return 0.0
        return len(self._frames) / self._samplerate

    @property
    def position(self) -> float:
        if self._samplerate <= 0:
            return 0.0
        return min(self._cursor, len(self._frames)) / self._samplerate

    def play(self) -> None:
        if self._stream is not None and self._stream.active:
            return
        self._close_stream()
        if self._cursor >= len(self._frames):
            return

        self._stream = self._sd.OutputStream(
            samplerate=self._samplerate,
            channels=self._frames.shape[1],
            dtype="float32",
            callback=self._fill,
        )
        self._stream.start()

    def pause(self) -> None:
        self._close_stream()

    def stop(self) -> None:
        self._close_stream()
        self._cursor = 0

    def _fill(self, outdata, frames, time_info, status) -> None:  # noqa: ANN001
        if status:
            logger.debug("Output stream status: %s", status)
        chunk = self._frames[self._cursor:self._cursor + frames]
        outdata[:len(chunk)] = chunk
        self._cursor += len(chunk)
        if len(chunk) < frames:
            outdata[len(chunk):] = 0
            raise self._sd.CallbackStop

    def _close_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()


class OpenAISpeechSource(AudioSource):
    """Synthesize text with the remote endpoint and return a device player.

    Args:
        voice: Voice name sent to the endpoint.
        speed: Speaking rate multiplier.
        api_key: Overrides the key from .env.
        base_url: Overrides the endpoint base URL.
        transport: httpx transport, only for tests.
    """

    max_chars = MAX_TTS_CHARS

    def __init__(
        self,
        voice: str = DEFAULT_VOICE,
        speed: float = DEFAULT_SPEED,
        api_key: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._voice = voice
        self._speed = speed
        self._api_key = api_key
        self._base_url = base_url
        self._transport = transport

    async def fetch(self, text: str) -> bytes:
        """Return encoded audio for ``text`` after speech preprocessing."""
        processed = preprocess_for_speech(text)
        try:
            async with SpeechClient(
                api_key=self._api_key,
                base_url=self._base_url,
                transport=self._transport,
            ) as client:
                return await client.synthesize(processed, voice=self._voice, speed=self._speed)
        except (SpeechAPIError, httpx.HTTPError, ValueError) as exc:
            raise AudioUnavailableError(str(exc)) from exc

    async def load(self, text: str) -> AudioPlayer:
        audio = await self.fetch(text)
        frames, samplerate = decode_audio(audio)
        try:
            return SoundDevicePlayer(frames, samplerate)
        except OSError as exc:
            raise AudioUnavailableError("no audio output device: {}".format(exc)) from exc


def decode_audio(audio: bytes) -> tuple[np.ndarray, int]:
    """Decode an encoded audio file into (frames, samplerate).

    Raises:
        AudioUnavailableError: The bytes are not decodable audio or hold no frames.
    """
    try:
        frames, samplerate = sf.read(io.BytesIO(audio), dtype="float32", always_2d=True)
    except (RuntimeError, TypeError) as exc:
        raise AudioUnavailableError("could not decode audio: {}".format(exc)) from exc

    if len(frames) == 0:
        raise AudioUnavailableError("decoded audio is empty")
    logger.debug("Decoded %d frames at %d Hz", len(frames), samplerate)
    return frames, samplerate
