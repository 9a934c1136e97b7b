"""Speech API request dataclass.

WHY: The speech endpoint takes a small JSON body; a typed dataclass makes
its fields explicit and lets validation happen before any request is sent.

HOW: SpeechRequest maps 1:1 to the request JSON. to_dict() produces the
body; validate() raises ValueError on values the endpoint would reject.

RULES:
- voice must be one of config.VALID_VOICES
- speed must be within [0.25, 4.0]
- input must be non-empty after stripping
"""

from __future__ import annotations

from dataclasses import dataclass

from speech_sync.config import (
    DEFAULT_RESPONSE_FORMAT,
    DEFAULT_SPEED,
    DEFAULT_VOICE,
    OPENAI_TTS_MODEL,
    VALID_VOICES,
)

MIN_SPEED = 0.25
MAX_SPEED = 4.0


@dataclass
class SpeechRequest:
    """Body of a POST /audio/speech request."""

    input: str
    voice: str = DEFAULT_VOICE
    model: str = OPENAI_TTS_MODEL
    speed: float = DEFAULT_SPEED
    response_format: str = DEFAULT_RESPONSE_FORMAT

    def validate(self) -> None:
        if not self.input.strip():
            raise ValueError("Speech request text is empty")
        if self.voice not in VALID_VOICES:
            raise ValueError(
                "Unknown voice {!r}; expected one of {}".format(
                    self.voice, ", ".join(sorted(VALID_VOICES))
                )
            )
        if not MIN_SPEED <= self.speed <= MAX_SPEED:
            raise ValueError(
                "Speed {} out of range [{}, {}]".format(self.speed, MIN_SPEED, MAX_SPEED)
            )

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            "input": self.input,
            "voice": self.voice,
            "speed": self.speed,
            "response_format": self.response_format,
        }
