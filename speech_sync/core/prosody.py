"""Content-aware speech settings for the native engine.

WHY: A single fixed rate and pitch makes every passage sound the same.
Quoted dialogue reads better a little faster at a neutral pitch, tense
passages slower and lower, tender ones slower and slightly higher. The
native engine is the only path where the app controls prosody, so the
settings are chosen here before the text is handed over.

HOW: classify_content() scans the text for a quote character or for
keywords and returns one ContentKind, checked in order dialogue,
dramatic, romantic. speech_settings_for_content() applies that kind's
adjustment from SyncConfig to the configured base rate and pitch, then
clamps both.

RULES:
- The first matching kind wins; text matching none is NARRATION
- Keyword matching is a case-insensitive substring test
- Rate and pitch are always within the configured bounds, even for the
  unadjusted base values
- Volume and the pre/post utterance delays are passed through unchanged
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from speech_sync.profiles import SyncConfig

DIALOGUE_MARKERS = ('"', "“", "”")
DIALOGUE_KEYWORDS = ("dialogue",)
DRAMATIC_KEYWORDS = ("dramatic", "tension", "suddenly")
ROMANTIC_KEYWORDS = ("romantic", "gentle", "softly")


class ContentKind(str, enum.Enum):
    """Broad tone of a passage, used to pick speech settings."""

    NARRATION = "narration"
    DIALOGUE = "dialogue"
    DRAMATIC = "dramatic"
    ROMANTIC = "romantic"


@dataclass(frozen=True)
class SpeechSettings:
    """Prosody handed to SpeechEngine.speak().

    RULES:
    - rate and volume are in engine units (0-1); pitch is a multiplier
    - delays are seconds of silence before and after the utterance
    """

    rate: float
    pitch: float
    volume: float
    pre_delay_s: float = 0.0
    post_delay_s: float = 0.0


def classify_content(text: str) -> ContentKind:
    lowered = text.lower()
    if any(marker in text for marker in DIALOGUE_MARKERS) or any(
        word in lowered for word in DIALOGUE_KEYWORDS
    ):
        return ContentKind.DIALOGUE
    if any(word in lowered for word in DRAMATIC_KEYWORDS):
        return ContentKind.DRAMATIC
    if any(word in lowered for word in ROMANTIC_KEYWORDS):
        return ContentKind.ROMANTIC
    return ContentKind.NARRATION


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def speech_settings_for_content(text: str, config: SyncConfig) -> SpeechSettings:
    """Pick rate, pitch, volume, and pauses for speaking ``text``.

    Args:
        text: The passage about to be spoken.
        config: Supplies the base values, the adjustments, and the bounds.

    Returns:
        SpeechSettings with rate and pitch clamped to the configured range.
    """
    rate = config.speech_rate
    pitch = config.speech_pitch

    kind = classify_content(text)
    if kind is ContentKind.DIALOGUE:
        rate *= config.dialogue_rate_factor
        pitch = config.dialogue_pitch
    elif kind is ContentKind.DRAMATIC:
        rate *= config.dramatic_rate_factor
        pitch *= config.dramatic_pitch_factor
    elif kind is ContentKind.ROMANTIC:
        rate *= config.romantic_rate_factor
        pitch *= config.romantic_pitch_factor

    return SpeechSettings(
        rate=_clamp(rate, config.min_speech_rate, config.max_speech_rate),
        pitch=_clamp(pitch, config.min_speech_pitch, config.max_speech_pitch),
        volume=config.speech_volume,
        pre_delay_s=config.pre_utterance_delay_s,
        post_delay_s=config.post_utterance_delay_s,
    )
