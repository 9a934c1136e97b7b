"""Adaptive word-position predictor that learns the real speaking rate.

WHY: The static words-per-second estimate is a guess derived from the
audio length. Once real evidence arrives (word indices confirmed at
known times, e.g. from speech-engine callbacks), the actual rate of the
voice can be measured and used to extrapolate between confirmations.
Blending the measured rate with the static prior smooths over bursts and
stalls in the evidence.

HOW: A bounded window of (word_index, timestamp) observations. predict()
uses the most recent few to compute an observed rate, blends it with the
static rate, and extrapolates from the newest observation. With no
usable evidence it falls back to a damped static estimate that
deliberately under-predicts.

RULES:
- Window holds at most window_size observations; on overflow the oldest
  window_prune are dropped
- Observed rate is only trusted when the time span exceeds
  min_observation_span_s and the word span is positive
- Result is always clamped to [0, total_words - 1]
- The formula is NOT monotonic; callers keep a max-so-far guard
"""

from __future__ import annotations

import math
from typing import List, Optional, Tuple

from speech_sync.profiles import PRESET_OPENAI, SyncConfig

Observation = Tuple[int, float]


class PatternAdaptivePredictor:
    """Predict the current word from recent (word_index, time) evidence.

    RULES:
    - reset() must be called at the start of every playback session
    - Timestamps are seconds on the same clock as predict()'s current_time
    """

    def __init__(self, config: Optional[SyncConfig] = None) -> None:
        self._config = config or PRESET_OPENAI
        self._observations: List[Observation] = []

    @property
    def observations(self) -> List[Observation]:
        """Copy of the current observation window, oldest first."""
        return list(self._observations)

    def reset(self) -> None:
        self._observations.clear()

    def record_observation(self, word_index: int, timestamp: float) -> None:
        """Append one observation, pruning the oldest entries on overflow."""
        self._observations.append((word_index, timestamp))
        if len(self._observations) > self._config.window_size:
            del self._observations[: self._config.window_prune]

    def observed_wps(self) -> Optional[float]:
        """Measured words per second over the recent window, if trustworthy."""
        recent = self._observations[-self._config.recent_observations:]
        if len(recent) < 2:
            return None

        first_index, first_time = recent[0]
        last_index, last_time = recent[-1]
        time_span = last_time - first_time
        word_span = last_index - first_index
        if time_span > self._config.min_observation_span_s and word_span > 0:
            return word_span / time_span
        return None

    def predict(self, current_time: float, total_words: int, static_wps: float) -> int:
        """Predict the word index being spoken at ``current_time``.

        Args:
            current_time: Seconds since playback start.
            total_words: Number of words in the session.
            static_wps: Prior speaking rate (estimate_words_per_second()).

        Returns:
            Predicted word index clamped to [0, total_words - 1].
        """
        if total_words <= 0:
            return 0

        config = self._config
        if not self._observations:
            # No evidence yet: under-predict rather than run ahead.
            predicted = math.floor(current_time * static_wps * config.cold_start_damping)
            return self._clamp(predicted, total_words)

        actual_wps = self.observed_wps()
        if actual_wps is not None:
            blend = config.observed_wps_blend
            blended_wps = actual_wps * blend + static_wps * (1.0 - blend)
            last_index, last_time = self._observations[-1]
            elapsed = current_time - last_time
            predicted = last_index + math.floor(elapsed * blended_wps)
            return self._clamp(predicted, total_words)

        predicted = math.floor(current_time * static_wps * config.fallback_damping)
        return self._clamp(predicted, total_words)

    @staticmethod
    def _clamp(index: int, total_words: int) -> int:
        return min(max(0, index), total_words - 1)
