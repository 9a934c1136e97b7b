"""Silent, clock-driven playback backends.

WHY: Word sync has to be observable without a sound card, an API key, or
a platform speech engine: in the ``simulate`` CLI command, in CI, and in
tests. These backends reproduce the timing behaviour of the real ones
(a playback clock that only advances while playing; an engine that
reports word ranges at a steady rate) with no audio at all.

HOW:
  ClockAudioPlayer     — position = accumulated play time on an injectable clock
  ClockAudioSource     — hands out ClockAudioPlayers sized by a words-per-second guess
  ScriptedSpeechEngine — emits range events via loop.call_later at a fixed rate

RULES:
- ClockAudioPlayer.position never exceeds its duration
- ScriptedSpeechEngine requires a running event loop for speak()/resume()
- ScriptedSpeechEngine.stop() cancels pending events and does not emit on_finish
- ScriptedSpeechEngine honours the utterance pauses in SpeechSettings;
  rate and pitch are recorded but do not change its fixed word rate
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import List, Optional

from speech_sync.core.prosody import SpeechSettings
from speech_sync.core.tokenizer import count_punctuation, tokenize
from speech_sync.playback.backends import (
    AudioPlayer,
    AudioSource,
    AudioUnavailableError,
    SpeechEngine,
    SpeechEngineListener,
    SpeechEngineUnavailableError,
)

logger = logging.getLogger(__name__)

DEFAULT_SIMULATED_WPS = 2.5
PUNCTUATION_PAUSE_S = 0.3


class ClockAudioPlayer(AudioPlayer):
    """A silent "clip" whose position follows a clock while playing.

    Args:
        duration: Clip length in seconds.
        clock: Monotonic clock in seconds (injectable for tests).
        rate: Playback rate multiplier.
    """

    def __init__(
        self,
        duration: float,
        clock: Callable[[], float] = time.monotonic,
        rate: float = 1.0,
    ) -> None:
        self._duration = max(0.0, duration)
        self._clock = clock
        self._rate = rate
        self._elapsed = 0.0
        self._started_at: Optional[float] = None

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def position(self) -> float:
        elapsed = self._elapsed
        if self._started_at is not None:
            elapsed += (self._clock() - self._started_at) * self._rate
        return min(self._duration, elapsed)

    @property
    def playing(self) -> bool:
        return self._started_at is not None

    def play(self) -> None:
        if self._started_at is None:
            self._started_at = self._clock()

    def pause(self) -> None:
        if self._started_at is not None:
            self._elapsed = self.position
            self._started_at = None

    def stop(self) -> None:
        self._started_at = None
        self._elapsed = 0.0


class ClockAudioSource(AudioSource):
    """Produce ClockAudioPlayers without synthesizing anything.

    The clip duration is either fixed or estimated from the text at
    ``words_per_second`` plus a short pause per punctuation mark.

    Args:
        duration: Fixed duration for every clip, or None to estimate.
        words_per_second: Speaking rate used for the estimate.
        clock: Clock handed to every player.
        load_delay_s: Simulated network latency before load() returns.
        rate: Playback rate handed to every player.
        fail_with: If set, load() raises AudioUnavailableError with this message.
    """

    def __init__(
        self,
        duration: Optional[float] = None,
        words_per_second: float = DEFAULT_SIMULATED_WPS,
        clock: Callable[[], float] = time.monotonic,
        load_delay_s: float = 0.0,
        fail_with: Optional[str] = None,
        rate: float = 1.0,
    ) -> None:
        self._rate = rate
        self._duration = duration
        self._words_per_second = words_per_second
        self._clock = clock
        self._load_delay_s = load_delay_s
        self._fail_with = fail_with
        self.loaded_texts: List[str] = []

    def estimate_duration(self, text: str) -> float:
        if self._duration is not None:
            return self._duration
        words = len(tokenize(text))
        return words / self._words_per_second + count_punctuation(text) * PUNCTUATION_PAUSE_S

    async def load(self, text: str) -> AudioPlayer:
        if self._load_delay_s > 0:
            await asyncio.sleep(self._load_delay_s)
        if self._fail_with is not None:
            raise AudioUnavailableError(self._fail_with)

        self.loaded_texts.append(text)
        duration = self.estimate_duration(text)
        logger.debug("Simulated clip of %.2fs for %d chars", duration, len(text))
        return ClockAudioPlayer(duration, clock=self._clock, rate=self._rate)


class ScriptedSpeechEngine(SpeechEngine):
    """A speech engine stand-in that "speaks" one word every 1/wps seconds.

    WHY: Exercises the native and hybrid callback paths end to end,
    including pause/resume and stop, without a platform voice.

    Args:
        words_per_second: Rate at which range events are emitted.
        available: Value reported by the ``available`` property.
    """

    def __init__(
        self,
        words_per_second: float = DEFAULT_SIMULATED_WPS,
        available: bool = True,
    ) -> None:
        self._words_per_second = words_per_second
        self._available = available
        self._listener: Optional[SpeechEngineListener] = None
        self._handles: List[asyncio.TimerHandle] = []
        self._ranges: List[tuple] = []
        self._next_word = 0
        self._speaking = False
        self._paused = False
        self.muted = False
        self.settings: Optional[SpeechSettings] = None

    @property
    def available(self) -> bool:
        return self._available

    @property
    def speaking(self) -> bool:
        return self._speaking

    def set_listener(self, listener: Optional[SpeechEngineListener]) -> None:
        self._listener = listener

    def speak(
        self,
        text: str,
        muted: bool = False,
        settings: Optional[SpeechSettings] = None,
    ) -> None:
        if not self._available:
            raise SpeechEngineUnavailableError("scripted engine is disabled")

        self._cancel_pending()
        self._ranges = [(t.start, t.end - t.start) for t in tokenize(text)]
        self._next_word = 0
        self._speaking = True
        self._paused = False
        self.muted = muted
        self.settings = settings

        loop = asyncio.get_running_loop()
        self._handles.append(loop.call_soon(self._emit_start))
        lead_in = settings.pre_delay_s if settings is not None else 0.0
        self._schedule_from(0, lead_in)

    def pause(self) -> None:
        if not self._speaking or self._paused:
            return
        self._cancel_pending()
        self._paused = True
        if self._listener is not None:
            self._listener.on_pause()

    def resume(self) -> None:
        if not self._speaking or not self._paused:
            return
        self._paused = False
        if self._listener is not None:
            self._listener.on_continue()
        self._schedule_from(self._next_word)

    def stop(self) -> None:
        self._cancel_pending()
        self._speaking = False
        self._paused = False

    # ------------------------------------------------------------------

    def _schedule_from(self, first_word: int, lead_in: float = 0.0) -> None:
        loop = asyncio.get_running_loop()
        step = 1.0 / self._words_per_second
        for offset, index in enumerate(range(first_word, len(self._ranges))):
            self._handles.append(
                loop.call_later(lead_in + offset * step, self._emit_range, index)
            )
        remaining = len(self._ranges) - first_word
        tail = self.settings.post_delay_s if self.settings is not None else 0.0
        self._handles.append(
            loop.call_later(lead_in + remaining * step + tail, self._emit_finish)
        )

    def _cancel_pending(self) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()

    def _emit_start(self) -> None:
        if self._listener is not None:
            self._listener.on_start()

    def _emit_range(self, index: int) -> None:
        self._next_word = index + 1
        start, length = self._ranges[index]
        if self._listener is not None:
            self._listener.on_utterance_range_started(start, length)

    def _emit_finish(self) -> None:
        self._speaking = False
        self._handles.clear()
        if self._listener is not None:
            self._listener.on_finish()
