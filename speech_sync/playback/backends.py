"""Abstract audio and speech-engine interfaces plus playback errors.

WHY: The controller must work with a real sound device, a silent
simulated clock, a platform speech engine, or a test double, without
knowing which. These ABCs are the seams where a concrete backend plugs
in, the same way every output formatter plugs into one base class.

HOW: Three ABCs and one listener protocol:
  AudioPlayer            — a loaded audio clip with a playback clock
  AudioSource            — produces an AudioPlayer for a text (async)
  SpeechEngine           — a speaking engine that reports character ranges
  SpeechEngineListener   — the events an engine delivers to the controller
ThreadSafeListener marshals events from engine threads onto the asyncio
loop that owns the controller.

RULES:
- AudioPlayer.position and .duration are seconds; position <= duration
- AudioSource.load() raises AudioUnavailableError on any failure
- SpeechEngine.speak() raises SpeechEngineUnavailableError when the
  engine cannot speak
- Engines calling back from a foreign thread must go through
  ThreadSafeListener
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

from speech_sync.core.prosody import SpeechSettings


class PlaybackError(Exception):
    """Base class for resource failures while preparing playback."""


class AudioUnavailableError(PlaybackError):
    """Raised when synthesized audio cannot be fetched or decoded."""


class SpeechEngineUnavailableError(PlaybackError):
    """Raised when no speech engine is configured or it refuses to speak."""


class AudioPlayer(ABC):
    """A loaded audio clip that can be played, paused, and polled.

    RULES:
    - duration is fixed once loaded; 0 means the clip is unusable
    - position is an instantaneous snapshot, safe to read at any time
    - stop() rewinds to 0 and may be called repeatedly
    """

    @property
    @abstractmethod
    def duration(self) -> float:
        """Total length of the clip in seconds."""

    @property
    @abstractmethod
    def position(self) -> float:
        """Current playback position in seconds."""

    @abstractmethod
    def play(self) -> None:
        """Start or resume playback from the current position."""

    @abstractmethod
    def pause(self) -> None:
        """Pause playback, keeping the position."""

    @abstractmethod
    def stop(self) -> None:
        """Stop playback and rewind."""


class AudioSource(ABC):
    """Produces playable audio for a piece of text."""

    @abstractmethod
    async def load(self, text: str) -> AudioPlayer:
        """Synthesize (or fetch) audio for ``text`` and return a ready player.

        Raises:
            AudioUnavailableError: Synthesis, download, or decoding failed.
        """


class SpeechEngineListener(ABC):
    """Events a speech engine delivers while speaking an utterance."""

    @abstractmethod
    def on_utterance_range_started(self, range_start: int, range_length: int) -> None:
        """The engine is about to speak text[range_start:range_start + range_length]."""

    @abstractmethod
    def on_start(self) -> None:
        """The utterance started."""

    @abstractmethod
    def on_finish(self) -> None:
        """The utterance finished (or was stopped)."""

    @abstractmethod
    def on_pause(self) -> None:
        """The engine paused."""

    @abstractmethod
    def on_continue(self) -> None:
        """The engine resumed after a pause."""


class SpeechEngine(ABC):
    """A speech engine that reports character ranges as it speaks.

    RULES:
    - set_listener() is called once by the controller before speak()
    - speak(text, muted=True) produces callbacks without audible output
      (used in hybrid mode alongside a separate audio track)
    - settings carries rate, pitch, volume, and utterance pauses; engines
      without a given control ignore it
    - Range offsets refer to the exact ``text`` passed to speak()
    """

    @property
    @abstractmethod
    def available(self) -> bool:
        """Whether the engine can speak right now."""

    @property
    def utf16_offsets(self) -> bool:
        """True if the engine reports offsets in UTF-16 code units."""
        return False

    @abstractmethod
    def set_listener(self, listener: Optional[SpeechEngineListener]) -> None:
        """Register (or clear) the receiver of engine events."""

    @abstractmethod
    def speak(
        self,
        text: str,
        muted: bool = False,
        settings: Optional[SpeechSettings] = None,
    ) -> None:
        """Begin speaking ``text``, with the engine's defaults when ``settings`` is None."""

    @abstractmethod
    def pause(self) -> None:
        """Pause speaking immediately."""

    @abstractmethod
    def resume(self) -> None:
        """Continue after pause()."""

    @abstractmethod
    def stop(self) -> None:
        """Stop speaking immediately; safe to call when idle."""


class ThreadSafeListener(SpeechEngineListener):
    """Forward engine events from any thread onto an asyncio loop.

    WHY: Platform engines call back on their own audio threads, but all
    session state is owned by the loop thread. Touching it directly from
    the engine thread would race with the tick loop.

    HOW: Every event is scheduled with loop.call_soon_threadsafe().
    """

    def __init__(self, target: SpeechEngineListener, loop: asyncio.AbstractEventLoop) -> None:
        self._target = target
        self._loop = loop

    def on_utterance_range_started(self, range_start: int, range_length: int) -> None:
        self._loop.call_soon_threadsafe(
            self._target.on_utterance_range_started, range_start, range_length
        )

    def on_start(self) -> None:
        self._loop.call_soon_threadsafe(self._target.on_start)

    def on_finish(self) -> None:
        self._loop.call_soon_threadsafe(self._target.on_finish)

    def on_pause(self) -> None:
        self._loop.call_soon_threadsafe(self._target.on_pause)

    def on_continue(self) -> None:
        self._loop.call_soon_threadsafe(self._target.on_continue)
