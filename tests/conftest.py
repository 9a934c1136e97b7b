"""Shared test fixtures for the speech_sync test suite.

WHY: Controller and backend tests need deterministic time and audio
players whose position can be set directly. Centralizing the fakes here
keeps every test module on the same doubles.

HOW: ManualClock is a callable clock advanced by hand. SettablePlayer is
an AudioPlayer whose position is assigned by the test. StaticAudioSource
hands out a prepared player (optionally after an asyncio.Event).
RecordingEngine is a SpeechEngine that records calls and lets the test
fire listener events itself. Recorder collects controller observer calls.

RULES:
- Nothing here sleeps or touches real audio
- test_config has a one-hour tick so background ticks never interfere;
  tests drive sampling with controller.poll()
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, Tuple

import pytest

from speech_sync.core.prosody import SpeechSettings
from speech_sync.playback.backends import (
    AudioPlayer,
    AudioSource,
    AudioUnavailableError,
    SpeechEngine,
    SpeechEngineListener,
    SpeechEngineUnavailableError,
)
from speech_sync.playback.controller import PlaybackController, PlaybackState
from speech_sync.profiles import PRESET_OPENAI, SyncConfig


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class ManualClock:
    """A clock that only moves when the test says so."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Audio doubles
# ---------------------------------------------------------------------------


class SettablePlayer(AudioPlayer):
    """AudioPlayer whose position is assigned directly by tests."""

    def __init__(self, duration: float) -> None:
        self._duration = duration
        self.position_s = 0.0
        self.calls: List[str] = []

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def position(self) -> float:
        return self.position_s

    def play(self) -> None:
        self.calls.append("play")

    def pause(self) -> None:
        self.calls.append("pause")

    def stop(self) -> None:
        self.calls.append("stop")
        self.position_s = 0.0


class StaticAudioSource(AudioSource):
    """AudioSource returning prepared players in order.

    If ``gate`` is given, load() waits for it before returning.
    """

    def __init__(
        self,
        players: List[AudioPlayer],
        gate: Optional[asyncio.Event] = None,
        error: Optional[str] = None,
    ) -> None:
        self._players = list(players)
        self._gate = gate
        self._error = error
        self.loaded_texts: List[str] = []

    async def load(self, text: str) -> AudioPlayer:
        self.loaded_texts.append(text)
        if self._gate is not None:
            await self._gate.wait()
        if self._error is not None:
            raise AudioUnavailableError(self._error)
        return self._players.pop(0)


# ---------------------------------------------------------------------------
# Engine double
# ---------------------------------------------------------------------------


class RecordingEngine(SpeechEngine):
    """SpeechEngine that records calls; tests fire events via .listener."""

    def __init__(self, available: bool = True, utf16: bool = False) -> None:
        self._available = available
        self._utf16 = utf16
        self.listener: Optional[SpeechEngineListener] = None
        self.spoken: List[Tuple[str, bool]] = []
        self.settings: List[Optional[SpeechSettings]] = []
        self.calls: List[str] = []

    @property
    def available(self) -> bool:
        return self._available

    @property
    def utf16_offsets(self) -> bool:
        return self._utf16

    def set_listener(self, listener: Optional[SpeechEngineListener]) -> None:
        self.listener = listener

    def speak(
        self,
        text: str,
        muted: bool = False,
        settings: Optional[SpeechSettings] = None,
    ) -> None:
        if not self._available:
            raise SpeechEngineUnavailableError("engine offline")
        self.spoken.append((text, muted))
        self.settings.append(settings)
        self.calls.append("speak")

    def pause(self) -> None:
        self.calls.append("pause")

    def resume(self) -> None:
        self.calls.append("resume")

    def stop(self) -> None:
        self.calls.append("stop")


# ---------------------------------------------------------------------------
# Observer recorder
# ---------------------------------------------------------------------------


class Recorder:
    """Collects everything a PlaybackController publishes."""

    def __init__(self) -> None:
        self.indices: List[int] = []
        self.states: List[PlaybackState] = []
        self.errors: List[str] = []

    def on_word_index(self, index: int) -> None:
        self.indices.append(index)

    def on_state(self, state: PlaybackState) -> None:
        self.states.append(state)

    def on_error(self, message: str) -> None:
        self.errors.append(message)


def make_controller(
    recorder: Recorder,
    audio_source: Optional[AudioSource] = None,
    speech_engine: Optional[SpeechEngine] = None,
    config: Optional[SyncConfig] = None,
    clock: Optional[ManualClock] = None,
) -> PlaybackController:
    """Build a controller wired to ``recorder``."""
    return PlaybackController(
        audio_source=audio_source,
        speech_engine=speech_engine,
        config=config or PRESET_OPENAI.replace(tick_interval_s=3600.0),
        on_word_index=recorder.on_word_index,
        on_state=recorder.on_state,
        on_error=recorder.on_error,
        clock=clock or ManualClock(),
    )


def word_start(text: str, index: int) -> int:
    """Code-point offset of the ``index``-th whitespace-delimited word."""
    offset = 0
    for i, word in enumerate(text.split()):
        offset = text.index(word, offset)
        if i == index:
            return offset
        offset += len(word)
    raise IndexError(index)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def test_config():
    """Default tuning with background ticks effectively disabled."""
    return PRESET_OPENAI.replace(tick_interval_s=3600.0)


@pytest.fixture
def twenty_words():
    """Twenty punctuation-free words: w0 w1 ... w19."""
    return " ".join("w{}".format(i) for i in range(20))
