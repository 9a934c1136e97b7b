"""Playback controller — the single publisher of the current word index.

WHY: Narrated text can be played three ways: synthesized audio whose
only clock is the playback position (polled), a native speech engine
that reports every character range it speaks (native), or synthesized
audio timed by a muted native engine running alongside it (hybrid).
Whatever the source, the highlighter needs exactly one word-index stream
that never jumps backward, never flickers, and goes quiet the instant
playback stops.

HOW: PlaybackController is a small state machine:

    idle → loading → playing ⇄ paused → completed → idle
    (any non-idle state) → stopped → idle

Each synthesis request creates a PlaybackSession with its own
SessionToken. The polled and hybrid paths run a ProgressTicker that
calls poll() every tick; poll() maps the audio position to a word via
the timing model (polled) or the adaptive predictor (hybrid, only while
engine callbacks are stale). Engine callbacks map character ranges to
words directly. Every candidate index goes through _publish(), which
only moves forward.

RULES:
- One session at a time; starting a new one stops the previous one first
- Stopping invalidates the session token synchronously; late ticks,
  late hybrid deliveries, and late engine events become no-ops
- Published indices are non-decreasing within a session; the only
  backward move is the forced reset to 0 on stop / completion / new session
- Callback-derived indices take precedence over polled estimates
- Pausing discards queued hybrid deliveries; the index holds while paused
- Loading failures are not retried: state returns to idle, ``error`` is
  set to one human-readable message, and on_error is called
- All methods run on the event loop thread; engines calling back from
  other threads must be constructed with marshal_engine_events=True
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from speech_sync.core.models import TimingModel, WordToken
from speech_sync.core.predictor import PatternAdaptivePredictor
from speech_sync.core.prosody import SpeechSettings, speech_settings_for_content
from speech_sync.core.sampler import word_index_for_progress
from speech_sync.core.timing_model import build_timing_model, estimate_words_per_second
from speech_sync.core.tokenizer import preprocess_for_speech, tokenize
from speech_sync.core.utterance import UtteranceCallbackSync, hybrid_delay
from speech_sync.playback.backends import (
    AudioPlayer,
    AudioSource,
    AudioUnavailableError,
    PlaybackError,
    SpeechEngine,
    SpeechEngineListener,
    SpeechEngineUnavailableError,
    ThreadSafeListener,
)
from speech_sync.playback.ticker import ProgressTicker, SessionToken
from speech_sync.profiles import PRESET_OPENAI, SyncConfig

logger = logging.getLogger(__name__)


class PlaybackState(str, enum.Enum):
    """Lifecycle states of the controller.

    HOW: Inherits from str so values log and serialize cleanly.

    RULES:
    - completed and stopped are transient; the controller immediately
      moves on to idle after announcing them
    """

    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"


class SyncSource(str, enum.Enum):
    """Where a session's word timing comes from."""

    POLLED = "polled"
    NATIVE = "native"
    HYBRID = "hybrid"


@dataclass
class PlaybackSession:
    """State for one synthesis-and-play invocation.

    RULES:
    - Owned exclusively by the controller; discarded on stop/completion
    - tokens are fixed for the lifetime of the session
    - timing_model is None on the callback paths (native, hybrid)
    - last_callback_at is the controller-clock time of the latest
      applied engine callback, or None if none arrived yet
    """

    text: str
    tokens: List[WordToken]
    source: SyncSource
    token: SessionToken
    started_at: float
    timing_model: Optional[TimingModel] = None
    player: Optional[AudioPlayer] = None
    utterance: Optional[UtteranceCallbackSync] = None
    duration_s: float = 0.0
    static_wps: float = 0.0
    current_word_index: int = 0
    last_callback_at: Optional[float] = None
    pending_deliveries: List[asyncio.TimerHandle] = field(default_factory=list)

    @property
    def word_count(self) -> int:
        return len(self.tokens)

    @property
    def uses_engine(self) -> bool:
        return self.source in (SyncSource.NATIVE, SyncSource.HYBRID)


class PlaybackController(SpeechEngineListener):
    """Owns playback sessions and publishes the current word index.

    Args:
        audio_source: Produces audio for the polled and hybrid paths.
        speech_engine: Native engine for the native and hybrid paths.
        config: Tuning constants; defaults to the "openai" preset.
        on_word_index: Called with each newly published word index.
        on_state: Called with each lifecycle state change.
        on_error: Called with the human-readable message of a failure.
        clock: Monotonic clock in seconds (injectable for tests).
        marshal_engine_events: Wrap the controller in a ThreadSafeListener
            before registering it with the engine.
    """

    def __init__(
        self,
        audio_source: Optional[AudioSource] = None,
        speech_engine: Optional[SpeechEngine] = None,
        config: Optional[SyncConfig] = None,
        on_word_index: Optional[Callable[[int], None]] = None,
        on_state: Optional[Callable[[PlaybackState], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        marshal_engine_events: bool = False,
    ) -> None:
        self._audio_source = audio_source
        self._engine = speech_engine
        self._config = config or PRESET_OPENAI
        self._on_word_index = on_word_index
        self._on_state = on_state
        self._on_error = on_error
        self._clock = clock
        self._marshal_engine_events = marshal_engine_events

        self._state = PlaybackState.IDLE
        self._session: Optional[PlaybackSession] = None
        self._ticker: Optional[ProgressTicker] = None
        self._loading_task: Optional[asyncio.Future] = None
        self._loading_token: Optional[SessionToken] = None
        self._predictor = PatternAdaptivePredictor(self._config)
        self._current_word_index = 0
        self.error: Optional[str] = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def current_word_index(self) -> int:
        return self._current_word_index

    @property
    def session(self) -> Optional[PlaybackSession]:
        return self._session

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def highlighted_range(self) -> Optional[Tuple[int, int]]:
        """(start, length) of the current word in the session text, if any."""
        session = self._session
        if session is None or not session.tokens:
            return None
        token = session.tokens[min(self._current_word_index, session.word_count - 1)]
        return token.start, token.end - token.start

    # ------------------------------------------------------------------
    # Starting playback
    # ------------------------------------------------------------------

    async def synthesize_and_play(self, text: str, hybrid: bool = False) -> bool:
        """Synthesize ``text`` and play it with polled (or hybrid) word sync.

        WHY: Hosted voices return a finished audio file with no word
        timing. The timing model (polled) or a muted native engine
        (hybrid) supplies the timing instead.

        HOW: Stops any active session, moves to loading, awaits the audio
        source, then builds the session, starts audio (and the muted
        engine in hybrid mode) and the tick loop.

        RULES:
        - Returns True once playing, False on empty text, failure, or
          when stop() (or a newer request) cancelled the load
        - Failures leave the controller idle with ``error`` set

        Args:
            text: Text to speak and highlight.
            hybrid: Time the highlight from a muted native engine.
        """
        self.stop()
        if not text.strip():
            logger.debug("Ignoring synthesis request for empty text")
            return False

        source = self._audio_source
        max_chars = getattr(source, "max_chars", None)
        if max_chars:
            text = text[:max_chars]

        self.error = None
        token = SessionToken()
        self._loading_token = token
        self._set_state(PlaybackState.LOADING)

        if source is None:
            self._fail(AudioUnavailableError("no audio source is configured"))
            return False
        if hybrid and not self._engine_available():
            self._fail(SpeechEngineUnavailableError("speech engine is not available"))
            return False

        task = asyncio.ensure_future(source.load(text))
        self._loading_task = task
        try:
            player = await task
        except asyncio.CancelledError:
            if not token.alive:
                logger.info("Audio loading cancelled")
                return False
            raise
        except Exception as exc:
            if not token.alive:
                return False
            logger.exception("Audio preparation failed")
            self._fail(exc)
            return False
        finally:
            # A newer request may already own the handle.
            if self._loading_task is task:
                self._loading_task = None

        if not token.alive:
            player.stop()
            return False
        self._loading_token = None

        tokens = tokenize(text)
        duration = player.duration
        session = PlaybackSession(
            text=text,
            tokens=tokens,
            source=SyncSource.HYBRID if hybrid else SyncSource.POLLED,
            token=token,
            started_at=self._clock(),
            player=player,
            duration_s=duration,
            static_wps=estimate_words_per_second(text, len(tokens), duration, self._config),
        )
        if hybrid:
            session.utterance = UtteranceCallbackSync(text, self._engine.utf16_offsets)
        else:
            session.timing_model = build_timing_model(tokens, self._config)

        self._begin_session(session)

        if hybrid:
            try:
                self._start_engine(text, muted=True)
            except PlaybackError as exc:
                logger.warning("Speech engine failed to start: %s", exc)
                self._teardown_session()
                self._fail(exc)
                return False

        player.play()
        self._set_state(PlaybackState.PLAYING)
        self._start_ticker(session)
        logger.info(
            "Playing %d words over %.2fs (%s sync, %.2f wps)",
            session.word_count, duration, session.source.value, session.static_wps,
        )
        return True

    async def speak(self, text: str) -> bool:
        """Speak ``text`` with the native engine, highlighting from its callbacks.

        HOW: The text is normalized with preprocess_for_speech() and the
        engine receives content-aware SpeechSettings. The session is
        tokenized from the normalized text, since engine ranges refer to
        exactly what it was given.

        RULES:
        - Returns True once the engine has started speaking
        - Engine missing or unavailable → idle with ``error`` set
        """
        self.stop()
        spoken = preprocess_for_speech(text)
        if not spoken:
            logger.debug("Ignoring speak request for empty text")
            return False

        self.error = None
        self._set_state(PlaybackState.LOADING)
        if not self._engine_available():
            self._fail(SpeechEngineUnavailableError("speech engine is not available"))
            return False

        settings = speech_settings_for_content(text, self._config)
        tokens = tokenize(spoken)
        session = PlaybackSession(
            text=spoken,
            tokens=tokens,
            source=SyncSource.NATIVE,
            token=SessionToken(),
            started_at=self._clock(),
            utterance=UtteranceCallbackSync(spoken, self._engine.utf16_offsets),
            static_wps=self._config.fallback_wps,
        )
        self._begin_session(session)

        try:
            self._start_engine(spoken, muted=False, settings=settings)
        except PlaybackError as exc:
            logger.warning("Speech engine failed to start: %s", exc)
            self._teardown_session()
            self._fail(exc)
            return False

        # Engine events may have moved us on already (e.g. an instant finish).
        if self._session is session and self._state is PlaybackState.LOADING:
            self._set_state(PlaybackState.PLAYING)
        logger.info(
            "Speaking %d words with native engine (rate %.2f, pitch %.2f)",
            session.word_count, settings.rate, settings.pitch,
        )
        return True

    # ------------------------------------------------------------------
    # Transport controls
    # ------------------------------------------------------------------

    def pause(self) -> None:
        """Pause playback, keeping the session and word index."""
        session = self._session
        if self._state is not PlaybackState.PLAYING or session is None:
            return

        self._stop_ticker()
        self._cancel_pending_deliveries(session)
        if session.player is not None:
            session.player.pause()
        if session.uses_engine and self._engine is not None:
            self._engine.pause()
        self._set_state(PlaybackState.PAUSED)

    def resume(self) -> None:
        """Resume a paused session without resetting its word index."""
        session = self._session
        if self._state is not PlaybackState.PAUSED or session is None:
            return

        if session.player is not None:
            session.player.play()
        if session.uses_engine and self._engine is not None:
            self._engine.resume()
        self._set_state(PlaybackState.PLAYING)
        self._start_ticker(session)

    def stop(self) -> None:
        """Tear down the active session (or pending load) and return to idle.

        RULES:
        - No-op when already idle, so repeated calls are safe
        - Publishes the reset index 0
        """
        if self._state is PlaybackState.IDLE:
            return

        self._teardown_session()
        self._set_state(PlaybackState.STOPPED)
        self._publish(0, force=True)
        self._set_state(PlaybackState.IDLE)

    # ------------------------------------------------------------------
    # Polled path
    # ------------------------------------------------------------------

    def poll(self) -> None:
        """Sample the audio clock once and publish the resulting word index.

        WHY: This is the body of every tick. It is public so hosts with
        their own frame clock (and tests) can drive sampling directly.

        RULES:
        - No-op unless a live session is playing audio
        - Position within end_epsilon_s of the duration completes the session
        """
        session = self._session
        if (
            session is None
            or not session.token.alive
            or self._state is not PlaybackState.PLAYING
            or session.player is None
        ):
            return

        position = session.player.position
        duration = session.player.duration
        if duration <= 0 or not session.tokens:
            return

        if position >= duration - self._config.end_epsilon_s:
            logger.info("Audio completed")
            self._complete()
            return

        candidate = self._estimate(session, position, duration)
        if candidate is not None:
            self._publish(candidate)

    def _estimate(
        self,
        session: PlaybackSession,
        position: float,
        duration: float,
    ) -> Optional[int]:
        if session.source is SyncSource.HYBRID:
            if (
                session.last_callback_at is not None
                and self._clock() - session.last_callback_at < self._config.callback_stale_after_s
            ):
                # Engine callbacks are flowing; they own the index.
                return None
            return self._predictor.predict(position, session.word_count, session.static_wps)

        if session.timing_model:
            return word_index_for_progress(position / duration, session.timing_model)
        return None

    # ------------------------------------------------------------------
    # SpeechEngineListener
    # ------------------------------------------------------------------

    def on_utterance_range_started(self, range_start: int, range_length: int) -> None:
        session = self._session
        if session is None or session.utterance is None or not session.token.alive:
            return

        index = session.utterance.word_index_for_range(range_start, range_length)
        logger.debug(
            "Engine range %d+%d -> word %d %r",
            range_start, range_length, index,
            session.utterance.spoken_word(range_start, range_length),
        )

        if session.source is SyncSource.HYBRID:
            if session.player is not None:
                self._predictor.record_observation(index, session.player.position)
            delay = hybrid_delay(self._config)
            if delay > 0:
                loop = asyncio.get_running_loop()
                session.pending_deliveries = [
                    h for h in session.pending_deliveries
                    if not h.cancelled() and h.when() > loop.time()
                ]
                session.pending_deliveries.append(
                    loop.call_later(delay, self._apply_callback_index, session.token, index)
                )
                return

        self._apply_callback_index(session.token, index)

    def on_start(self) -> None:
        logger.debug("Speech engine started")

    def on_finish(self) -> None:
        session = self._session
        if session is None or not session.token.alive:
            return
        if session.source is SyncSource.NATIVE:
            logger.info("Speech engine finished")
            self._complete()
        else:
            # Hybrid completion follows the audible track, not the muted engine.
            logger.debug("Muted speech engine finished ahead of audio")

    def on_pause(self) -> None:
        session = self._session
        if (
            session is not None
            and session.source is SyncSource.NATIVE
            and self._state is PlaybackState.PLAYING
        ):
            self._set_state(PlaybackState.PAUSED)

    def on_continue(self) -> None:
        session = self._session
        if (
            session is not None
            and session.source is SyncSource.NATIVE
            and self._state is PlaybackState.PAUSED
        ):
            self._set_state(PlaybackState.PLAYING)

    def _apply_callback_index(self, token: SessionToken, index: int) -> None:
        session = self._session
        if session is None or session.token is not token or not token.alive:
            return
        if self._state is PlaybackState.PAUSED:
            logger.debug("Dropping word %d delivered while paused", index)
            return
        session.last_callback_at = self._clock()
        self._publish(index)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """Describe the current sync state for debugging.

        Returns:
            Dict with state, source, position/duration/progress (when
            audio is loaded), current and predicted indices, and the
            timing weights of the words around the current one.
        """
        session = self._session
        info: Dict[str, Any] = {
            "state": self._state.value,
            "current_word_index": self._current_word_index,
        }
        if session is None:
            return info

        info["source"] = session.source.value
        info["word_count"] = session.word_count
        info["static_wps"] = session.static_wps
        if session.tokens:
            info["current_word"] = session.tokens[
                min(self._current_word_index, session.word_count - 1)
            ].text

        if session.player is not None and session.player.duration > 0:
            position = session.player.position
            duration = session.player.duration
            info["position_s"] = position
            info["duration_s"] = duration
            info["progress"] = position / duration
            if session.timing_model:
                info["predicted_word_index"] = word_index_for_progress(
                    position / duration, session.timing_model
                )
            else:
                info["predicted_word_index"] = self._predictor.predict(
                    position, session.word_count, session.static_wps
                )

        if session.timing_model:
            start = max(0, self._current_word_index - 2)
            end = min(session.word_count, self._current_word_index + 3)
            info["neighbours"] = [
                (i, session.tokens[i].text, session.timing_model[i].weight)
                for i in range(start, end)
            ]
        return info

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _engine_available(self) -> bool:
        return self._engine is not None and self._engine.available

    def _start_engine(
        self,
        text: str,
        muted: bool,
        settings: Optional[SpeechSettings] = None,
    ) -> None:
        listener: SpeechEngineListener = self
        if self._marshal_engine_events:
            listener = ThreadSafeListener(self, asyncio.get_running_loop())
        self._engine.set_listener(listener)
        self._engine.speak(text, muted=muted, settings=settings)

    def _begin_session(self, session: PlaybackSession) -> None:
        self._predictor.reset()
        self._session = session
        self._publish(0, force=True)

    def _start_ticker(self, session: PlaybackSession) -> None:
        if session.source is SyncSource.NATIVE:
            return
        if session.duration_s <= 0 or not session.tokens:
            logger.debug(
                "Not starting tick loop (duration=%.2f, words=%d)",
                session.duration_s, session.word_count,
            )
            return
        if self._ticker is None:
            self._ticker = ProgressTicker(self.poll, self._config.tick_interval_s, session.token)
        self._ticker.start()

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.stop()

    def _teardown_session(self) -> None:
        if self._loading_token is not None:
            self._loading_token.invalidate()
            self._loading_token = None
        if self._loading_task is not None and not self._loading_task.done():
            self._loading_task.cancel()
        self._loading_task = None

        if self._ticker is not None:
            self._ticker.stop()
            self._ticker = None

        session, self._session = self._session, None
        if session is None:
            return

        session.token.invalidate()
        self._cancel_pending_deliveries(session)
        self._predictor.reset()

        if session.player is not None:
            session.player.stop()
        if session.uses_engine and self._engine is not None:
            self._engine.stop()

    @staticmethod
    def _cancel_pending_deliveries(session: PlaybackSession) -> None:
        for handle in session.pending_deliveries:
            handle.cancel()
        session.pending_deliveries.clear()

    def _complete(self) -> None:
        self._teardown_session()
        self._set_state(PlaybackState.COMPLETED)
        self._publish(0, force=True)
        self._set_state(PlaybackState.IDLE)

    def _publish(self, index: int, force: bool = False) -> None:
        """Publish ``index`` if it moves forward (or unconditionally if forced)."""
        if not force and index <= self._current_word_index:
            return

        self._current_word_index = index
        session = self._session
        if session is not None:
            session.current_word_index = index
            if session.tokens and not force:
                logger.debug("Word %d: %r", index, session.tokens[index].text)

        if self._on_word_index is not None:
            self._on_word_index(index)

    def _set_state(self, state: PlaybackState) -> None:
        if state is self._state:
            return
        logger.info("Playback state %s -> %s", self._state.value, state.value)
        self._state = state
        if self._on_state is not None:
            self._on_state(state)

    def _fail(self, exc: Exception) -> None:
        if isinstance(exc, PlaybackError):
            message = "Audio could not be prepared: {}".format(exc)
        else:
            message = "Audio could not be prepared: {}".format(exc or type(exc).__name__)
        self.error = message
        self._set_state(PlaybackState.IDLE)
        if self._on_error is not None:
            self._on_error(message)
