"""Playback drivers — the controller, its tick loop, and audio backends.

WHY: Turning the core estimates into a live highlight needs a clock, a
state machine, and a way to talk to real (or simulated) audio. This
package holds all of the stateful, time-dependent code.

HOW: backends.py defines the AudioPlayer / AudioSource / SpeechEngine
seams, ticker.py the cancellable tick loop, controller.py the state
machine that publishes word indices. simulated.py and device.py are the
concrete backends.

RULES:
- Everything here runs on one asyncio event loop
- device.py imports sound libraries lazily; importing this package never
  requires an audio device
"""

from speech_sync.playback.controller import (
    PlaybackController,
    PlaybackSession,
    PlaybackState,
    SyncSource,
)

__all__ = ["PlaybackController", "PlaybackSession", "PlaybackState", "SyncSource"]
