"""Tests for the real-audio backend without an audio device.

WHY: Decoding and the frame-counted clock are what make polled sync
accurate. They can be checked without PortAudio by decoding in-memory
WAV data and standing in a fake ``sounddevice`` module.

HOW: soundfile writes a short WAV into a BytesIO; httpx.MockTransport
serves it; sys.modules is patched with a MagicMock sounddevice whose
CallbackStop is a real exception class.
"""

from __future__ import annotations

import asyncio
import io
import sys
from unittest.mock import MagicMock, patch

import httpx
import numpy as np
import pytest
import soundfile as sf

from speech_sync.playback.backends import AudioUnavailableError
from speech_sync.playback.device import OpenAISpeechSource, SoundDevicePlayer, decode_audio


class _CallbackStop(Exception):
    pass


def _fake_sounddevice() -> MagicMock:
    module = MagicMock()
    module.CallbackStop = _CallbackStop
    return module


def _wav_bytes(seconds: float = 0.5, samplerate: int = 8000) -> bytes:
    frames = np.zeros((int(seconds * samplerate), 1), dtype=np.float32)
    buffer = io.BytesIO()
    sf.write(buffer, frames, samplerate, format="WAV")
    return buffer.getvalue()


class TestDecodeAudio:
    def test_decodes_wav(self):
        frames, samplerate = decode_audio(_wav_bytes(0.5, 8000))
        assert samplerate == 8000
        assert frames.shape == (4000, 1)

    def test_garbage_raises(self):
        with pytest.raises(AudioUnavailableError, match="could not decode"):
            decode_audio(b"definitely not audio")


class TestSoundDevicePlayer:
    def test_clock_follows_frames(self):
        with patch.dict(sys.modules, {"sounddevice": _fake_sounddevice()}):
            player = SoundDevicePlayer(np.zeros((800, 1), dtype=np.float32), 400)
            assert player.duration == 2.0
            assert player.position == 0.0

            out = np.empty((300, 1), dtype=np.float32)
            player._fill(out, 300, None, None)
            assert player.position == 0.75

    def test_fill_stops_at_end(self):
        with patch.dict(sys.modules, {"sounddevice": _fake_sounddevice()}):
            frames = np.ones((100, 1), dtype=np.float32)
            player = SoundDevicePlayer(frames, 100)
            out = np.empty((150, 1), dtype=np.float32)
            with pytest.raises(_CallbackStop):
                player._fill(out, 150, None, None)
            assert player.position == player.duration
            assert out[100:].sum() == 0

    def test_stop_rewinds(self):
        with patch.dict(sys.modules, {"sounddevice": _fake_sounddevice()}):
            player = SoundDevicePlayer(np.zeros((100, 2), dtype=np.float32), 100)
            player.play()
            player._fill(np.empty((50, 2), dtype=np.float32), 50, None, None)
            player.pause()
            assert player.position == 0.5
            player.stop()
            assert player.position == 0.0


class TestOpenAISpeechSource:
    def test_load_returns_player(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, content=_wav_bytes(1.0, 8000))

        source = OpenAISpeechSource(api_key="test-key", transport=httpx.MockTransport(handler))
        with patch.dict(sys.modules, {"sounddevice": _fake_sounddevice()}):
            player = asyncio.run(source.load("Hello.World"))

        assert player.duration == 1.0
        assert b"Hello. World" in requests[0].content

    def test_http_error_becomes_audio_unavailable(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, content=b"oops"))
        source = OpenAISpeechSource(api_key="test-key", transport=transport)
        with pytest.raises(AudioUnavailableError, match="500"):
            asyncio.run(source.load("hello"))

    def test_network_error_becomes_audio_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("no route", request=request)

        source = OpenAISpeechSource(api_key="test-key", transport=httpx.MockTransport(handler))
        with pytest.raises(AudioUnavailableError):
            asyncio.run(source.load("hello"))

    def test_missing_device_becomes_audio_unavailable(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=_wav_bytes()))
        source = OpenAISpeechSource(api_key="test-key", transport=transport)
        with patch("speech_sync.playback.device.SoundDevicePlayer", side_effect=OSError("PortAudio")):
            with pytest.raises(AudioUnavailableError, match="no audio output device"):
                asyncio.run(source.load("hello"))
