"""Unit tests for ProgressTicker and SessionToken.

WHY: A tick that fires after stop() publishes a stale word into the
next session. These tests make sure stop() and token invalidation both
take effect before the next tick.

HOW: Short real intervals inside asyncio.run(); assertions count ticks.
"""

from __future__ import annotations

import asyncio

from speech_sync.playback.ticker import ProgressTicker, SessionToken


class TestSessionToken:
    def test_starts_alive_and_invalidates_permanently(self):
        token = SessionToken()
        assert token.alive
        token.invalidate()
        token.invalidate()
        assert not token.alive


class TestProgressTicker:
    """Tick loop lifecycle."""

    def test_ticks_until_stopped(self):
        ticks = []

        async def _run():
            ticker = ProgressTicker(lambda: ticks.append(1), 0.01, SessionToken())
            ticker.start()
            assert ticker.running
            await asyncio.sleep(0.08)
            ticker.stop()
            count = len(ticks)
            await asyncio.sleep(0.05)
            return count

        count = asyncio.run(_run())
        assert count >= 2
        assert len(ticks) == count

    def test_stop_is_idempotent(self):
        async def _run():
            ticker = ProgressTicker(lambda: None, 0.01, SessionToken())
            ticker.start()
            ticker.stop()
            ticker.stop()
            return ticker.running

        assert asyncio.run(_run()) is False

    def test_dead_token_prevents_ticks(self):
        ticks = []

        async def _run():
            token = SessionToken()
            ticker = ProgressTicker(lambda: ticks.append(1), 0.01, token)
            ticker.start()
            token.invalidate()
            await asyncio.sleep(0.05)

        asyncio.run(_run())
        assert ticks == []

    def test_start_with_dead_token_is_ignored(self):
        async def _run():
            token = SessionToken()
            token.invalidate()
            ticker = ProgressTicker(lambda: None, 0.01, token)
            ticker.start()
            return ticker.running

        assert asyncio.run(_run()) is False

    def test_double_start_runs_one_loop(self):
        ticks = []

        async def _run():
            ticker = ProgressTicker(lambda: ticks.append(1), 0.05, SessionToken())
            ticker.start()
            ticker.start()
            await asyncio.sleep(0.07)
            ticker.stop()

        asyncio.run(_run())
        assert len(ticks) == 1

    def test_failing_tick_stops_loop(self):
        calls = []

        def boom():
            calls.append(1)
            raise RuntimeError("tick failed")

        async def _run():
            ticker = ProgressTicker(boom, 0.01, SessionToken())
            ticker.start()
            await asyncio.sleep(0.06)
            return ticker.running

        assert asyncio.run(_run()) is False
        assert calls == [1]

    def test_restart_after_stop(self):
        ticks = []

        async def _run():
            ticker = ProgressTicker(lambda: ticks.append(1), 0.01, SessionToken())
            ticker.start()
            ticker.stop()
            ticker.start()
            await asyncio.sleep(0.05)
            ticker.stop()

        asyncio.run(_run())
        assert len(ticks) >= 1
