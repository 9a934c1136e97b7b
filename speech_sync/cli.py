"""Command-line interface for Speech Sync.

WHY: Tuning word sync by ear is slow. The CLI makes every layer
inspectable from a terminal: the weighted timeline for a text, a full
controller run against simulated audio, and a real synthesis run through
the sound device.

HOW: argparse with three subcommands:
  timeline  — print per-word weights and the word chosen at given progress points
  simulate  — run PlaybackController against ClockAudioSource/ScriptedSpeechEngine
  speak     — synthesize with the remote endpoint and play with word highlighting
Async commands run via asyncio.run(). Status messages go to stderr;
timeline rows and highlighted words go to stdout.

RULES:
- Text comes from the positional argument or --file (one of them is required)
- --profile picks a preset, --profile-file a JSON profile (file wins)
- --verbose turns on DEBUG logging; otherwise WARNING
- Exit code 1 on configuration or playback errors
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import List, Optional

from speech_sync.config import DEFAULT_PROFILE, DEFAULT_VOICE, VALID_VOICES
from speech_sync.core.sampler import word_index_for_progress
from speech_sync.core.timing_model import build_timing_model, estimate_words_per_second
from speech_sync.core.tokenizer import tokenize
from speech_sync.playback.controller import PlaybackController, PlaybackState
from speech_sync.playback.simulated import ClockAudioSource, ScriptedSpeechEngine
from speech_sync.profiles import PRESETS, SyncConfig, get_preset, load_profile

DEFAULT_PROGRESS_POINTS = "0,0.25,0.5,0.75,1"


def _status(msg: str) -> None:
    """Print a status message to stderr.

    RULES:
    - All status messages go to stderr
    - Always flush after writing
    """
    print(msg, file=sys.stderr, flush=True)


def _read_text(args: argparse.Namespace) -> str:
    if args.file:
        return Path(args.file).read_text(encoding="utf-8")
    if args.text:
        return args.text
    raise ValueError("Provide TEXT or --file")


def _load_config(args: argparse.Namespace) -> SyncConfig:
    if getattr(args, "profile_file", None):
        return load_profile(args.profile_file)
    return get_preset(args.profile)


def _parse_progress_points(raw: str) -> List[float]:
    try:
        return [float(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise ValueError(
            "--progress expects comma-separated numbers, got {!r}".format(raw)
        ) from None


# ---------------------------------------------------------------------------
# timeline
# ---------------------------------------------------------------------------


def _run_timeline(args: argparse.Namespace) -> None:
    text = _read_text(args)
    config = _load_config(args)
    tokens = tokenize(text)
    model = build_timing_model(tokens, config)

    if not tokens:
        _status("No words in text.")
        return

    total = model.total_weight
    print("{:>5}  {:<20} {:>7} {:>9}".format("index", "word", "weight", "ends at"))
    for token, segment in zip(tokens, model):
        print("{:>5}  {:<20} {:>7.3f} {:>8.1%}".format(
            token.index, token.text[:20], segment.weight, segment.cumulative_weight / total,
        ))

    print()
    for progress in _parse_progress_points(args.progress):
        index = word_index_for_progress(progress, model)
        print("progress {:>5.2f} -> word {} {!r}".format(progress, index, tokens[index].text))

    if args.duration:
        wps = estimate_words_per_second(text, len(tokens), args.duration, config)
        print()
        print("estimated speaking rate: {:.2f} words/s over {:.2f}s".format(wps, args.duration))


# ---------------------------------------------------------------------------
# simulate / speak
# ---------------------------------------------------------------------------


async def _play_until_idle(
    controller: PlaybackController,
    start,  # noqa: ANN001
    finished: asyncio.Event,
) -> bool:
    started = await start
    if not started:
        return False
    await finished.wait()
    return controller.error is None


def _make_printer(
    tokens: list,
    loop_time: Callable[[], float],
) -> Callable[[int], None]:
    started_at = loop_time()

    def on_word_index(index: int) -> None:
        word = tokens[index].text if index < len(tokens) else ""
        print("{:>7.2f}s  word {:>4}  {}".format(loop_time() - started_at, index, word), flush=True)

    return on_word_index


async def _run_controller(
    args: argparse.Namespace,
    text: str,
    audio_source,  # noqa: ANN001
    engine,  # noqa: ANN001
    mode: str,
) -> bool:
    loop = asyncio.get_running_loop()
    finished = asyncio.Event()

    def on_state(state: PlaybackState) -> None:
        _status("[{}]".format(state.value))
        if state is PlaybackState.IDLE:
            finished.set()

    controller = PlaybackController(
        audio_source=audio_source,
        speech_engine=engine,
        config=_load_config(args),
        on_word_index=_make_printer(tokenize(text), loop.time),
        on_state=on_state,
        on_error=lambda message: _status("Error: {}".format(message)),
    )

    if mode == "native":
        start = controller.speak(text)
    else:
        start = controller.synthesize_and_play(text, hybrid=(mode == "hybrid"))

    try:
        return await _play_until_idle(controller, start, finished)
    finally:
        controller.stop()


async def _run_simulate(args: argparse.Namespace) -> bool:
    text = _read_text(args)
    words = len(tokenize(text))
    if not words:
        _status("No words in text.")
        return False

    source = ClockAudioSource(duration=args.duration, rate=args.speed)
    duration = source.estimate_duration(text)
    engine = ScriptedSpeechEngine(words_per_second=words / duration * args.speed)
    _status("Simulating {} words over {:.2f}s ({} mode)".format(words, duration / args.speed, args.mode))
    return await _run_controller(args, text, source, engine, args.mode)


async def _run_speak(args: argparse.Namespace) -> bool:
    from speech_sync.playback.device import OpenAISpeechSource

    text = _read_text(args)
    source = OpenAISpeechSource(voice=args.voice)
    engine = None
    if args.hybrid:
        # No platform engine binding is bundled; the scripted one only
        # demonstrates the hybrid wiring.
        engine = ScriptedSpeechEngine()
        _status("Hybrid demo: word callbacks come from a fixed-rate scripted engine")
    _status("Synthesizing with voice {}...".format(args.voice))
    return await _run_controller(args, text, source, engine, "hybrid" if args.hybrid else "polled")


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_text_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("text", nargs="?", default=None, help="Text to read.")
    parser.add_argument("--file", default=None, help="Read the text from this file instead.")


def _add_profile_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--profile",
        default=DEFAULT_PROFILE,
        choices=sorted(PRESETS.keys()),
        help="Tuning preset (default: %(default)s).",
    )
    parser.add_argument(
        "--profile-file",
        default=None,
        help="JSON tuning profile; overrides --profile.",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable: tests can inspect the parser without running anything.
    """
    parser = argparse.ArgumentParser(
        prog="speech_sync",
        description="Word-level highlight synchronization for spoken text.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    timeline = subparsers.add_parser("timeline", help="Print the weighted word timeline.")
    _add_text_arguments(timeline)
    _add_profile_arguments(timeline)
    timeline.add_argument(
        "--progress",
        default=DEFAULT_PROGRESS_POINTS,
        help="Comma-separated progress fractions to sample (default: %(default)s).",
    )
    timeline.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Audio duration in seconds; prints the estimated speaking rate.",
    )

    simulate = subparsers.add_parser("simulate", help="Run word sync against simulated audio.")
    _add_text_arguments(simulate)
    _add_profile_arguments(simulate)
    simulate.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Simulated audio duration in seconds (default: estimated from the text).",
    )
    simulate.add_argument(
        "--mode",
        choices=["polled", "native", "hybrid"],
        default="polled",
        help="Sync path to exercise (default: %(default)s).",
    )
    simulate.add_argument(
        "--speed",
        type=float,
        default=1.0,
        help="Playback speed multiplier (default: %(default)s).",
    )

    speak = subparsers.add_parser("speak", help="Synthesize and play with highlighting.")
    _add_text_arguments(speak)
    _add_profile_arguments(speak)
    speak.add_argument(
        "--voice",
        default=DEFAULT_VOICE,
        choices=sorted(VALID_VOICES),
        help="Voice (default: %(default)s).",
    )
    speak.add_argument(
        "--hybrid",
        action="store_true",
        help=(
            "Demo only: pair the audio with ScriptedSpeechEngine, which emits "
            "words at a fixed rate instead of following a real voice."
        ),
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "timeline":
            _run_timeline(args)
            return
        if args.command == "simulate":
            ok = asyncio.run(_run_simulate(args))
        else:
            ok = asyncio.run(_run_speak(args))
    except (ValueError, KeyError, OSError) as e:
        # ProfileError is a ValueError
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
