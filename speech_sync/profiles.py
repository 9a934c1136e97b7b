"""Tuning profiles for the timing model, sampler, and adaptive predictor.

WHY: Every constant in the sync pipeline (per-character word weight,
punctuation pauses, words-per-second bounds, blend ratio, damping) was
tuned by ear against one particular voice. A different voice or speech
engine speaks with a different cadence, so these numbers have to be
selectable by name and overridable from a file rather than hard-coded.

HOW: SyncConfig is a frozen dataclass holding every tunable. PRESETS maps
profile names to SyncConfig instances. load_profile() reads a JSON file,
validates it against profile_schema.json with jsonschema, and layers its
values over a base preset.

RULES:
- Presets are frozen constants — never mutate them at runtime
- A JSON profile only needs the keys it changes; the rest come from "base"
- Punctuation weights must be positive; a zero gap would let rounding
  error pile up across thousands of words
- The "openai" preset is the default (see config.DEFAULT_PROFILE)
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema

_SCHEMA_PATH = Path(__file__).resolve().parent / "profile_schema.json"

_CACHED_SCHEMA: Optional[dict] = None


def _get_schema() -> dict:
    """Load and cache the profile JSON schema."""
    global _CACHED_SCHEMA
    if _CACHED_SCHEMA is None:
        with open(_SCHEMA_PATH, encoding="utf-8") as f:
            _CACHED_SCHEMA = json.load(f)
    return _CACHED_SCHEMA


class ProfileError(ValueError):
    """Raised when a tuning profile file is unreadable or fails validation.

    WHY: Callers (CLI, host apps) need one exception type for "this
    profile is bad" regardless of whether the cause was JSON syntax or a
    schema violation.

    RULES:
    - Message names the file and the offending key path when known
    """


def _openai_punctuation() -> Dict[str, float]:
    return {
        ".": 0.9,
        "!": 0.8,
        "?": 0.8,
        ",": 0.5,
        ";": 0.6,
        ":": 0.4,
        "—": 0.5,
        "–": 0.5,
        "…": 0.9,
    }


@dataclass(frozen=True)
class SyncConfig:
    """Every tunable used by the timing model, sampler, and predictor.

    WHY: Keeps the empirically tuned numbers in one place so they can be
    swapped per voice, tested in isolation, and loaded from JSON.

    RULES:
    - tick_interval_s: polling period of the progress ticker (seconds)
    - end_epsilon_s: position within this distance of the end counts as finished
    - per_char_weight_s / min_word_weight_s: base word cost and its floor
    - long_word_threshold / long_word_multiplier: words longer than the
      threshold (in characters) cost proportionally more
    - punctuation_weights / default_gap_s: pause after a word
    - punctuation_unit_factor: how much of a word's time one punctuation
      mark adds when estimating words per second
    - wps_calibration, min_wps, max_wps, fallback_wps: static WPS estimate
    - observed_wps_blend: share of the observed rate in the blended rate
    - cold_start_damping / fallback_damping: under-prediction factors
    - min_observation_span_s: shortest time span trusted for observed WPS
    - window_size / window_prune / recent_observations: predictor window
    - hybrid_base_delay_s * hybrid_delay_factor: delay applied to engine
      callbacks when a separate audio track is playing (0 disables)
    - callback_stale_after_s: silence after which polled ticks may
      extrapolate past the last engine callback
    - speech_rate / speech_pitch / speech_volume: native engine defaults
      (engine units: rate 0-1, pitch multiplier, volume 0-1)
    - min/max_speech_rate, min/max_speech_pitch: clamp for content-adjusted values
    - dialogue_*, dramatic_*, romantic_*: per-content-kind adjustments;
      dialogue_pitch replaces the pitch, the others multiply
    - pre/post_utterance_delay_s: silence the engine adds around an utterance
    """

    tick_interval_s: float = 0.2
    end_epsilon_s: float = 0.1

    per_char_weight_s: float = 0.12
    min_word_weight_s: float = 0.45
    long_word_threshold: int = 7
    long_word_multiplier: float = 1.2
    punctuation_weights: Dict[str, float] = field(default_factory=_openai_punctuation)
    default_gap_s: float = 0.15

    punctuation_unit_factor: float = 0.4
    wps_calibration: float = 0.85
    min_wps: float = 1.5
    max_wps: float = 2.8
    fallback_wps: float = 1.8

    observed_wps_blend: float = 0.6
    cold_start_damping: float = 0.75
    fallback_damping: float = 0.8
    min_observation_span_s: float = 0.5
    window_size: int = 20
    window_prune: int = 5
    recent_observations: int = 5

    hybrid_base_delay_s: float = 0.1
    hybrid_delay_factor: float = 0.0
    callback_stale_after_s: float = 1.0

    speech_rate: float = 0.55
    speech_pitch: float = 1.1
    speech_volume: float = 0.9
    min_speech_rate: float = 0.3
    max_speech_rate: float = 0.8
    min_speech_pitch: float = 0.8
    max_speech_pitch: float = 1.4
    dialogue_rate_factor: float = 1.1
    dialogue_pitch: float = 1.0
    dramatic_rate_factor: float = 0.9
    dramatic_pitch_factor: float = 0.95
    romantic_rate_factor: float = 0.95
    romantic_pitch_factor: float = 1.05
    pre_utterance_delay_s: float = 0.1
    post_utterance_delay_s: float = 0.2

    def punctuation_weight(self, mark: Optional[str]) -> float:
        """Pause cost for the punctuation mark after a word, or the default gap."""
        if mark is None:
            return self.default_gap_s
        return self.punctuation_weights.get(mark, self.default_gap_s)

    def replace(self, **changes: Any) -> SyncConfig:
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)


PRESET_OPENAI = SyncConfig()
"""Tuned against the hosted "nova" voice: slow, with long sentence pauses."""

PRESET_NEUTRAL = SyncConfig(
    per_char_weight_s=0.08,
    min_word_weight_s=0.3,
    long_word_multiplier=1.1,
    punctuation_weights={
        ".": 0.6,
        "!": 0.55,
        "?": 0.55,
        ",": 0.3,
        ";": 0.4,
        ":": 0.3,
        "—": 0.3,
        "–": 0.3,
        "…": 0.6,
    },
    default_gap_s=0.1,
    wps_calibration=1.0,
    min_wps=1.8,
    max_wps=3.2,
    fallback_wps=2.5,
)
"""Less voice-specific numbers for on-device engines."""

PRESETS: Dict[str, SyncConfig] = {
    "openai": PRESET_OPENAI,
    "neutral": PRESET_NEUTRAL,
}


def get_preset(name: str) -> SyncConfig:
    """Look up a preset by name.

    RULES:
    - Raises KeyError listing the known names for an unknown preset
    """
    try:
        return PRESETS[name]
    except KeyError:
        raise KeyError(
            "Unknown sync profile '{}'. Available: {}".format(
                name, ", ".join(sorted(PRESETS))
            )
        ) from None


def config_from_dict(data: Dict[str, Any]) -> SyncConfig:
    """Build a SyncConfig from a validated profile dict.

    WHY: Profile files carry only the keys they want to change. The
    remaining values must come from a named base preset.

    HOW: Validates against the schema, resolves ``base`` (default
    "openai"), and applies the remaining keys with dataclasses.replace.
    A partial ``punctuation_weights`` table is merged over the base table.

    RULES:
    - Raises ProfileError on schema violations or an unknown base
    """
    try:
        jsonschema.validate(instance=data, schema=_get_schema())
    except jsonschema.ValidationError as exc:
        location = "/".join(str(p) for p in exc.absolute_path) or "<root>"
        raise ProfileError(
            "Invalid sync profile at {}: {}".format(location, exc.message)
        ) from exc

    overrides = dict(data)
    base_name = overrides.pop("base", "openai")
    overrides.pop("name", None)
    try:
        base = get_preset(base_name)
    except KeyError as exc:
        raise ProfileError(str(exc.args[0])) from exc

    if "punctuation_weights" in overrides:
        merged = dict(base.punctuation_weights)
        merged.update(overrides["punctuation_weights"])
        overrides["punctuation_weights"] = merged

    return base.replace(**overrides)


def load_profile(path: str | Path) -> SyncConfig:
    """Load a tuning profile from a JSON file.

    RULES:
    - File must be UTF-8 JSON matching profile_schema.json
    - Raises ProfileError for unreadable JSON or schema violations
    - Raises FileNotFoundError if the file doesn't exist
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProfileError("{} is not valid JSON: {}".format(path, exc)) from exc
    return config_from_dict(data)
