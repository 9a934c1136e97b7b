"""Punctuation-aware timing model and static words-per-second estimate.

WHY: Mapping playback progress linearly onto word count
(``index = progress * words``) drifts badly: a voice pauses at commas
and full stops, and long words take longer than short ones, so by the
end of a paragraph the highlight is several words ahead of the audio.
Giving each word a time cost and mapping progress through the cumulative
cost keeps the cursor on the spoken word.

HOW: build_timing_model() walks the tokens once. Each word costs
``max(min_word_weight, len(bare) * per_char_weight)``, scaled up for long
words, plus the pause for its trailing punctuation (or a small default
gap). Segments carry the running total. estimate_words_per_second()
derives the static speaking rate used as the predictor's prior.

RULES:
- One segment per token, in token order
- Every segment weight is > 0 (the default gap is never zero)
- Empty token list → empty model
- The static WPS is always clamped to [min_wps, max_wps]
- All constants come from SyncConfig
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from speech_sync.core.models import TimingModel, TimingSegment, WordToken
from speech_sync.core.tokenizer import count_punctuation, tokenize
from speech_sync.profiles import PRESET_OPENAI, SyncConfig

logger = logging.getLogger(__name__)


def word_weight(token: WordToken, config: SyncConfig) -> float:
    """Time cost of a single word, including the pause that follows it."""
    length = len(token.bare)
    base = max(config.min_word_weight_s, length * config.per_char_weight_s)
    if length > config.long_word_threshold:
        base *= config.long_word_multiplier
    return base + config.punctuation_weight(token.trailing_punctuation)


def build_timing_model(
    tokens: Sequence[WordToken],
    config: Optional[SyncConfig] = None,
) -> TimingModel:
    """Build the weighted timeline for a word sequence.

    Args:
        tokens: Words from tokenize(), in order.
        config: Tuning constants; defaults to the "openai" preset.

    Returns:
        TimingModel with one segment per token.
    """
    config = config or PRESET_OPENAI
    segments: List[TimingSegment] = []
    cumulative = 0.0

    for token in tokens:
        weight = word_weight(token, config)
        cumulative += weight
        segments.append(TimingSegment(
            word_index=token.index,
            weight=weight,
            cumulative_weight=cumulative,
        ))

    return TimingModel(segments=segments)


def build_timing_model_from_text(
    text: str,
    config: Optional[SyncConfig] = None,
) -> TimingModel:
    """Tokenize text and build its timing model in one step."""
    return build_timing_model(tokenize(text), config)


def estimate_words_per_second(
    text: str,
    word_count: int,
    duration_s: float,
    config: Optional[SyncConfig] = None,
) -> float:
    """Estimate the static speaking rate for a piece of synthesized audio.

    WHY: The adaptive predictor needs a prior rate before it has seen any
    real evidence, and a fallback when evidence is too thin to trust.

    HOW: Punctuation marks count as a fraction of a word
    (``punctuation_unit_factor``) because pauses take time without
    advancing the word index. The raw rate (effective units / duration)
    is scaled by ``wps_calibration`` and clamped to a plausible range.

    RULES:
    - duration_s <= 0 or word_count <= 0 → fallback_wps
    - Result is always within [min_wps, max_wps]
    """
    config = config or PRESET_OPENAI
    if duration_s <= 0 or word_count <= 0:
        return config.fallback_wps

    punctuation = count_punctuation(text)
    effective_units = word_count + punctuation * config.punctuation_unit_factor
    raw_wps = effective_units / duration_s
    wps = raw_wps * config.wps_calibration
    bounded = max(config.min_wps, min(config.max_wps, wps))

    logger.debug(
        "WPS estimate: words=%d punctuation=%d duration=%.2fs raw=%.2f final=%.2f",
        word_count, punctuation, duration_s, raw_wps, bounded,
    )
    return bounded
