"""Unit tests for the weighted timing model, sampler, and WPS estimate.

WHY: The polled highlight is only as good as these weights. Ordering
mistakes (a comma pausing longer than a full stop) or off-by-one
lookups show up as a cursor that runs ahead at every sentence end.

HOW: Weights are checked against hand-computed values from the default
profile; the sampler is checked at the progress boundaries.
"""

from __future__ import annotations

import pytest

from speech_sync.core.models import TimingModel
from speech_sync.core.sampler import word_index_for_progress
from speech_sync.core.timing_model import (
    build_timing_model,
    build_timing_model_from_text,
    estimate_words_per_second,
    word_weight,
)
from speech_sync.core.tokenizer import tokenize
from speech_sync.profiles import PRESET_NEUTRAL, PRESET_OPENAI


class TestWordWeight:
    """word_weight() per-word cost."""

    def test_short_word_hits_floor(self):
        token = tokenize("a")[0]
        assert word_weight(token, PRESET_OPENAI) == pytest.approx(0.45 + 0.15)

    def test_length_scales_weight(self):
        token = tokenize("hello")[0]
        assert word_weight(token, PRESET_OPENAI) == pytest.approx(5 * 0.12 + 0.15)

    def test_long_word_multiplier(self):
        token = tokenize("wonderful")[0]
        assert word_weight(token, PRESET_OPENAI) == pytest.approx(9 * 0.12 * 1.2 + 0.15)

    def test_punctuation_excluded_from_length(self):
        plain = word_weight(tokenize("hello")[0], PRESET_OPENAI)
        dotted = word_weight(tokenize("hello.")[0], PRESET_OPENAI)
        assert dotted - plain == pytest.approx(0.9 - 0.15)

    def test_pause_ordering(self):
        def weight(word):
            return word_weight(tokenize(word)[0], PRESET_OPENAI)

        full_stop = weight("word.")
        exclaim = weight("word!")
        question = weight("word?")
        comma = weight("word,")
        plain = weight("word")
        assert full_stop >= exclaim
        assert exclaim == question
        assert question >= comma
        assert comma >= plain

    def test_neutral_preset_is_lighter(self):
        token = tokenize("sentence.")[0]
        assert word_weight(token, PRESET_NEUTRAL) < word_weight(token, PRESET_OPENAI)


class TestBuildTimingModel:
    """build_timing_model() cumulative structure."""

    def test_one_segment_per_word(self):
        model = build_timing_model_from_text("one two three.")
        assert len(model) == 3
        assert [s.word_index for s in model] == [0, 1, 2]

    def test_cumulative_weights_increase(self):
        model = build_timing_model_from_text("The quick brown fox, jumps. Over!")
        cumulative = model.cumulative_weights
        assert all(b > a for a, b in zip(cumulative, cumulative[1:]))
        assert model.total_weight == cumulative[-1]

    def test_empty_text_gives_empty_model(self):
        model = build_timing_model([])
        assert len(model) == 0
        assert model.total_weight == 0.0

    def test_basic_timeline_weights(self):
        model = build_timing_model_from_text("Hello world.")
        assert model[0].weight == pytest.approx(0.75)
        assert model[1].weight == pytest.approx(1.5)
        assert model.total_weight == pytest.approx(2.25)


class TestWordIndexForProgress:
    """word_index_for_progress() boundaries."""

    def test_basic_timeline(self):
        model = build_timing_model_from_text("Hello world.")
        assert word_index_for_progress(0.5, model) == 1
        assert word_index_for_progress(0.2, model) == 0

    def test_start_and_end(self):
        model = build_timing_model_from_text("a b c d e")
        assert word_index_for_progress(0.0, model) == 0
        assert word_index_for_progress(1.0, model) == 4
        assert word_index_for_progress(1.7, model) == 4
        assert word_index_for_progress(-0.3, model) == 0

    def test_empty_model(self):
        assert word_index_for_progress(0.5, TimingModel()) == 0

    def test_exact_boundary_stays_on_word(self):
        model = build_timing_model_from_text("a b")
        # Each word weighs the same, so 0.5 is exactly the end of word 0.
        assert word_index_for_progress(0.5, model) == 0

    def test_monotonic_over_progress(self):
        model = build_timing_model_from_text(
            "It was a dark, stormy night; the wind howled. Nobody slept!"
        )
        indices = [word_index_for_progress(p / 100, model) for p in range(101)]
        assert indices == sorted(indices)
        assert indices[0] == 0
        assert indices[-1] == len(model) - 1


class TestEstimateWordsPerSecond:
    """estimate_words_per_second() prior rate."""

    def test_plain_text(self):
        assert estimate_words_per_second("a b c d", 4, 2.0) == pytest.approx(2.0 * 0.85)

    def test_punctuation_counts_as_partial_word(self):
        wps = estimate_words_per_second("a, b. c d", 4, 2.0)
        assert wps == pytest.approx((4 + 2 * 0.4) / 2.0 * 0.85)

    def test_clamped_to_bounds(self):
        assert estimate_words_per_second("a", 1, 100.0) == PRESET_OPENAI.min_wps
        assert estimate_words_per_second("a " * 50, 50, 1.0) == PRESET_OPENAI.max_wps

    def test_degenerate_inputs_fall_back(self):
        assert estimate_words_per_second("a b", 2, 0.0) == PRESET_OPENAI.fallback_wps
        assert estimate_words_per_second("", 0, 3.0) == PRESET_OPENAI.fallback_wps
