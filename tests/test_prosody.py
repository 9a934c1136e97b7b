"""Tests for content-aware native engine settings.

WHY: Rate and pitch feed straight into the engine. An unclamped value
makes a voice unintelligible, so each content kind and both clamp edges
are checked against the default tuning.
"""

from __future__ import annotations

import pytest

from speech_sync.core.prosody import (
    ContentKind,
    classify_content,
    speech_settings_for_content,
)
from speech_sync.profiles import PRESET_OPENAI, ProfileError, config_from_dict


class TestClassifyContent:
    def test_plain_narration(self):
        assert classify_content("The village slept under the snow.") is ContentKind.NARRATION

    def test_straight_and_curly_quotes_are_dialogue(self):
        assert classify_content('He said "wait".') is ContentKind.DIALOGUE
        assert classify_content("He said “wait”.") is ContentKind.DIALOGUE

    def test_keywords_are_case_insensitive(self):
        assert classify_content("SUDDENLY the lights went out") is ContentKind.DRAMATIC
        assert classify_content("She smiled Softly") is ContentKind.ROMANTIC

    def test_dialogue_wins_over_other_keywords(self):
        assert classify_content('"Suddenly," she said softly.') is ContentKind.DIALOGUE

    def test_dramatic_wins_over_romantic(self):
        assert classify_content("a gentle tension") is ContentKind.DRAMATIC


class TestSpeechSettings:
    def test_narration_uses_base_values(self):
        settings = speech_settings_for_content("Once upon a time.", PRESET_OPENAI)
        assert settings.rate == pytest.approx(0.55)
        assert settings.pitch == pytest.approx(1.1)
        assert settings.volume == pytest.approx(0.9)
        assert settings.pre_delay_s == pytest.approx(0.1)
        assert settings.post_delay_s == pytest.approx(0.2)

    def test_dialogue_speeds_up_and_resets_pitch(self):
        settings = speech_settings_for_content('"Run!"', PRESET_OPENAI)
        assert settings.rate == pytest.approx(0.605)
        assert settings.pitch == pytest.approx(1.0)

    def test_dramatic_slows_and_lowers(self):
        settings = speech_settings_for_content("Suddenly the door slammed.", PRESET_OPENAI)
        assert settings.rate == pytest.approx(0.495)
        assert settings.pitch == pytest.approx(1.045)

    def test_romantic_slows_and_raises(self):
        settings = speech_settings_for_content("He spoke softly.", PRESET_OPENAI)
        assert settings.rate == pytest.approx(0.5225)
        assert settings.pitch == pytest.approx(1.155)

    def test_upper_bounds_clamp(self):
        config = PRESET_OPENAI.replace(speech_rate=0.78, speech_pitch=1.38)
        assert speech_settings_for_content('"Go"', config).rate == pytest.approx(0.8)
        assert speech_settings_for_content("gentle", config).pitch == pytest.approx(1.4)

    def test_lower_bounds_clamp(self):
        config = PRESET_OPENAI.replace(speech_rate=0.32, speech_pitch=0.82)
        settings = speech_settings_for_content("tension", config)
        assert settings.rate == pytest.approx(0.3)
        assert settings.pitch == pytest.approx(0.8)

    def test_base_values_outside_bounds_are_clamped(self):
        config = PRESET_OPENAI.replace(speech_rate=0.95, speech_pitch=0.6)
        settings = speech_settings_for_content("plain words", config)
        assert settings.rate == pytest.approx(0.8)
        assert settings.pitch == pytest.approx(0.8)


class TestSpeechProfileKeys:
    def test_profile_overrides_speech_rate(self):
        config = config_from_dict({"speech_rate": 0.7, "post_utterance_delay_s": 0.0})
        assert config.speech_rate == 0.7
        assert config.post_utterance_delay_s == 0.0

    def test_rate_out_of_engine_range_rejected(self):
        with pytest.raises(ProfileError, match="speech_rate"):
            config_from_dict({"speech_rate": 2.0})
