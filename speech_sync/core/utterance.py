"""Speech-engine character ranges → word indices (the ground-truth path).

WHY: A native speech engine tells us, sample-accurately, which
character range it is about to speak. That beats any estimate, so when
such callbacks are available they drive the highlight directly.

HOW: The text handed to the engine is tokenized once. Each callback's
range start is converted to a code-point offset (engines on Apple
platforms count UTF-16 units) and looked up in the token end offsets.

RULES:
- The text must be exactly the string the engine is speaking
- Range starts before the first word map to 0; past the end to the last word
- hybrid_delay() is 0 unless hybrid_delay_factor is positive
"""

from __future__ import annotations

from typing import List

from speech_sync.core.models import WordToken
from speech_sync.core.tokenizer import (
    tokenize,
    utf16_to_codepoint_offset,
    word_index_at_offset,
)
from speech_sync.profiles import SyncConfig


class UtteranceCallbackSync:
    """Convert engine "will speak range" events into word indices.

    Args:
        text: The exact string handed to the speech engine.
        utf16_offsets: True when the engine counts offsets in UTF-16
            code units rather than code points.
    """

    def __init__(self, text: str, utf16_offsets: bool = False) -> None:
        self.text = text
        self.utf16_offsets = utf16_offsets
        self.tokens: List[WordToken] = tokenize(text)

    def _to_codepoints(self, offset: int) -> int:
        if self.utf16_offsets:
            return utf16_to_codepoint_offset(self.text, offset)
        return offset

    def word_index_for_range(self, range_start: int, range_length: int) -> int:
        """Word index for an engine range; the length does not affect the result."""
        return word_index_at_offset(self.tokens, self._to_codepoints(range_start))

    def spoken_word(self, range_start: int, range_length: int) -> str:
        """The substring the engine reported, for logging."""
        start = self._to_codepoints(range_start)
        end = self._to_codepoints(range_start + max(0, range_length))
        return self.text[start:end]


def hybrid_delay(config: SyncConfig) -> float:
    """Delay applied to callback indices while a separate audio track plays.

    WHY: In hybrid mode the audible voice comes from a different source
    that starts a little later than the muted engine producing the
    callbacks. Delaying the highlight by a configurable amount keeps it
    from running ahead of the audible word.
    """
    if config.hybrid_delay_factor <= 0:
        return 0.0
    return config.hybrid_base_delay_s * config.hybrid_delay_factor
