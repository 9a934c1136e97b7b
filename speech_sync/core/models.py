"""Dataclasses for tokenized text and weighted timing models.

WHY: The tokenizer, timing model builder, sampler, and callback sync all
need to agree on what a "word" is and where it sits in the source text.
Typed, immutable records make that contract explicit and keep runtime
lookups from re-scanning the source string.

HOW: Three dataclasses form a hierarchy:
  WordToken     — one whitespace-delimited word with its offsets and
                  trailing punctuation
  TimingSegment — the estimated time cost of one word
  TimingModel   — the ordered segments plus the total weight

RULES:
- Word indices are 0-based and match list positions
- Offsets are code-point offsets into the source text, end exclusive
- TimingSegment.cumulative_weight is non-decreasing across a model
- A TimingModel has exactly one segment per word
- TimingModel.total_weight is a scaling denominator, never an audio duration
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional


@dataclass(frozen=True)
class WordToken:
    """A single whitespace-delimited word from the source text.

    WHY: The timing model needs the bare word length and the punctuation
    that follows it; the highlighter needs the exact character span.
    Capturing both once at tokenization time avoids repeated substring
    searches (and the off-by-one bugs they bring).

    RULES:
    - text: the raw token, punctuation and quotes included
    - start / end: code-point offsets, text == source[start:end]
    - bare: token without trailing punctuation and closing quotes
    - trailing_punctuation: the mark that ends the word, or None
    """

    index: int
    text: str
    start: int
    end: int
    bare: str
    trailing_punctuation: Optional[str] = None


@dataclass(frozen=True)
class TimingSegment:
    """Estimated time cost of one word, including the pause after it."""

    word_index: int
    weight: float
    cumulative_weight: float


@dataclass
class TimingModel:
    """Ordered timing segments for a word sequence.

    RULES:
    - Empty for an empty word sequence; callers must check before dividing
    - total_weight equals the last segment's cumulative_weight
    """

    segments: List[TimingSegment] = field(default_factory=list)

    @property
    def total_weight(self) -> float:
        if not self.segments:
            return 0.0
        return self.segments[-1].cumulative_weight

    @property
    def cumulative_weights(self) -> List[float]:
        return [s.cumulative_weight for s in self.segments]

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self) -> Iterator[TimingSegment]:
        return iter(self.segments)

    def __getitem__(self, index: int) -> TimingSegment:
        return self.segments[index]
