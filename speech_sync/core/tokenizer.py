"""Whitespace tokenization, punctuation classification, and offset lookup.

WHY: Every other component works with word indices, but the inputs are a
raw string (from the story) and character offsets (from the speech
engine). This module is the single place where text becomes words, so
the highlighter, the timing model, and the callback path can never
disagree about which word is number 12.

HOW: Words are maximal runs of non-whitespace characters, found with a
regex so their code-point offsets come for free. Closing quotes and
brackets are peeled off the end of each token before checking whether
its last character is a known punctuation mark. Offset lookups bisect a
precomputed list of word end offsets.

RULES:
- Any Unicode whitespace (spaces, tabs, newlines) separates words
- Tokens are never empty
- Trailing punctuation is one of: . ! ? , ; : — – …
- Closing quotes/brackets ("'”’)]}») are ignored when finding punctuation
- A token made only of punctuation keeps itself as its bare text
- word_index_at_offset() returns the word containing the offset, or the
  next word when the offset falls in whitespace
"""

from __future__ import annotations

import re
from bisect import bisect_right
from typing import List, Optional, Sequence

from speech_sync.core.models import WordToken

_WORD_RE = re.compile(r"\S+")

# Punctuation marks that carry a pause after the word they end.
PUNCTUATION_MARKS = frozenset(".!?,;:—–…")

# Closing characters that may sit between a word and its punctuation
# mark, e.g. ``said."`` or ``(maybe),``.
_CLOSERS = "\"'”’)]}»"

# Space is inserted after these marks when the next character is not
# whitespace, so the speech engine pauses where a reader would.
_SPACING_RE = re.compile(r"([.,!?;:])(?=\S)")
_MULTI_SPACE_RE = re.compile(r" {2,}")


def _split_trailing_punctuation(token: str) -> tuple[str, Optional[str]]:
    """Return (bare word, trailing punctuation mark or None) for a token."""
    core = token.rstrip(_CLOSERS)
    if not core:
        return token, None

    mark = core[-1] if core[-1] in PUNCTUATION_MARKS else None
    if mark is None:
        return core, None

    bare = core.rstrip("".join(PUNCTUATION_MARKS))
    if not bare:
        # Standalone punctuation such as a spaced dash.
        return core, mark
    return bare, mark


def tokenize(text: str) -> List[WordToken]:
    """Split text into WordTokens with offsets and trailing punctuation.

    Args:
        text: Source text exactly as it will be displayed (or spoken).

    Returns:
        One WordToken per whitespace-delimited word, in order. Empty text
        (or whitespace only) yields an empty list.
    """
    tokens: List[WordToken] = []
    for match in _WORD_RE.finditer(text):
        raw = match.group(0)
        bare, mark = _split_trailing_punctuation(raw)
        tokens.append(WordToken(
            index=len(tokens),
            text=raw,
            start=match.start(),
            end=match.end(),
            bare=bare,
            trailing_punctuation=mark,
        ))
    return tokens


def count_punctuation(text: str) -> int:
    """Count pause-carrying punctuation marks anywhere in the text."""
    return sum(1 for ch in text if ch in PUNCTUATION_MARKS)


def preprocess_for_speech(text: str) -> str:
    """Normalize spacing around punctuation before handing text to an engine.

    WHY: Story text generated upstream often has missing spaces after
    punctuation ("end.Next"). Speech engines read such runs as one word
    without a pause, which throws off both the audio and the word count.

    HOW: Insert a space after . , ! ? ; : when a non-space follows,
    collapse repeated spaces, and trim.

    RULES:
    - Never removes characters other than redundant spaces
    - Existing single spaces and newlines are preserved
    """
    processed = _SPACING_RE.sub(r"\1 ", text)
    processed = _MULTI_SPACE_RE.sub(" ", processed)
    return processed.strip()


def word_index_at_offset(tokens: Sequence[WordToken], offset: int) -> int:
    """Map a character offset to the index of the word it falls in.

    RULES:
    - Empty token sequence → 0
    - Offset inside a word → that word's index
    - Offset in whitespace between words → the following word
    - Offset past the last word → the last index
    """
    if not tokens:
        return 0
    ends = [t.end for t in tokens]
    index = bisect_right(ends, max(0, offset))
    return min(index, len(tokens) - 1)


def utf16_to_codepoint_offset(text: str, offset: int) -> int:
    """Convert an offset counted in UTF-16 code units to a code-point offset.

    WHY: Platform speech engines report ranges in UTF-16 units, where
    characters outside the Basic Multilingual Plane (emoji, some CJK)
    take two units. Python strings index by code point.

    RULES:
    - Offsets that land between the two halves of a surrogate pair round
      down to the start of that character
    - Offsets past the end clamp to len(text)
    """
    units = 0
    for i, ch in enumerate(text):
        width = 2 if ord(ch) > 0xFFFF else 1
        if units + width > offset:
            return i
        units += width
    return len(text)
