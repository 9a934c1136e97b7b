"""Progress-ratio → word-index lookup through a timing model.

WHY: The polled playback path only knows "we are 43% through the
audio". The timing model turns that ratio into the word being spoken,
honoring the extra time punctuation and long words take.

HOW: Scale the progress ratio by the model's total weight and bisect the
cumulative weights for the first segment that reaches it.

RULES:
- Empty model → 0 (never raises)
- progress <= 0 → first word; progress >= 1 → last word
- Result is always a valid index for a non-empty model
"""

from __future__ import annotations

from bisect import bisect_left

from speech_sync.core.models import TimingModel


def word_index_for_progress(progress: float, model: TimingModel) -> int:
    """Return the index of the word being spoken at ``progress``.

    Args:
        progress: Elapsed fraction of the audio, nominally in [0, 1].
        model: Timing model for the session's words.

    Returns:
        Index of the first segment whose cumulative weight share is
        at least ``progress``.
    """
    if not model:
        return 0

    last_index = len(model) - 1
    if progress >= 1.0:
        return model[last_index].word_index

    total = model.total_weight
    if total <= 0:
        return 0

    target = max(0.0, progress) * total
    position = bisect_left(model.cumulative_weights, target)
    return model[min(position, last_index)].word_index
