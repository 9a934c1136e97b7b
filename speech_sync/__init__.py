"""Speech Sync — word-level highlight synchronization for spoken text.

WHY: A reader that plays narrated text needs to know which word is being
spoken right now, many times per second, so the UI can move a highlight
cursor. Speech engines either report exact character ranges as they
speak, or they hand back an opaque audio file whose only clock is the
playback position. This package turns either signal into one stable,
monotonic word-index stream.

HOW: Four layers: tokenize (core/tokenizer), model (weighted timing
model, adaptive predictor, utterance callback conversion in core/),
drive (playback/ ticker and controller), and ingest (api/ client for the
remote text-to-speech endpoint). Each layer is independently testable.

RULES:
- Word indices are 0-based positions in the whitespace-tokenized text
- The controller is the only publisher of the current word index
- Emitted indices never move backward within a session except on reset
- Every tuning constant lives in profiles.SyncConfig, never inline
"""

__version__ = "0.1.0"
