"""Core tokenization and word-timing modules.

WHY: The core package holds the pure, clock-free logic: splitting text
into words, weighting them, mapping progress or character ranges to word
indices, and predicting the spoken word from observed evidence. Nothing
here touches audio, threads, or the network, so all of it is testable
with plain values.

HOW: models.py defines the data structures, tokenizer.py builds tokens
from text, timing_model.py weights them, sampler.py and predictor.py map
time to words, utterance.py maps engine character ranges to words,
prosody.py picks native engine speech settings for the content.

RULES:
- Functions are deterministic given their inputs and a SyncConfig
- Every returned word index is clamped to [0, word_count - 1]
- No module here imports from playback/ or api/
"""
