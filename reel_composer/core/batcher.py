"""Group word timings into on-screen caption batches.

WHY: Social video shows a few words at a time and highlights each word as
it is spoken. The renderer needs phrase-level windows (when the caption is
on screen) with word-level windows inside them (when each word lights up).

HOW: Consecutive words are taken left to right in groups of batch_size.
The batch window runs from the first word's start to the last word's end;
every word keeps its own window as a CaptionToken.

RULES:
- batch_size <= 0 is floored to 1
- Every input word appears in exactly one batch, in original order
- Pure and deterministic: same input and batch_size → same output, same ids
- Batch ids are "{id_prefix}-{index}", index counted from 0
"""

from __future__ import annotations

from typing import Sequence

from reel_composer.config import DEFAULT_BATCH_SIZE
from reel_composer.core.ir import CaptionBatch, CaptionToken, WordTiming


def batch_words(
    words: Sequence[WordTiming],
    batch_size: int = DEFAULT_BATCH_SIZE,
    id_prefix: str = "caption",
) -> list[CaptionBatch]:
    """Split ordered words into caption batches of at most batch_size words.

    Args:
        words: Ordered word timings (as produced by the normalizer).
        batch_size: Maximum words per batch; values <= 0 mean 1.
        id_prefix: Prefix for the generated batch ids.

    Returns:
        Caption batches covering the input exactly.
    """
    size = max(1, int(batch_size))
    batches = []
    for index, offset in enumerate(range(0, len(words), size)):
        chunk = words[offset:offset + size]
        tokens = tuple(
            CaptionToken(text=w.text, from_ms=w.start_ms, to_ms=w.end_ms)
            for w in chunk
        )
        batches.append(CaptionBatch(
            id=f"{id_prefix}-{index}",
            text=" ".join(w.text for w in chunk),
            start_ms=chunk[0].start_ms,
            end_ms=chunk[-1].end_ms,
            tokens=tokens,
        ))
    return batches


def flatten_batches(batches: Sequence[CaptionBatch]) -> list[WordTiming]:
    """Recover the word sequence from caption batches.

    Batches without tokens (e.g. parsed from a plain subtitle file)
    contribute one word spanning the whole batch.
    """
    words = []
    for batch in batches:
        if not batch.tokens:
            words.append(WordTiming(text=batch.text, start_ms=batch.start_ms, end_ms=batch.end_ms))
            continue
        for token in batch.tokens:
            words.append(WordTiming(text=token.text, start_ms=token.from_ms, end_ms=token.to_ms))
    return words
