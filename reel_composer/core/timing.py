"""Caption timeline validation and correction.

WHY: Captions come from providers, from user edits and from parsed subtitle
files. Any of them can be out of order, overlap, or flash by too quickly to
read. The renderer and the subtitle exporters need a timeline where none of
that happens — and correcting it must never make things worse on a second
pass.

HOW: validate() reports every problem as a TimingViolation value without
changing anything. correct() builds a new list: clamps negative starts,
sorts by start, trims each caption that runs into the next one, then
stretches captions shorter than the minimum duration as far as the next
caption allows.

RULES:
- correct() is pure and idempotent: correct(correct(x)) == correct(x)
- After correct(), no caption overlaps the one after it
- Minimum duration never wins over non-overlap: a caption squeezed by its
  neighbour keeps the largest gap-free duration instead
- Tokens are clipped into their caption's corrected window
- Violations are values for reporting, never raised
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Optional, Sequence

from reel_composer.config import MIN_CAPTION_DURATION_MS
from reel_composer.core.ir import CaptionBatch, CaptionToken

OUT_OF_ORDER = "out_of_order"
NON_POSITIVE_DURATION = "non_positive_duration"
OVERLAP = "overlap"
EMPTY_TEXT = "empty_text"
NEGATIVE_START = "negative_start"


@dataclass(frozen=True)
class TimingViolation:
    """One problem found in a caption timeline.

    Attributes:
        kind: One of the module-level kind constants.
        index: Position of the offending caption in the input list.
        message: Human-readable description, 1-based like an editor shows.
    """

    kind: str
    index: int
    message: str


def validate(captions: Sequence[CaptionBatch]) -> list[TimingViolation]:
    """List every timing problem in the caption list, in input order."""
    violations = []

    for i, caption in enumerate(captions):
        n = i + 1
        if caption.start_ms < 0:
            violations.append(TimingViolation(
                NEGATIVE_START, i, f"Caption {n}: start time cannot be negative"
            ))
        if caption.start_ms >= caption.end_ms:
            violations.append(TimingViolation(
                NON_POSITIVE_DURATION, i, f"Caption {n}: start time must be before end time"
            ))
        if not caption.text.strip():
            violations.append(TimingViolation(
                EMPTY_TEXT, i, f"Caption {n}: text cannot be empty"
            ))

    for i in range(len(captions) - 1):
        current = captions[i]
        following = captions[i + 1]
        if following.start_ms < current.start_ms:
            violations.append(TimingViolation(
                OUT_OF_ORDER, i + 1, f"Caption {i + 2} starts before caption {i + 1}"
            ))
        if current.end_ms > following.start_ms:
            violations.append(TimingViolation(
                OVERLAP, i, f"Captions {i + 1} and {i + 2} overlap"
            ))

    return violations


def _clip_tokens(tokens: Sequence[CaptionToken], start_ms: int, end_ms: int) -> tuple[CaptionToken, ...]:
    clipped = []
    for token in tokens:
        from_ms = min(max(token.from_ms, start_ms), end_ms)
        to_ms = min(max(token.to_ms, from_ms), end_ms)
        clipped.append(CaptionToken(text=token.text, from_ms=from_ms, to_ms=to_ms))
    return tuple(clipped)


def correct(
    captions: Sequence[CaptionBatch],
    min_duration_ms: int = MIN_CAPTION_DURATION_MS,
) -> list[CaptionBatch]:
    """Return a corrected copy of the caption timeline.

    Args:
        captions: Captions in any order; not modified.
        min_duration_ms: Target minimum on-screen time per caption.

    Returns:
        New caption list sorted by start with overlaps removed.
    """
    clamped = [
        dataclasses.replace(c, start_ms=0) if c.start_ms < 0 else c
        for c in captions
    ]
    # sorted() is stable, so ties keep their relative order on every pass
    ordered = sorted(clamped, key=lambda c: c.start_ms)

    corrected = []
    for i, caption in enumerate(ordered):
        next_start: Optional[int] = ordered[i + 1].start_ms if i + 1 < len(ordered) else None
        end_ms = caption.end_ms

        if next_start is not None and end_ms > next_start:
            end_ms = next_start

        if end_ms - caption.start_ms < min_duration_ms:
            target = caption.start_ms + min_duration_ms
            if next_start is None:
                end_ms = target
            else:
                end_ms = max(end_ms, min(target, next_start))

        corrected.append(dataclasses.replace(
            caption,
            end_ms=end_ms,
            tokens=_clip_tokens(caption.tokens, caption.start_ms, end_ms),
        ))

    return corrected
