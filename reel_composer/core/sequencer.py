"""Lay out visual segments across the narration timeline.

WHY: Each narration unit (usually a sentence) gets its own image or clip,
and the visuals must cover the whole narration — no black frames at the
end, no drift from adding up rounded durations.

HOW: Units beyond the segment cap are merged into the last allowed unit.
Each unit gets an equal share of the narration unless it brings an explicit
duration; units without one share whatever time is left. Boundaries are
computed from running totals of the exact durations and rounded once, and
the final segment's end is set to the total duration itself.

RULES:
- One segment per unit when there are at most max_segments units
- More units than the cap → the excess is merged into the last segment
  (text joined with spaces, explicit durations summed)
- Explicit durations summing past the total are scaled down proportionally;
  units without one are scaled as if they held an equal share, never to zero
- Times are rounded to milliseconds; last end == total_duration_s exactly
- Every segment spans at least one millisecond; a narration too short for
  that many segments is merged down to fewer
- No units, a non-positive duration or a non-positive explicit unit
  duration → ValueError
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from reel_composer.config import (
    DEFAULT_ANIMATION,
    MAX_SEGMENTS,
    MIN_ESTIMATED_DURATION_S,
    SECONDS_PER_WORD_ESTIMATE,
)
from reel_composer.core.ir import Segment

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


@dataclass(frozen=True)
class NarrationUnit:
    """A sentence or phrase of the narration bound to an optional visual."""

    text: str
    media_ref: Optional[str] = None
    duration_s: Optional[float] = None


UnitLike = Union[str, NarrationUnit]


def split_narration(script: str) -> list[str]:
    """Split a script into sentence units on ``.``, ``!`` and ``?``."""
    return [part.strip() for part in _SENTENCE_SPLIT_RE.split(script) if part.strip()]


def estimate_narration_duration(script: str) -> float:
    """Rough narration length when no audio duration is known."""
    words = len(script.split())
    return max(MIN_ESTIMATED_DURATION_S, words * SECONDS_PER_WORD_ESTIMATE)


def _as_unit(unit: UnitLike) -> NarrationUnit:
    if isinstance(unit, NarrationUnit):
        return unit
    return NarrationUnit(text=str(unit))


def _merge_overflow(units: list[NarrationUnit], max_segments: int) -> list[NarrationUnit]:
    if len(units) <= max_segments:
        return units
    kept = units[:max_segments - 1]
    overflow = units[max_segments - 1:]

    duration: Optional[float] = None
    explicit = [u.duration_s for u in overflow if u.duration_s is not None]
    if len(explicit) == len(overflow):
        duration = sum(explicit)

    merged = NarrationUnit(
        text=" ".join(u.text for u in overflow),
        media_ref=overflow[0].media_ref,
        duration_s=duration,
    )
    return kept + [merged]


def _slot_durations(units: Sequence[NarrationUnit], total: float) -> list[float]:
    explicit_total = sum(u.duration_s for u in units if u.duration_s is not None)
    open_slots = sum(1 for u in units if u.duration_s is None)

    if open_slots and explicit_total < total:
        share = (total - explicit_total) / open_slots
        return [u.duration_s if u.duration_s is not None else share for u in units]

    # Open slots weigh an equal share so they survive the scaling
    nominal = total / len(units)
    weights = [u.duration_s if u.duration_s is not None else nominal for u in units]
    scale = total / sum(weights)
    return [weight * scale for weight in weights]


def _last_start_limit_ms(total_s: float) -> int:
    """Largest whole millisecond strictly before total_s."""
    limit = math.ceil(total_s * 1000) - 1
    while limit > 0 and limit / 1000 >= total_s:
        limit -= 1
    return limit


def _boundaries_ms(durations: Sequence[float], last_start_limit: int) -> list[int]:
    """Interior boundaries in whole milliseconds, strictly increasing.

    Each boundary is pushed past the previous one and held back far enough
    that every later segment keeps at least one millisecond.
    """
    count = len(durations)
    boundaries: list[int] = []
    previous = 0
    elapsed = 0.0
    for index, duration in enumerate(durations[:-1]):
        elapsed += duration
        upper = last_start_limit - (count - 2 - index)
        boundary = min(max(round(elapsed * 1000), previous + 1), upper)
        boundaries.append(boundary)
        previous = boundary
    return boundaries


def sequence_segments(
    units: Sequence[UnitLike],
    total_duration_s: float,
    max_segments: int = MAX_SEGMENTS,
    animation: str = DEFAULT_ANIMATION,
    id_prefix: str = "segment",
) -> list[Segment]:
    """Build a gap-free segment timeline covering [0, total_duration_s].

    Args:
        units: Ordered narration units; plain strings or NarrationUnit.
        total_duration_s: Narration length in seconds.
        max_segments: Cap on the number of segments (at least 1).
        animation: Animation name stored on every segment.
        id_prefix: Prefix for segment ids ("{prefix}-{order}").

    Returns:
        Segments ordered by ``order`` with contiguous time ranges.

    Raises:
        ValueError: If there are no units, the duration is not positive,
            or a unit carries a non-positive explicit duration.
    """
    if total_duration_s <= 0:
        raise ValueError("Narration duration must be positive, got {}".format(total_duration_s))
    normalized = [_as_unit(u) for u in units]
    if not normalized:
        raise ValueError("At least one narration unit is required")

    if any(u.duration_s is not None and u.duration_s <= 0 for u in normalized):
        raise ValueError("Explicit unit durations must be positive")

    last_start_limit = _last_start_limit_ms(total_duration_s)
    cap = min(max(1, max_segments), last_start_limit + 1)
    normalized = _merge_overflow(normalized, cap)
    durations = _slot_durations(normalized, total_duration_s)

    starts = [0.0] + [ms / 1000 for ms in _boundaries_ms(durations, last_start_limit)]
    ends = starts[1:] + [total_duration_s]

    return [
        Segment(
            id=f"{id_prefix}-{order}",
            text=unit.text,
            start_s=start,
            end_s=end,
            media_ref=unit.media_ref,
            animation=animation,
            order=order,
        )
        for order, (unit, start, end) in enumerate(zip(normalized, starts, ends))
    ]
