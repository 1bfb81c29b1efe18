"""Speech-timing normalization: provider output → ordered WordTiming list.

WHY: Speech-to-text providers return timing in different shapes. Some give
a word array with second offsets, others only give block subtitles (SRT or
WebVTT) where a whole phrase shares one time range. Everything downstream
(batching, correction, export) needs one canonical, ordered list of words
in milliseconds.

HOW: Word arrays are converted field by field. Block subtitles are parsed
into SubtitleBlock values, then each block's time range is split evenly
across its whitespace-delimited words. Both paths go through the same
finalizing pass: drop blanks, drop exact duplicates, sort, and clamp
overlapping ends to the next word's start.

RULES:
- Input word offsets are float seconds; output is integer milliseconds
- Word text may come under "word" or "text"; missing end means zero length
- Block-level timing is an explicit approximation, logged at debug level
- No words, or a total duration of zero → EmptyTimingData
- Output is sorted ascending and non-overlapping
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from reel_composer.core.ir import WordTiming
from reel_composer.errors import EmptyTimingData

logger = logging.getLogger(__name__)

# HH:MM:SS,mmm / HH:MM:SS.mmm / MM:SS.mmm — hours optional, 1–3 fraction digits
_TIMESTAMP = r"(?:(\d+):)?(\d{1,2}):(\d{2})[,.](\d{1,3})"
_CUE_TIMING_RE = re.compile(r"^\s*" + _TIMESTAMP + r"\s*-->\s*" + _TIMESTAMP)


@dataclass(frozen=True)
class SubtitleBlock:
    """One cue of a block subtitle file."""

    start_ms: int
    end_ms: int
    text: str


@dataclass
class TimingResult:
    """What a speech-timing provider returns for one audio file.

    Attributes:
        words: Word dicts ``{word|text, start, end, confidence?}`` in seconds.
        subtitle_text: SRT or WebVTT text when only block timing exists.
        text: Plain transcript text, informational only.
        duration_s: Audio duration reported by the provider, if any.
    """

    words: List[dict] = field(default_factory=list)
    subtitle_text: Optional[str] = None
    text: Optional[str] = None
    duration_s: Optional[float] = None


def _seconds_to_ms(value: Any) -> int:
    return int(round(float(value) * 1000))


def _timestamp_to_ms(hours: Optional[str], minutes: str, seconds: str, fraction: str) -> int:
    millis = int(fraction.ljust(3, "0"))
    return ((int(hours or 0) * 60 + int(minutes)) * 60 + int(seconds)) * 1000 + millis


def parse_subtitle_blocks(text: str) -> list[SubtitleBlock]:
    """Parse SRT or WebVTT text into timed blocks.

    WHY: Some providers only return block subtitles, and exported subtitle
    files must be re-readable to check round-trip fidelity.

    HOW: Scans for ``start --> end`` lines. The non-empty lines that follow
    are the block text (joined with newlines). Anything else — the WEBVTT
    header, cue numbers, NOTE and STYLE blocks, cue settings after the end
    timestamp — is skipped.

    RULES:
    - Fractions may use "," (SRT) or "." (WebVTT) and 1–3 digits
    - Hours are optional (WebVTT short form MM:SS.mmm)
    - Blocks with empty text are kept; callers decide what to do with them
    """
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    blocks = []
    i = 0
    while i < len(lines):
        match = _CUE_TIMING_RE.match(lines[i])
        i += 1
        if not match:
            continue

        start_ms = _timestamp_to_ms(*match.group(1, 2, 3, 4))
        end_ms = _timestamp_to_ms(*match.group(5, 6, 7, 8))

        text_lines = []
        while i < len(lines) and lines[i].strip():
            if _CUE_TIMING_RE.match(lines[i]):
                break
            text_lines.append(lines[i].strip())
            i += 1

        blocks.append(SubtitleBlock(start_ms=start_ms, end_ms=end_ms, text="\n".join(text_lines)))
    return blocks


def _finalize(words: Iterable[WordTiming]) -> list[WordTiming]:
    """Drop blanks and duplicates, sort, and remove overlaps."""
    seen = set()
    unique = []
    for w in words:
        text = w.text.strip()
        if not text:
            continue
        start = max(0, w.start_ms)
        end = max(start, w.end_ms)
        key = (text, start, end)
        if key in seen:
            continue
        seen.add(key)
        unique.append(WordTiming(
            text=text,
            start_ms=start,
            end_ms=end,
            confidence=w.confidence,
        ))

    unique.sort(key=lambda w: (w.start_ms, w.end_ms))

    result = []
    for i, w in enumerate(unique):
        if i + 1 < len(unique) and w.end_ms > unique[i + 1].start_ms:
            w = WordTiming(
                text=w.text,
                start_ms=w.start_ms,
                end_ms=unique[i + 1].start_ms,
                confidence=w.confidence,
            )
        result.append(w)

    if not result:
        raise EmptyTimingData("Transcript contains no words")
    if max(w.end_ms for w in result) <= 0:
        raise EmptyTimingData("Transcript has zero total duration")
    return result


def normalize_word_timings(words: Iterable[dict]) -> list[WordTiming]:
    """Convert a provider word array (seconds) into ordered WordTimings (ms).

    Args:
        words: Dicts with ``word`` or ``text``, ``start``, ``end`` and an
               optional ``confidence``. Non-dict entries are ignored.

    Returns:
        Sorted, deduplicated, non-overlapping WordTiming list.

    Raises:
        EmptyTimingData: If no word survives or the total duration is zero.
    """
    converted = []
    for item in words:
        if not isinstance(item, dict):
            continue
        text = item.get("word", item.get("text"))
        if not isinstance(text, str) or not text.strip():
            continue
        start = item.get("start") or 0
        end = item.get("end")
        if end is None:
            end = start
        converted.append(WordTiming(
            text=text,
            start_ms=_seconds_to_ms(start),
            end_ms=_seconds_to_ms(end),
            confidence=float(item.get("confidence", 1.0)),
        ))
    return _finalize(converted)


def _distribute_block(block: SubtitleBlock) -> list[WordTiming]:
    tokens = block.text.split()
    if not tokens:
        return []
    span = max(0, block.end_ms - block.start_ms)
    count = len(tokens)
    return [
        WordTiming(
            text=token,
            start_ms=block.start_ms + round(k * span / count),
            end_ms=block.start_ms + round((k + 1) * span / count),
        )
        for k, token in enumerate(tokens)
    ]


def normalize_subtitle_text(text: str) -> list[WordTiming]:
    """Derive approximate word timings from block subtitle text.

    Each block's duration is split evenly across its words. This is an
    approximation, not measured per-word timing.

    Raises:
        EmptyTimingData: If the text holds no timed words.
    """
    blocks = parse_subtitle_blocks(text)
    logger.debug("Distributing block timing evenly across words in %d blocks", len(blocks))
    words = []
    for block in blocks:
        words.extend(_distribute_block(block))
    return _finalize(words)


def normalize_transcription(result: TimingResult) -> list[WordTiming]:
    """Normalize a provider result, preferring per-word timing.

    Falls back to block subtitle text when the word array is missing or
    yields nothing usable.

    Raises:
        EmptyTimingData: If neither source yields timing.
    """
    if result.words:
        try:
            return normalize_word_timings(result.words)
        except EmptyTimingData:
            if not result.subtitle_text:
                raise
            logger.warning("Word array unusable, falling back to block subtitle timing")

    if result.subtitle_text:
        return normalize_subtitle_text(result.subtitle_text)

    raise EmptyTimingData("Transcript contains no timing data")


def estimate_word_timings(script: str, duration_s: float) -> list[WordTiming]:
    """Spread the script's words evenly across a known narration duration.

    Last-resort timing when the speech-timing provider returns nothing
    usable but the audio duration is known.
    """
    if duration_s <= 0:
        raise EmptyTimingData("Cannot estimate timing for zero duration")
    block = SubtitleBlock(start_ms=0, end_ms=_seconds_to_ms(duration_s), text=script)
    return _finalize(_distribute_block(block))
