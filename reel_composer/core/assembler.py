"""Composition descriptor assembly — the renderer contract.

WHY: The external renderer is a separate program that only understands one
JSON document: segments with media URLs, captions with per-word highlight
windows, the soundtrack, the canvas geometry and the caption look. Building
that document in one place, from already-validated parts, keeps the
contract stable no matter how the parts were produced.

HOW: assemble_descriptor() checks the segment timeline, drops captions that
still have no duration, resolves canvas size from the aspect ratio, derives
the frame count, and returns a frozen CompositionDescriptor. to_dict()
produces the camelCase JSON shape, which is validated against the bundled
JSON Schema before it is handed out.

RULES:
- Pure: no I/O besides reading the bundled schema once
- Segments are emitted sorted by ``order``; start >= end → TimelineError
- Captions with start >= end are dropped with a warning, never rendered
- durationInFrames = ceil(audio * fps) if audio duration is known,
  else max(120, ceil(last segment end * fps)), else 300
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

import jsonschema

from reel_composer.config import DEFAULT_FPS, dimensions_for_aspect
from reel_composer.core.ir import CaptionBatch, Customization, Segment
from reel_composer.errors import TimelineError

logger = logging.getLogger(__name__)

_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "schemas" / "composition_descriptor.schema.json"

MIN_FRAMES_WITHOUT_AUDIO = 120
FALLBACK_FRAMES = 300


def _load_schema() -> dict[str, Any]:
    """Load the descriptor JSON schema from the package."""
    with open(_SCHEMA_PATH, encoding="utf-8") as f:
        return json.load(f)


_CACHED_SCHEMA: dict[str, Any] | None = None


def _get_schema() -> dict[str, Any]:
    global _CACHED_SCHEMA
    if _CACHED_SCHEMA is None:
        _CACHED_SCHEMA = _load_schema()
    return _CACHED_SCHEMA


@dataclass(frozen=True)
class CompositionDescriptor:
    """Immutable, renderer-ready view of a finished composition."""

    id: str
    script: str
    aspect: str
    width: int
    height: int
    fps: int
    duration_in_frames: int
    segments: tuple[Segment, ...] = ()
    captions: tuple[CaptionBatch, ...] = ()
    music_url: Optional[str] = None
    customization: Customization = field(default_factory=Customization)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "segments": [segment_to_dict(s) for s in self.segments],
            "captions": [caption_to_dict(c) for c in self.captions],
            "musicUrl": self.music_url,
            "script": self.script,
            "aspect": self.aspect,
            "width": self.width,
            "height": self.height,
            "fps": self.fps,
            "durationInFrames": self.duration_in_frames,
            "customization": self.customization.to_dict(),
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


def segment_to_dict(segment: Segment) -> dict[str, Any]:
    return {
        "id": segment.id,
        "text": segment.text,
        "start": segment.start_s,
        "end": segment.end_s,
        "mediaUrl": segment.media_ref,
        "animation": segment.animation,
        "order": segment.order,
    }


def caption_to_dict(caption: CaptionBatch) -> dict[str, Any]:
    return {
        "id": caption.id,
        "text": caption.text,
        "startMs": caption.start_ms,
        "endMs": caption.end_ms,
        "tokens": [
            {"text": t.text, "fromMs": t.from_ms, "toMs": t.to_ms}
            for t in caption.tokens
        ],
    }


def compute_duration_in_frames(
    audio_duration_s: Optional[float],
    segments: Sequence[Segment],
    fps: int = DEFAULT_FPS,
) -> int:
    """Total render length in frames."""
    if audio_duration_s:
        return max(1, math.ceil(audio_duration_s * fps))
    if segments:
        last_end = max(s.end_s for s in segments)
        return max(MIN_FRAMES_WITHOUT_AUDIO, math.ceil(last_end * fps))
    return FALLBACK_FRAMES


def validate_descriptor(data: dict[str, Any]) -> None:
    """Validate a descriptor dict against the bundled schema.

    Raises:
        jsonschema.ValidationError: If the document breaks the contract.
    """
    jsonschema.validate(instance=data, schema=_get_schema())


def assemble_descriptor(
    composition_id: str,
    script: str,
    aspect: str,
    segments: Sequence[Segment],
    captions: Sequence[CaptionBatch],
    audio_ref: Optional[str],
    customization: Optional[Customization] = None,
    audio_duration_s: Optional[float] = None,
    fps: int = DEFAULT_FPS,
) -> CompositionDescriptor:
    """Combine validated parts into the renderer descriptor.

    Args:
        composition_id: Durable composition ID.
        script: The narration script.
        aspect: Aspect ratio string ("9:16", "16:9", "1:1").
        segments: Sequenced segments with media references.
        captions: Corrected caption batches.
        audio_ref: Narration audio URL, emitted as ``musicUrl``.
        customization: Caption look; defaults when omitted.
        audio_duration_s: Narration length, used for the frame count.
        fps: Render frame rate.

    Returns:
        A schema-valid CompositionDescriptor.

    Raises:
        TimelineError: If a segment has a negative start or no duration.
        jsonschema.ValidationError: If the result breaks the schema.
    """
    ordered_segments = tuple(sorted(segments, key=lambda s: s.order))
    for segment in ordered_segments:
        if segment.start_s < 0:
            raise TimelineError(f"Segment {segment.id} starts before zero ({segment.start_s})")
        if segment.start_s >= segment.end_s:
            raise TimelineError(
                f"Segment {segment.id} has no duration ({segment.start_s} >= {segment.end_s})"
            )

    kept_captions = []
    for caption in captions:
        if caption.start_ms < 0 or caption.start_ms >= caption.end_ms:
            logger.warning(
                "Dropping caption %s with empty window %d-%d ms",
                caption.id, caption.start_ms, caption.end_ms,
            )
            continue
        kept_captions.append(caption)

    width, height = dimensions_for_aspect(aspect)
    descriptor = CompositionDescriptor(
        id=composition_id,
        script=script,
        aspect=aspect,
        width=width,
        height=height,
        fps=fps,
        duration_in_frames=compute_duration_in_frames(audio_duration_s, ordered_segments, fps),
        segments=ordered_segments,
        captions=tuple(kept_captions),
        music_url=audio_ref,
        customization=customization or Customization(),
    )
    validate_descriptor(descriptor.to_dict())
    return descriptor
