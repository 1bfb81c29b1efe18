"""Intermediate representation dataclasses for captions, segments and compositions.

WHY: Speech-timing providers, asset generators, subtitle exporters and the
renderer all talk about the same handful of things — timed words, caption
phrases, visual segments and the composition that ties them together. One
well-typed representation decouples every stage from every other stage.

HOW: Frozen dataclasses. Collections are tuples so a value handed to a
later stage cannot be changed behind the caller's back; stages that need
a different value build a new one with dataclasses.replace().

RULES:
- Caption times are integer milliseconds; segment times are float seconds
- CaptionBatch start/end are derived from its tokens when built by the batcher
- Composition status only moves forward: draft → processing → completed | failed
- Customization keys are snake_case here and camelCase on the wire
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields
from typing import Any, Optional

from reel_composer.config import DEFAULT_ANIMATION, DEFAULT_ASPECT, DEFAULT_BATCH_SIZE


@dataclass(frozen=True)
class WordTiming:
    """One transcribed word with its speech offset in milliseconds."""

    text: str
    start_ms: int
    end_ms: int
    confidence: float = 1.0

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms


@dataclass(frozen=True)
class CaptionToken:
    """A word inside a caption batch, carrying its own highlight window."""

    text: str
    from_ms: int
    to_ms: int


@dataclass(frozen=True)
class CaptionBatch:
    """A group of words shown together as one on-screen caption.

    WHY: Short-form video shows two to four words at a time and highlights
    each one as it is spoken. The batch gives the on-screen window; the
    tokens give the per-word highlight windows inside it.

    RULES:
    - start_ms < end_ms once the timeline has been corrected
    - tokens are in spoken order; their text joined by spaces is ``text``
    """

    id: str
    text: str
    start_ms: int
    end_ms: int
    tokens: tuple[CaptionToken, ...] = ()

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms


@dataclass(frozen=True)
class Segment:
    """One visual unit (image or clip) shown for a time range of the narration."""

    id: str
    text: str
    start_s: float
    end_s: float
    media_ref: Optional[str] = None
    animation: str = DEFAULT_ANIMATION
    order: int = 0

    @property
    def duration_s(self) -> float:
        return self.end_s - self.start_s


# ---------------------------------------------------------------------------
# Customization
# ---------------------------------------------------------------------------

_CAMEL_OVERRIDES = {
    "max_width_percent": "captionMaxWidthPercent",
    "horizontal_align": "captionHorizontalAlign",
    "padding_px": "captionPaddingPx",
    "border_radius_px": "captionBorderRadiusPx",
    "background_color": "captionBackgroundColor",
    "background_opacity": "captionBackgroundOpacity",
    "backdrop_blur_px": "captionBackdropBlurPx",
    "horizontal_offset_px": "captionHorizontalOffsetPx",
    "box_shadow": "captionBoxShadow",
}


def _camel(name: str) -> str:
    if name in _CAMEL_OVERRIDES:
        return _CAMEL_OVERRIDES[name]
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass(frozen=True)
class CaptionBackground:
    """Optional box drawn behind the caption text."""

    horizontal_align: str = "center"
    max_width_percent: float = 90.0
    padding_px: int = 20
    border_radius_px: int = 10
    background_color: str = "#000000"
    background_opacity: float = 0.7
    backdrop_blur_px: int = 10
    horizontal_offset_px: int = 0
    box_shadow: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CaptionBackground:
        return cls(**_pick_fields(cls, data))


@dataclass(frozen=True)
class Customization:
    """Caption look and audio mix settings handed through to the renderer.

    Defaults match what the renderer falls back to when a key is missing.
    ``music_volume`` is on a 0–10 scale.
    """

    font_size: int = 64
    font_weight: int = 700
    font_family: str = "Inter"
    text_transform: str = "uppercase"
    active_word_color: str = "#ffffff"
    inactive_word_color: str = "#00ffea"
    position_from_bottom: float = 9
    words_per_batch: int = DEFAULT_BATCH_SIZE
    show_emojis: bool = True
    music_volume: float = 8
    background: Optional[CaptionBackground] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            _camel(f.name): getattr(self, f.name)
            for f in fields(self)
            if f.name != "background"
        }
        if self.background is not None:
            data["background"] = self.background.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Customization:
        """Build from camelCase or snake_case keys; unknown keys are ignored.

        Background styling may be nested under ``background`` or given flat
        with the renderer's ``caption*`` prefixed names.
        """
        if not data:
            return cls()
        values = _pick_fields(cls, data)
        values.pop("background", None)
        background_data = data.get("background")
        if background_data is None:
            flat = _pick_fields(CaptionBackground, data, camel_only=True)
            background_data = flat or None
        if background_data is not None:
            values["background"] = CaptionBackground.from_dict(background_data)
        return cls(**values)


def _pick_fields(cls: type, data: dict[str, Any], camel_only: bool = False) -> dict[str, Any]:
    """Collect dataclass field values from snake_case or camelCase keys."""
    picked = {}
    for f in fields(cls):
        camel = _camel(f.name)
        if camel in data and data[camel] is not None:
            picked[f.name] = data[camel]
        elif not camel_only and f.name in data and data[f.name] is not None:
            picked[f.name] = data[f.name]
    return picked


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


class CompositionStatus(str, enum.Enum):
    """Lifecycle of the durable composition record.

    Inherits from str so values serialize cleanly to JSON.
    """

    DRAFT = "draft"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (CompositionStatus.COMPLETED, CompositionStatus.FAILED)

    def can_transition_to(self, target: CompositionStatus) -> bool:
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[CompositionStatus, frozenset] = {
    CompositionStatus.DRAFT: frozenset({CompositionStatus.PROCESSING}),
    CompositionStatus.PROCESSING: frozenset(
        {CompositionStatus.COMPLETED, CompositionStatus.FAILED}
    ),
    CompositionStatus.COMPLETED: frozenset(),
    CompositionStatus.FAILED: frozenset(),
}


@dataclass(frozen=True)
class Composition:
    """The durable record of one generation job.

    WHY: The job that fills a composition is ephemeral; the composition is
    what survives — script, audio, generated segments, captions and the
    customization the renderer will use.

    RULES:
    - segments and captions are replaced as whole tuples, never patched
    - error is only set when status is FAILED
    - audio_duration_s is None until audio has been generated or measured
    """

    id: str
    script: str
    voice: Optional[str] = None
    audio_ref: Optional[str] = None
    audio_duration_s: Optional[float] = None
    aspect: str = DEFAULT_ASPECT
    segments: tuple[Segment, ...] = ()
    captions: tuple[CaptionBatch, ...] = ()
    customization: Customization = field(default_factory=Customization)
    status: CompositionStatus = CompositionStatus.DRAFT
    final_video_ref: Optional[str] = None
    error: Optional[str] = None

    def to_summary(self) -> dict[str, Any]:
        """JSON-ready view used in progress events and API responses."""
        return {
            "id": self.id,
            "script": self.script,
            "voice": self.voice,
            "audioRef": self.audio_ref,
            "audioDuration": self.audio_duration_s,
            "aspect": self.aspect,
            "status": self.status.value,
            "segmentCount": len(self.segments),
            "captionCount": len(self.captions),
            "finalVideoRef": self.final_video_ref,
            "error": self.error,
        }
