"""ASS karaoke export — burned-in captions with per-word highlighting.

WHY: The social-video look highlights each word as it is spoken. ASS
expresses that with ``{\\kNN}`` karaoke tags, which ffmpeg/libass render
directly, so a burned-in caption track needs nothing but this file.

HOW: One Dialogue event per caption batch, spanning the batch window. Each
word is prefixed with a ``{\\kNN}`` tag whose duration is the word's own
highlight window in centiseconds. The [Script Info] resolution and the
[V4+ Styles] line come from the SubtitleStyle.

RULES:
- NN = (to_ms - from_ms) / 10 rounded half up, never negative
- Batches without tokens get one karaoke tag spanning the whole batch
- Line breaks become ``\\N``; braces are stripped from caption text
- Without a style the "default" preset is used
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from reel_composer.core.batcher import flatten_batches
from reel_composer.core.ir import CaptionBatch
from reel_composer.formatters.base import BaseFormatter, FormatterOutput
from reel_composer.formatters.styles import STYLE_FORMAT_FIELDS, SubtitleStyle, get_preset
from reel_composer.formatters.timestamps import format_ass_timestamp

EVENT_FORMAT_FIELDS = "Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text"


def _clean_text(text: str, uppercase: bool) -> str:
    text = text.replace("{", "").replace("}", "").replace("\r\n", "\n").replace("\n", "\\N")
    return text.upper() if uppercase else text


def karaoke_duration_cs(from_ms: int, to_ms: int) -> int:
    """Karaoke tag length in centiseconds, rounded half up."""
    return (max(0, to_ms - from_ms) + 5) // 10


def karaoke_text(caption: CaptionBatch, uppercase: bool = False) -> str:
    """The Dialogue text of one batch: ``{\\kNN}word`` joined by spaces."""
    parts = []
    for word in flatten_batches([caption]):
        duration = karaoke_duration_cs(word.start_ms, word.end_ms)
        parts.append("{\\k%d}%s" % (duration, _clean_text(word.text, uppercase)))
    return " ".join(parts)


def captions_to_ass(captions: Sequence[CaptionBatch], style: SubtitleStyle) -> str:
    lines = [
        "[Script Info]",
        "ScriptType: v4.00+",
        "Collisions: Normal",
        f"PlayResX: {style.play_res_x}",
        f"PlayResY: {style.play_res_y}",
        "Timer: 100.0000",
        "",
        "[V4+ Styles]",
        f"Format: {STYLE_FORMAT_FIELDS}",
        style.to_ass_line(),
        "",
        "[Events]",
        f"Format: {EVENT_FORMAT_FIELDS}",
    ]
    for caption in captions:
        if not caption.text.strip():
            continue
        lines.append("Dialogue: 0,{},{},{},,0,0,0,,{}".format(
            format_ass_timestamp(caption.start_ms),
            format_ass_timestamp(caption.end_ms),
            style.name,
            karaoke_text(caption, style.uppercase),
        ))
    return "\n".join(lines) + "\n"


class ASSKaraokeFormatter(BaseFormatter):
    """Advanced SubStation Alpha with word-level karaoke timing."""

    @property
    def name(self) -> str:
        return "ASS Karaoke"

    def format(
        self,
        captions: Sequence[CaptionBatch],
        style: Optional[SubtitleStyle] = None,
    ) -> List[FormatterOutput]:
        return [
            FormatterOutput(
                suffix="-karaoke.ass",
                content=captions_to_ass(captions, style or get_preset("default")),
                media_type="text/x-ssa",
            )
        ]
