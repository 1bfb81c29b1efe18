"""WebVTT export and import.

RULES:
- File starts with the ``WEBVTT`` header line
- Each cue carries the caption id as its identifier
- Times are ``HH:MM:SS.mmm``
- Cue text is written without blank lines (see base.cue_text)
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from reel_composer.core.ir import CaptionBatch
from reel_composer.core.normalizer import parse_subtitle_blocks
from reel_composer.formatters.base import BaseFormatter, FormatterOutput, cue_text
from reel_composer.formatters.styles import SubtitleStyle
from reel_composer.formatters.timestamps import format_vtt_timestamp


def captions_to_webvtt(captions: Sequence[CaptionBatch]) -> str:
    parts = ["WEBVTT\n"]
    for caption in captions:
        text = cue_text(caption.text)
        if not text:
            continue
        parts.append("{}\n{} --> {}\n{}\n".format(
            caption.id,
            format_vtt_timestamp(caption.start_ms),
            format_vtt_timestamp(caption.end_ms),
            text,
        ))
    return "\n".join(parts)


def parse_webvtt(text: str, id_prefix: str = "caption") -> List[CaptionBatch]:
    """Read WebVTT text back into captions (without word tokens)."""
    return [
        CaptionBatch(
            id=f"{id_prefix}-{i}",
            text=block.text,
            start_ms=block.start_ms,
            end_ms=block.end_ms,
        )
        for i, block in enumerate(parse_subtitle_blocks(text))
    ]


class WebVTTFormatter(BaseFormatter):
    """WebVTT for HTML5 video players."""

    @property
    def name(self) -> str:
        return "WebVTT"

    def format(
        self,
        captions: Sequence[CaptionBatch],
        style: Optional[SubtitleStyle] = None,
    ) -> List[FormatterOutput]:
        return [
            FormatterOutput(
                suffix="-captions.vtt",
                content=captions_to_webvtt(captions),
                media_type="text/vtt",
            )
        ]
