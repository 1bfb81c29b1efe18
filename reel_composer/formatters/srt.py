"""SubRip (SRT) export and import.

WHY: SRT is what every editor and upload form accepts. Exported files must
also read back in, so the validate command and the tests can check them.

RULES:
- Cues are numbered from 1 in timeline order
- Blank captions are skipped; numbering stays contiguous
- Blank lines inside a caption are dropped so the cue stays whole
- Times are ``HH:MM:SS,mmm``; parsing is exact to the millisecond
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from reel_composer.core.ir import CaptionBatch
from reel_composer.core.normalizer import parse_subtitle_blocks
from reel_composer.formatters.base import BaseFormatter, FormatterOutput, cue_text
from reel_composer.formatters.styles import SubtitleStyle
from reel_composer.formatters.timestamps import format_srt_timestamp


def captions_to_srt(captions: Sequence[CaptionBatch]) -> str:
    blocks = []
    index = 0
    for caption in captions:
        text = cue_text(caption.text)
        if not text:
            continue
        index += 1
        blocks.append("{}\n{} --> {}\n{}\n".format(
            index,
            format_srt_timestamp(caption.start_ms),
            format_srt_timestamp(caption.end_ms),
            text,
        ))
    return "\n".join(blocks)


def parse_srt(text: str, id_prefix: str = "caption") -> List[CaptionBatch]:
    """Read SRT text back into captions (without word tokens)."""
    return [
        CaptionBatch(
            id=f"{id_prefix}-{i}",
            text=block.text,
            start_ms=block.start_ms,
            end_ms=block.end_ms,
        )
        for i, block in enumerate(parse_subtitle_blocks(text))
    ]


class SRTFormatter(BaseFormatter):
    """Plain SRT, one cue per caption batch."""

    @property
    def name(self) -> str:
        return "SubRip (SRT)"

    def format(
        self,
        captions: Sequence[CaptionBatch],
        style: Optional[SubtitleStyle] = None,
    ) -> List[FormatterOutput]:
        return [
            FormatterOutput(
                suffix="-captions.srt",
                content=captions_to_srt(captions),
                media_type="application/x-subrip",
            )
        ]
