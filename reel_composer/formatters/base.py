"""Abstract base formatter and output container.

WHY: Every subtitle format consumes the same corrected caption list but
produces different file content. This base class enforces one interface so
the CLI and the API can export any format generically.

HOW: BaseFormatter is an ABC with a ``name`` property and a ``format()``
method. FormatterOutput is a plain dataclass that bundles a file suffix
with its content and MIME type.

RULES:
- Subclasses MUST implement ``name`` (human-readable) and ``format()``
- ``format()`` returns a list; every current formatter returns one item
- ``suffix`` starts with a hyphen, e.g. ``"-captions.srt"``
- The caller is responsible for prepending the output filename stem
- Formatters never correct timing; pass captions through core.timing first
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence

from reel_composer.core.ir import CaptionBatch

if TYPE_CHECKING:
    from reel_composer.formatters.styles import SubtitleStyle


@dataclass
class FormatterOutput:
    """One output file produced by a formatter.

    Attributes:
        suffix: File suffix appended to the output stem,
                e.g. ``"-captions.srt"`` → ``"reel-captions.srt"``.
        content: The file content.
        media_type: MIME type for the content, e.g. ``"application/x-subrip"``.
    """

    suffix: str
    content: str
    media_type: str


class BaseFormatter(ABC):
    """Abstract base for all subtitle formatters.

    To add a new output format:
    1. Create a new file in formatters/
    2. Subclass BaseFormatter
    3. Implement format() and name
    4. Register in FORMATTERS dict in formatters/__init__.py
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable format name, e.g. 'SubRip (SRT)'."""

    @abstractmethod
    def format(
        self,
        captions: Sequence[CaptionBatch],
        style: Optional[SubtitleStyle] = None,
    ) -> list[FormatterOutput]:
        """Serialize captions into one or more output files.

        Args:
            captions: Corrected caption batches in timeline order.
            style: Visual style; formats without styling ignore it.

        Returns:
            List of FormatterOutput objects.
        """


def cue_text(text: str) -> str:
    """Caption text as it can sit inside one SRT/WebVTT cue.

    A blank line ends a cue, so blank lines are dropped and each line is
    stripped; what a parser reads back is exactly what was written.
    """
    return "\n".join(line.strip() for line in text.splitlines() if line.strip())
