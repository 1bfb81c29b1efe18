"""Subtitle formatter registry — pluggable format hub.

WHY: The CLI and the API need a single lookup to find the right formatter
by name. A central dict makes it trivial to add new formats: create the
formatter class, import it here, add one line.

HOW: FORMATTERS maps string keys to formatter *classes* (not instances).
Callers instantiate as needed: ``formatter = FORMATTERS["srt"]()``.

RULES:
- Keys are snake_case identifiers (used in CLI flags and URL paths)
- Values are BaseFormatter subclasses (not instances)
- Every formatter listed here must be importable without side effects
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from reel_composer.formatters.ass_karaoke import ASSKaraokeFormatter
from reel_composer.formatters.srt import SRTFormatter
from reel_composer.formatters.webvtt import WebVTTFormatter

if TYPE_CHECKING:
    from reel_composer.formatters.base import BaseFormatter

FORMATTERS: dict[str, type[BaseFormatter]] = {
    "srt": SRTFormatter,
    "webvtt": WebVTTFormatter,
    "ass_karaoke": ASSKaraokeFormatter,
}
