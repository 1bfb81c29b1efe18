"""ASS subtitle styles: named presets and styles derived from a Customization.

WHY: Burned-in karaoke captions need a [V4+ Styles] line — font, size,
colours, outline and placement. Users either pick one of the built-in looks
or tune the caption in the editor, and both must end up as the same kind of
style value.

HOW: SubtitleStyle is a plain dataclass holding every ASS style field we
emit. STYLE_PRESETS holds the built-in looks; PRESET_IDS maps the numeric
caption IDs the editor uses onto preset names. style_from_customization()
builds a style from the editor's caption settings.

RULES:
- ASS colours are ``&HAABBGGRR`` — alpha first, then blue, green, red
- hex_to_ass_colour() accepts ``#RGB`` and ``#RRGGBB`` (case-insensitive)
- Unknown preset names and IDs resolve to the "default" preset
- Customization ``position_from_bottom`` is a percent of the canvas height
"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from typing import Optional

from reel_composer.config import dimensions_for_aspect
from reel_composer.core.ir import Customization

_HEX_COLOUR_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

STYLE_FORMAT_FIELDS = (
    "Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, "
    "BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, "
    "Angle, BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, "
    "Encoding"
)


def hex_to_ass_colour(value: str, alpha: int = 0) -> str:
    """Convert ``#RRGGBB`` (or ``#RGB``) to ASS ``&HAABBGGRR``.

    Raises:
        ValueError: If the value is not a hex colour.
    """
    match = _HEX_COLOUR_RE.match(value.strip())
    if not match:
        raise ValueError(f"Not a hex colour: {value!r}")
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    red, green, blue = digits[0:2], digits[2:4], digits[4:6]
    return "&H{:02X}{}{}{}".format(alpha, blue, green, red).upper()


@dataclass
class SubtitleStyle:
    """One ASS style plus the script resolution it was designed for.

    ``primary_colour`` is the highlighted (already spoken) word colour in
    karaoke; ``secondary_colour`` is the colour before the highlight.
    """

    name: str
    font_name: str = "Roboto"
    font_size: int = 52
    primary_colour: str = "&H00FFFFFF"
    secondary_colour: str = "&H00FFFFFF"
    outline_colour: str = "&HFF000000"
    back_colour: str = "&H00000000"
    bold: bool = True
    italic: bool = False
    underline: bool = False
    strike_out: bool = False
    scale_x: int = 100
    scale_y: int = 100
    spacing: int = 0
    angle: int = 0
    border_style: int = 3
    outline: int = 4
    shadow: int = 2
    alignment: int = 2
    margin_l: int = 10
    margin_r: int = 10
    margin_v: int = 100
    encoding: int = 1
    play_res_x: int = 1920
    play_res_y: int = 1080
    uppercase: bool = False

    def to_ass_line(self) -> str:
        """Render the ``Style:`` line for the [V4+ Styles] section."""
        values = [
            self.name,
            self.font_name,
            self.font_size,
            self.primary_colour,
            self.secondary_colour,
            self.outline_colour,
            self.back_colour,
            -1 if self.bold else 0,
            -1 if self.italic else 0,
            -1 if self.underline else 0,
            -1 if self.strike_out else 0,
            self.scale_x,
            self.scale_y,
            self.spacing,
            self.angle,
            self.border_style,
            self.outline,
            self.shadow,
            self.alignment,
            self.margin_l,
            self.margin_r,
            self.margin_v,
            self.encoding,
        ]
        return "Style: " + ",".join(str(v) for v in values)


STYLE_PRESETS: dict[str, SubtitleStyle] = {
    "default": SubtitleStyle(name="DefaultStyle", font_name="Roboto", font_size=52),
    "youtuber": SubtitleStyle(name="YoutuberStyle", font_name="Knewave-Regular", font_size=48),
    "supreme": SubtitleStyle(
        name="SupremeStyle", font_name="PoetsenOne-Regular", font_size=60,
        primary_colour="&H000080FF",
    ),
    "neon": SubtitleStyle(
        name="NeonStyle", font_name="Arial", font_size=48, primary_colour="&H0000FF00",
    ),
    "glitch": SubtitleStyle(
        name="GlitchStyle", font_name="Courier New", font_size=48, primary_colour="&H00FF00FF",
    ),
    "fire": SubtitleStyle(
        name="FireStyle", font_name="Verdana", font_size=48, primary_colour="&H000045FF",
    ),
    "futuristic": SubtitleStyle(
        name="FuturisticStyle", font_name="Monaco", font_size=48, primary_colour="&H00FFFF00",
    ),
}

PRESET_IDS: dict[str, str] = {
    "1": "youtuber",
    "2": "supreme",
    "3": "neon",
    "4": "glitch",
    "5": "fire",
    "6": "futuristic",
}


def get_preset(name_or_id: Optional[str]) -> SubtitleStyle:
    """Look up a preset by name or numeric caption ID.

    Returns a copy so callers can tweak it freely.
    """
    key = PRESET_IDS.get(str(name_or_id), name_or_id) if name_or_id is not None else "default"
    preset = STYLE_PRESETS.get(key, STYLE_PRESETS["default"])
    return dataclasses.replace(preset)


def style_from_customization(
    customization: Customization,
    aspect: Optional[str] = None,
    name: str = "CustomStyle",
) -> SubtitleStyle:
    """Build an ASS style matching the editor's caption settings."""
    width, height = dimensions_for_aspect(aspect)
    return SubtitleStyle(
        name=name,
        font_name=customization.font_family,
        font_size=int(customization.font_size),
        primary_colour=hex_to_ass_colour(customization.active_word_color),
        secondary_colour=hex_to_ass_colour(customization.inactive_word_color),
        bold=customization.font_weight >= 600,
        margin_v=round(height * float(customization.position_from_bottom) / 100),
        play_res_x=width,
        play_res_y=height,
        uppercase=customization.text_transform == "uppercase",
    )
