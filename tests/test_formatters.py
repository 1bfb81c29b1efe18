"""Unit tests for all subtitle formatter modules.

WHY: Each formatter turns the corrected caption list into a file that an
editor, a browser player or libass must accept. A wrong timestamp or a
broken karaoke tag shows up as captions drifting out of sync with speech.

HOW: Tests are organized by format:
  - Timestamps: SRT / WebVTT / ASS clock formats
  - SRT and WebVTT: layout, blank-caption skipping, read-back fidelity
  - ASS karaoke: script header, style line, per-word {\\kNN} tags
  - Styles: colour conversion, presets, customization-derived styles
  - Registry: every key resolves to a working formatter

RULES:
- Read-back of exported SRT/WebVTT must match within 10 ms with identical text
- All tests build captions with the batcher from fixed word timings
"""

from __future__ import annotations

import pytest

from reel_composer.core.batcher import batch_words
from reel_composer.core.ir import CaptionBatch, CaptionToken, Customization, WordTiming
from reel_composer.formatters import FORMATTERS
from reel_composer.formatters.ass_karaoke import (
    ASSKaraokeFormatter,
    captions_to_ass,
    karaoke_duration_cs,
    karaoke_text,
)
from reel_composer.formatters.base import BaseFormatter, FormatterOutput
from reel_composer.formatters.srt import SRTFormatter, captions_to_srt, parse_srt
from reel_composer.formatters.styles import (
    PRESET_IDS,
    STYLE_PRESETS,
    get_preset,
    hex_to_ass_colour,
    style_from_customization,
)
from reel_composer.formatters.timestamps import (
    format_ass_timestamp,
    format_srt_timestamp,
    format_vtt_timestamp,
)
from reel_composer.formatters.webvtt import WebVTTFormatter, captions_to_webvtt, parse_webvtt


@pytest.fixture
def captions(three_words):
    return batch_words(three_words, 2)


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


class TestTimestamps:
    def test_srt(self):
        assert format_srt_timestamp(0) == "00:00:00,000"
        assert format_srt_timestamp(3_723_456) == "01:02:03,456"

    def test_vtt(self):
        assert format_vtt_timestamp(1_500) == "00:00:01.500"

    def test_negative_clamped(self):
        assert format_srt_timestamp(-20) == "00:00:00,000"

    def test_ass_centiseconds(self):
        assert format_ass_timestamp(1_234) == "0:00:01.23"
        assert format_ass_timestamp(3_600_000) == "1:00:00.00"

    def test_ass_rounds_half_up(self):
        assert format_ass_timestamp(1_235) == "0:00:01.24"
        assert format_ass_timestamp(59_996) == "0:01:00.00"


# ---------------------------------------------------------------------------
# SRT
# ---------------------------------------------------------------------------


class TestSRT:
    def test_layout(self, captions):
        assert captions_to_srt(captions) == (
            "1\n00:00:00,000 --> 00:00:01,000\nHello world\n"
            "\n"
            "2\n00:00:01,100 --> 00:00:01,600\ntoday\n"
        )

    def test_blank_captions_skipped_and_numbering_contiguous(self, make_caption):
        content = captions_to_srt([
            make_caption(0, 500, "one", 0),
            make_caption(500, 900, "  ", 1),
            make_caption(900, 1400, "two", 2),
        ])
        assert "2\n00:00:00,900 --> 00:00:01,400\ntwo" in content
        assert "3\n" not in content

    def test_read_back_matches(self, captions):
        parsed = parse_srt(captions_to_srt(captions))
        assert [c.text for c in parsed] == [c.text for c in captions]
        for original, back in zip(captions, parsed):
            assert abs(original.start_ms - back.start_ms) <= 10
            assert abs(original.end_ms - back.end_ms) <= 10

    def test_blank_line_inside_text_stays_in_one_cue(self, make_caption):
        content = captions_to_srt([
            make_caption(0, 1000, "first\n\nsecond", 0),
            make_caption(1000, 1500, "hi", 1),
        ])
        assert "00:00:00,000 --> 00:00:01,000\nfirst\nsecond\n" in content
        assert [c.text for c in parse_srt(content)] == ["first\nsecond", "hi"]

    def test_formatter_output(self, captions):
        outputs = SRTFormatter().format(captions)
        assert len(outputs) == 1
        assert outputs[0].suffix == "-captions.srt"
        assert outputs[0].media_type == "application/x-subrip"

    def test_empty_caption_list(self):
        assert captions_to_srt([]) == ""


# ---------------------------------------------------------------------------
# WebVTT
# ---------------------------------------------------------------------------


class TestWebVTT:
    def test_header_and_cue_ids(self, captions):
        content = captions_to_webvtt(captions)
        assert content.startswith("WEBVTT\n\n")
        assert "caption-0\n00:00:00.000 --> 00:00:01.000\nHello world\n" in content
        assert "caption-1\n00:00:01.100 --> 00:00:01.600\ntoday\n" in content

    def test_read_back_matches(self, captions):
        parsed = parse_webvtt(captions_to_webvtt(captions))
        assert [c.text for c in parsed] == [c.text for c in captions]
        for original, back in zip(captions, parsed):
            assert abs(original.start_ms - back.start_ms) <= 10
            assert abs(original.end_ms - back.end_ms) <= 10

    def test_blank_line_inside_text_stays_in_one_cue(self, make_caption):
        content = captions_to_webvtt([
            make_caption(0, 1000, "first\r\n  \nsecond ", 0),
            make_caption(1000, 1500, "hi", 1),
        ])
        assert [c.text for c in parse_webvtt(content)] == ["first\nsecond", "hi"]

    def test_formatter_output(self, captions):
        output = WebVTTFormatter().format(captions)[0]
        assert output.suffix == "-captions.vtt"
        assert output.media_type == "text/vtt"

    def test_empty_caption_list_is_header_only(self):
        assert captions_to_webvtt([]) == "WEBVTT\n"


# ---------------------------------------------------------------------------
# ASS karaoke
# ---------------------------------------------------------------------------


class TestASSKaraoke:
    def test_duration_in_centiseconds(self):
        assert karaoke_duration_cs(0, 500) == 50
        assert karaoke_duration_cs(0, 125) == 13
        assert karaoke_duration_cs(500, 400) == 0

    def test_karaoke_text_per_word(self, captions):
        assert karaoke_text(captions[0]) == "{\\k50}Hello {\\k50}world"

    def test_uppercase(self, captions):
        assert karaoke_text(captions[1], uppercase=True) == "{\\k50}TODAY"

    def test_tokenless_caption_gets_one_tag(self):
        caption = CaptionBatch(id="c", text="whole line", start_ms=0, end_ms=1200)
        assert karaoke_text(caption) == "{\\k120}whole line"

    def test_braces_stripped(self):
        caption = CaptionBatch(
            id="c", text="{bold}", start_ms=0, end_ms=300,
            tokens=(CaptionToken("{bold}", 0, 300),),
        )
        assert karaoke_text(caption) == "{\\k30}bold"

    def test_document_sections(self, captions):
        content = captions_to_ass(captions, get_preset("default"))
        assert content.startswith("[Script Info]\n")
        assert "PlayResX: 1920\nPlayResY: 1080" in content
        assert "[V4+ Styles]" in content
        assert "Style: DefaultStyle,Roboto,52," in content
        assert "[Events]" in content

    def test_dialogue_lines(self, captions):
        content = captions_to_ass(captions, get_preset("default"))
        dialogues = [line for line in content.splitlines() if line.startswith("Dialogue:")]
        assert dialogues == [
            "Dialogue: 0,0:00:00.00,0:00:01.00,DefaultStyle,,0,0,0,,{\\k50}Hello {\\k50}world",
            "Dialogue: 0,0:00:01.10,0:00:01.60,DefaultStyle,,0,0,0,,{\\k50}today",
        ]

    def test_formatter_defaults_to_default_preset(self, captions):
        output = ASSKaraokeFormatter().format(captions)[0]
        assert output.suffix == "-karaoke.ass"
        assert output.media_type == "text/x-ssa"
        assert "Style: DefaultStyle," in output.content

    def test_formatter_uses_given_style(self, captions):
        output = ASSKaraokeFormatter().format(captions, get_preset("neon"))[0]
        assert "Style: NeonStyle,Arial,48,&H0000FF00," in output.content
        assert ",NeonStyle,," in output.content


# ---------------------------------------------------------------------------
# Styles
# ---------------------------------------------------------------------------


class TestStyles:
    def test_hex_to_ass_colour_swaps_to_bgr(self):
        assert hex_to_ass_colour("#00ffea") == "&H00EAFF00"
        assert hex_to_ass_colour("#FF0000") == "&H000000FF"

    def test_short_hex(self):
        assert hex_to_ass_colour("#fff") == "&H00FFFFFF"

    def test_alpha(self):
        assert hex_to_ass_colour("#000000", alpha=255) == "&HFF000000"

    def test_invalid_colour_raises(self):
        with pytest.raises(ValueError):
            hex_to_ass_colour("red")

    def test_bold_flag_in_style_line(self):
        line = get_preset("default").to_ass_line()
        assert line.split(",")[7] == "-1"

    def test_every_preset_id_resolves(self):
        for caption_id, name in PRESET_IDS.items():
            assert get_preset(caption_id).name == STYLE_PRESETS[name].name

    def test_unknown_preset_falls_back_to_default(self):
        assert get_preset("sparkly").name == "DefaultStyle"
        assert get_preset(None).name == "DefaultStyle"

    def test_get_preset_returns_copy(self):
        style = get_preset("fire")
        style.font_size = 99
        assert STYLE_PRESETS["fire"].font_size == 48

    def test_style_from_customization(self):
        style = style_from_customization(Customization(), aspect="9:16")
        assert style.font_name == "Inter"
        assert style.font_size == 64
        assert style.primary_colour == "&H00FFFFFF"
        assert style.secondary_colour == "&H00EAFF00"
        assert style.bold is True
        assert (style.play_res_x, style.play_res_y) == (1080, 1920)
        assert style.margin_v == 173
        assert style.uppercase is True

    def test_light_weight_is_not_bold(self):
        style = style_from_customization(Customization(font_weight=400, text_transform="none"))
        assert style.bold is False
        assert style.uppercase is False


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_keys(self):
        assert set(FORMATTERS) == {"srt", "webvtt", "ass_karaoke"}

    @pytest.mark.parametrize("key", sorted(FORMATTERS))
    def test_every_formatter_produces_output(self, key, captions):
        formatter = FORMATTERS[key]()
        assert isinstance(formatter, BaseFormatter)
        assert formatter.name
        outputs = formatter.format(captions)
        assert outputs and all(isinstance(o, FormatterOutput) for o in outputs)
        assert all(o.suffix.startswith("-") for o in outputs)
        assert "today" in outputs[0].content.lower()

    def test_single_word_input(self):
        captions = batch_words([WordTiming("solo", 0, 700)], 3)
        for cls in FORMATTERS.values():
            assert "solo" in cls().format(captions)[0].content
