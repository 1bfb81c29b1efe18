"""Tests for the command-line interface.

HOW: main() is called with an argv list; files live in pytest's tmp_path.
Exit codes are checked through SystemExit.
"""

from __future__ import annotations

import json

import pytest

from reel_composer.cli import _resolve_output_path, build_parser, load_timing_input, main

OVERLAPPING_SRT = """1
00:00:00,000 --> 00:00:00,600
Hello there

2
00:00:00,500 --> 00:00:01,000
General Kenobi
"""

CLEAN_VTT = """WEBVTT

caption-0
00:00:00.000 --> 00:00:00.500
Hello there

caption-1
00:00:00.500 --> 00:00:01.000
General Kenobi
"""


@pytest.fixture
def words_file(tmp_path, sample_words):
    path = tmp_path / "reel.json"
    path.write_text(json.dumps(sample_words), encoding="utf-8")
    return path


class TestLoadTimingInput:
    def test_word_array(self, words_file):
        result = load_timing_input(words_file)
        assert result.words[0]["word"] == "Coffee"

    def test_object_with_words(self, tmp_path, sample_words):
        path = tmp_path / "t.json"
        path.write_text(json.dumps({"words": sample_words, "duration": 2.7}), encoding="utf-8")
        result = load_timing_input(path)
        assert len(result.words) == 7
        assert result.duration_s == 2.7

    def test_subtitle_file(self, tmp_path):
        path = tmp_path / "t.srt"
        path.write_text(OVERLAPPING_SRT, encoding="utf-8")
        assert load_timing_input(path).subtitle_text == OVERLAPPING_SRT

    def test_unsupported_type(self, tmp_path):
        path = tmp_path / "t.docx"
        path.write_text("x", encoding="utf-8")
        with pytest.raises(ValueError):
            load_timing_input(path)

    def test_bad_json_shape(self, tmp_path):
        path = tmp_path / "t.json"
        path.write_text('"just a string"', encoding="utf-8")
        with pytest.raises(ValueError):
            load_timing_input(path)


class TestCaptionsCommand:
    def test_writes_every_format(self, words_file, tmp_path):
        out = tmp_path / "out"
        main(["captions", str(words_file), "--output-dir", str(out)])
        names = sorted(p.name for p in out.iterdir())
        assert names == ["reel-captions.srt", "reel-captions.vtt", "reel-karaoke.ass"]

    def test_srt_content(self, words_file, tmp_path):
        main(["captions", str(words_file), "--formats", "srt", "--batch-size", "2"])
        content = (tmp_path / "reel-captions.srt").read_text(encoding="utf-8")
        assert content.startswith("1\n00:00:00,000 --> 00:00:00,600\nCoffee was\n")

    def test_style_option(self, words_file, tmp_path):
        main(["captions", str(words_file), "--formats", "ass_karaoke", "--style", "fire"])
        content = (tmp_path / "reel-karaoke.ass").read_text(encoding="utf-8")
        assert "Style: FireStyle," in content

    def test_existing_file_gets_numbered(self, words_file, tmp_path):
        main(["captions", str(words_file), "--formats", "srt"])
        main(["captions", str(words_file), "--formats", "srt"])
        assert (tmp_path / "reel-captions-2.srt").exists()

    def test_subtitle_input(self, tmp_path):
        path = tmp_path / "edit.vtt"
        path.write_text(CLEAN_VTT, encoding="utf-8")
        main(["captions", str(path), "--formats", "webvtt", "--output-dir", str(tmp_path / "o")])
        assert (tmp_path / "o" / "edit-captions.vtt").exists()

    def test_unknown_format_exits_1(self, words_file, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["captions", str(words_file), "--formats", "docx"])
        assert exc_info.value.code == 1
        assert "Unknown format(s): docx" in capsys.readouterr().err

    def test_missing_file_exits_1(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["captions", str(tmp_path / "missing.json")])
        assert exc_info.value.code == 1

    def test_empty_timing_exits_1(self, tmp_path, capsys):
        path = tmp_path / "empty.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(SystemExit) as exc_info:
            main(["captions", str(path)])
        assert exc_info.value.code == 1
        assert "Error:" in capsys.readouterr().err


class TestValidateCommand:
    def test_reports_overlap(self, tmp_path, capsys):
        path = tmp_path / "bad.srt"
        path.write_text(OVERLAPPING_SRT, encoding="utf-8")
        with pytest.raises(SystemExit) as exc_info:
            main(["validate", str(path)])
        assert exc_info.value.code == 1
        assert "overlap: Captions 1 and 2 overlap" in capsys.readouterr().out

    def test_clean_file_passes(self, tmp_path, capsys):
        path = tmp_path / "good.vtt"
        path.write_text(CLEAN_VTT, encoding="utf-8")
        main(["validate", str(path)])
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "OK: 2 captions" in captured.err


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_serve_defaults(self):
        args = build_parser().parse_args(["serve"])
        assert (args.host, args.port) == ("0.0.0.0", 8000)

    def test_resolve_output_path_without_conflict(self, tmp_path):
        assert _resolve_output_path("reel", "-captions.srt", tmp_path) == tmp_path / "reel-captions.srt"
