"""Command-line interface for the reel composer.

WHY: Caption timing work often happens outside the web app: turning a
transcription result into subtitle files, checking a hand-edited SRT for
overlaps, or running the API locally. The CLI exposes those operations
without any provider credentials.

HOW: argparse with three subcommands:

  captions INPUT   word-timing JSON or SRT/VTT → normalize → batch →
                   correct → SRT / WebVTT / ASS karaoke files
  validate INPUT   report timing problems in an SRT/VTT file
  serve            run the HTTP API with uvicorn

Status messages go to stderr; validation reports go to stdout.

RULES:
- --formats: comma-separated formatter keys (default: all registered)
- Output naming: {stem}{suffix}, numeric suffix for conflicts (-captions-2.srt)
- validate exits with status 1 when any violation is found
- Input or timing errors exit with status 1 and a one-line message
- --verbose turns on debug logging
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from reel_composer.config import DEFAULT_BATCH_SIZE, MIN_CAPTION_DURATION_MS
from reel_composer.core.batcher import batch_words
from reel_composer.core.normalizer import TimingResult, normalize_transcription
from reel_composer.core.timing import correct, validate
from reel_composer.errors import ComposerError
from reel_composer.formatters import FORMATTERS
from reel_composer.formatters.base import FormatterOutput
from reel_composer.formatters.srt import parse_srt
from reel_composer.formatters.styles import STYLE_PRESETS, get_preset
from reel_composer.formatters.webvtt import parse_webvtt

SUBTITLE_SUFFIXES = {".srt", ".vtt"}


def _status(msg: str) -> None:
    """Print a status message to stderr so stdout stays pipeable."""
    print(msg, file=sys.stderr, flush=True)


def _resolve_output_path(stem: str, suffix: str, output_dir: Path) -> Path:
    """Return ``{stem}{suffix}`` in output_dir, or a numbered variant if taken.

    e.g. ``reel-captions.srt`` → ``reel-captions-2.srt``
    """
    base_path = output_dir / "{}{}".format(stem, suffix)
    if not base_path.exists():
        return base_path

    dot_idx = suffix.rfind(".")
    if dot_idx > 0:
        suffix_name, suffix_ext = suffix[:dot_idx], suffix[dot_idx:]
    else:
        suffix_name, suffix_ext = suffix, ""

    counter = 2
    while True:
        candidate = output_dir / "{}{}-{}{}".format(stem, suffix_name, counter, suffix_ext)
        if not candidate.exists():
            return candidate
        counter += 1


def _save_output(output: FormatterOutput, stem: str, output_dir: Path) -> Path:
    path = _resolve_output_path(stem, output.suffix, output_dir)
    path.write_text(output.content, encoding="utf-8")
    return path


def load_timing_input(path: Path) -> TimingResult:
    """Read a timing source file into a TimingResult.

    Accepts a JSON word array, a JSON object with ``words`` (and optional
    ``text`` / ``duration``), or SRT/WebVTT subtitle text.

    Raises:
        ValueError: If the file type or JSON shape is not recognised.
    """
    suffix = path.suffix.lower()
    if suffix in SUBTITLE_SUFFIXES:
        return TimingResult(subtitle_text=path.read_text(encoding="utf-8"))
    if suffix != ".json":
        raise ValueError("Unsupported input type '{}'; expected .json, .srt or .vtt".format(suffix))

    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        return TimingResult(words=data)
    if isinstance(data, dict):
        return TimingResult(
            words=data.get("words") or [],
            subtitle_text=data.get("subtitles"),
            text=data.get("text"),
            duration_s=data.get("duration"),
        )
    raise ValueError("JSON input must be a word array or an object with 'words'")


def _parse_format_keys(raw: Optional[str]) -> List[str]:
    if not raw:
        return list(FORMATTERS.keys())
    keys = [k.strip() for k in raw.split(",") if k.strip()]
    unknown = [k for k in keys if k not in FORMATTERS]
    if unknown:
        raise ValueError("Unknown format(s): {}. Available: {}".format(
            ", ".join(unknown), ", ".join(sorted(FORMATTERS.keys()))
        ))
    return keys


def _cmd_captions(args: argparse.Namespace) -> None:
    input_path = Path(args.input_file)
    if not input_path.is_file():
        print("Error: file not found: {}".format(input_path), file=sys.stderr)
        sys.exit(1)

    try:
        format_keys = _parse_format_keys(args.formats)
        result = load_timing_input(input_path)
        words = normalize_transcription(result)
    except (ValueError, ComposerError) as e:
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)

    batches = batch_words(words, args.batch_size)
    captions = correct(batches, args.min_duration_ms)
    _status("Built {} captions from {} words".format(len(captions), len(words)))

    output_dir = Path(args.output_dir) if args.output_dir else input_path.parent
    output_dir.mkdir(parents=True, exist_ok=True)
    style = get_preset(args.style)
    stem = input_path.stem

    saved: List[Path] = []
    for key in format_keys:
        formatter = FORMATTERS[key]()
        for output in formatter.format(captions, style):
            path = _save_output(output, stem, output_dir)
            saved.append(path)
            _status("  Saved: {}".format(path.name))

    _status("Done! Saved {} file(s) to {}".format(len(saved), output_dir))


def _cmd_validate(args: argparse.Namespace) -> None:
    input_path = Path(args.input_file)
    if not input_path.is_file():
        print("Error: file not found: {}".format(input_path), file=sys.stderr)
        sys.exit(1)

    text = input_path.read_text(encoding="utf-8")
    if input_path.suffix.lower() == ".vtt":
        captions = parse_webvtt(text)
    else:
        captions = parse_srt(text)

    violations = validate(captions)
    for violation in violations:
        print("{}: {}".format(violation.kind, violation.message))

    if violations:
        _status("{} problem(s) in {} captions".format(len(violations), len(captions)))
        sys.exit(1)
    _status("OK: {} captions, no timing problems".format(len(captions)))


def _cmd_serve(args: argparse.Namespace) -> None:
    from reel_composer.server.app import run_api
    run_api(host=args.host, port=args.port)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser; kept separate from main() for tests."""
    parser = argparse.ArgumentParser(
        prog="reel_composer",
        description="Caption timing, subtitle export and composition API for narrated short videos.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    captions = subparsers.add_parser(
        "captions",
        help="Build caption files from word timings or a subtitle file.",
    )
    captions.add_argument("input_file", help="Word-timing JSON, .srt or .vtt file.")
    captions.add_argument(
        "--formats",
        default=None,
        help="Comma-separated list of output formats. "
             "Available: {}. Default: all.".format(", ".join(sorted(FORMATTERS.keys()))),
    )
    captions.add_argument(
        "--batch-size",
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help="Words per caption (default: %(default)s).",
    )
    captions.add_argument(
        "--min-duration-ms",
        type=int,
        default=MIN_CAPTION_DURATION_MS,
        help="Minimum caption duration in milliseconds (default: %(default)s).",
    )
    captions.add_argument(
        "--style",
        default="default",
        help="ASS style preset name or caption ID. "
             "Presets: {}.".format(", ".join(sorted(STYLE_PRESETS.keys()))),
    )
    captions.add_argument(
        "--output-dir",
        default=None,
        help="Directory to save output files (default: same as input file).",
    )
    captions.set_defaults(handler=_cmd_captions)

    validate_cmd = subparsers.add_parser(
        "validate",
        help="Report timing problems in an SRT or WebVTT file.",
    )
    validate_cmd.add_argument("input_file", help="Path to an .srt or .vtt file.")
    validate_cmd.set_defaults(handler=_cmd_validate)

    serve = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: %(default)s).")
    serve.set_defaults(handler=_cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m reel_composer`` and the console script."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    args.handler(args)
