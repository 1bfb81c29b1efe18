"""Subtitle timestamp formatting for SRT, WebVTT and ASS.

All three take integer milliseconds. Negative input is clamped to zero.
"""

from __future__ import annotations


def _split(ms: int) -> tuple[int, int, int, int]:
    ms = max(0, int(ms))
    hours, rest = divmod(ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, millis = divmod(rest, 1000)
    return hours, minutes, seconds, millis


def format_srt_timestamp(ms: int) -> str:
    """``HH:MM:SS,mmm``"""
    hours, minutes, seconds, millis = _split(ms)
    return "{:02d}:{:02d}:{:02d},{:03d}".format(hours, minutes, seconds, millis)


def format_vtt_timestamp(ms: int) -> str:
    """``HH:MM:SS.mmm``"""
    hours, minutes, seconds, millis = _split(ms)
    return "{:02d}:{:02d}:{:02d}.{:03d}".format(hours, minutes, seconds, millis)


def format_ass_timestamp(ms: int) -> str:
    """``H:MM:SS.cc`` — ASS uses centiseconds, rounded half up."""
    centis = (max(0, int(ms)) + 5) // 10
    hours, rest = divmod(centis, 360_000)
    minutes, rest = divmod(rest, 6000)
    seconds, centis = divmod(rest, 100)
    return "{:d}:{:02d}:{:02d}.{:02d}".format(hours, minutes, seconds, centis)
