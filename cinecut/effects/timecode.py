from __future__ import annotations

import math
import re
from dataclasses import dataclass

from cinecut.errors import ValidationError

_TIMESTAMP_PATTERN = re.compile(r"^(?:(\d+):)?(\d{1,2}):(\d{1,2})(?:[.,](\d{1,3}))?$")
_DURATION_TOKEN_PATTERN = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_PLAIN_NUMBER_PATTERN = re.compile(r"^\d+(?:\.\d+)?$")

# Guards against 1.001 * 1000 == 1000.9999999999999 truncating a whole millisecond.
_MS_EPSILON = 1e-6


@dataclass(frozen=True, slots=True)
class TimeComponents:
    hours: int
    minutes: int
    seconds: int
    milliseconds: int


def split_time(total_seconds: float) -> TimeComponents:
    """Split seconds into truncated clock components (never rounded up)."""

    total_ms = int(math.floor(max(total_seconds, 0.0) * 1000 + _MS_EPSILON))
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    seconds, milliseconds = divmod(remainder, 1000)
    return TimeComponents(hours=hours, minutes=minutes, seconds=seconds, milliseconds=milliseconds)


def format_ass(total_seconds: float) -> str:
    """ASS timestamp ``H:MM:SS.CC`` (centiseconds, unpadded hours)."""

    parts = split_time(total_seconds)
    return f"{parts.hours}:{parts.minutes:02d}:{parts.seconds:02d}.{parts.milliseconds // 10:02d}"


def format_srt(total_seconds: float) -> str:
    """SRT timestamp ``HH:MM:SS,mmm``."""

    parts = split_time(total_seconds)
    return f"{parts.hours:02d}:{parts.minutes:02d}:{parts.seconds:02d},{parts.milliseconds:03d}"


def format_vtt(total_seconds: float) -> str:
    """WebVTT timestamp ``HH:MM:SS.mmm``."""

    parts = split_time(total_seconds)
    return f"{parts.hours:02d}:{parts.minutes:02d}:{parts.seconds:02d}.{parts.milliseconds:03d}"


def format_ffmpeg(total_seconds: float) -> str:
    return format_vtt(total_seconds)


def format_display(total_seconds: float) -> str:
    parts = split_time(total_seconds)
    if parts.hours > 0:
        return f"{parts.hours}h {parts.minutes}m {parts.seconds}s"
    if parts.minutes > 0:
        return f"{parts.minutes}m {parts.seconds}s"
    return f"{parts.seconds}s"


def format_display_precise(total_seconds: float) -> str:
    parts = split_time(total_seconds)
    seconds = f"{parts.seconds + parts.milliseconds / 1000:.1f}"
    if parts.hours > 0:
        return f"{parts.hours}h {parts.minutes}m {seconds}s"
    if parts.minutes > 0:
        return f"{parts.minutes}m {seconds}s"
    return f"{seconds}s"


def parse_timestamp(text: str) -> float:
    """Parse an ASS, SRT or VTT timestamp (or plain seconds) into seconds."""

    raw = text.strip()
    if _PLAIN_NUMBER_PATTERN.match(raw):
        return float(raw)

    match = _TIMESTAMP_PATTERN.match(raw)
    if match is None:
        raise ValidationError(f"Invalid timestamp: {text!r}", field="timestamp")

    hours, minutes, seconds, fraction = match.groups()
    total = int(hours or 0) * 3600 + int(minutes) * 60 + int(seconds)
    if fraction:
        total += int(fraction) / (10 ** len(fraction))
    return float(total)


def parse_duration(text: str) -> float:
    """Parse ``90``, ``1.5s``, ``250ms``, ``2m``, ``1h2m3s`` or ``00:01:30`` into seconds."""

    raw = text.strip().lower().replace(" ", "")
    if not raw:
        raise ValidationError("Duration must not be empty", field="duration")
    if _PLAIN_NUMBER_PATTERN.match(raw):
        return float(raw)
    if ":" in raw:
        return parse_timestamp(raw)

    units = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}
    consumed = 0
    total = 0.0
    for match in _DURATION_TOKEN_PATTERN.finditer(raw):
        if match.start() != consumed:
            break
        total += float(match.group(1)) * units[match.group(2)]
        consumed = match.end()

    if consumed != len(raw):
        raise ValidationError(f"Invalid duration: {text!r}", field="duration")
    return total


def seconds_to_frame(seconds: float, fps: float) -> int:
    return math.floor(seconds * fps)


def frame_to_seconds(frame: int, fps: float) -> float:
    if fps <= 0:
        raise ValidationError("fps must be positive", field="fps")
    return frame / fps


def total_frames(duration_seconds: float, fps: float) -> int:
    return math.ceil(duration_seconds * fps)


def format_number(value: float) -> str:
    """Render a number for filter text: ``1`` rather than ``1.0``, shortest repr otherwise."""

    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    if math.isfinite(value) and float(value).is_integer():
        return str(int(value))
    return repr(float(value))
