from __future__ import annotations

import re
from pathlib import Path

from cinecut.effects.timecode import format_number
from cinecut.models import CaptionStyle, resolve_caption_style

DEFAULT_FONT_FILE = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"

_Y_POSITIONS = {"top": "50", "center": "(h-th)/2", "bottom": "h-th-50"}
_X_POSITIONS = {"left": "50", "center": "(w-tw)/2", "right": "w-tw-50"}
_PATH_SPECIALS = re.compile(r"([\\:'])")


def drawtext_filter(
    text: str,
    start_seconds: float,
    end_seconds: float,
    style: CaptionStyle | None = None,
    font_file: str = DEFAULT_FONT_FILE,
) -> str:
    """Single burned-in caption; prefer ``subtitles_filter`` with an ASS file for many captions."""

    merged = resolve_caption_style(style)
    y_pos = _Y_POSITIONS.get(merged.position or "bottom", _Y_POSITIONS["bottom"])
    x_pos = _X_POSITIONS.get(merged.alignment or "center", _X_POSITIONS["center"])
    escaped = text.replace("'", "'\\''").replace(":", "\\:")

    parts = [
        f"drawtext=text='{escaped}'",
        f":fontfile={font_file}",
        f":fontsize={format_number(merged.font_size or 0)}",
        f":fontcolor={merged.font_color}",
        f":x={x_pos}",
        f":y={y_pos}",
        f":enable='between(t,{format_number(start_seconds)},{format_number(end_seconds)})'",
    ]
    if merged.outline:
        parts.append(f":borderw={format_number(merged.outline)}:bordercolor={merged.outline_color}")
    if merged.shadow:
        shadow = format_number(merged.shadow)
        parts.append(f":shadowx={shadow}:shadowy={shadow}")
    return "".join(parts)


def subtitles_filter(subtitle_path: str | Path) -> str:
    escaped = _PATH_SPECIALS.sub(r"\\\1", str(subtitle_path))
    return f"subtitles='{escaped}'"
