from __future__ import annotations

import math
from typing import Literal as TypingLiteral, Sequence

from cinecut.effects.aspect import compute_crop, crop_filter_string
from cinecut.effects.timecode import format_number
from cinecut.models import MotionBlurSegment

ColorGradePreset = TypingLiteral["none", "warm", "cool", "dramatic"]

_COLOR_GRADES: dict[str, str] = {
    "warm": "colorbalance=rs=0.1:gs=0:bs=-0.1:rm=0.1:gm=0:bm=-0.05",
    "cool": "colorbalance=rs=-0.1:gs=0:bs=0.1:rm=-0.05:gm=0:bm=0.1",
    "dramatic": "eq=contrast=1.1:saturation=0.9:brightness=-0.05",
}


def fade_filter(
    fade_in: float | None = None,
    fade_out: float | None = None,
    duration_seconds: float | None = None,
) -> str:
    """Video fade in/out; fade out needs the clip duration to place its start."""

    filters: list[str] = []
    if fade_in and fade_in > 0:
        filters.append(f"fade=t=in:st=0:d={format_number(fade_in)}")
    if fade_out and fade_out > 0 and duration_seconds:
        start = max(0.0, duration_seconds - fade_out)
        filters.append(f"fade=t=out:st={format_number(start)}:d={format_number(fade_out)}")
    return ",".join(filters)


def crossfade_filter(duration_seconds: float, first_label: str, second_label: str, output_label: str) -> str:
    return f"{first_label}{second_label}xfade=transition=fade:duration={format_number(duration_seconds)}:offset=0{output_label}"


def scale_filter(width: int, height: int, maintain_aspect: bool = True) -> str:
    """Scale to ``width``x``height``, letterboxing when the aspect must be preserved."""

    if maintain_aspect:
        return (
            f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
            f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2"
        )
    return f"scale={width}:{height}"


def crop_filter(
    source_width: int,
    source_height: int,
    target_ratio: float,
    focus_x: float = 0.5,
    focus_y: float = 0.5,
) -> str:
    return crop_filter_string(compute_crop(source_width, source_height, target_ratio, focus_x, focus_y))


def vignette_filter(intensity: float = 0.3) -> str:
    angle = math.pi / 4 + intensity * (math.pi / 4)
    return f"vignette=angle={format_number(angle)}"


def color_grade_filter(preset: str) -> str:
    return _COLOR_GRADES.get(preset, "")


def motion_blur_filter(strength: float = 0.5) -> str:
    """Frame blend trail; strength is clamped to [0, 1]."""

    blend = max(0.0, min(1.0, strength)) * 0.5
    return f"tblend=all_mode=average:all_opacity={format_number(blend)}"


def adaptive_motion_blur_filter(fps: float = 30) -> str:
    return f"minterpolate=fps={format_number(fps * 2)}:mi_mode=blend,fps={format_number(fps)}"


def segmented_motion_blur_filter(segments: Sequence[MotionBlurSegment]) -> str:
    """Blend only inside the given windows, at the mean strength of all segments."""

    if not segments:
        return ""

    enable = "+".join(
        f"between(t,{format_number(segment.start_seconds)},{format_number(segment.end_seconds)})"
        for segment in segments
    )
    strengths = [max(0.0, min(1.0, segment.strength)) for segment in segments]
    blend = (sum(strengths) / len(strengths)) * 0.5
    return f"tblend=all_mode=average:all_opacity={format_number(blend)}:enable='{enable}'"
