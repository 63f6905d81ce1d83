"""Keyframe expression compiler for zoom, pan, playback speed and audio tempo."""

from __future__ import annotations

import logging
import math
from typing import Literal as TypingLiteral, Sequence

from cinecut.effects.expressions import Between, Expr, Lerp, Literal, Product, Progress, Symbol, piecewise
from cinecut.effects.timecode import format_number, seconds_to_frame, total_frames
from cinecut.errors import ValidationError
from cinecut.models import SpeedSegment, VideoInfo, ZoomPanKeyframe

logger = logging.getLogger(__name__)

KeyframeProperty = TypingLiteral["zoom", "focus_x", "focus_y"]

ATEMPO_MIN = 0.5
ATEMPO_MAX = 2.0
SPEED_RAMP_SEGMENTS = 10


def sort_keyframes(keyframes: Sequence[ZoomPanKeyframe]) -> list[ZoomPanKeyframe]:
    """Sort by time; keyframes sharing a time collapse to the last one declared."""

    by_time: dict[float, ZoomPanKeyframe] = {}
    for keyframe in keyframes:
        by_time[keyframe.time_seconds] = keyframe
    if len(by_time) != len(keyframes):
        logger.debug("Collapsed %d duplicate keyframe time(s)", len(keyframes) - len(by_time))
    return sorted(by_time.values(), key=lambda keyframe: keyframe.time_seconds)


def keyframe_expression(
    keyframes: Sequence[ZoomPanKeyframe],
    fps: float,
    attribute: KeyframeProperty,
    default: float,
    variable: str = "on",
) -> Expr:
    """Piecewise-linear expression over output frame index for one keyframed attribute.

    ``keyframes`` must already be sorted. Frames outside every segment hold the
    last keyframe's value; a zero-length segment jumps straight to its end value.
    """

    if not keyframes:
        return Literal(default)
    if len(keyframes) == 1:
        return Literal(getattr(keyframes[0], attribute))

    branches: list[tuple[Expr, Expr]] = []
    for current, following in zip(keyframes, keyframes[1:]):
        start_frame = seconds_to_frame(current.time_seconds, fps)
        end_frame = seconds_to_frame(following.time_seconds, fps)
        start_value = getattr(current, attribute)
        end_value = getattr(following, attribute)

        if end_frame == start_frame:
            value: Expr = Literal(end_value)
        else:
            value = Lerp(start_value, end_value, Progress(variable, start_frame, end_frame))
        branches.append((Between(variable, start_frame, end_frame), value))

    return piecewise(branches, Literal(getattr(keyframes[-1], attribute)))


def compile_keyframes(
    keyframes: Sequence[ZoomPanKeyframe],
    fps: float,
    attribute: KeyframeProperty,
    default: float,
) -> str:
    return keyframe_expression(sort_keyframes(keyframes), fps, attribute, default).render()


def zoompan_filter(
    keyframes: Sequence[ZoomPanKeyframe],
    video: VideoInfo,
    output_size: tuple[int, int] | None = None,
) -> str:
    """Ken Burns ``zoompan`` filter driven by zoom/focus keyframes; empty input yields ``""``."""

    if not keyframes:
        return ""

    out_width, out_height = output_size or (video.width, video.height)
    frame_count = total_frames(video.duration_seconds, video.fps)
    ordered = sort_keyframes(keyframes)

    zoom_expr = keyframe_expression(ordered, video.fps, "zoom", 1.0).render()
    x_expr = keyframe_expression(ordered, video.fps, "focus_x", 0.5).render()
    y_expr = keyframe_expression(ordered, video.fps, "focus_y", 0.5).render()

    return "".join(
        [
            "zoompan=",
            f"z='{zoom_expr}'",
            f":x='iw/2-(iw/zoom/2)+(({x_expr})-0.5)*iw/zoom'",
            f":y='ih/2-(ih/zoom/2)+(({y_expr})-0.5)*ih/zoom'",
            f":d={frame_count}",
            f":s={out_width}x{out_height}",
            f":fps={format_number(video.fps)}",
        ]
    )


def simple_zoom_filter(
    start_zoom: float,
    end_zoom: float,
    center_x: float,
    center_y: float,
    video: VideoInfo,
    duration_seconds: float | None = None,
) -> str:
    """Linear zoom over the whole clip (or ``duration_seconds``) around a fixed centre."""

    frame_count = total_frames(duration_seconds if duration_seconds is not None else video.duration_seconds, video.fps)
    start = format_number(start_zoom)
    end = format_number(end_zoom)
    zoom_expr = f"{start}+({end}-{start})*on/{frame_count}"
    x_expr = f"iw/2-(iw/zoom/2)+{format_number(center_x - 0.5)}*iw/zoom"
    y_expr = f"ih/2-(ih/zoom/2)+{format_number(center_y - 0.5)}*ih/zoom"
    return (
        f"zoompan=z='{zoom_expr}':x='{x_expr}':y='{y_expr}'"
        f":d={frame_count}:s={video.width}x{video.height}:fps={format_number(video.fps)}"
    )


def speed_expression(segments: Sequence[SpeedSegment]) -> Expr:
    """``setpts`` expression; gaps keep PTS, overlaps resolve to the earliest-starting segment."""

    ordered = sorted(segments, key=lambda segment: segment.start_seconds)
    branches: list[tuple[Expr, Expr]] = []
    for segment in ordered:
        if not math.isfinite(segment.speed_factor) or segment.speed_factor <= 0:
            raise ValidationError(
                f"Speed factor must be a positive finite number, got {segment.speed_factor}",
                field="speed_factor",
            )
        factor = 1 / segment.speed_factor
        branches.append(
            (
                Between("T", segment.start_seconds, segment.end_seconds),
                Product(Symbol("PTS"), Literal(factor)),
            )
        )
    return piecewise(branches, Symbol("PTS"))


def speed_filter(segments: Sequence[SpeedSegment]) -> str:
    if not segments:
        return ""
    return f"setpts='{speed_expression(segments).render()}'"


def speed_ramp_segments(
    start_speed: float,
    end_speed: float,
    duration_seconds: float,
    segment_count: int = SPEED_RAMP_SEGMENTS,
) -> list[SpeedSegment]:
    """Approximate a linear ramp with equal sub-segments sampled at their midpoints.

    This is a deliberate linear approximation rather than integrating 1/speed.
    """

    segments: list[SpeedSegment] = []
    for index in range(segment_count):
        t1 = (index / segment_count) * duration_seconds
        t2 = ((index + 1) / segment_count) * duration_seconds
        midpoint = (t1 + t2) / 2
        speed = start_speed + ((end_speed - start_speed) * midpoint) / duration_seconds
        segments.append(SpeedSegment(start_seconds=t1, end_seconds=t2, speed_factor=speed))
    return segments


def speed_ramp_filter(
    start_speed: float,
    end_speed: float,
    video: VideoInfo,
    segment_count: int = SPEED_RAMP_SEGMENTS,
) -> str:
    if video.duration_seconds <= 0:
        return ""
    return speed_filter(speed_ramp_segments(start_speed, end_speed, video.duration_seconds, segment_count))


def atempo_factors(speed: float) -> list[float]:
    """Split ``speed`` into atempo steps that each stay inside [0.5, 2.0]."""

    if not math.isfinite(speed) or speed <= 0:
        raise ValidationError(f"Audio speed must be a positive finite number, got {speed}", field="speed")

    factors: list[float] = []
    remaining = speed
    while remaining > ATEMPO_MAX:
        factors.append(ATEMPO_MAX)
        remaining /= ATEMPO_MAX
    while remaining < ATEMPO_MIN:
        factors.append(ATEMPO_MIN)
        remaining /= ATEMPO_MIN
    if remaining != 1.0:
        factors.append(remaining)
    return factors


def audio_speed_filter(speed: float) -> str:
    return ",".join(f"atempo={_tempo_text(factor)}" for factor in atempo_factors(speed))


def _tempo_text(factor: float) -> str:
    if factor in (ATEMPO_MAX, ATEMPO_MIN):
        return f"{factor:.1f}"
    return format_number(factor)
