"""Focus-point tracking for static and animated aspect-ratio reframing."""

from __future__ import annotations

import math
from typing import Sequence

from cinecut.effects.aspect import compute_crop
from cinecut.effects.expressions import Between, EaseInOut, Expr, Lerp, Literal, Progress, piecewise
from cinecut.effects.timecode import seconds_to_frame
from cinecut.ingest.events import CameraMark, CursorClick, CursorMove, InputFill, UesEvent
from cinecut.models import CropWindow, FocusPoint

CLICK_WEIGHT = 1.0
MOVE_WEIGHT = 0.5
INPUT_WEIGHT = 0.3
CAMERA_MARK_WEIGHT = 1.0


def extract_focus_points(events: Sequence[UesEvent], video_width: int, video_height: int) -> list[FocusPoint]:
    """Derive weighted attention points from cursor, input and camera events."""

    points: list[FocusPoint] = []
    for event in events:
        time_seconds = event.ts / 1000

        if isinstance(event, CursorClick) and event.to is not None:
            points.append(
                FocusPoint(time_seconds, event.to[0] / video_width, event.to[1] / video_height, CLICK_WEIGHT)
            )
        elif isinstance(event, CursorMove) and event.to is not None:
            points.append(
                FocusPoint(time_seconds, event.to[0] / video_width, event.to[1] / video_height, MOVE_WEIGHT)
            )
        elif isinstance(event, CameraMark) and event.region is not None:
            rx, ry, rw, rh = event.region
            points.append(
                FocusPoint(
                    time_seconds,
                    (rx + rw / 2) / video_width,
                    (ry + rh / 2) / video_height,
                    CAMERA_MARK_WEIGHT,
                )
            )
        elif isinstance(event, InputFill) and event.selector is not None:
            # The field's on-screen position is unknown here, so assume the frame centre.
            points.append(FocusPoint(time_seconds, 0.5, 0.5, INPUT_WEIGHT))

    return points


def weighted_centroid(points: Sequence[FocusPoint]) -> tuple[float, float] | None:
    total_weight = sum(point.weight for point in points)
    if total_weight <= 0:
        return None
    x = sum(point.x * point.weight for point in points) / total_weight
    y = sum(point.y * point.weight for point in points) / total_weight
    return x, y


def optimal_crop_window(
    points: Sequence[FocusPoint],
    source_width: int,
    source_height: int,
    target_ratio: float,
) -> CropWindow:
    """One static crop centred on the weighted centroid of all focus points."""

    base = compute_crop(source_width, source_height, target_ratio)
    centroid = weighted_centroid(points)
    if centroid is None:
        return base

    center_x = centroid[0] * source_width
    center_y = centroid[1] * source_height
    x = math.floor(center_x - base.width / 2)
    y = math.floor(center_y - base.height / 2)
    x = max(0, min(x, source_width - base.width))
    y = max(0, min(y, source_height - base.height))
    return CropWindow(x=x, y=y, width=base.width, height=base.height)


def dynamic_crop_filter(
    points: Sequence[FocusPoint],
    source_width: int,
    source_height: int,
    crop_width: int,
    crop_height: int,
    fps: float,
) -> str:
    """Crop that eases between focus points; fewer than two points gives a centred static crop."""

    default_x = (source_width - crop_width) // 2
    default_y = (source_height - crop_height) // 2
    if len(points) < 2:
        return f"crop={crop_width}:{crop_height}:{default_x}:{default_y}"

    ordered = sorted(points, key=lambda point: point.time_seconds)
    max_x = source_width - crop_width
    max_y = source_height - crop_height

    x_branches: list[tuple[Expr, Expr]] = []
    y_branches: list[tuple[Expr, Expr]] = []
    for current, following in zip(ordered, ordered[1:]):
        start_frame = seconds_to_frame(current.time_seconds, fps)
        end_frame = seconds_to_frame(following.time_seconds, fps)

        x1 = _clamp(current.x * source_width - crop_width / 2, 0, max_x)
        x2 = _clamp(following.x * source_width - crop_width / 2, 0, max_x)
        y1 = _clamp(current.y * source_height - crop_height / 2, 0, max_y)
        y2 = _clamp(following.y * source_height - crop_height / 2, 0, max_y)

        window = Between("n", start_frame, end_frame)
        if end_frame == start_frame:
            x_branches.append((window, Literal(x2)))
            y_branches.append((window, Literal(y2)))
            continue

        ease = EaseInOut(Progress("n", start_frame, end_frame))
        x_branches.append((window, Lerp(x1, x2, ease)))
        y_branches.append((window, Lerp(y1, y2, ease)))

    x_expr = piecewise(x_branches, Literal(default_x)).render()
    y_expr = piecewise(y_branches, Literal(default_y)).render()
    return f"crop={crop_width}:{crop_height}:'{x_expr}':'{y_expr}'"


def _clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(value, maximum))
