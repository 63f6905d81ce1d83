from __future__ import annotations

import pytest

from cinecut.effects.reframe import (
    dynamic_crop_filter,
    extract_focus_points,
    optimal_crop_window,
    weighted_centroid,
)
from cinecut.ingest.events import CameraMark, CaptionSet, CursorClick, CursorMove, InputFill
from cinecut.models import FocusPoint, Selector


def test_focus_points_are_normalized_and_weighted_by_event_type() -> None:
    events = [
        CursorClick(ts=1000, to=(960, 540)),
        CursorMove(ts=1500, to=(480, 270)),
        InputFill(ts=2000, selector=Selector(placeholder="Email"), text="a@b.c"),
        CameraMark(ts=3000, zoom=1.2, region=(0, 0, 400, 200)),
        CaptionSet(ts=4000, text="ignored"),
    ]

    points = extract_focus_points(events, 1920, 1080)

    assert points == [
        FocusPoint(1.0, 0.5, 0.5, 1.0),
        FocusPoint(1.5, 0.25, 0.25, 0.5),
        FocusPoint(2.0, 0.5, 0.5, 0.3),
        FocusPoint(3.0, 200 / 1920, 100 / 1080, 1.0),
    ]


def test_weighted_centroid() -> None:
    centroid = weighted_centroid([FocusPoint(0, 0.0, 0.0, 1.0), FocusPoint(1, 1.0, 1.0, 3.0)])

    assert centroid == pytest.approx((0.75, 0.75))
    assert weighted_centroid([]) is None


def test_optimal_crop_window_follows_focus_and_stays_in_bounds() -> None:
    right_edge = optimal_crop_window([FocusPoint(0, 0.99, 0.5, 1.0)], 1920, 1080, 9 / 16)
    centre = optimal_crop_window([], 1920, 1080, 9 / 16)

    assert right_edge.x + right_edge.width == 1920
    assert centre.x == (1920 - centre.width) // 2


def test_dynamic_crop_with_one_point_is_static_and_centred() -> None:
    assert dynamic_crop_filter([FocusPoint(0, 0.1, 0.1, 1.0)], 1920, 1080, 1080, 1080, 30) == "crop=1080:1080:420:0"


def test_dynamic_crop_eases_between_focus_points() -> None:
    points = [FocusPoint(0.0, 0.0, 0.5, 1.0), FocusPoint(1.0, 1.0, 0.5, 1.0)]

    text = dynamic_crop_filter(points, 1920, 1080, 1080, 1080, 30)

    assert text.startswith("crop=1080:1080:'if(between(n,0,30),0+(840-0)*if(lt(")
    assert text.endswith(",420)':'if(between(n,0,30),0+(0-0)*if(lt((n-0)/30,0.5),2*(n-0)/30*(n-0)/30,1-pow(-2*(n-0)/30+2,2)/2),0)'")
    assert "?" not in text


def test_dynamic_crop_zero_length_segment_holds_target_position() -> None:
    points = [FocusPoint(1.0, 0.0, 0.5, 1.0), FocusPoint(1.01, 1.0, 0.5, 1.0)]

    assert dynamic_crop_filter(points, 1920, 1080, 1080, 1080, 30) == (
        "crop=1080:1080:'if(between(n,30,30),840,420)':'if(between(n,30,30),0,0)'"
    )
