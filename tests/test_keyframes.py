from __future__ import annotations

import math

import pytest

from cinecut.effects.expressions import EaseInOut, Lerp, Literal, Progress
from cinecut.effects.keyframes import (
    atempo_factors,
    audio_speed_filter,
    compile_keyframes,
    keyframe_expression,
    simple_zoom_filter,
    sort_keyframes,
    speed_expression,
    speed_filter,
    speed_ramp_segments,
    zoompan_filter,
)
from cinecut.errors import ValidationError
from cinecut.models import SpeedSegment, VideoInfo, ZoomPanKeyframe

VIDEO = VideoInfo(width=1920, height=1080, duration_seconds=10.0, fps=30.0)


def test_single_keyframe_compiles_to_a_constant() -> None:
    assert compile_keyframes([ZoomPanKeyframe(time_seconds=2.0, zoom=1.2)], 30, "zoom", 1.0) == "1.2"


def test_no_keyframes_use_the_default() -> None:
    assert compile_keyframes([], 30, "zoom", 1.0) == "1"


def test_two_keyframes_interpolate_linearly_between_frames() -> None:
    keyframes = [ZoomPanKeyframe(0.0, zoom=1.0), ZoomPanKeyframe(1.0, zoom=2.0)]

    expression = keyframe_expression(keyframes, 30, "zoom", 1.0)

    assert expression.render() == "if(between(on,0,30),1+(2-1)*(on-0)/30,2)"
    assert expression.evaluate({"on": 0}) == 1.0
    assert expression.evaluate({"on": 15}) == pytest.approx(1.5)
    assert expression.evaluate({"on": 30}) == 2.0
    assert expression.evaluate({"on": 200}) == 2.0


def test_zero_length_segment_jumps_to_the_end_value_without_dividing_by_zero() -> None:
    keyframes = [ZoomPanKeyframe(1.0, zoom=1.0), ZoomPanKeyframe(1.01, zoom=1.5)]

    rendered = compile_keyframes(keyframes, 30, "zoom", 1.0)

    assert "/0" not in rendered
    assert rendered == "if(between(on,30,30),1.5,1.5)"


def test_keyframes_are_sorted_and_duplicates_keep_the_last() -> None:
    ordered = sort_keyframes(
        [
            ZoomPanKeyframe(2.0, zoom=1.3),
            ZoomPanKeyframe(0.0, zoom=1.0),
            ZoomPanKeyframe(2.0, zoom=1.1),
        ]
    )

    assert [(kf.time_seconds, kf.zoom) for kf in ordered] == [(0.0, 1.0), (2.0, 1.1)]


def test_zoompan_filter_embeds_all_three_expressions() -> None:
    keyframes = [ZoomPanKeyframe(0.0), ZoomPanKeyframe(1.0, zoom=1.5, focus_x=0.25, focus_y=0.75)]

    text = zoompan_filter(keyframes, VIDEO)

    assert text.startswith("zoompan=z='if(between(on,0,30),1+(1.5-1)*(on-0)/30,1.5)'")
    assert ":x='iw/2-(iw/zoom/2)+((if(between(on,0,30),0.5+(0.25-0.5)*(on-0)/30,0.25))-0.5)*iw/zoom'" in text
    assert text.endswith(":d=300:s=1920x1080:fps=30")
    assert zoompan_filter([], VIDEO) == ""


def test_zoompan_filter_honours_output_size() -> None:
    assert ":s=1080x1920:" in zoompan_filter([ZoomPanKeyframe(0.0)], VIDEO, output_size=(1080, 1920))


def test_simple_zoom_filter_is_linear_over_the_clip() -> None:
    text = simple_zoom_filter(1.0, 1.5, 0.5, 0.5, VIDEO)

    assert text.startswith("zoompan=z='1+(1.5-1)*on/300'")
    assert ":d=300:s=1920x1080:fps=30" in text


def test_speed_expression_slows_inside_segments_and_keeps_gaps() -> None:
    expression = speed_expression([SpeedSegment(4.0, 6.0, 0.5), SpeedSegment(0.0, 2.0, 2.0)])

    assert expression.evaluate({"T": 1.0, "PTS": 10.0}) == pytest.approx(5.0)
    assert expression.evaluate({"T": 3.0, "PTS": 10.0}) == 10.0
    assert expression.evaluate({"T": 5.0, "PTS": 10.0}) == pytest.approx(20.0)
    assert speed_filter([SpeedSegment(0.0, 2.0, 2.0)]) == "setpts='if(between(T,0,2),PTS*0.5,PTS)'"
    assert speed_filter([]) == ""


def test_overlapping_speed_segments_resolve_to_the_earliest_start() -> None:
    expression = speed_expression([SpeedSegment(1.0, 3.0, 4.0), SpeedSegment(0.0, 2.0, 2.0)])

    assert expression.evaluate({"T": 1.5, "PTS": 8.0}) == pytest.approx(4.0)


def test_non_positive_speed_is_rejected() -> None:
    with pytest.raises(ValidationError):
        speed_filter([SpeedSegment(0.0, 1.0, 0.0)])


def test_speed_ramp_samples_each_segment_midpoint() -> None:
    segments = speed_ramp_segments(1.0, 2.0, 10.0)

    assert len(segments) == 10
    assert segments[0].start_seconds == 0.0
    assert segments[-1].end_seconds == 10.0
    assert segments[0].speed_factor == pytest.approx(1.05)
    assert segments[-1].speed_factor == pytest.approx(1.95)


@pytest.mark.parametrize("speed", [0.1, 0.25, 0.5, 0.75, 1.5, 2.0, 3.0, 4.0, 10.0])
def test_atempo_factors_stay_in_range_and_multiply_back(speed: float) -> None:
    factors = atempo_factors(speed)

    assert all(0.5 <= factor <= 2.0 for factor in factors)
    assert math.prod(factors) == pytest.approx(speed)


def test_audio_speed_filter_text() -> None:
    assert audio_speed_filter(4.0) == "atempo=2.0,atempo=2.0"
    assert audio_speed_filter(0.25) == "atempo=0.5,atempo=0.5"
    assert audio_speed_filter(1.5) == "atempo=1.5"
    assert audio_speed_filter(1.0) == ""

    with pytest.raises(ValidationError):
        audio_speed_filter(-1)


def test_ease_in_out_renders_valid_if_syntax_and_is_symmetric() -> None:
    eased = EaseInOut(Progress("n", 0, 10))

    assert eased.render() == "if(lt((n-0)/10,0.5),2*(n-0)/10*(n-0)/10,1-pow(-2*(n-0)/10+2,2)/2)"
    assert eased.evaluate({"n": 0}) == 0.0
    assert eased.evaluate({"n": 5}) == pytest.approx(0.5)
    assert eased.evaluate({"n": 10}) == pytest.approx(1.0)
    assert Lerp(0, 100, eased).evaluate({"n": 2}) == pytest.approx(8.0)
    assert Literal(3.0).render() == "3"


@pytest.mark.parametrize("speed", [float("inf"), float("-inf"), float("nan")])
def test_non_finite_speeds_are_rejected(speed: float) -> None:
    with pytest.raises(ValidationError, match="finite"):
        atempo_factors(speed)
    with pytest.raises(ValidationError, match="finite"):
        speed_filter([SpeedSegment(0.0, 1.0, speed)])
