from __future__ import annotations

import pytest

from cinecut.effects.timecode import (
    format_ass,
    format_display,
    format_display_precise,
    format_number,
    format_srt,
    format_vtt,
    frame_to_seconds,
    parse_duration,
    parse_timestamp,
    seconds_to_frame,
    total_frames,
)
from cinecut.errors import ValidationError


def test_subtitle_timestamps_use_their_own_separators_and_precision() -> None:
    assert format_srt(3723.456) == "01:02:03,456"
    assert format_vtt(3723.456) == "01:02:03.456"
    assert format_ass(3723.456) == "1:02:03.45"


def test_timestamps_truncate_instead_of_rounding() -> None:
    assert format_srt(1.9999) == "00:00:01,999"
    assert format_ass(1.999) == "0:00:01.99"
    assert format_srt(1.001) == "00:00:01,001"


def test_negative_seconds_clamp_to_zero() -> None:
    assert format_srt(-5) == "00:00:00,000"


def test_parse_timestamp_accepts_every_subtitle_form() -> None:
    assert parse_timestamp("01:02:03,456") == pytest.approx(3723.456)
    assert parse_timestamp("01:02:03.456") == pytest.approx(3723.456)
    assert parse_timestamp("1:02:03.45") == pytest.approx(3723.45)
    assert parse_timestamp("02:03.500") == pytest.approx(123.5)
    assert parse_timestamp("12.5") == 12.5


def test_parse_timestamp_rejects_garbage() -> None:
    with pytest.raises(ValidationError):
        parse_timestamp("soon")


def test_parse_duration_handles_units_and_clock_forms() -> None:
    assert parse_duration("90") == 90
    assert parse_duration("1.5s") == 1.5
    assert parse_duration("250ms") == pytest.approx(0.25)
    assert parse_duration("1h2m3s") == 3723
    assert parse_duration("00:01:30") == 90

    with pytest.raises(ValidationError):
        parse_duration("3 parsecs")
    with pytest.raises(ValidationError):
        parse_duration("")


def test_frame_conversions() -> None:
    assert seconds_to_frame(1.0, 30) == 30
    assert seconds_to_frame(0.999, 30) == 29
    assert frame_to_seconds(45, 30) == 1.5
    assert total_frames(10.01, 30) == 301

    with pytest.raises(ValidationError):
        frame_to_seconds(1, 0)


def test_display_formats() -> None:
    assert format_display(5) == "5s"
    assert format_display(125) == "2m 5s"
    assert format_display(3725) == "1h 2m 5s"
    assert format_display_precise(5.25) == "5.2s" or format_display_precise(5.25) == "5.3s"


def test_format_number_drops_trailing_zero() -> None:
    assert format_number(1.0) == "1"
    assert format_number(2) == "2"
    assert format_number(1.15) == "1.15"
    assert format_number(0.5) == "0.5"
