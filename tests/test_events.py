from __future__ import annotations

import json
from pathlib import Path

import pytest

from cinecut.errors import EventLogError, ValidationError
from cinecut.ingest.events import (
    CameraMark,
    CaptionClear,
    CaptionSet,
    CursorClick,
    CursorMove,
    InputFill,
    StepStart,
    UnknownEvent,
    parse_event,
    parse_event_log,
    read_event_log,
    serialize_event_log,
)

SAMPLE_LOG = "\n".join(
    [
        json.dumps({"meta": {"name": "signup", "viewport": {"w": 1280, "h": 720}}}),
        "",
        json.dumps({"ts": 0, "t": "step.start", "data": {"comment": "Open the signup page"}}),
        json.dumps({"ts": 500, "t": "cursor.move", "from": [0, 0], "to": [640, 360], "ease": "easeInOut"}),
        json.dumps({"ts": 900, "t": "cursor.click", "to": [640, 360], "button": "left"}),
        json.dumps({"ts": 1200, "t": "input.fill", "selector": {"placeholder": "Password"}, "text": "***"}),
        json.dumps({"ts": 1500, "t": "camera.mark", "zoom": 1.3, "focus": {"region": [10, 20, 300, 200]}}),
        json.dumps({"ts": 1600, "t": "camera.mark", "data": {"durationMs": 0}}),
        json.dumps({"ts": 2000, "t": "caption.set", "text": "Create an account"}),
        json.dumps({"ts": 4000, "t": "caption.clear"}),
        json.dumps({"ts": 4500, "t": "page.scroll", "delta": 300}),
        "   ",
    ]
)


def test_parse_event_log_reads_meta_and_typed_events() -> None:
    log = parse_event_log(SAMPLE_LOG)

    assert log.meta.name == "signup"
    assert (log.meta.viewport_width, log.meta.viewport_height) == (1280, 720)
    assert [type(event) for event in log.events] == [
        StepStart,
        CursorMove,
        CursorClick,
        InputFill,
        CameraMark,
        CameraMark,
        CaptionSet,
        CaptionClear,
        UnknownEvent,
    ]

    step, move, click, fill, mark, instant_mark, caption, _, unknown = log.events
    assert step.comment == "Open the signup page"
    assert move.origin == (0.0, 0.0) and move.to == (640.0, 360.0)
    assert click.button == "left"
    assert fill.selector is not None and fill.selector.placeholder == "Password"
    assert mark.region == (10.0, 20.0, 300.0, 200.0)
    assert mark.duration_ms == 2000
    assert instant_mark.duration_ms == 0
    assert caption.text == "Create an account"
    assert unknown.type == "page.scroll"
    assert unknown.payload["delta"] == 300


def test_malformed_line_reports_its_line_number() -> None:
    content = "\n".join([json.dumps({"meta": {}}), json.dumps({"ts": 0, "t": "cursor.click"}), "{not json"])

    with pytest.raises(EventLogError) as excinfo:
        parse_event_log(content)

    assert excinfo.value.line_number == 3
    assert excinfo.value.line == "{not json"
    assert isinstance(excinfo.value, ValidationError)


def test_non_object_records_and_missing_fields_are_rejected() -> None:
    with pytest.raises(EventLogError, match="Line 1"):
        parse_event_log("[1, 2]")

    with pytest.raises(EventLogError) as excinfo:
        parse_event_log(json.dumps({"t": "cursor.click"}))
    assert excinfo.value.line_number == 1


@pytest.mark.parametrize(
    "record",
    [
        {"ts": 1, "t": "cursor.click", "to": ["a", 2]},
        {"ts": 1, "t": "camera.mark", "focus": {"region": [0, 0, "wide", 10]}},
        {"ts": 1, "t": "camera.mark", "zoom": [1.5]},
    ],
)
def test_wrongly_typed_fields_report_their_line(record: dict) -> None:
    content = "\n".join([json.dumps({"meta": {"name": "demo"}}), json.dumps(record)])

    with pytest.raises(EventLogError) as excinfo:
        parse_event_log(content)

    assert excinfo.value.line_number == 2
    assert excinfo.value.line == json.dumps(record)


def test_wrongly_typed_meta_reports_its_line() -> None:
    with pytest.raises(EventLogError, match="line 1") as excinfo:
        parse_event_log(json.dumps({"meta": {"name": "demo", "viewport": 5}}))

    assert excinfo.value.line_number == 1


def test_parse_event_wraps_conversion_errors() -> None:
    with pytest.raises(EventLogError):
        parse_event({"ts": 1, "t": "cursor.move", "from": [None, 1], "to": [1, 2]})


def test_log_without_meta_header_gets_empty_meta() -> None:
    log = parse_event_log(json.dumps({"ts": 10, "t": "caption.set", "text": "hi"}))

    assert log.meta.name == ""
    assert len(log.events) == 1


def test_serialize_then_parse_keeps_events() -> None:
    log = parse_event_log(SAMPLE_LOG)

    again = parse_event_log(serialize_event_log(log))

    assert again.events == log.events
    assert again.meta.name == "signup"


def test_parse_event_single_record() -> None:
    assert parse_event({"ts": 5, "t": "cursor.click", "to": [1, 2]}) == CursorClick(ts=5.0, to=(1.0, 2.0))


def test_read_event_log_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        read_event_log(tmp_path / "missing.ndjson")


def test_read_event_log_from_disk(tmp_path: Path) -> None:
    path = tmp_path / "events.ndjson"
    path.write_text(SAMPLE_LOG, encoding="utf-8")

    assert len(read_event_log(path).events) == 9
