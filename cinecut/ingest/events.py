"""Reader for the NDJSON interaction-event log written by the recorder.

The first record is a ``{"meta": {...}}`` header; every following record is a
timestamped event ``{"ts": <ms>, "t": "<type>", ...}``. Known event types are
parsed into typed records, anything else is kept as :class:`UnknownEvent` so a
newer recorder never breaks an older post-production run.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from cinecut.errors import EventLogError
from cinecut.models import Selector

logger = logging.getLogger(__name__)

DEFAULT_CAMERA_MARK_DURATION_MS = 2000


@dataclass(slots=True)
class EventLogMeta:
    name: str = ""
    viewport_width: int | None = None
    viewport_height: int | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class CursorClick:
    ts: float
    to: tuple[float, float] | None = None
    button: str | None = None
    type: str = "cursor.click"


@dataclass(slots=True)
class CursorMove:
    ts: float
    to: tuple[float, float] | None = None
    origin: tuple[float, float] | None = None
    ease: str | None = None
    type: str = "cursor.move"


@dataclass(slots=True)
class InputFill:
    ts: float
    selector: Selector | None = None
    text: str | None = None
    to: tuple[float, float] | None = None
    type: str = "input.fill"


@dataclass(slots=True)
class CameraMark:
    ts: float
    zoom: float | None = None
    region: tuple[float, float, float, float] | None = None
    duration_ms: float = DEFAULT_CAMERA_MARK_DURATION_MS
    type: str = "camera.mark"


@dataclass(slots=True)
class CaptionSet:
    ts: float
    text: str = ""
    type: str = "caption.set"


@dataclass(slots=True)
class CaptionClear:
    ts: float
    type: str = "caption.clear"


@dataclass(slots=True)
class StepStart:
    ts: float
    comment: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    type: str = "step.start"


@dataclass(slots=True)
class UnknownEvent:
    ts: float
    type: str
    payload: dict[str, Any] = field(default_factory=dict)


UesEvent = Union[CursorClick, CursorMove, InputFill, CameraMark, CaptionSet, CaptionClear, StepStart, UnknownEvent]


@dataclass(slots=True)
class EventLog:
    meta: EventLogMeta
    events: list[UesEvent] = field(default_factory=list)


def read_event_log(path: str | Path) -> EventLog:
    """Parse an event log file; a missing file raises ``FileNotFoundError``."""

    source_path = Path(path).expanduser()
    if not source_path.exists():
        raise FileNotFoundError(f"Event log not found: {source_path}")
    return parse_event_log(source_path.read_text(encoding="utf-8"))


def parse_event_log(content: str) -> EventLog:
    meta: EventLogMeta | None = None
    events: list[UesEvent] = []

    for line_number, line in enumerate(content.splitlines(), start=1):
        if not line.strip():
            continue

        try:
            record = json.loads(line)
        except json.JSONDecodeError as exc:
            raise EventLogError(
                f"Malformed JSON on line {line_number}: {exc.msg}",
                line_number=line_number,
                line=line,
            ) from exc

        if not isinstance(record, dict):
            raise EventLogError(
                f"Line {line_number} must be a JSON object",
                line_number=line_number,
                line=line,
            )

        if "meta" in record and meta is None and not events:
            try:
                meta = _parse_meta(record["meta"])
            except (TypeError, ValueError, AttributeError) as exc:
                raise EventLogError(
                    f"Invalid meta header on line {line_number}: {exc}",
                    line_number=line_number,
                    line=line,
                ) from exc
            continue

        events.append(_parse_record(record, line_number, line))

    if meta is None:
        logger.debug("Event log has no meta header")
        meta = EventLogMeta()

    return EventLog(meta=meta, events=events)


def parse_event(record: dict[str, Any]) -> UesEvent:
    """Build the typed event for one decoded record."""

    return _parse_record(record, None, None)


def serialize_event_log(log: EventLog) -> str:
    lines = [json.dumps({"meta": log.meta.raw or _meta_payload(log.meta)})]
    lines.extend(json.dumps(event_to_record(event)) for event in log.events)
    return "\n".join(lines) + "\n"


def event_to_record(event: UesEvent) -> dict[str, Any]:
    record: dict[str, Any] = {"ts": event.ts, "t": event.type}

    if isinstance(event, CursorClick):
        _put(record, "to", list(event.to) if event.to else None)
        _put(record, "button", event.button)
    elif isinstance(event, CursorMove):
        _put(record, "to", list(event.to) if event.to else None)
        _put(record, "from", list(event.origin) if event.origin else None)
        _put(record, "ease", event.ease)
    elif isinstance(event, InputFill):
        _put(record, "selector", _selector_payload(event.selector) if event.selector else None)
        _put(record, "text", event.text)
        _put(record, "to", list(event.to) if event.to else None)
    elif isinstance(event, CameraMark):
        _put(record, "zoom", event.zoom)
        if event.region is not None:
            record["focus"] = {"region": list(event.region)}
        record["data"] = {"durationMs": event.duration_ms}
    elif isinstance(event, CaptionSet):
        record["text"] = event.text
    elif isinstance(event, StepStart):
        data = dict(event.data)
        if event.comment is not None:
            data["comment"] = event.comment
        _put(record, "data", data or None)
    elif isinstance(event, UnknownEvent):
        record.update({key: value for key, value in event.payload.items() if key not in record})

    return record


def _parse_meta(raw_meta: Any) -> EventLogMeta:
    if not isinstance(raw_meta, dict):
        return EventLogMeta()
    viewport = raw_meta.get("viewport") or {}
    return EventLogMeta(
        name=str(raw_meta.get("name", "")),
        viewport_width=_to_int(viewport.get("w")),
        viewport_height=_to_int(viewport.get("h")),
        raw=dict(raw_meta),
    )


def _parse_record(record: dict[str, Any], line_number: int | None, line: str | None) -> UesEvent:
    event_type = record.get("t")
    raw_ts = record.get("ts")
    if not isinstance(event_type, str) or not isinstance(raw_ts, (int, float)) or isinstance(raw_ts, bool):
        where = f" on line {line_number}" if line_number is not None else ""
        raise EventLogError(
            f"Event{where} requires numeric 'ts' and string 't' fields",
            line_number=line_number,
            line=line,
        )

    try:
        return _build_event(event_type, float(raw_ts), record)
    except (TypeError, ValueError, AttributeError) as exc:
        where = f" on line {line_number}" if line_number is not None else ""
        raise EventLogError(
            f"Invalid {event_type} event{where}: {exc}",
            line_number=line_number,
            line=line,
        ) from exc


def _build_event(event_type: str, ts: float, record: dict[str, Any]) -> UesEvent:
    data = record.get("data") if isinstance(record.get("data"), dict) else {}

    if event_type == "cursor.click":
        return CursorClick(ts=ts, to=_point(record.get("to")), button=record.get("button"))
    if event_type == "cursor.move":
        return CursorMove(
            ts=ts,
            to=_point(record.get("to")),
            origin=_point(record.get("from")),
            ease=record.get("ease"),
        )
    if event_type == "input.fill":
        return InputFill(
            ts=ts,
            selector=_selector(record.get("selector")),
            text=record.get("text"),
            to=_point(record.get("to")),
        )
    if event_type == "camera.mark":
        focus = record.get("focus") if isinstance(record.get("focus"), dict) else {}
        duration_ms = _to_float(data.get("durationMs"))
        return CameraMark(
            ts=ts,
            zoom=_to_float(record.get("zoom")),
            region=_region(focus.get("region")),
            duration_ms=DEFAULT_CAMERA_MARK_DURATION_MS if duration_ms is None else duration_ms,
        )
    if event_type == "caption.set":
        return CaptionSet(ts=ts, text=str(record.get("text") or ""))
    if event_type == "caption.clear":
        return CaptionClear(ts=ts)
    if event_type == "step.start":
        comment = data.get("comment")
        return StepStart(ts=ts, comment=str(comment) if comment else None, data=dict(data))

    return UnknownEvent(ts=ts, type=event_type, payload=dict(record))


def _selector(raw: Any) -> Selector | None:
    if not isinstance(raw, dict):
        return None
    return Selector(
        by=raw.get("by"),
        value=raw.get("value"),
        name=raw.get("name"),
        role=raw.get("role"),
        placeholder=raw.get("placeholder"),
        text=raw.get("text"),
    )


def _selector_payload(selector: Selector) -> dict[str, str]:
    payload = {
        "by": selector.by,
        "value": selector.value,
        "name": selector.name,
        "role": selector.role,
        "placeholder": selector.placeholder,
        "text": selector.text,
    }
    return {key: value for key, value in payload.items() if value is not None}


def _meta_payload(meta: EventLogMeta) -> dict[str, Any]:
    payload: dict[str, Any] = {"name": meta.name}
    if meta.viewport_width is not None and meta.viewport_height is not None:
        payload["viewport"] = {"w": meta.viewport_width, "h": meta.viewport_height}
    return payload


def _point(raw: Any) -> tuple[float, float] | None:
    if not isinstance(raw, (list, tuple)) or len(raw) < 2:
        return None
    return float(raw[0]), float(raw[1])


def _region(raw: Any) -> tuple[float, float, float, float] | None:
    if not isinstance(raw, (list, tuple)) or len(raw) < 4:
        return None
    return float(raw[0]), float(raw[1]), float(raw[2]), float(raw[3])


def _put(record: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        record[key] = value


def _to_float(raw_value: Any) -> float | None:
    if raw_value in (None, "N/A", "") or isinstance(raw_value, bool):
        return None
    return float(raw_value)


def _to_int(raw_value: Any) -> int | None:
    if raw_value in (None, "N/A", ""):
        return None
    return int(raw_value)
