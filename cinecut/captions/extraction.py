from __future__ import annotations

from typing import Sequence

from cinecut.ingest.events import CaptionClear, CaptionSet, StepStart, UesEvent
from cinecut.models import Caption

TRAILING_CAPTION_SECONDS = 5.0
MAX_STEP_CAPTION_SECONDS = 10.0


def captions_from_events(events: Sequence[UesEvent]) -> list[Caption]:
    """Pair ``caption.set`` with the next set/clear; an unterminated caption runs 5 seconds."""

    captions: list[Caption] = []
    pending: tuple[float, str] | None = None

    for event in events:
        if isinstance(event, CaptionSet) and event.text:
            if pending is not None:
                _append_timed(captions, pending[0], event.ts / 1000, pending[1])
            pending = (event.ts / 1000, event.text)
        elif isinstance(event, CaptionClear) and pending is not None:
            _append_timed(captions, pending[0], event.ts / 1000, pending[1])
            pending = None

    if pending is not None:
        captions.append(
            Caption(start_seconds=pending[0], end_seconds=pending[0] + TRAILING_CAPTION_SECONDS, text=pending[1])
        )

    return captions


def captions_from_steps(events: Sequence[UesEvent], default_duration: float = 3.0) -> list[Caption]:
    """One caption per commented ``step.start``, lasting until the next one (at most 10 seconds)."""

    steps = [event for event in events if isinstance(event, StepStart) and event.comment]
    captions: list[Caption] = []

    for index, step in enumerate(steps):
        start = step.ts / 1000
        if index + 1 < len(steps):
            end = steps[index + 1].ts / 1000
        else:
            end = start + default_duration
        _append_timed(captions, start, min(end, start + MAX_STEP_CAPTION_SECONDS), step.comment or "")

    return captions


def _append_timed(captions: list[Caption], start: float, end: float, text: str) -> None:
    # Captions must end after they start; a set and clear at the same instant shows nothing.
    if end <= start:
        return
    captions.append(Caption(start_seconds=start, end_seconds=end, text=text))
