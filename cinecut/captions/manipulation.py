"""Pure time and text transforms over caption lists; inputs are never mutated."""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Sequence

from cinecut.models import Caption

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def merge_captions(captions: Sequence[Caption], gap_threshold: float = 0.5) -> list[Caption]:
    """Collapse consecutive captions with identical text separated by at most ``gap_threshold``."""

    if not captions:
        return []

    ordered = sorted(captions, key=lambda caption: caption.start_seconds)
    merged: list[Caption] = [ordered[0]]

    for current in ordered[1:]:
        last = merged[-1]
        if current.text == last.text and current.start_seconds <= last.end_seconds + gap_threshold:
            merged[-1] = replace(last, end_seconds=max(last.end_seconds, current.end_seconds))
        else:
            merged.append(current)

    return merged


def split_long_captions(
    captions: Sequence[Caption],
    max_chars: int = 80,
    max_duration: float = 8.0,
) -> list[Caption]:
    """Split captions that are too long or too wordy into contiguous chunks.

    Text is broken at sentence boundaries; a sentence longer than ``max_chars``
    is broken further on word boundaries. The original span is shared evenly.
    """

    result: list[Caption] = []
    for caption in captions:
        if len(caption.text) <= max_chars and caption.duration_seconds <= max_duration:
            result.append(caption)
            continue

        chunks = _chunk_text(caption.text, max_chars)
        if len(chunks) <= 1:
            result.append(caption)
            continue

        step = caption.duration_seconds / len(chunks)
        for index, chunk in enumerate(chunks):
            start = caption.start_seconds + index * step
            if index == len(chunks) - 1:
                end = caption.end_seconds
            else:
                end = caption.start_seconds + (index + 1) * step
            result.append(Caption(start_seconds=start, end_seconds=end, text=chunk, style=caption.style))

    return result


def offset_captions(captions: Sequence[Caption], offset_seconds: float) -> list[Caption]:
    return [
        replace(
            caption,
            start_seconds=caption.start_seconds + offset_seconds,
            end_seconds=caption.end_seconds + offset_seconds,
        )
        for caption in captions
    ]


def scale_caption_times(captions: Sequence[Caption], factor: float) -> list[Caption]:
    """Stretch caption times, e.g. by ``1/speed`` after a uniform speed change."""

    return [
        replace(
            caption,
            start_seconds=caption.start_seconds * factor,
            end_seconds=caption.end_seconds * factor,
        )
        for caption in captions
    ]


def clip_captions_to_range(captions: Sequence[Caption], start_seconds: float, end_seconds: float) -> list[Caption]:
    """Drop captions outside the range and truncate the ones straddling its edges."""

    return [
        replace(
            caption,
            start_seconds=max(caption.start_seconds, start_seconds),
            end_seconds=min(caption.end_seconds, end_seconds),
        )
        for caption in captions
        if caption.end_seconds > start_seconds and caption.start_seconds < end_seconds
    ]


def _chunk_text(text: str, max_chars: int) -> list[str]:
    chunks: list[str] = []
    current = ""

    for sentence in _SENTENCE_BOUNDARY.split(text.strip()):
        pieces = [sentence] if len(sentence) <= max_chars else _chunk_words(sentence, max_chars)
        for piece in pieces:
            if not current:
                current = piece
            elif len(current) + 1 + len(piece) <= max_chars:
                current = f"{current} {piece}"
            else:
                chunks.append(current)
                current = piece

    if current:
        chunks.append(current)
    return chunks


def _chunk_words(sentence: str, max_chars: int) -> list[str]:
    chunks: list[str] = []
    current = ""
    for word in sentence.split():
        if current and len(current) + 1 + len(word) > max_chars:
            chunks.append(current)
            current = word
        else:
            current = f"{current} {word}" if current else word
    if current:
        chunks.append(current)
    return chunks
