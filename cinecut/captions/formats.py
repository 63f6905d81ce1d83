"""Subtitle renderers, parsers and writers for ASS, SRT and WebVTT."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal as TypingLiteral, Sequence

from cinecut.captions.colors import color_to_ass
from cinecut.effects.timecode import format_ass, format_number, format_srt, format_vtt, parse_timestamp
from cinecut.errors import ValidationError
from cinecut.models import Caption, CaptionAlignment, CaptionPosition, CaptionStyle, resolve_caption_style

logger = logging.getLogger(__name__)

CaptionFormat = TypingLiteral["srt", "vtt", "ass"]
CAPTION_FORMATS: tuple[str, ...] = ("srt", "vtt", "ass")

_VERTICAL_LAYOUT: dict[str, tuple[int, int]] = {
    "top": (8, 30),
    "center": (5, 0),
    "bottom": (2, 50),
}
_LEFT_SHIFT = {8: 7, 5: 4, 2: 1}
_RIGHT_SHIFT = {8: 9, 5: 6, 2: 3}

ASS_EVENT_FORMAT = "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text"
ASS_STYLE_FORMAT = (
    "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, "
    "Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, "
    "Alignment, MarginL, MarginR, MarginV, Encoding"
)


def ass_alignment(position: CaptionPosition | None, alignment: CaptionAlignment | None) -> tuple[int, int]:
    """Numpad alignment code (7 8 9 / 4 5 6 / 1 2 3) and vertical margin for a 3x3 grid cell."""

    code, margin_v = _VERTICAL_LAYOUT.get(position or "bottom", _VERTICAL_LAYOUT["bottom"])
    if alignment == "left":
        code = _LEFT_SHIFT[code]
    elif alignment == "right":
        code = _RIGHT_SHIFT[code]
    return code, margin_v


def render_ass(
    captions: Sequence[Caption],
    video_width: int,
    video_height: int,
    style: CaptionStyle | None = None,
) -> str:
    merged = resolve_caption_style(style)
    alignment, margin_v = ass_alignment(merged.position, merged.alignment)

    primary = color_to_ass(merged.font_color or "white")
    outline_color = color_to_ass(merged.outline_color or "black")
    back_color = color_to_ass(merged.background_color or "black")

    style_line = ",".join(
        [
            "Style: Default",
            str(merged.font_family),
            format_number(merged.font_size or 0),
            primary,
            primary,
            outline_color,
            back_color,
            "1" if merged.bold else "0",
            "1" if merged.italic else "0",
            "0,0,100,100,0,0,1",
            format_number(merged.outline or 0),
            format_number(merged.shadow or 0),
            str(alignment),
            "20,20",
            str(margin_v),
            "1",
        ]
    )

    header = "\n".join(
        [
            "[Script Info]",
            "Title: Cinecut Captions",
            "ScriptType: v4.00+",
            f"PlayResX: {video_width}",
            f"PlayResY: {video_height}",
            "ScaledBorderAndShadow: yes",
            "",
            "[V4+ Styles]",
            ASS_STYLE_FORMAT,
            style_line,
            "",
            "[Events]",
            ASS_EVENT_FORMAT,
            "",
        ]
    )

    dialogue = "\n".join(
        f"Dialogue: 0,{format_ass(caption.start_seconds)},{format_ass(caption.end_seconds)},"
        f"Default,,0,0,0,,{_escape_ass(caption.text)}"
        for caption in captions
    )
    return header + dialogue


def render_srt(captions: Sequence[Caption]) -> str:
    return "\n".join(
        f"{index}\n{format_srt(caption.start_seconds)} --> {format_srt(caption.end_seconds)}\n{caption.text}\n"
        for index, caption in enumerate(captions, start=1)
    )


def render_vtt(captions: Sequence[Caption]) -> str:
    cues = "\n".join(
        f"{index}\n{format_vtt(caption.start_seconds)} --> {format_vtt(caption.end_seconds)}\n{caption.text}\n"
        for index, caption in enumerate(captions, start=1)
    )
    return "WEBVTT\n\n" + cues


def parse_srt(content: str) -> list[Caption]:
    return _parse_cue_blocks(content, "SRT")


def parse_vtt(content: str) -> list[Caption]:
    lines = content.replace("\r\n", "\n").split("\n")
    if not lines or not lines[0].lstrip("\ufeff").startswith("WEBVTT"):
        raise ValidationError("WebVTT content must start with 'WEBVTT'", field="content")
    return _parse_cue_blocks("\n".join(lines[1:]), "WebVTT")


def parse_ass(content: str) -> list[Caption]:
    captions: list[Caption] = []
    for line in content.replace("\r\n", "\n").split("\n"):
        if not line.startswith("Dialogue:"):
            continue
        parts = line[len("Dialogue:") :].strip().split(",", 9)
        if len(parts) < 10:
            raise ValidationError(f"Malformed ASS dialogue line: {line!r}", field="content")
        captions.append(
            Caption(
                start_seconds=parse_timestamp(parts[1]),
                end_seconds=parse_timestamp(parts[2]),
                text=_unescape_ass(parts[9]),
            )
        )
    return captions


def write_ass(
    captions: Sequence[Caption],
    output_path: str | Path,
    video_width: int,
    video_height: int,
    style: CaptionStyle | None = None,
) -> Path:
    path = _with_extension(output_path, ".ass")
    path.write_text(render_ass(captions, video_width, video_height, style), encoding="utf-8")
    return path


def write_srt(captions: Sequence[Caption], output_path: str | Path) -> Path:
    path = _with_extension(output_path, ".srt")
    path.write_text(render_srt(captions), encoding="utf-8")
    return path


def write_vtt(captions: Sequence[Caption], output_path: str | Path) -> Path:
    path = _with_extension(output_path, ".vtt")
    path.write_text(render_vtt(captions), encoding="utf-8")
    return path


def export_captions(
    captions: Sequence[Caption],
    output_path: str | Path,
    fmt: str,
    *,
    video_width: int = 1920,
    video_height: int = 1080,
    style: CaptionStyle | None = None,
) -> Path:
    if fmt == "srt":
        return write_srt(captions, output_path)
    if fmt == "vtt":
        return write_vtt(captions, output_path)
    if fmt == "ass":
        return write_ass(captions, output_path, video_width, video_height, style)
    raise ValidationError(f"Unknown caption format: {fmt}", field="format")


def export_all_caption_formats(
    captions: Sequence[Caption],
    base_path: str | Path,
    video_width: int = 1920,
    video_height: int = 1080,
    style: CaptionStyle | None = None,
) -> dict[str, Path]:
    base = str(base_path)
    exported = {
        "srt": write_srt(captions, f"{base}.srt"),
        "vtt": write_vtt(captions, f"{base}.vtt"),
        "ass": write_ass(captions, f"{base}.ass", video_width, video_height, style),
    }
    logger.info("Exported %d caption(s) to %s.{srt,vtt,ass}", len(captions), base)
    return exported


def _parse_cue_blocks(content: str, label: str) -> list[Caption]:
    captions: list[Caption] = []
    blocks = [block for block in content.replace("\r\n", "\n").split("\n\n") if block.strip()]

    for block in blocks:
        lines = block.strip("\n").split("\n")
        timing_index = next((index for index, line in enumerate(lines) if "-->" in line), None)
        if timing_index is None:
            if lines[0].startswith(("NOTE", "STYLE", "REGION")):
                continue
            raise ValidationError(f"{label} cue without a timing line: {lines[0]!r}", field="content")

        start_text, _, end_text = lines[timing_index].partition("-->")
        end_token = end_text.strip().split()[0] if end_text.strip() else ""
        captions.append(
            Caption(
                start_seconds=parse_timestamp(start_text),
                end_seconds=parse_timestamp(end_token),
                text="\n".join(lines[timing_index + 1 :]),
            )
        )

    return captions


def _escape_ass(text: str) -> str:
    return text.replace("\\", "\\\\").replace("{", "\\{").replace("}", "\\}").replace("\n", "\\N")


def _unescape_ass(text: str) -> str:
    out: list[str] = []
    index = 0
    while index < len(text):
        char = text[index]
        if char == "\\" and index + 1 < len(text):
            following = text[index + 1]
            if following == "N":
                out.append("\n")
            else:
                out.append(following)
            index += 2
            continue
        out.append(char)
        index += 1
    return "".join(out)


def _with_extension(output_path: str | Path, extension: str) -> Path:
    raw = str(output_path)
    path = Path(raw if raw.endswith(extension) else f"{raw}{extension}")
    path.parent.mkdir(parents=True, exist_ok=True)
    return path
