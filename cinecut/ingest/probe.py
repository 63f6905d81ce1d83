from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any

from cinecut.errors import DependencyError, ExecutionError
from cinecut.models import VideoInfo

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 1920
DEFAULT_HEIGHT = 1080
DEFAULT_FPS = 30.0


def probe_video(video_path: str | Path, *, ffprobe_binary: str = "ffprobe") -> VideoInfo:
    """Probe the source clip once; every frame-index computation downstream depends on it."""

    metadata = probe_media(video_path, ffprobe_binary=ffprobe_binary)
    info = VideoInfo(
        width=metadata["width"],
        height=metadata["height"],
        duration_seconds=metadata["duration_seconds"],
        fps=metadata["fps"],
    )
    logger.debug("Probed %s: %s", video_path, info)
    return info


def probe_media(video_path: str | Path, *, ffprobe_binary: str = "ffprobe") -> dict[str, Any]:
    source_path = Path(video_path).expanduser()
    if not source_path.exists():
        raise FileNotFoundError(f"Video file not found: {source_path}")

    payload = _run_ffprobe(source_path, ffprobe_binary)
    return _normalize_probe_payload(source_path, payload)


def parse_frame_rate(raw_value: Any) -> float | None:
    """Parse ffprobe's ``num/den`` frame-rate notation; ``0/0`` and junk give ``None``."""

    if raw_value in (None, "", "N/A"):
        return None
    text = str(raw_value)
    if "/" in text:
        numerator, _, denominator = text.partition("/")
        try:
            num, den = float(numerator), float(denominator)
        except ValueError:
            return None
        if num <= 0 or den <= 0:
            return None
        return num / den
    try:
        value = float(text)
    except ValueError:
        return None
    return value if value > 0 else None


def _run_ffprobe(video_path: Path, ffprobe_binary: str) -> dict[str, Any]:
    command = [
        ffprobe_binary,
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_format",
        "-show_streams",
        str(video_path),
    ]

    try:
        completed = subprocess.run(
            command,
            check=True,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as exc:
        raise DependencyError(
            "ffprobe",
            f"ffprobe executable was not found ({ffprobe_binary}).",
        ) from exc
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        details = f" ffprobe stderr: {stderr}" if stderr else ""
        raise ExecutionError(
            f"ffprobe failed to read media file: {video_path}.{details}",
            returncode=exc.returncode,
            stderr_tail=stderr[-500:],
        ) from exc

    try:
        return json.loads(completed.stdout)
    except json.JSONDecodeError as exc:
        raise ExecutionError("ffprobe returned invalid JSON output.") from exc


def _normalize_probe_payload(video_path: Path, payload: dict[str, Any]) -> dict[str, Any]:
    format_entry = payload.get("format", {})
    streams = [_normalize_stream(stream) for stream in payload.get("streams", [])]
    video_stream = next((stream for stream in streams if stream["codec_type"] == "video"), None)

    if video_stream is None:
        logger.warning("No video stream reported for %s; using %dx%d defaults", video_path, DEFAULT_WIDTH, DEFAULT_HEIGHT)
        video_stream = {}

    return {
        "path": str(video_path),
        "width": video_stream.get("width") or DEFAULT_WIDTH,
        "height": video_stream.get("height") or DEFAULT_HEIGHT,
        "fps": video_stream.get("fps") or DEFAULT_FPS,
        "duration_seconds": _to_float(format_entry.get("duration")) or 0.0,
        "format_name": format_entry.get("format_name"),
        "size_bytes": _to_int(format_entry.get("size")),
        "bit_rate": _to_int(format_entry.get("bit_rate")),
        "has_audio": any(stream["codec_type"] == "audio" for stream in streams),
        "streams": streams,
    }


def _normalize_stream(stream: dict[str, Any]) -> dict[str, Any]:
    return {
        "index": stream.get("index"),
        "codec_type": stream.get("codec_type"),
        "codec_name": stream.get("codec_name"),
        "width": _to_int(stream.get("width")),
        "height": _to_int(stream.get("height")),
        "fps": parse_frame_rate(stream.get("r_frame_rate")),
        "sample_rate": _to_int(stream.get("sample_rate")),
        "channels": _to_int(stream.get("channels")),
        "duration_seconds": _to_float(stream.get("duration")),
    }


def _to_float(raw_value: Any) -> float | None:
    if raw_value in (None, "N/A", ""):
        return None
    return float(raw_value)


def _to_int(raw_value: Any) -> int | None:
    if raw_value in (None, "N/A", ""):
        return None
    return int(raw_value)
