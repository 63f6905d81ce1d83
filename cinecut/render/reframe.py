from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Literal, Sequence

from cinecut.effects.aspect import compute_center_crop, crop_filter_string, get_aspect_config, needs_crop
from cinecut.effects.reframe import dynamic_crop_filter, extract_focus_points, optimal_crop_window
from cinecut.ingest.events import read_event_log
from cinecut.ingest.probe import probe_video
from cinecut.models import CropWindow, FocusPoint
from cinecut.render.ffmpeg import FFmpegCommand, FFmpegRunner
from cinecut.render.pipeline import EncoderRunner, PipelineProgress
from cinecut.render.templates import get_quality_preset

logger = logging.getLogger(__name__)

ReframeMode = Literal["center", "smart", "dynamic"]


@dataclass(slots=True)
class ReframeResult:
    output_path: Path
    aspect: str
    input_size: tuple[int, int]
    output_size: tuple[int, int]
    crop: CropWindow | None
    duration_seconds: float


def reframe_output_path(input_path: str | Path, aspect: str, output_dir: str | Path | None = None) -> Path:
    """``<dir>/<stem>_<W>x<H-ratio><ext>``, e.g. ``demo_9x16.mp4``."""

    source = Path(input_path)
    directory = Path(output_dir) if output_dir is not None else source.parent
    return directory / f"{source.stem}_{aspect.replace(':', 'x')}{source.suffix}"


def reframe_video(
    input_path: str | Path,
    output_path: str | Path,
    aspect: str,
    *,
    events_path: str | Path | None = None,
    mode: ReframeMode = "center",
    quality: str = "standard",
    on_progress: Callable[[PipelineProgress], None] | None = None,
    runner: EncoderRunner | None = None,
    ffmpeg_binary: str = "ffmpeg",
    ffprobe_binary: str = "ffprobe",
) -> ReframeResult:
    """Crop and scale one clip to an aspect preset.

    ``smart`` centres a static crop on the weighted focus of the event log,
    ``dynamic`` pans the crop between focus points; both fall back to a centre
    crop when no event log is given.
    """

    started = time.monotonic()
    notify = on_progress or (lambda _progress: None)
    notify(PipelineProgress("init", 0, "Analyzing video..."))

    video = probe_video(input_path, ffprobe_binary=ffprobe_binary)
    target = get_aspect_config(aspect)

    notify(PipelineProgress("analyze", 10, "Calculating crop region..."))
    crop: CropWindow | None = None
    crop_text = ""

    if needs_crop(video.width, video.height, target.ratio):
        points: list[FocusPoint] = []
        if mode != "center" and events_path is not None:
            events = read_event_log(events_path).events
            points = extract_focus_points(events, video.width, video.height)

        if mode == "dynamic" and points:
            crop = compute_center_crop(video.width, video.height, target.ratio)
            crop_text = dynamic_crop_filter(points, video.width, video.height, crop.width, crop.height, video.fps)
        elif mode == "smart" and points:
            crop = optimal_crop_window(points, video.width, video.height, target.ratio)
        else:
            crop = compute_center_crop(video.width, video.height, target.ratio)

        if not crop_text:
            crop_text = crop_filter_string(crop)

    filters = [crop_text] if crop_text else []
    filters.append(f"scale={target.width}:{target.height}:flags=lanczos")

    preset = get_quality_preset(quality)
    command = (
        FFmpegCommand()
        .overwrite()
        .input(input_path)
        .arg("-vf", ",".join(filters))
        .video_codec("libx264")
        .crf(preset.crf)
        .preset(preset.preset)
        .pixel_format("yuv420p")
        .audio_codec("aac")
        .audio_bitrate(preset.audio_bitrate)
        .output(output_path)
    )

    def on_encode_progress(seconds: float) -> None:
        if video.duration_seconds <= 0:
            return
        ratio = seconds / video.duration_seconds
        notify(PipelineProgress("encode", min(30 + ratio * 65, 95), f"Encoding: {round(ratio * 100)}%"))

    notify(PipelineProgress("encode", 30, "Reframing video..."))
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    encode = runner or FFmpegRunner(ffmpeg_binary)
    encode(command, on_encode_progress)
    notify(PipelineProgress("complete", 100, "Complete!"))

    result = ReframeResult(
        output_path=Path(output_path),
        aspect=aspect,
        input_size=(video.width, video.height),
        output_size=(target.width, target.height),
        crop=crop,
        duration_seconds=time.monotonic() - started,
    )
    logger.info("Reframed %s to %s (%dx%d)", input_path, aspect, target.width, target.height)
    return result


def batch_reframe(
    input_path: str | Path,
    output_dir: str | Path,
    aspects: Sequence[str],
    *,
    events_path: str | Path | None = None,
    mode: ReframeMode = "center",
    quality: str = "standard",
    max_workers: int = 1,
    runner: EncoderRunner | None = None,
    ffmpeg_binary: str = "ffmpeg",
    ffprobe_binary: str = "ffprobe",
) -> list[ReframeResult]:
    """Reframe to several aspects; results keep the order of ``aspects``."""

    def job(aspect: str) -> ReframeResult:
        return reframe_video(
            input_path,
            reframe_output_path(input_path, aspect, output_dir),
            aspect,
            events_path=events_path,
            mode=mode,
            quality=quality,
            runner=runner,
            ffmpeg_binary=ffmpeg_binary,
            ffprobe_binary=ffprobe_binary,
        )

    if max_workers <= 1:
        return [job(aspect) for aspect in aspects]

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(job, aspects))
