"""Post-production pipeline: compile one filter chain from events and a template, then encode.

Stages run strictly in order (probe, events, redaction, zoom, aspect, color,
vignette, fade, captions, encode). Each stage that emits a filter appends it to
a single labelled chain; the last label becomes ``[vout]``. Working files live
in a temporary directory owned by one call and removed however the call ends.
"""

from __future__ import annotations

import logging
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Literal, Sequence, Union

from cinecut.captions.extraction import captions_from_events, captions_from_steps
from cinecut.captions.filters import subtitles_filter
from cinecut.captions.formats import write_ass, write_srt
from cinecut.effects.aspect import compute_crop, crop_filter_string, get_aspect_config, needs_crop
from cinecut.effects.audio import AudioChainOptions, audio_processing_chain
from cinecut.effects.keyframes import zoompan_filter
from cinecut.effects.privacy import DEFAULT_REDACTION_STYLE, blur_filter, resolve_regions
from cinecut.effects.reframe import extract_focus_points, optimal_crop_window
from cinecut.effects.timecode import format_number, total_frames
from cinecut.effects.video import color_grade_filter, fade_filter, scale_filter, vignette_filter
from cinecut.ingest.events import CameraMark, CursorClick, UesEvent, read_event_log
from cinecut.ingest.probe import probe_video
from cinecut.models import BlurMapConfig, Caption, RedactionStyle, VideoInfo, ZoomPanKeyframe
from cinecut.render.ffmpeg import DEFAULT_TAIL_CHARS, MIN_MAJOR_VERSION, FFmpegCommand, FFmpegRunner, ensure_ffmpeg
from cinecut.render.manifest import build_manifest, write_manifest
from cinecut.render.templates import TemplateConfig, get_quality_preset, get_template

logger = logging.getLogger(__name__)

CLICK_ZOOM = 1.15
CLICK_RETURN_SECONDS = 0.5
ORIGINAL_AUDIO_LEVEL = 0.3

EncoderRunner = Callable[[FFmpegCommand, Callable[[float], None]], None]
CaptionSource = Union[Literal["auto", "none"], Sequence[Caption], None]
AspectMode = Literal["letterbox", "crop"]


@dataclass(frozen=True, slots=True)
class PipelineProgress:
    stage: str
    percent: float
    message: str


ProgressHandler = Callable[[PipelineProgress], None]


@dataclass(slots=True)
class PipelineOptions:
    video_path: Path
    events_path: Path
    output_path: Path
    template: str = "trailer"
    template_overrides: dict[str, Any] | None = None
    music_path: Path | None = None
    captions: CaptionSource = None
    aspect: str | None = None
    aspect_mode: AspectMode = "letterbox"
    blur_map: BlurMapConfig | None = None
    redaction_style: RedactionStyle = DEFAULT_REDACTION_STYLE
    caption_sidecar: bool = False
    write_manifest: bool = True
    on_progress: ProgressHandler | None = None
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    min_ffmpeg_major: int = MIN_MAJOR_VERSION
    tail_chars: int = DEFAULT_TAIL_CHARS


@dataclass(slots=True)
class PipelineResult:
    output_path: Path
    duration_seconds: float
    stages: list[str] = field(default_factory=list)
    artifacts: dict[str, Path] = field(default_factory=dict)
    manifest_path: Path | None = None


class FilterChain:
    """Linear video filter chain threaded through numbered labels."""

    def __init__(self, source_label: str = "[0:v]") -> None:
        self.current_label = source_label
        self.filters: list[str] = []
        self._counter = 0

    def add(self, name: str, filter_text: str) -> bool:
        if not filter_text:
            return False
        label = self._next_label(name)
        self.filters.append(f"{self.current_label}{filter_text}{label}")
        self.current_label = label
        return True

    def add_graph(self, name: str, build: Callable[[str, str], str]) -> bool:
        """Append a multi-node subgraph built from ``(input_label, output_label)``."""

        label = self._next_label(name)
        graph = build(self.current_label, label)
        if not graph:
            self._counter -= 1
            return False
        self.filters.append(graph)
        self.current_label = label
        return True

    def finalize(self, output_label: str = "[vout]") -> list[str]:
        if not self.filters:
            return []
        last = self.filters[-1]
        if last.endswith(self.current_label):
            self.filters[-1] = last[: -len(self.current_label)] + output_label
            self.current_label = output_label
        return list(self.filters)

    def _next_label(self, name: str) -> str:
        label = f"[{name}{self._counter}]"
        self._counter += 1
        return label


def run_pipeline(
    options: PipelineOptions,
    *,
    template: TemplateConfig | None = None,
    runner: EncoderRunner | None = None,
) -> PipelineResult:
    """Run every stage for one source clip and return what was executed."""

    started = time.monotonic()
    stages: list[str] = []
    artifacts: dict[str, Path] = {}
    report = _reporter(options.on_progress)

    ensure_ffmpeg(options.ffmpeg_binary, options.min_ffmpeg_major)

    video_path = Path(options.video_path)
    events_path = Path(options.events_path)
    output_path = Path(options.output_path)
    if not video_path.exists():
        raise FileNotFoundError(f"Video file not found: {video_path}")
    if not events_path.exists():
        raise FileNotFoundError(f"Event log not found: {events_path}")

    active_template = template or get_template(options.template, options.template_overrides)
    encode = runner or FFmpegRunner(options.ffmpeg_binary, options.tail_chars)
    report("init", 0, "Loading configuration...")

    video = probe_video(video_path, ffprobe_binary=options.ffprobe_binary)
    stages.append("Video probed")
    logger.info("Probed %s: %dx%d @ %s fps, %.2fs", video_path, video.width, video.height, video.fps, video.duration_seconds)

    events = read_event_log(events_path).events
    stages.append("Events loaded")
    logger.info("Loaded %d event(s) from %s", len(events), events_path)

    output_path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.TemporaryDirectory(prefix="cinecut-") as temp_name:
        temp_dir = Path(temp_name)
        chain = FilterChain()
        frame_width, frame_height = video.width, video.height

        if options.blur_map is not None:
            report("redaction", 5, "Resolving redaction regions...")
            regions = resolve_regions(
                events,
                options.blur_map,
                video.width,
                video.height,
                video.fps,
                default_style=options.redaction_style,
            )
            frame_count = total_frames(video.duration_seconds, video.fps)
            if chain.add_graph(
                "redact",
                lambda source, target: blur_filter(regions, frame_count, source_label=source, output_label=target),
            ):
                stages.append(f"{len(regions)} region(s) redacted")

        if active_template.enable_zoom_pan:
            report("zoom", 10, "Applying zoom effects...")
            keyframes = extract_zoom_keyframes(events, video, active_template)
            if chain.add("zoom", zoompan_filter(keyframes, video)):
                stages.append("Zoom effects applied")

        if options.aspect and options.aspect != "16:9":
            report("aspect", 20, "Adjusting aspect ratio...")
            aspect_config = get_aspect_config(options.aspect)
            if options.aspect_mode == "crop":
                if needs_crop(frame_width, frame_height, aspect_config.ratio):
                    points = extract_focus_points(events, video.width, video.height)
                    window = optimal_crop_window(points, frame_width, frame_height, aspect_config.ratio)
                    chain.add("crop", crop_filter_string(window))
                chain.add("scale", scale_filter(aspect_config.width, aspect_config.height, maintain_aspect=False))
            else:
                chain.add("scale", scale_filter(aspect_config.width, aspect_config.height, maintain_aspect=True))
            frame_width, frame_height = aspect_config.width, aspect_config.height
            stages.append(f"Aspect ratio set to {options.aspect}")

        if active_template.color_grade != "none":
            report("color", 30, "Applying color grading...")
            if chain.add("color", color_grade_filter(active_template.color_grade)):
                stages.append("Color grading applied")

        if active_template.vignette > 0:
            if chain.add("vignette", vignette_filter(active_template.vignette)):
                stages.append("Vignette applied")

        if chain.add("fade", fade_filter(active_template.fade_in, active_template.fade_out, video.duration_seconds)):
            stages.append("Fades applied")

        if active_template.enable_captions and options.captions != "none":
            report("captions", 50, "Generating captions...")
            captions = _select_captions(options.captions, events, active_template)
            if captions:
                captions_path = write_ass(
                    captions,
                    temp_dir / "captions.ass",
                    frame_width,
                    frame_height,
                    active_template.caption_style,
                )
                chain.add("subs", subtitles_filter(captions_path))
                stages.append(f"{len(captions)} captions added")
                if options.caption_sidecar:
                    artifacts["captions_srt"] = write_srt(captions, output_path.with_suffix(".srt"))

        report("encode", 60, "Encoding video...")
        command = _build_encode_command(options, video, video_path, output_path, active_template, chain, stages)

        def on_encode_progress(seconds: float) -> None:
            if video.duration_seconds <= 0:
                return
            ratio = seconds / video.duration_seconds
            report("encode", min(60 + ratio * 35, 95), f"Encoding: {round(ratio * 100)}%")

        encode(command, on_encode_progress)
        stages.append("Video encoded")

    duration_seconds = time.monotonic() - started
    result = PipelineResult(
        output_path=output_path,
        duration_seconds=duration_seconds,
        stages=stages,
        artifacts=artifacts,
    )

    if options.write_manifest:
        result.manifest_path = write_manifest(
            build_manifest(
                output_path=output_path,
                duration_seconds=duration_seconds,
                stages=stages,
                template=active_template.name,
                source_path=video_path,
                artifacts=artifacts,
            )
        )

    report("complete", 100, "Complete!")
    logger.info("Pipeline finished in %.2fs: %s", duration_seconds, output_path)
    return result


def extract_zoom_keyframes(
    events: Sequence[UesEvent],
    video: VideoInfo,
    template: TemplateConfig,
) -> list[ZoomPanKeyframe]:
    """Zoom keyframes from camera marks and clicks, each followed by a return to the default framing."""

    keyframes = [ZoomPanKeyframe(time_seconds=0.0, zoom=template.default_zoom)]

    for event in events:
        time_seconds = event.ts / 1000

        if isinstance(event, CameraMark) and template.zoom_on_camera_mark:
            zoom = min(event.zoom if event.zoom is not None else template.default_zoom, template.max_zoom)
            focus_x, focus_y = 0.5, 0.5
            if event.region is not None:
                rx, ry, rw, rh = event.region
                focus_x = (rx + rw / 2) / video.width
                focus_y = (ry + rh / 2) / video.height
            keyframes.append(ZoomPanKeyframe(time_seconds, zoom, focus_x, focus_y, "ease_in_out"))
            keyframes.append(
                ZoomPanKeyframe(time_seconds + event.duration_ms / 1000, template.default_zoom, easing="ease_in_out")
            )
        elif isinstance(event, CursorClick) and template.zoom_on_click and event.to is not None:
            click_x, click_y = event.to
            keyframes.append(
                ZoomPanKeyframe(
                    time_seconds,
                    min(CLICK_ZOOM, template.max_zoom),
                    click_x / video.width,
                    click_y / video.height,
                    "ease_out",
                )
            )
            keyframes.append(
                ZoomPanKeyframe(time_seconds + CLICK_RETURN_SECONDS, template.default_zoom, easing="ease_in")
            )

    if len(keyframes) > 1 and keyframes[-1].time_seconds < video.duration_seconds - 1:
        keyframes.append(ZoomPanKeyframe(video.duration_seconds, template.default_zoom))

    return keyframes


def process_video_simple(
    input_path: str | Path,
    output_path: str | Path,
    *,
    aspect: str | None = None,
    quality: str = "standard",
    fade_in: float | None = None,
    fade_out: float | None = None,
    runner: EncoderRunner | None = None,
    ffmpeg_binary: str = "ffmpeg",
    ffprobe_binary: str = "ffprobe",
) -> Path:
    """Scale and fade a clip without an event log."""

    video = probe_video(input_path, ffprobe_binary=ffprobe_binary)
    preset = get_quality_preset(quality)

    filters: list[str] = []
    if aspect:
        aspect_config = get_aspect_config(aspect)
        filters.append(scale_filter(aspect_config.width, aspect_config.height, maintain_aspect=True))
    if fade_in or fade_out:
        fades = fade_filter(fade_in, fade_out, video.duration_seconds)
        if fades:
            filters.append(fades)

    command = FFmpegCommand().overwrite().input(input_path)
    if filters:
        command.arg("-vf", ",".join(filters))
    (
        command.video_codec("libx264")
        .crf(preset.crf)
        .preset(preset.preset)
        .pixel_format("yuv420p")
        .audio_codec("aac")
        .audio_bitrate(preset.audio_bitrate)
        .output(output_path)
    )

    encode = runner or FFmpegRunner(ffmpeg_binary)
    encode(command, lambda _seconds: None)
    return Path(output_path)


def _select_captions(source: CaptionSource, events: Sequence[UesEvent], template: TemplateConfig) -> list[Caption]:
    if source is not None and not isinstance(source, str):
        return list(source)
    if source == "auto" or template.auto_generate_captions:
        return captions_from_steps(events) or captions_from_events(events)
    return captions_from_events(events)


def _build_encode_command(
    options: PipelineOptions,
    video: VideoInfo,
    video_path: Path,
    output_path: Path,
    template: TemplateConfig,
    chain: FilterChain,
    stages: list[str],
) -> FFmpegCommand:
    preset = get_quality_preset(template.quality)
    command = FFmpegCommand().overwrite().input(video_path)

    music_added = False
    if options.music_path is not None:
        music_path = Path(options.music_path)
        if music_path.exists():
            command.input(music_path, ["-stream_loop", "-1"])
            music_added = True
            stages.append("Music added")
        else:
            logger.warning("Music file not found, continuing without it: %s", music_path)

    video_filters = chain.finalize("[vout]")
    if video_filters:
        for graph in video_filters:
            command.filter(graph)
        command.map("[vout]")
    else:
        command.map("0:v")

    if music_added and template.music_volume > 0:
        if template.preserve_audio:
            command.filter(f"[0:a]volume={format_number(ORIGINAL_AUDIO_LEVEL)}[orig]")
            command.filter(f"[1:a]volume={format_number(template.music_volume)}[music]")
            command.filter("[orig][music]amix=inputs=2:duration=first[aout]")
        else:
            music_chain = audio_processing_chain(
                AudioChainOptions(
                    volume=template.music_volume,
                    fade_in=template.audio_fade_in,
                    fade_out=template.audio_fade_out,
                    duration_seconds=video.duration_seconds,
                )
            )
            command.filter(f"[1:a]{music_chain or 'anull'}[aout]")
        command.map("[aout]")
    elif template.preserve_audio:
        command.map("0:a?")

    return (
        command.video_codec("libx264")
        .crf(preset.crf)
        .preset(preset.preset)
        .pixel_format("yuv420p")
        .fps(template.framerate)
        .audio_codec("aac")
        .audio_bitrate(preset.audio_bitrate)
        .duration(video.duration_seconds)
        .output(output_path)
    )


def _reporter(handler: ProgressHandler | None) -> Callable[[str, float, str], None]:
    def report(stage: str, percent: float, message: str) -> None:
        logger.debug("[%s] %.0f%% %s", stage, percent, message)
        if handler is None:
            return
        try:
            handler(PipelineProgress(stage=stage, percent=percent, message=message))
        except Exception:
            logger.exception("Progress handler failed during stage %s", stage)

    return report
