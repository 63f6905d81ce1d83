from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable, TypeVar

import typer

from cinecut.captions.extraction import captions_from_events, captions_from_steps
from cinecut.captions.formats import CAPTION_FORMATS, export_all_caption_formats, export_captions
from cinecut.config import Settings, load_settings
from cinecut.effects.aspect import available_aspects
from cinecut.effects.privacy import load_blur_map
from cinecut.errors import CinecutError
from cinecut.ingest.events import read_event_log
from cinecut.ingest.probe import probe_media
from cinecut.logging_config import configure_logging
from cinecut.models import AutoDetectConfig, RedactionStyle
from cinecut.render.pipeline import PipelineOptions, PipelineProgress, run_pipeline
from cinecut.render.reframe import batch_reframe, reframe_output_path, reframe_video
from cinecut.render.templates import all_templates, get_template

app = typer.Typer(help="Cinematic post-production for recorded browser demos.")
config_app = typer.Typer(help="Configuration commands.")
captions_app = typer.Typer(help="Caption commands.")

app.add_typer(config_app, name="config")
app.add_typer(captions_app, name="captions")

logger = logging.getLogger(__name__)

T = TypeVar("T")

PIPELINE_STAGES = ("init", "redaction", "zoom", "aspect", "color", "captions", "encode", "complete")


class AspectMode(str, Enum):
    letterbox = "letterbox"
    crop = "crop"


class ReframeMode(str, Enum):
    center = "center"
    smart = "smart"
    dynamic = "dynamic"


class Quality(str, Enum):
    draft = "draft"
    standard = "standard"
    high = "high"


ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    envvar="CINECUT_CONFIG",
    help="Path to YAML configuration file.",
)


def _bootstrap(config_path: Path | None, verbose: bool = False) -> Settings:
    settings = load_settings(config_path)
    configure_logging(settings.logging, verbose=verbose)
    logger.debug("Loaded runtime settings from %s", config_path or "defaults")
    return settings


def _guarded(work: Callable[[], T]) -> T:
    try:
        return work()
    except CinecutError as exc:
        logger.error("Command failed: %s", exc.to_log_dict())
        typer.echo(f"Error: {exc.user_message()}", err=True)
        raise typer.Exit(code=1) from exc
    except FileNotFoundError as exc:
        logger.error("Command failed: %s", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _stage_printer() -> Callable[[PipelineProgress], None]:
    total = len(PIPELINE_STAGES)
    last_stage: list[str] = []

    def on_progress(progress: PipelineProgress) -> None:
        if last_stage and last_stage[-1] == progress.stage:
            logger.debug("%s %.0f%%", progress.message, progress.percent)
            return
        last_stage.append(progress.stage)
        index = PIPELINE_STAGES.index(progress.stage) + 1 if progress.stage in PIPELINE_STAGES else len(last_stage)
        typer.echo(f"[{index}/{total}] {progress.message}", err=True)

    return on_progress


def _reframe_printer(aspect: str) -> Callable[[PipelineProgress], None]:
    def on_progress(progress: PipelineProgress) -> None:
        if progress.stage != "encode" or progress.percent <= 30:
            typer.echo(f"[{aspect}] {progress.message}", err=True)

    return on_progress


@config_app.command("show")
def show_config(config_path: Path | None = ConfigOption) -> None:
    """Print resolved runtime configuration."""

    settings = _guarded(lambda: _bootstrap(config_path))
    typer.echo(json.dumps(settings.model_dump(mode="json"), indent=2))


@app.command("templates")
def list_templates() -> None:
    """List editing templates and their main settings."""

    payload = [
        {
            "name": template.name,
            "description": template.description,
            "quality": template.quality,
            "framerate": template.framerate,
            "color_grade": template.color_grade,
            "captions": template.enable_captions,
        }
        for template in all_templates()
    ]
    typer.echo(json.dumps(payload, indent=2))


@app.command("aspects")
def list_aspects() -> None:
    """List supported output aspect ratios."""

    typer.echo(json.dumps(available_aspects(), indent=2))


@app.command("probe")
def probe(
    video_path: Path,
    config_path: Path | None = ConfigOption,
) -> None:
    """Probe a video with ffprobe and print the normalized metadata."""

    def work() -> dict[str, Any]:
        settings = _bootstrap(config_path)
        return probe_media(video_path, ffprobe_binary=settings.encoder.ffprobe_binary)

    result = _guarded(work)
    logger.info("Probe completed for %s", video_path)
    typer.echo(json.dumps(result, indent=2))


@app.command("cut")
def cut(
    video_path: Path,
    events_path: Path,
    output_path: Path | None = typer.Option(None, "--output", "-o", help="Output video path."),
    template: str | None = typer.Option(None, "--template", "-t", help="trailer, howto or teaser."),
    aspect: str | None = typer.Option(None, "--aspect", "-a", help="Target aspect ratio, e.g. 9:16."),
    aspect_mode: AspectMode | None = typer.Option(None, help="letterbox (pad) or crop (focus-centred crop)."),
    music_path: Path | None = typer.Option(None, "--music", "-m", help="Background music file."),
    captions: bool | None = typer.Option(None, "--captions/--no-captions", help="Burn in captions."),
    blur_map_path: Path | None = typer.Option(None, "--blur-map", help="YAML/JSON redaction map."),
    caption_sidecar: bool | None = typer.Option(None, help="Also write captions as an .srt next to the output."),
    config_path: Path | None = ConfigOption,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Run the full post-production pipeline for one recording."""

    def work() -> dict[str, Any]:
        settings = _bootstrap(config_path, verbose)
        template_name = template or settings.pipeline.default_template
        resolved_output = output_path or (
            settings.pipeline.output_dir / f"{video_path.stem}_{template_name}.mp4"
        )

        blur_map = None
        if blur_map_path is not None:
            blur_map = load_blur_map(blur_map_path)
            if blur_map.auto_detect is None:
                blur_map.auto_detect = AutoDetectConfig(
                    passwords=settings.redaction.auto_detect_passwords,
                    credit_cards=settings.redaction.auto_detect_credit_cards,
                    emails=settings.redaction.auto_detect_emails,
                )

        use_captions = settings.pipeline.captions if captions is None else captions
        options = PipelineOptions(
            video_path=video_path,
            events_path=events_path,
            output_path=resolved_output,
            template=template_name,
            music_path=music_path,
            captions=None if use_captions else "none",
            aspect=aspect or settings.pipeline.default_aspect,
            aspect_mode=aspect_mode.value if aspect_mode else settings.pipeline.aspect_mode,
            blur_map=blur_map,
            redaction_style=RedactionStyle(
                kind=settings.redaction.default_style,
                strength=settings.redaction.default_strength,
            ),
            caption_sidecar=settings.pipeline.caption_sidecar if caption_sidecar is None else caption_sidecar,
            write_manifest=settings.pipeline.write_manifest,
            on_progress=_stage_printer(),
            ffmpeg_binary=settings.encoder.ffmpeg_binary,
            ffprobe_binary=settings.encoder.ffprobe_binary,
            min_ffmpeg_major=settings.encoder.min_major_version,
            tail_chars=settings.encoder.tail_chars,
        )
        result = run_pipeline(options)
        return {
            "status": "ok",
            "output_path": str(result.output_path),
            "duration_seconds": round(result.duration_seconds, 3),
            "stages": result.stages,
            "artifacts": {name: str(path) for name, path in result.artifacts.items()},
            "manifest_path": str(result.manifest_path) if result.manifest_path else None,
        }

    typer.echo(json.dumps(_guarded(work), indent=2))


@app.command("reframe")
def reframe(
    video_path: Path,
    aspects: list[str] = typer.Option(..., "--aspect", "-a", help="Target aspect; repeat for a batch."),
    events_path: Path | None = typer.Option(None, "--events", "-e", help="Event log used for smart/dynamic crops."),
    mode: ReframeMode | None = typer.Option(None, help="Crop placement."),
    output_dir: Path | None = typer.Option(None, "--output-dir", "-o", help="Directory for reframed outputs."),
    quality: Quality | None = typer.Option(None, help="Encoding quality preset."),
    workers: int | None = typer.Option(None, help="Parallel encodes for a batch."),
    config_path: Path | None = ConfigOption,
) -> None:
    """Crop and scale a recording to one or more aspect ratios."""

    def work() -> list[dict[str, Any]]:
        settings = _bootstrap(config_path)
        reframe_mode = mode.value if mode else settings.reframe.mode
        reframe_quality = quality.value if quality else settings.reframe.quality
        target_dir = output_dir or settings.pipeline.output_dir

        if len(aspects) == 1:
            results = [
                reframe_video(
                    video_path,
                    reframe_output_path(video_path, aspects[0], target_dir),
                    aspects[0],
                    events_path=events_path,
                    mode=reframe_mode,
                    quality=reframe_quality,
                    on_progress=_reframe_printer(aspects[0]),
                    ffmpeg_binary=settings.encoder.ffmpeg_binary,
                    ffprobe_binary=settings.encoder.ffprobe_binary,
                )
            ]
        else:
            results = batch_reframe(
                video_path,
                target_dir,
                aspects,
                events_path=events_path,
                mode=reframe_mode,
                quality=reframe_quality,
                max_workers=workers or settings.reframe.max_workers,
                ffmpeg_binary=settings.encoder.ffmpeg_binary,
                ffprobe_binary=settings.encoder.ffprobe_binary,
            )

        return [
            {
                "aspect": result.aspect,
                "output_path": str(result.output_path),
                "output_size": list(result.output_size),
                "crop": None
                if result.crop is None
                else {"x": result.crop.x, "y": result.crop.y, "width": result.crop.width, "height": result.crop.height},
            }
            for result in results
        ]

    typer.echo(json.dumps(_guarded(work), indent=2))


@captions_app.command("export")
def export(
    events_path: Path,
    output_path: Path = typer.Option(..., "--output", "-o", help="Output path; the extension is added when missing."),
    fmt: str = typer.Option("srt", "--format", "-f", help="srt, vtt, ass or all."),
    from_steps: bool = typer.Option(False, help="Caption step comments instead of caption events."),
    template: str = typer.Option("howto", help="Template whose caption style is used for ASS."),
    width: int = typer.Option(1920, help="Video width for ASS positioning."),
    height: int = typer.Option(1080, help="Video height for ASS positioning."),
    config_path: Path | None = ConfigOption,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Extract captions from an event log and write subtitle files."""

    def work() -> dict[str, str]:
        _bootstrap(config_path, verbose)
        if fmt != "all" and fmt not in CAPTION_FORMATS:
            raise typer.BadParameter(f"format must be one of: all, {', '.join(CAPTION_FORMATS)}")

        events = read_event_log(events_path).events
        captions = captions_from_steps(events) if from_steps else captions_from_events(events)
        style = get_template(template).caption_style
        logger.info("Extracted %d caption(s) from %s", len(captions), events_path)

        if fmt == "all":
            base = output_path.with_suffix("") if output_path.suffix else output_path
            exported = export_all_caption_formats(captions, base, width, height, style)
        else:
            exported = {
                fmt: export_captions(captions, output_path, fmt, video_width=width, video_height=height, style=style)
            }
        return {name: str(path) for name, path in exported.items()}

    typer.echo(json.dumps(_guarded(work), indent=2))


if __name__ == "__main__":
    app()
