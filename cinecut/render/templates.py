from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from cinecut.errors import ValidationError
from cinecut.models import CaptionStyle

TemplateName = Literal["trailer", "howto", "teaser"]
Quality = Literal["draft", "standard", "high"]
ColorGrade = Literal["none", "warm", "cool", "dramatic"]


class TemplateConfig(BaseModel):
    """Immutable bundle of editing knobs; obtain one through ``get_template``."""

    model_config = ConfigDict(frozen=True)

    name: TemplateName
    description: str

    intro_duration: float
    outro_duration: float
    transition_duration: float

    enable_zoom_pan: bool
    default_zoom: float
    max_zoom: float
    zoom_on_click: bool
    zoom_on_camera_mark: bool

    base_speed: float
    fast_forward_speed: float
    pause_speed: float
    enable_speed_ramps: bool

    color_grade: ColorGrade
    vignette: float

    fade_in: float
    fade_out: float

    enable_captions: bool
    caption_style: CaptionStyle
    auto_generate_captions: bool

    music_volume: float
    preserve_audio: bool
    audio_fade_in: float
    audio_fade_out: float

    quality: Quality
    framerate: int


@dataclass(frozen=True, slots=True)
class QualityPreset:
    crf: int
    preset: str
    audio_bitrate: str
    video_bitrate: str | None = None


_TEMPLATES: dict[str, TemplateConfig] = {
    "trailer": TemplateConfig(
        name="trailer",
        description="Punchy, high-energy product showcase with dynamic zooms and speed ramps",
        intro_duration=1,
        outro_duration=2,
        transition_duration=0.3,
        enable_zoom_pan=True,
        default_zoom=1.0,
        max_zoom=1.3,
        zoom_on_click=True,
        zoom_on_camera_mark=True,
        base_speed=1.0,
        fast_forward_speed=2.0,
        pause_speed=0.5,
        enable_speed_ramps=True,
        color_grade="dramatic",
        vignette=0.3,
        fade_in=0.5,
        fade_out=1.0,
        enable_captions=True,
        caption_style=CaptionStyle(
            font_family="Arial",
            font_size=56,
            font_color="white",
            position="bottom",
            alignment="center",
            outline=3,
            outline_color="black",
            shadow=2,
            bold=True,
        ),
        auto_generate_captions=True,
        music_volume=0.7,
        preserve_audio=False,
        audio_fade_in=1,
        audio_fade_out=2,
        quality="high",
        framerate=30,
    ),
    "howto": TemplateConfig(
        name="howto",
        description="Clear, instructional video with readable captions and steady pacing",
        intro_duration=2,
        outro_duration=3,
        transition_duration=0.5,
        enable_zoom_pan=True,
        default_zoom=1.0,
        max_zoom=1.2,
        zoom_on_click=True,
        zoom_on_camera_mark=True,
        base_speed=1.0,
        fast_forward_speed=1.5,
        pause_speed=1.0,
        enable_speed_ramps=False,
        color_grade="none",
        vignette=0,
        fade_in=1.0,
        fade_out=1.5,
        enable_captions=True,
        caption_style=CaptionStyle(
            font_family="Arial",
            font_size=42,
            font_color="white",
            background_color="black@0.7",
            position="bottom",
            alignment="center",
            outline=2,
            outline_color="black",
            shadow=0,
            bold=False,
        ),
        auto_generate_captions=True,
        music_volume=0.3,
        preserve_audio=True,
        audio_fade_in=0.5,
        audio_fade_out=1,
        quality="standard",
        framerate=30,
    ),
    "teaser": TemplateConfig(
        name="teaser",
        description="Short, attention-grabbing clip with fast cuts and dramatic effects",
        intro_duration=0.5,
        outro_duration=1,
        transition_duration=0.2,
        enable_zoom_pan=True,
        default_zoom=1.1,
        max_zoom=1.5,
        zoom_on_click=True,
        zoom_on_camera_mark=True,
        base_speed=1.2,
        fast_forward_speed=3.0,
        pause_speed=0.3,
        enable_speed_ramps=True,
        color_grade="dramatic",
        vignette=0.5,
        fade_in=0.3,
        fade_out=0.5,
        enable_captions=False,
        caption_style=CaptionStyle(
            font_family="Arial",
            font_size=64,
            font_color="white",
            position="center",
            alignment="center",
            outline=4,
            outline_color="black",
            shadow=3,
            bold=True,
        ),
        auto_generate_captions=False,
        music_volume=0.9,
        preserve_audio=False,
        audio_fade_in=0.5,
        audio_fade_out=0.5,
        quality="high",
        framerate=60,
    ),
}

_QUALITY_PRESETS: dict[str, QualityPreset] = {
    "draft": QualityPreset(crf=28, preset="ultrafast", audio_bitrate="128k"),
    "standard": QualityPreset(crf=23, preset="medium", audio_bitrate="192k"),
    "high": QualityPreset(crf=18, preset="slow", audio_bitrate="256k"),
}


def template_names() -> list[str]:
    return list(_TEMPLATES)


def get_template(name: str, overrides: Mapping[str, Any] | None = None) -> TemplateConfig:
    """Return a fresh copy of a named preset with ``overrides`` merged in.

    Overrides are validated like the preset itself; nested ``caption_style``
    overrides merge field by field.
    """

    base = _TEMPLATES.get(name)
    if base is None:
        raise ValidationError(
            f"Unknown template '{name}'. Available: {', '.join(_TEMPLATES)}",
            field="template",
        )

    data = base.model_dump()
    if overrides:
        _deep_merge(data, dict(overrides))

    try:
        return TemplateConfig.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid overrides for template '{name}'",
            field="template",
            errors=[f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()],
        ) from exc


def all_templates() -> list[TemplateConfig]:
    return [get_template(name) for name in _TEMPLATES]


def get_quality_preset(quality: str) -> QualityPreset:
    """Encoder settings per quality tier; unknown tiers use ``standard``."""

    return _QUALITY_PRESETS.get(quality, _QUALITY_PRESETS["standard"])


def _deep_merge(target: dict[str, Any], overrides: dict[str, Any]) -> None:
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _deep_merge(target[key], dict(value))
        else:
            target[key] = value
