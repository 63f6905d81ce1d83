from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Literal

Easing = Literal["linear", "ease_in", "ease_out", "ease_in_out"]
CaptionPosition = Literal["top", "center", "bottom"]
CaptionAlignment = Literal["left", "center", "right"]
RegionKind = Literal["fixed", "selector", "dynamic"]
RedactionKind = Literal["blur", "mosaic", "pixelate", "solid"]


@dataclass(frozen=True, slots=True)
class VideoInfo:
    """Probed description of the source clip; fps is constant for the whole clip."""

    width: int
    height: int
    duration_seconds: float
    fps: float


@dataclass(slots=True)
class ZoomPanKeyframe:
    time_seconds: float
    zoom: float = 1.0
    focus_x: float = 0.5
    focus_y: float = 0.5
    easing: Easing = "linear"


@dataclass(slots=True)
class SpeedSegment:
    start_seconds: float
    end_seconds: float
    speed_factor: float


@dataclass(slots=True)
class MotionBlurSegment:
    start_seconds: float
    end_seconds: float
    strength: float


@dataclass(slots=True)
class DuckPoint:
    time_seconds: float
    duration_seconds: float
    target_level: float


@dataclass(slots=True)
class DuckingConfig:
    """Attack -> hold -> release envelopes, one per duck point."""

    points: list[DuckPoint] = field(default_factory=list)
    attack_ms: float = 50.0
    release_ms: float = 200.0


@dataclass(frozen=True, slots=True)
class FocusPoint:
    """Inferred point of attention, normalized to the frame."""

    time_seconds: float
    x: float
    y: float
    weight: float


@dataclass(frozen=True, slots=True)
class CropWindow:
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True, slots=True)
class AspectConfig:
    name: str
    width: int
    height: int
    ratio: float


@dataclass(frozen=True, slots=True)
class CaptionStyle:
    """Optional caption overrides; unset fields fall back to DEFAULT_CAPTION_STYLE."""

    font_family: str | None = None
    font_size: int | None = None
    font_color: str | None = None
    background_color: str | None = None
    position: CaptionPosition | None = None
    alignment: CaptionAlignment | None = None
    outline: float | None = None
    outline_color: str | None = None
    shadow: float | None = None
    bold: bool | None = None
    italic: bool | None = None


DEFAULT_CAPTION_STYLE = CaptionStyle(
    font_family="Arial",
    font_size=48,
    font_color="white",
    background_color="black@0.5",
    position="bottom",
    alignment="center",
    outline=2,
    outline_color="black",
    shadow=1,
    bold=False,
    italic=False,
)


def resolve_caption_style(style: CaptionStyle | None, base: CaptionStyle = DEFAULT_CAPTION_STYLE) -> CaptionStyle:
    """Merge the set fields of ``style`` over ``base``."""

    if style is None:
        return base
    overrides = {
        item.name: getattr(style, item.name)
        for item in fields(style)
        if getattr(style, item.name) is not None
    }
    return replace(base, **overrides)


@dataclass(frozen=True, slots=True)
class Caption:
    """A timed caption; manipulation helpers always return new instances."""

    start_seconds: float
    end_seconds: float
    text: str
    style: CaptionStyle | None = None

    @property
    def duration_seconds(self) -> float:
        return self.end_seconds - self.start_seconds


@dataclass(frozen=True, slots=True)
class Selector:
    by: str | None = None
    value: str | None = None
    name: str | None = None
    role: str | None = None
    placeholder: str | None = None
    text: str | None = None


@dataclass(frozen=True, slots=True)
class RedactionStyle:
    kind: RedactionKind = "blur"
    strength: float | None = None
    color: str | None = None
    feather: int | None = None


@dataclass(frozen=True, slots=True)
class RegionCoords:
    x: int
    y: int
    width: int
    height: int


@dataclass(slots=True)
class RedactionRegion:
    """Declarative redaction descriptor; required fields depend on ``kind``."""

    id: str
    kind: RegionKind
    style: RedactionStyle | None
    start_seconds: float = 0.0
    end_seconds: float | None = None
    coords: RegionCoords | None = None
    selector: Selector | None = None
    padding: int | None = None


@dataclass(frozen=True, slots=True)
class ResolvedRegion:
    """Pixel/frame resolved redaction window, always inside the frame."""

    id: str
    start_frame: int
    end_frame: int | None
    x: int
    y: int
    width: int
    height: int
    style: RedactionStyle


@dataclass(slots=True)
class AutoDetectConfig:
    passwords: bool = False
    credit_cards: bool = False
    emails: bool = False
    patterns: list[str] = field(default_factory=list)


@dataclass(slots=True)
class BlurMapConfig:
    regions: list[RedactionRegion] = field(default_factory=list)
    global_selectors: list[Selector] = field(default_factory=list)
    auto_detect: AutoDetectConfig | None = None
