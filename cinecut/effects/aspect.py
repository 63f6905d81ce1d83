from __future__ import annotations

import math
import re

from cinecut.models import AspectConfig, CropWindow

ASPECT_RATIOS: dict[str, AspectConfig] = {
    "16:9": AspectConfig(name="Landscape", width=1920, height=1080, ratio=16 / 9),
    "1:1": AspectConfig(name="Square", width=1080, height=1080, ratio=1.0),
    "9:16": AspectConfig(name="Portrait", width=1080, height=1920, ratio=9 / 16),
    "4:3": AspectConfig(name="Classic", width=1440, height=1080, ratio=4 / 3),
    "4:5": AspectConfig(name="Portrait 4:5", width=1080, height=1350, ratio=4 / 5),
    "21:9": AspectConfig(name="Ultrawide", width=2560, height=1080, ratio=21 / 9),
}

DEFAULT_ASPECT = "16:9"

_ASPECT_DESCRIPTIONS = {
    "16:9": "YouTube, TV (1920x1080)",
    "9:16": "TikTok, Instagram Reels (1080x1920)",
    "1:1": "Instagram Feed (1080x1080)",
    "4:3": "Classic TV (1440x1080)",
    "4:5": "Instagram Portrait (1080x1350)",
    "21:9": "Ultrawide Cinema (2560x1080)",
}

_RATIO_PATTERN = re.compile(r"^(\d+(?:\.\d+)?):(\d+(?:\.\d+)?)$")


def get_aspect_config(aspect: str) -> AspectConfig:
    """Look up a named aspect preset, falling back to 16:9."""

    return ASPECT_RATIOS.get(aspect, ASPECT_RATIOS[DEFAULT_ASPECT])


def available_aspects() -> list[dict[str, str]]:
    return [
        {"name": name, "ratio": name, "description": description}
        for name, description in _ASPECT_DESCRIPTIONS.items()
    ]


def parse_aspect_ratio(aspect: str) -> float:
    """Resolve a preset name or a ``W:H`` string to a numeric ratio (16:9 when unparseable)."""

    config = ASPECT_RATIOS.get(aspect)
    if config is not None:
        return config.ratio

    match = _RATIO_PATTERN.match(aspect.strip())
    if match:
        width, height = float(match.group(1)), float(match.group(2))
        if width > 0 and height > 0:
            return width / height

    return ASPECT_RATIOS[DEFAULT_ASPECT].ratio


def compute_crop(
    source_width: int,
    source_height: int,
    target_ratio: float,
    focus_x: float = 0.5,
    focus_y: float = 0.5,
) -> CropWindow:
    """Largest window of ``target_ratio`` inside the source, positioned by the focus point."""

    source_ratio = source_width / source_height
    if source_ratio > target_ratio:
        crop_height = source_height
        crop_width = math.floor(source_height * target_ratio)
    else:
        crop_width = source_width
        crop_height = math.floor(source_width / target_ratio)

    max_x = source_width - crop_width
    max_y = source_height - crop_height
    crop_x = max(0, min(math.floor(focus_x * max_x), max_x))
    crop_y = max(0, min(math.floor(focus_y * max_y), max_y))

    return CropWindow(x=crop_x, y=crop_y, width=crop_width, height=crop_height)


def compute_center_crop(source_width: int, source_height: int, target_ratio: float) -> CropWindow:
    return compute_crop(source_width, source_height, target_ratio, 0.5, 0.5)


def needs_crop(source_width: int, source_height: int, target_ratio: float, tolerance: float = 0.01) -> bool:
    """True when the ratios differ by more than ``tolerance`` (ignores rounding noise)."""

    return abs(source_width / source_height - target_ratio) > tolerance


def crop_filter_string(crop: CropWindow) -> str:
    return f"crop={crop.width}:{crop.height}:{crop.x}:{crop.y}"
