"""Redaction of sensitive screen regions (blur, mosaic, pixelate, solid fill).

Regions are declared up front (fixed coordinates or a selector matched against
``input.fill`` events), resolved to frame-accurate pixel boxes, then compiled
into a chain of split/crop/effect/overlay subgraphs.
"""

from __future__ import annotations

import logging
import math
from dataclasses import fields
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

import yaml

from cinecut.effects.timecode import format_number, seconds_to_frame
from cinecut.errors import ValidationError
from cinecut.ingest.events import InputFill, UesEvent
from cinecut.models import (
    AutoDetectConfig,
    BlurMapConfig,
    RedactionRegion,
    RedactionStyle,
    RegionCoords,
    ResolvedRegion,
    Selector,
)

logger = logging.getLogger(__name__)

DEFAULT_BLUR_STRENGTH = 30
DEFAULT_MOSAIC_STRENGTH = 20
DEFAULT_SELECTOR_PADDING = 8
INPUT_BOX_WIDTH = 200
INPUT_BOX_HEIGHT = 40
REGION_KINDS = ("fixed", "selector", "dynamic")

DEFAULT_REDACTION_STYLE = RedactionStyle(kind="blur", strength=DEFAULT_BLUR_STRENGTH)


def validate_blur_map(config: BlurMapConfig) -> list[str]:
    """Collect every problem in ``config`` instead of stopping at the first."""

    errors: list[str] = []
    for region in config.regions:
        if not region.id:
            errors.append("Region missing id")
        if region.kind not in REGION_KINDS:
            errors.append(f"Region {region.id}: unknown type '{region.kind}'")
        if region.kind == "fixed" and region.coords is None:
            errors.append(f"Region {region.id}: fixed type requires coords")
        if region.kind == "selector" and region.selector is None:
            errors.append(f"Region {region.id}: selector type requires selector")
        if region.style is None:
            errors.append(f"Region {region.id}: missing style")
    return errors


def ensure_valid_blur_map(config: BlurMapConfig) -> None:
    errors = validate_blur_map(config)
    if errors:
        raise ValidationError(
            f"Invalid blur map: {len(errors)} problem(s)",
            field="regions",
            errors=errors,
        )


def matches_selector(region_selector: Selector | None, event_selector: Selector | None) -> bool:
    """Match on the discriminant field (``by``, then placeholder, then role+name)."""

    if region_selector is None or event_selector is None:
        return False

    if region_selector.by and event_selector.by == region_selector.by:
        return region_selector.value == event_selector.value

    if region_selector.placeholder and event_selector.placeholder:
        return region_selector.placeholder == event_selector.placeholder

    if region_selector.role and event_selector.role:
        return region_selector.role == event_selector.role and region_selector.name == event_selector.name

    return False


def auto_detect_selectors(config: AutoDetectConfig | None) -> list[Selector]:
    if config is None:
        return []

    selectors: list[Selector] = []
    if config.passwords:
        selectors.extend(
            [
                Selector(by="css", value='input[type="password"]'),
                Selector(placeholder="password"),
                Selector(placeholder="Password"),
            ]
        )
    if config.credit_cards:
        selectors.extend(
            [
                Selector(by="css", value='input[name*="card"]'),
                Selector(by="css", value='input[name*="cc"]'),
                Selector(by="css", value='input[autocomplete*="cc-"]'),
                Selector(placeholder="Card number"),
                Selector(placeholder="CVV"),
                Selector(placeholder="CVC"),
            ]
        )
    if config.emails:
        selectors.extend(
            [
                Selector(by="css", value='input[type="email"]'),
                Selector(placeholder="email"),
                Selector(placeholder="Email"),
            ]
        )
    for pattern in config.patterns:
        selectors.append(Selector(by="css", value=pattern))
    return selectors


def resolve_regions(
    events: Sequence[UesEvent],
    config: BlurMapConfig,
    video_width: int,
    video_height: int,
    fps: float = 30,
    default_style: RedactionStyle = DEFAULT_REDACTION_STYLE,
) -> list[ResolvedRegion]:
    """Resolve declared regions against the event log into in-frame pixel boxes."""

    ensure_valid_blur_map(config)
    resolved: list[ResolvedRegion] = []

    for region in config.regions:
        if region.kind != "fixed" or region.coords is None:
            continue
        padding = region.padding or 0
        box = _clamp_box(
            region.coords.x - padding,
            region.coords.y - padding,
            region.coords.width + padding * 2,
            region.coords.height + padding * 2,
            video_width,
            video_height,
        )
        if box is None:
            logger.debug("Fixed region %s lies outside the frame; skipped", region.id)
            continue
        resolved.append(
            ResolvedRegion(
                id=region.id,
                start_frame=seconds_to_frame(region.start_seconds, fps),
                end_frame=_end_frame(region.end_seconds, fps),
                x=box[0],
                y=box[1],
                width=box[2],
                height=box[3],
                style=region.style or default_style,
            )
        )

    selector_regions = [
        region for region in config.regions if region.kind in ("selector", "dynamic") and region.selector is not None
    ]
    global_selectors = [*config.global_selectors, *auto_detect_selectors(config.auto_detect)]

    for event in events:
        if not isinstance(event, InputFill) or event.to is None:
            continue

        matched = next((region for region in selector_regions if matches_selector(region.selector, event.selector)), None)
        if matched is not None:
            padding = DEFAULT_SELECTOR_PADDING if matched.padding is None else matched.padding
            region_id = f"input-{format_number(event.ts)}"
            style = matched.style or default_style
            end_frame = _end_frame(matched.end_seconds, fps)
        elif any(matches_selector(selector, event.selector) for selector in global_selectors):
            padding = DEFAULT_SELECTOR_PADDING
            region_id = f"global-{format_number(event.ts)}"
            style = default_style
            end_frame = None
        else:
            continue

        x, y = event.to
        box = _clamp_box(
            math.floor(x) - padding,
            math.floor(y) - padding,
            INPUT_BOX_WIDTH + padding * 2,
            INPUT_BOX_HEIGHT + padding * 2,
            video_width,
            video_height,
        )
        if box is None:
            logger.debug("Input region at ts=%s lies outside the frame; skipped", event.ts)
            continue
        resolved.append(
            ResolvedRegion(
                id=region_id,
                start_frame=seconds_to_frame(event.ts / 1000, fps),
                end_frame=end_frame,
                x=box[0],
                y=box[1],
                width=box[2],
                height=box[3],
                style=style,
            )
        )

    return resolved


def redaction_style_filter(style: RedactionStyle) -> str:
    if style.kind == "blur":
        strength = min(100.0, max(1.0, style.strength if style.strength is not None else DEFAULT_BLUR_STRENGTH))
        sigma = format_number(strength / 5)
        return f"boxblur={sigma}:{sigma}"

    if style.kind in ("mosaic", "pixelate"):
        strength = style.strength if style.strength is not None else DEFAULT_MOSAIC_STRENGTH
        block = max(4, math.floor(strength / 2))
        return f"scale=iw/{block}:ih/{block}:flags=neighbor,scale=iw*{block}:ih*{block}:flags=neighbor"

    if style.kind == "solid":
        return f"drawbox=x=0:y=0:w=iw:h=ih:color={style.color or 'black'}:t=fill"

    return "boxblur=10:10"


def blur_filter(
    regions: Sequence[ResolvedRegion],
    total_frames: int,
    source_label: str = "[0:v]",
    output_label: str | None = None,
) -> str:
    """Compile regions into one filtergraph; each region feeds the next through ``[out_i]``.

    Regions without an end frame stay active until ``total_frames``.
    """

    if not regions:
        return ""

    parts: list[str] = []
    current = source_label
    last_index = len(regions) - 1

    for index, region in enumerate(regions):
        end_frame = region.end_frame if region.end_frame is not None else total_frames
        if index == last_index:
            target = output_label or ""
        else:
            target = f"[out{index}]"

        parts.append(f"{current}split=2[base{index}][blur{index}]")
        parts.append(
            f"[blur{index}]crop={region.width}:{region.height}:{region.x}:{region.y}[cropped{index}]"
        )
        parts.append(f"[cropped{index}]{redaction_style_filter(region.style)}[blurred{index}]")
        parts.append(
            f"[base{index}][blurred{index}]overlay={region.x}:{region.y}"
            f":enable='between(n,{region.start_frame},{end_frame})'{target}"
        )
        current = target

    return ";".join(parts)


def simple_blur_filter(x: int, y: int, width: int, height: int, strength: float = DEFAULT_BLUR_STRENGTH) -> str:
    sigma = format_number(min(100.0, max(1.0, strength)) / 5)
    return ";".join(
        [
            "split[base][blur]",
            f"[blur]crop={width}:{height}:{x}:{y},boxblur={sigma}:{sigma}[blurred]",
            f"[base][blurred]overlay={x}:{y}",
        ]
    )


def blur_map_from_steps(
    steps: Sequence[Mapping[str, Any]],
    default_style: RedactionStyle = DEFAULT_REDACTION_STYLE,
) -> BlurMapConfig:
    """Selector regions for every masked journey step, plus password and card auto-detection."""

    regions: list[RedactionRegion] = []
    for index, step in enumerate(steps):
        locator = step.get("locator")
        if not step.get("mask") or not isinstance(locator, Mapping):
            continue
        regions.append(
            RedactionRegion(
                id=f"step-{index}",
                kind="selector",
                style=default_style,
                selector=Selector(**{item.name: locator.get(item.name) for item in fields(Selector)}),
                padding=DEFAULT_SELECTOR_PADDING,
            )
        )
    return BlurMapConfig(
        regions=regions,
        auto_detect=AutoDetectConfig(passwords=True, credit_cards=True),
    )


def _end_frame(end_seconds: float | None, fps: float) -> int | None:
    if end_seconds is None:
        return None
    return seconds_to_frame(end_seconds, fps)


def _clamp_box(
    x: float,
    y: float,
    width: float,
    height: float,
    frame_width: int,
    frame_height: int,
) -> tuple[int, int, int, int] | None:
    left = max(0, int(x))
    top = max(0, int(y))
    right = min(frame_width, int(x + width))
    bottom = min(frame_height, int(y + height))
    if right <= left or bottom <= top:
        return None
    return left, top, right - left, bottom - top


def load_blur_map(path: str | Path) -> BlurMapConfig:
    """Read a blur map from YAML or JSON and validate it."""

    source = Path(path)
    if not source.exists():
        raise FileNotFoundError(f"Blur map not found: {source}")
    try:
        payload = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValidationError(f"Could not parse blur map {source}: {exc}", field="blur_map") from exc
    config = blur_map_from_mapping(payload)
    ensure_valid_blur_map(config)
    return config


def blur_map_from_mapping(payload: Any) -> BlurMapConfig:
    """Build a ``BlurMapConfig`` from plain data; camelCase and snake_case keys are both accepted.

    Every non-numeric time, coordinate, padding or style value is reported in
    one ``ValidationError`` rather than stopping at the first.
    """

    if not isinstance(payload, Mapping):
        raise ValidationError("Blur map must be a mapping", field="blur_map")

    raw_regions = payload.get("regions") or []
    if not isinstance(raw_regions, list):
        raise ValidationError("Blur map 'regions' must be a list", field="regions")

    problems: list[str] = []
    regions: list[RedactionRegion] = []
    for index, raw in enumerate(raw_regions):
        if not isinstance(raw, Mapping):
            raise ValidationError("Each blur map region must be a mapping", field="regions")
        where = f"regions[{index}]"
        coords = raw.get("coords")
        start_seconds = _number(_pick(raw, "startTime", "start_seconds"), float, f"{where}.startTime", problems)
        padding = _number(raw.get("padding"), int, f"{where}.padding", problems)
        regions.append(
            RedactionRegion(
                id=str(raw.get("id") or ""),
                kind=raw.get("type") or raw.get("kind") or "",
                style=_style_from_mapping(raw.get("style"), f"{where}.style", problems),
                start_seconds=start_seconds if start_seconds is not None else 0.0,
                end_seconds=_number(_pick(raw, "endTime", "end_seconds"), float, f"{where}.endTime", problems),
                coords=RegionCoords(
                    **{
                        name: _number(coords.get(name, 0), int, f"{where}.coords.{name}", problems) or 0
                        for name in ("x", "y", "width", "height")
                    }
                )
                if isinstance(coords, Mapping)
                else None,
                selector=_selector_from_mapping(raw.get("selector")),
                padding=padding,
            )
        )

    if problems:
        raise ValidationError(
            f"Invalid blur map: {len(problems)} problem(s)",
            field="regions",
            errors=problems,
        )

    global_selectors = [
        selector
        for selector in (_selector_from_mapping(item) for item in _pick(payload, "globalSelectors", "global_selectors") or [])
        if selector is not None
    ]

    raw_auto = _pick(payload, "autoDetect", "auto_detect")
    auto_detect = None
    if isinstance(raw_auto, Mapping):
        auto_detect = AutoDetectConfig(
            passwords=bool(raw_auto.get("passwords", False)),
            credit_cards=bool(_pick(raw_auto, "creditCards", "credit_cards") or False),
            emails=bool(raw_auto.get("emails", False)),
            patterns=[str(pattern) for pattern in raw_auto.get("patterns") or []],
        )

    return BlurMapConfig(regions=regions, global_selectors=global_selectors, auto_detect=auto_detect)


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _number(raw: Any, convert: Callable[[Any], Any], where: str, problems: list[str]) -> Any:
    if raw is None:
        return None
    if isinstance(raw, bool):
        problems.append(f"{where}: not a number")
        return None
    try:
        return convert(raw)
    except (TypeError, ValueError):
        problems.append(f"{where}: not a number")
        return None


def _style_from_mapping(raw: Any, where: str, problems: list[str]) -> RedactionStyle | None:
    if not isinstance(raw, Mapping):
        return None
    return RedactionStyle(
        kind=raw.get("type") or raw.get("kind") or "blur",
        strength=_number(raw.get("strength"), float, f"{where}.strength", problems),
        color=raw.get("color"),
        feather=_number(raw.get("feather"), int, f"{where}.feather", problems),
    )


def _selector_from_mapping(raw: Any) -> Selector | None:
    if not isinstance(raw, Mapping):
        return None
    values = {item.name: raw.get(item.name) for item in fields(Selector)}
    if not any(value is not None for value in values.values()):
        return None
    return Selector(**{name: str(value) if value is not None else None for name, value in values.items()})
