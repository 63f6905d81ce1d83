from __future__ import annotations

from dataclasses import dataclass

from cinecut.effects.timecode import format_number
from cinecut.models import DuckingConfig

LOUDNESS_TARGET = -16.0


@dataclass(slots=True)
class AudioChainOptions:
    normalize: bool = False
    volume: float | None = None
    fade_in: float | None = None
    fade_out: float | None = None
    duration_seconds: float | None = None
    ducking: DuckingConfig | None = None


def normalize_filter(target: float = LOUDNESS_TARGET) -> str:
    return f"loudnorm=I={format_number(target)}:TP=-1.5:LRA=11"


def volume_filter(level: float) -> str:
    return f"volume={format_number(level)}"


def audio_fade_filter(
    fade_in: float | None = None,
    fade_out: float | None = None,
    duration_seconds: float | None = None,
) -> str:
    filters: list[str] = []
    if fade_in and fade_in > 0:
        filters.append(f"afade=t=in:st=0:d={format_number(fade_in)}")
    if fade_out and fade_out > 0 and duration_seconds:
        start = max(0.0, duration_seconds - fade_out)
        filters.append(f"afade=t=out:st={format_number(start)}:d={format_number(fade_out)}")
    return ",".join(filters)


def ducking_filter(config: DuckingConfig) -> str:
    """Time-varying ``volume`` expression with an attack, hold and release ramp per duck point.

    Outside every window the gain stays at 1.
    """

    if not config.points:
        return ""

    attack = config.attack_ms / 1000
    release = config.release_ms / 1000
    branches: list[str] = []

    for point in config.points:
        start = point.time_seconds
        end = point.time_seconds + point.duration_seconds
        attack_end = start + attack
        release_start = end - release

        level = format_number(point.target_level)
        s = format_number(start)
        a_end = format_number(attack_end)
        r_start = format_number(release_start)
        e = format_number(end)

        if attack > 0:
            branches.append(f"if(between(t,{s},{a_end}),1-(1-{level})*(t-{s})/{format_number(attack)}")
        branches.append(f"if(between(t,{a_end},{r_start}),{level}")
        if release > 0:
            branches.append(f"if(between(t,{r_start},{e}),{level}+(1-{level})*(t-{r_start})/{format_number(release)}")

    expression = ",".join(branches) + ",1" + ")" * len(branches)
    return f"volume='{expression}':eval=frame"


def sidechain_duck_filter(
    threshold: float = 0.015,
    ratio: float = 3,
    attack_ms: float = 20,
    release_ms: float = 250,
) -> str:
    """``sidechaincompress`` for ducking music under a second (voice) stream."""

    return (
        f"sidechaincompress=threshold={format_number(threshold)}"
        f":ratio={format_number(ratio)}"
        f":attack={format_number(attack_ms)}"
        f":release={format_number(release_ms)}"
        ":level_in=1:level_sc=1:mix=1"
    )


def audio_processing_chain(options: AudioChainOptions) -> str:
    """Normalize, duck, adjust volume and fade, skipping any step left at its default."""

    filters: list[str] = []

    if options.normalize:
        filters.append(normalize_filter())

    if options.ducking is not None:
        duck = ducking_filter(options.ducking)
        if duck:
            filters.append(duck)

    if options.volume is not None and options.volume != 1:
        filters.append(volume_filter(options.volume))

    fades = audio_fade_filter(options.fade_in, options.fade_out, options.duration_seconds)
    if fades:
        filters.append(fades)

    return ",".join(filters)
