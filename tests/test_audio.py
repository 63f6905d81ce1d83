from __future__ import annotations

import re

from cinecut.effects.audio import (
    AudioChainOptions,
    audio_fade_filter,
    audio_processing_chain,
    ducking_filter,
    normalize_filter,
    sidechain_duck_filter,
    volume_filter,
)
from cinecut.models import DuckingConfig, DuckPoint


def _evaluate_duck(expression: str, t: float) -> float:
    """Evaluate the nested if/between volume expression at time ``t``."""

    python = expression.replace("between(t,", "_between(t,").replace("if(", "_if(")
    return eval(python, {"_between": lambda v, a, b: a <= v <= b, "_if": lambda c, x, y: x if c else y, "t": t})


def test_ducking_envelope_attacks_holds_and_releases() -> None:
    config = DuckingConfig(points=[DuckPoint(time_seconds=2.0, duration_seconds=3.0, target_level=0.2)])

    text = ducking_filter(config)

    match = re.fullmatch(r"volume='(.*)':eval=frame", text)
    assert match is not None
    expression = match.group(1)
    assert expression.endswith(",1)))")
    assert _evaluate_duck(expression, 0.0) == 1
    assert _evaluate_duck(expression, 2.0) == 1
    assert abs(_evaluate_duck(expression, 2.025) - 0.6) < 1e-9
    assert _evaluate_duck(expression, 3.0) == 0.2
    assert abs(_evaluate_duck(expression, 4.9) - 0.6) < 1e-9
    assert _evaluate_duck(expression, 6.0) == 1


def test_ducking_with_instant_attack_and_release_holds_the_whole_window() -> None:
    config = DuckingConfig(points=[DuckPoint(1.0, 2.0, 0.3)], attack_ms=0, release_ms=0)

    text = ducking_filter(config)

    assert text == "volume='if(between(t,1,3),0.3,1)':eval=frame"
    expression = re.fullmatch(r"volume='(.*)':eval=frame", text).group(1)
    assert "/0" not in expression
    assert _evaluate_duck(expression, 1.0) == 0.3
    assert _evaluate_duck(expression, 3.0) == 0.3
    assert _evaluate_duck(expression, 3.5) == 1


def test_ducking_with_instant_attack_keeps_release_ramp() -> None:
    config = DuckingConfig(points=[DuckPoint(1.0, 2.0, 0.5)], attack_ms=0, release_ms=1000)

    expression = re.fullmatch(r"volume='(.*)':eval=frame", ducking_filter(config)).group(1)

    assert expression.endswith(",1))")
    assert _evaluate_duck(expression, 1.0) == 0.5
    assert _evaluate_duck(expression, 2.5) == 0.75


def test_ducking_without_points_is_empty() -> None:
    assert ducking_filter(DuckingConfig()) == ""


def test_basic_audio_filters() -> None:
    assert normalize_filter() == "loudnorm=I=-16:TP=-1.5:LRA=11"
    assert volume_filter(0.7) == "volume=0.7"
    assert audio_fade_filter(1, 2, 10) == "afade=t=in:st=0:d=1,afade=t=out:st=8:d=2"
    assert audio_fade_filter(None, 2, None) == ""
    assert sidechain_duck_filter().startswith("sidechaincompress=threshold=0.015:ratio=3")


def test_processing_chain_runs_steps_in_fixed_order() -> None:
    chain = audio_processing_chain(
        AudioChainOptions(
            normalize=True,
            volume=0.5,
            fade_in=1,
            fade_out=1,
            duration_seconds=10,
            ducking=DuckingConfig(points=[DuckPoint(1, 1, 0.3)]),
        )
    )

    parts = chain.split(",afade")
    assert chain.startswith("loudnorm=")
    assert chain.index("volume='") < chain.index("volume=0.5") < chain.index("afade=t=in")
    assert len(parts) == 3


def test_processing_chain_omits_default_steps() -> None:
    assert audio_processing_chain(AudioChainOptions()) == ""
    assert audio_processing_chain(AudioChainOptions(volume=1)) == ""
    assert audio_processing_chain(AudioChainOptions(volume=0.8)) == "volume=0.8"
