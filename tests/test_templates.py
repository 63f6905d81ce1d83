from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from cinecut.errors import ValidationError
from cinecut.models import CaptionStyle
from cinecut.render.templates import all_templates, get_quality_preset, get_template, template_names


def test_presets_are_available_by_name() -> None:
    assert template_names() == ["trailer", "howto", "teaser"]
    assert [template.name for template in all_templates()] == template_names()

    trailer = get_template("trailer")
    assert trailer.color_grade == "dramatic"
    assert trailer.quality == "high"
    assert trailer.caption_style.font_size == 56
    assert get_template("teaser").framerate == 60
    assert get_template("howto").preserve_audio is True


def test_overrides_never_touch_the_preset() -> None:
    custom = get_template("howto", {"fade_in": 3.0, "caption_style": {"font_size": 30}})

    assert custom.fade_in == 3.0
    assert custom.caption_style == CaptionStyle(
        font_family="Arial",
        font_size=30,
        font_color="white",
        background_color="black@0.7",
        position="bottom",
        alignment="center",
        outline=2,
        outline_color="black",
        shadow=0,
        bold=False,
    )
    fresh = get_template("howto")
    assert fresh.fade_in == 1.0
    assert fresh.caption_style.font_size == 42


def test_templates_are_frozen() -> None:
    template = get_template("trailer")

    with pytest.raises(PydanticValidationError):
        template.fade_in = 9.0  # type: ignore[misc]


def test_invalid_overrides_and_unknown_names_raise() -> None:
    with pytest.raises(ValidationError) as excinfo:
        get_template("trailer", {"quality": "ultra"})
    assert any(error.startswith("quality") for error in excinfo.value.errors)

    with pytest.raises(ValidationError, match="Unknown template 'vlog'"):
        get_template("vlog")


def test_quality_presets() -> None:
    assert (get_quality_preset("draft").crf, get_quality_preset("draft").preset) == (28, "ultrafast")
    assert get_quality_preset("high").audio_bitrate == "256k"
    assert get_quality_preset("cinema") == get_quality_preset("standard")
