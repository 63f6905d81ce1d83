from __future__ import annotations

import re

ASS_WHITE = "&H00FFFFFF"

NAMED_ASS_COLORS: dict[str, str] = {
    "white": ASS_WHITE,
    "black": "&H00000000",
    "red": "&H000000FF",
    "green": "&H0000FF00",
    "blue": "&H00FF0000",
    "yellow": "&H0000FFFF",
    "cyan": "&H00FFFF00",
    "magenta": "&H00FF00FF",
    "black@0.5": "&H80000000",
    "black@0.7": "&H4D000000",
}

_HEX_RGB = re.compile(r"^#?([0-9A-Fa-f]{6})$")
_HEX_ARGB = re.compile(r"^#?([0-9A-Fa-f]{8})$")


def color_to_ass(color: str) -> str:
    """Convert a color name, ``#RRGGBB`` or ``#AARRGGBB`` to ASS ``&HAABBGGRR``.

    Unrecognised values fall back to opaque white.
    """

    named = NAMED_ASS_COLORS.get(color)
    if named is not None:
        return named

    match = _HEX_RGB.match(color)
    if match:
        value = match.group(1)
        red, green, blue = value[0:2], value[2:4], value[4:6]
        return f"&H00{blue}{green}{red}".upper()

    match = _HEX_ARGB.match(color)
    if match:
        value = match.group(1)
        alpha, red, green, blue = value[0:2], value[2:4], value[4:6], value[6:8]
        return f"&H{alpha}{blue}{green}{red}".upper()

    return ASS_WHITE
