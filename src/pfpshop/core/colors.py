"""
Color strings as the renderer understands them.

Pillow's ``ImageColor`` covers hex, named, ``hsl()`` and ``hsv()`` colors, but reads
the alpha of ``rgba()`` as 0..255. Gradient descriptors (and most color pickers)
write CSS alpha as 0..1, so ``rgb()`` / ``rgba()`` are parsed here.
"""
from __future__ import annotations

import colorsys
import re
from typing import Tuple

from PIL import ImageColor

RGBA = Tuple[int, int, int, int]

_RGB_FUNC_RE = re.compile(r"^rgba?\((?P<args>[^()]*)\)$", re.IGNORECASE)


def _clamp(v: float, lo: float, hi: float) -> float:
    return lo if v < lo else (hi if v > hi else v)


def _channel(token: str) -> int:
    token = token.strip()
    if token.endswith("%"):
        return int(round(_clamp(float(token[:-1]), 0.0, 100.0) * 2.55))
    return int(round(_clamp(float(token), 0.0, 255.0)))


def _alpha(token: str) -> int:
    token = token.strip()
    if token.endswith("%"):
        return int(round(_clamp(float(token[:-1]) / 100.0, 0.0, 1.0) * 255))
    return int(round(_clamp(float(token), 0.0, 1.0) * 255))


def parse_color(value: str) -> RGBA:
    """
    Parse a CSS-like color string into an (r, g, b, a) tuple of 0..255 ints.

    Raises ValueError if the string is not a color.
    """
    text = value.strip()
    if text.lower() == "transparent":
        return (0, 0, 0, 0)

    m = _RGB_FUNC_RE.match(text)
    if m:
        args = m.group("args").replace("/", ",")
        parts = [p for p in re.split(r"[,\s]+", args.strip()) if p]
        if len(parts) not in (3, 4):
            raise ValueError(f"expected 3 or 4 components in {value!r}")
        try:
            r, g, b = (_channel(p) for p in parts[:3])
            a = _alpha(parts[3]) if len(parts) == 4 else 255
        except ValueError as e:
            raise ValueError(f"invalid color component in {value!r}") from e
        return (r, g, b, a)

    rgb = ImageColor.getrgb(text)
    if len(rgb) == 3:
        return (rgb[0], rgb[1], rgb[2], 255)
    return (rgb[0], rgb[1], rgb[2], rgb[3])


def is_color(value: str) -> bool:
    try:
        parse_color(value)
    except ValueError:
        return False
    return True


def to_rgb_string(rgba: RGBA) -> str:
    """``rgb(r, g, b)``, or ``rgba(r, g, b, a)`` when not fully opaque."""
    r, g, b, a = rgba
    if a >= 255:
        return f"rgb({r}, {g}, {b})"
    return f"rgba({r}, {g}, {b}, {round(a / 255.0, 2):g})"


def _shift_lightness(value: str, amount: float) -> str:
    r, g, b, a = parse_color(value)
    h, l, s = colorsys.rgb_to_hls(r / 255.0, g / 255.0, b / 255.0)
    l = _clamp(l + amount / 100.0, 0.0, 1.0)
    nr, ng, nb = colorsys.hls_to_rgb(h, l, s)
    return to_rgb_string((int(round(nr * 255)), int(round(ng * 255)), int(round(nb * 255)), a))


def lighten(value: str, amount: float = 10) -> str:
    """Raise HSL lightness by ``amount`` percentage points."""
    return _shift_lightness(value, amount)


def darken(value: str, amount: float = 10) -> str:
    """Lower HSL lightness by ``amount`` percentage points."""
    return _shift_lightness(value, -amount)
