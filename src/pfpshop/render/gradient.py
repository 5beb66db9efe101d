"""
CSS-like gradient descriptors as canvas paints.

``css_gradient_to_canvas_gradient`` understands the small subset of CSS that the
templates and color pickers produce::

    linear-gradient(<angle>deg, <rgba?()> <pct>%, ...)
    radial-gradient(<rgba?()> <pct>%, ...)

Anything else is returned unchanged and is treated as a plain color by
``paint_image``.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import List, Tuple, Union

import numpy as np
from PIL import Image

from pfpshop.core.colors import RGBA, parse_color

logger = logging.getLogger(__name__)

# CSS default direction ("to bottom") when no angle is given.
DEFAULT_LINEAR_ANGLE_DEG = 180.0

# Resolution of the color lookup table used when rasterising a gradient.
_LUT_SIZE = 4096

_GRADIENT_RE = re.compile(r"^\s*(?P<kind>linear|radial)-gradient\((?P<body>.*)\)\s*$", re.IGNORECASE | re.DOTALL)
_ANGLE_RE = re.compile(r"^(?P<deg>[-+]?(?:\d+\.?\d*|\.\d+))deg$", re.IGNORECASE)
_STOP_RE = re.compile(r"^(?P<color>rgba?\([^()]*\))\s+(?P<pct>[-+]?(?:\d+\.?\d*|\.\d+))%$", re.IGNORECASE)


@dataclass(frozen=True)
class ColorStop:
    offset: float
    rgba: RGBA


@dataclass(frozen=True)
class LinearGradient:
    """Gradient along the line (x0, y0) -> (x1, y1), in canvas pixels."""
    x0: float
    y0: float
    x1: float
    y1: float
    stops: Tuple[ColorStop, ...]

    def positions(self, width: int, height: int) -> np.ndarray:
        dx = self.x1 - self.x0
        dy = self.y1 - self.y0
        length_sq = dx * dx + dy * dy
        ys, xs = np.ogrid[0:height, 0:width]
        if length_sq == 0:
            return np.zeros((height, width), dtype=np.float32)
        px = (xs.astype(np.float32) + 0.5 - self.x0) * (dx / length_sq)
        py = (ys.astype(np.float32) + 0.5 - self.y0) * (dy / length_sq)
        return (px + py).astype(np.float32)


@dataclass(frozen=True)
class RadialGradient:
    """Gradient from the center (t=0) to ``radius`` (t=1)."""
    cx: float
    cy: float
    radius: float
    stops: Tuple[ColorStop, ...]

    def positions(self, width: int, height: int) -> np.ndarray:
        if self.radius <= 0:
            return np.ones((height, width), dtype=np.float32)
        ys, xs = np.ogrid[0:height, 0:width]
        dx = xs.astype(np.float32) + 0.5 - self.cx
        dy = ys.astype(np.float32) + 0.5 - self.cy
        return (np.sqrt(dx * dx + dy * dy) / self.radius).astype(np.float32)


Gradient = Union[LinearGradient, RadialGradient]
Paint = Union[str, LinearGradient, RadialGradient]


def _split_top_level(body: str) -> List[str]:
    """Split on commas that are not nested inside parentheses."""
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in body:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return [" ".join(p.split()) for p in parts if p.strip()]


def _parse_stops(terms: List[str], source: str) -> Tuple[ColorStop, ...]:
    stops: List[ColorStop] = []
    for term in terms:
        m = _STOP_RE.match(term)
        if not m:
            logger.warning("Skipping unparseable gradient stop %r in %r", term, source)
            continue
        try:
            rgba = parse_color(m.group("color"))
        except ValueError:
            logger.warning("Skipping gradient stop with invalid color %r in %r", term, source)
            continue
        offset = min(1.0, max(0.0, float(m.group("pct")) / 100.0))
        stops.append(ColorStop(offset=offset, rgba=rgba))
    return tuple(stops)


def linear_gradient_line(angle_deg: float, width: int, height: int) -> Tuple[float, float, float, float]:
    """
    Start/end points of a CSS gradient line for ``angle_deg`` (0 = up, 90 = right).

    The line passes through the canvas center and is long enough for the 0% and
    100% stops to touch the corners.
    """
    a = math.radians(angle_deg)
    dx, dy = math.sin(a), -math.cos(a)
    half = (abs(width * math.sin(a)) + abs(height * math.cos(a))) / 2.0
    cx, cy = width / 2.0, height / 2.0
    return (cx - dx * half, cy - dy * half, cx + dx * half, cy + dy * half)


def css_gradient_to_canvas_gradient(value: str, width: int, height: int) -> Paint:
    """
    Turn a gradient descriptor into a LinearGradient/RadialGradient sized for a
    ``width`` x ``height`` canvas. Strings that are not gradients come back unchanged.
    """
    m = _GRADIENT_RE.match(value)
    if not m:
        return value

    kind = m.group("kind").lower()
    terms = _split_top_level(m.group("body"))

    angle = None
    if terms:
        am = _ANGLE_RE.match(terms[0])
        if am:
            angle = float(am.group("deg"))
            terms = terms[1:]

    stops = _parse_stops(terms, value)

    if kind == "linear":
        x0, y0, x1, y1 = linear_gradient_line(
            DEFAULT_LINEAR_ANGLE_DEG if angle is None else angle, width, height
        )
        return LinearGradient(x0=x0, y0=y0, x1=x1, y1=y1, stops=stops)

    return RadialGradient(cx=width / 2.0, cy=height / 2.0, radius=min(width, height) / 2.0, stops=stops)


def _color_lut(stops: Tuple[ColorStop, ...]) -> np.ndarray:
    """(_LUT_SIZE, 4) uint8 table sampling the stops over t in [0, 1]."""
    # Stable sort: stops sharing an offset keep their order and form a hard edge.
    ordered = sorted(stops, key=lambda s: s.offset)
    colors = np.array([s.rgba for s in ordered], dtype=np.float32)
    t = np.linspace(0.0, 1.0, _LUT_SIZE, dtype=np.float32)

    lut = np.empty((_LUT_SIZE, 4), dtype=np.float32)
    lut[:] = colors[0]
    for i in range(len(ordered) - 1):
        o0, o1 = ordered[i].offset, ordered[i + 1].offset
        if o1 <= o0:
            continue
        seg = (t >= o0) & (t <= o1)
        f = ((t[seg] - o0) / (o1 - o0))[:, None]
        lut[seg] = colors[i] + (colors[i + 1] - colors[i]) * f
    lut[t > ordered[-1].offset] = colors[-1]
    return np.clip(np.rint(lut), 0, 255).astype(np.uint8)


def rasterize_gradient(gradient: Gradient, width: int, height: int) -> Image.Image:
    if not gradient.stops:
        return Image.new("RGBA", (width, height), (0, 0, 0, 0))
    t = gradient.positions(width, height)
    idx = np.rint(np.clip(t, 0.0, 1.0) * (_LUT_SIZE - 1)).astype(np.intp)
    return Image.fromarray(_color_lut(gradient.stops)[idx], "RGBA")


def paint_image(paint: Paint, width: int, height: int) -> Image.Image:
    """
    Rasterise a paint into a ``width`` x ``height`` RGBA image.

    A string that is not a valid color paints opaque black, the way a canvas
    keeps its default fill style when given garbage.
    """
    if isinstance(paint, str):
        try:
            rgba = parse_color(paint)
        except ValueError:
            logger.warning("Unusable paint %r; filling with black", paint)
            rgba = (0, 0, 0, 255)
        return Image.new("RGBA", (width, height), rgba)
    return rasterize_gradient(paint, width, height)


def resolve_paint(value: str, width: int, height: int) -> Image.Image:
    """Shorthand for parsing ``value`` and rasterising the result."""
    return paint_image(css_gradient_to_canvas_gradient(value, width, height), width, height)
