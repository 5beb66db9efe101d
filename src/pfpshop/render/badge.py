"""
Curved text badge along the bottom-left of the canvas.

Angles follow the canvas convention: radians, y axis pointing down, positive
angles turning clockwise on screen. The anchor at 135 degrees is the
bottom-left of the circle (225 degrees when measured y-up, counter-clockwise).
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from pfpshop.core.colors import RGBA, parse_color
from pfpshop.core.models import GenerationSettings
from pfpshop.render.shapes import ShapeGeometry, fill_with_coverage

logger = logging.getLogger(__name__)

ANCHOR_ANGLE = math.radians(135.0)
PADDING_RATIO = 0.04
THICKNESS_RATIO = 0.175
FONT_SIZE_RATIO = 0.9
ANGULAR_PADDING = 1.5
FADE_TURNS = 0.1

_FONT_CANDIDATES = {
    True: ("DejaVuSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf"),
    False: ("DejaVuSans.ttf", "Arial.ttf", "arial.ttf"),
}

Font = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]


@dataclass(frozen=True)
class GlyphPlacement:
    char: str
    angle: float
    angular_width: float
    x: float
    y: float
    rotation: float  # degrees, clockwise on screen


@dataclass(frozen=True)
class BadgeLayout:
    center_x: float
    center_y: float
    radius: float
    thickness: float
    font_size: int
    anchor: float
    angular_width: float
    glyphs: Tuple[GlyphPlacement, ...]


def badge_metrics(side: int) -> Tuple[float, float, int]:
    """(radius, thickness, font_size) for a ``side`` x ``side`` canvas."""
    radius = side / 2.0 - side * PADDING_RATIO
    thickness = radius * THICKNESS_RATIO
    return radius, thickness, max(1, int(round(thickness * FONT_SIZE_RATIO)))


def load_badge_font(size: int, bold: bool) -> Tuple[Font, int]:
    """
    Return (font, stroke_width). When only the built-in font is available, bold
    text is emulated with a stroke.
    """
    for name in _FONT_CANDIDATES[bold]:
        try:
            return ImageFont.truetype(name, size), 0
        except OSError:
            continue
    logger.debug("No TrueType font found for the badge; using Pillow's default font")
    font = ImageFont.load_default(size=size)
    return font, (max(1, int(round(size / 28.0))) if bold else 0)


def badge_layout(
    text: str,
    settings: GenerationSettings,
    side: int,
    font: Optional[Font] = None,
) -> BadgeLayout:
    """
    Compute the badge arc and the position of every character.

    Characters are placed in reverse order while the angle walks forward, so the
    text reads left to right along the bottom of the circle.
    """
    radius, thickness, font_size = badge_metrics(side)
    if font is None:
        font, _ = load_badge_font(font_size, settings.badge_text_bold)
    spacing = settings.badge_text_letter_spacing
    cx = cy = side / 2.0

    char_angles = [(font.getlength(ch) * spacing / radius) * ANGULAR_PADDING for ch in text]
    angular_width = sum(char_angles)

    glyphs = []
    angle = ANCHOR_ANGLE - angular_width / 2.0
    for ch, char_angle in zip(reversed(text), reversed(char_angles)):
        mid = angle + char_angle / 2.0
        # Tangent to the arc, then mirrored (+180) so the glyph is upright.
        rotation = (math.degrees(mid) + 90.0 + 180.0) % 360.0
        glyphs.append(GlyphPlacement(
            char=ch,
            angle=angle,
            angular_width=char_angle,
            x=cx + radius * math.cos(mid),
            y=cy + radius * math.sin(mid),
            rotation=rotation,
        ))
        angle += char_angle

    return BadgeLayout(
        center_x=cx,
        center_y=cy,
        radius=radius,
        thickness=thickness,
        font_size=font_size,
        anchor=ANCHOR_ANGLE,
        angular_width=angular_width,
        glyphs=tuple(glyphs),
    )


def conic_fade(layout: BadgeLayout, width: int, height: int) -> np.ndarray:
    """
    Opacity of the badge background around the canvas center: 1 within the
    text's angular span, fading to 0 over FADE_TURNS beyond either end.
    """
    ys, xs = np.ogrid[0:height, 0:width]
    theta = np.arctan2(ys.astype(np.float32) + 0.5 - layout.center_y, xs.astype(np.float32) + 0.5 - layout.center_x)
    diff = np.mod(theta - layout.anchor, 2.0 * math.pi)
    turns = np.minimum(diff, 2.0 * math.pi - diff) / (2.0 * math.pi)
    half_span = layout.angular_width / 2.0 / (2.0 * math.pi)
    return np.clip(1.0 - (turns - half_span) / FADE_TURNS, 0.0, 1.0)


def _color(value: str) -> RGBA:
    try:
        return parse_color(value)
    except ValueError:
        logger.warning("Unusable badge color %r; using black", value)
        return (0, 0, 0, 255)


def _glyph_tile(char: str, font: Font, size: int, fill: RGBA, stroke_width: int, rotation: float) -> Image.Image:
    tile = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    ImageDraw.Draw(tile).text(
        (size / 2.0, size / 2.0), char, font=font, fill=fill, anchor="mm",
        stroke_width=stroke_width, stroke_fill=fill,
    )
    # PIL rotates counter-clockwise.
    return tile.rotate(-rotation, resample=Image.BICUBIC)


def _composite_clipped(canvas: Image.Image, tile: Image.Image, left: int, top: int) -> None:
    sx, sy = max(0, -left), max(0, -top)
    if sx >= tile.width or sy >= tile.height:
        return
    canvas.alpha_composite(tile, dest=(max(0, left), max(0, top)), source=(sx, sy))


def draw_badge(canvas: Image.Image, text: str, settings: GenerationSettings) -> None:
    """Draw the faded badge ring and ``text`` curved along it (in place)."""
    if not text:
        return
    side = canvas.width
    radius, thickness, font_size = badge_metrics(side)
    font, stroke_width = load_badge_font(font_size, settings.badge_text_bold)
    layout = badge_layout(text, settings, side, font=font)
    logger.debug("Badge %r spans %.1f degrees", text, math.degrees(layout.angular_width))

    ring = ShapeGeometry(layout.center_x, layout.center_y, radius, radius, radius)
    coverage = ring.stroke_coverage(canvas.width, canvas.height, thickness)
    fill_with_coverage(canvas, coverage * conic_fade(layout, canvas.width, canvas.height),
                       settings.badge_background_color)

    fill = _color(settings.badge_text_color)
    tile_size = 2 * font_size
    for glyph in layout.glyphs:
        tile = _glyph_tile(glyph.char, font, tile_size, fill, stroke_width, glyph.rotation)
        _composite_clipped(
            canvas, tile,
            int(round(glyph.x - tile_size / 2.0)),
            int(round(glyph.y - tile_size / 2.0)),
        )
