"""
Mask shapes, destination-in masking and the border stroke.

Every shape is a (possibly rounded) box: a circle is a square whose corner
radius equals half its side. Coverage masks come from the box's signed
distance field, which gives anti-aliased fills and strokes from one formula.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
from PIL import Image, ImageChops

from pfpshop.core.errors import UnknownShapeError
from pfpshop.core.models import REFERENCE_SIZE, BackgroundShape, BorderLayer, GenerationSettings
from pfpshop.render.gradient import resolve_paint

logger = logging.getLogger(__name__)

CORNER_RADIUS_AT_REFERENCE = 72.0

# Edge ramp, in pixels, laid entirely inside the outline.
AA_WIDTH = 0.5


def _coverage(sdf: np.ndarray) -> np.ndarray:
    return np.clip(-sdf / AA_WIDTH, 0.0, 1.0)


@dataclass(frozen=True)
class ShapeGeometry:
    cx: float
    cy: float
    half_width: float
    half_height: float
    corner_radius: float = 0.0

    @property
    def left(self) -> float:
        return self.cx - self.half_width

    @property
    def top(self) -> float:
        return self.cy - self.half_height

    @property
    def right(self) -> float:
        return self.cx + self.half_width

    @property
    def bottom(self) -> float:
        return self.cy + self.half_height

    def inset(self, amount: float) -> "ShapeGeometry":
        hw = max(0.0, self.half_width - amount)
        hh = max(0.0, self.half_height - amount)
        return ShapeGeometry(self.cx, self.cy, hw, hh, min(self.corner_radius, hw, hh))

    def signed_distance(self, width: int, height: int) -> np.ndarray:
        """Distance from each pixel center to the outline; negative inside."""
        ys, xs = np.ogrid[0:height, 0:width]
        r = min(self.corner_radius, self.half_width, self.half_height)
        qx = np.abs(xs.astype(np.float32) + 0.5 - self.cx) - (self.half_width - r)
        qy = np.abs(ys.astype(np.float32) + 0.5 - self.cy) - (self.half_height - r)
        outside = np.sqrt(np.maximum(qx, 0.0) ** 2 + np.maximum(qy, 0.0) ** 2)
        inside = np.minimum(np.maximum(qx, qy), 0.0)
        return (outside + inside - r).astype(np.float32)

    def fill_coverage(self, width: int, height: int) -> np.ndarray:
        """Anti-aliased coverage, 0 for every pixel whose center lies outside."""
        return _coverage(self.signed_distance(width, height))

    def stroke_coverage(self, width: int, height: int, line_width: float) -> np.ndarray:
        """Coverage of a stroke of ``line_width`` centered on the outline."""
        return _coverage(np.abs(self.signed_distance(width, height)) - line_width / 2.0)


def resolve_shape(shape: Union[BackgroundShape, str]) -> BackgroundShape:
    try:
        return BackgroundShape(shape)
    except ValueError:
        raise UnknownShapeError(shape) from None


def corner_radius(side: int) -> float:
    return CORNER_RADIUS_AT_REFERENCE * side / REFERENCE_SIZE


def background_shape_geometry(settings: GenerationSettings, side: int) -> ShapeGeometry:
    """
    Where the background shape sits on a ``side`` x ``side`` canvas.

    ``background_vertical_position`` is an anchor independent of the scale: at 1.0
    the shape's bottom touches the canvas bottom for every shape.
    """
    shape = resolve_shape(settings.background_shape)
    scale = settings.background_scale
    pos = settings.background_vertical_position
    box = side * scale

    if shape is BackgroundShape.CIRCLE:
        r = box / 2.0
        cy = side - side * scale / 2.0 * (2.0 * pos - 1.0)
        return ShapeGeometry(side / 2.0, cy, r, r, r)

    left = (side - box) / 2.0
    top = side - side * scale * pos
    radius = corner_radius(side) if shape is BackgroundShape.ROUNDEDRECT else 0.0
    return ShapeGeometry(left + box / 2.0, top + box / 2.0, box / 2.0, box / 2.0, radius)


def border_geometry(settings: GenerationSettings, side: int) -> ShapeGeometry:
    """The stroke path: the background shape inset by half the border thickness."""
    return background_shape_geometry(settings, side).inset(settings.border_thickness / 2.0)


def image_mask_geometry(shape: Union[BackgroundShape, str], side: int) -> Optional[ShapeGeometry]:
    """Full-canvas mask for the finished image; None for RECT (already square)."""
    shape = resolve_shape(shape)
    half = side / 2.0
    if shape is BackgroundShape.CIRCLE:
        return ShapeGeometry(half, half, half, half, half)
    if shape is BackgroundShape.ROUNDEDRECT:
        return ShapeGeometry(half, half, half, half, corner_radius(side))
    return None


def coverage_to_mask(coverage: np.ndarray) -> Image.Image:
    return Image.fromarray(np.rint(coverage * 255.0).astype(np.uint8), "L")


def destination_in(canvas: Image.Image, mask: Image.Image) -> None:
    """Keep existing pixels only where ``mask`` is opaque (in place)."""
    canvas.putalpha(ImageChops.multiply(canvas.getchannel("A"), mask))


def fill_with_coverage(canvas: Image.Image, coverage: np.ndarray, paint: str) -> None:
    """Source-over ``paint`` onto ``canvas`` through a coverage mask (in place)."""
    layer = resolve_paint(paint, canvas.width, canvas.height)
    layer.putalpha(ImageChops.multiply(layer.getchannel("A"), coverage_to_mask(coverage)))
    canvas.alpha_composite(layer)


def draw_border(canvas: Image.Image, settings: GenerationSettings) -> None:
    if not settings.border or settings.border_thickness <= 0:
        return
    side = canvas.width
    geometry = border_geometry(settings, side)
    logger.debug("Drawing %s border (%.1fpx) around %s", BorderLayer(settings.border_layer).value,
                 settings.border_thickness, geometry)
    coverage = geometry.stroke_coverage(canvas.width, canvas.height, settings.border_thickness)
    fill_with_coverage(canvas, coverage, settings.border_color)
