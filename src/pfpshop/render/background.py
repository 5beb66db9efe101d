from __future__ import annotations

import base64
import binascii
import io
import logging
import re
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from pfpshop.core.errors import BackgroundImageError
from pfpshop.core.models import BorderLayer, GenerationSettings
from pfpshop.render.gradient import resolve_paint
from pfpshop.render.shapes import background_shape_geometry, coverage_to_mask, destination_in, draw_border

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[^,;]*)*?),(?P<payload>.*)$", re.DOTALL)


def decode_data_url_image(data_url: str) -> Image.Image:
    """
    Decode a ``data:image/...;base64,...`` URL into an RGBA image.

    Raises BackgroundImageError with a readable message on any failure.
    """
    m = _DATA_URL_RE.match(data_url.strip())
    if not m:
        raise BackgroundImageError("Background image is not a data URL.")
    if ";base64" not in m.group("params"):
        raise BackgroundImageError("Background image data URL must be base64-encoded.")
    try:
        raw = base64.b64decode(m.group("payload"), validate=False)
    except (binascii.Error, ValueError) as e:
        raise BackgroundImageError(f"Background image is not valid base64: {e}") from e
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise BackgroundImageError(f"Background image could not be decoded: {e}") from e
    img = ImageOps.exif_transpose(img)
    return img.convert("RGBA")


def render_background(
    canvas: Image.Image,
    settings: GenerationSettings,
    background_image: Optional[Image.Image] = None,
) -> None:
    """
    Fill, optionally cover with the background image, draw a background-layer
    border, then clip everything to the background shape.
    """
    w, h = canvas.size

    canvas.alpha_composite(resolve_paint(settings.brand_color, w, h))

    if background_image is None and settings.background_image:
        background_image = decode_data_url_image(settings.background_image)
    if background_image is not None:
        stretched = background_image.convert("RGBA").resize((w, h), Image.LANCZOS)
        canvas.alpha_composite(stretched)

    if settings.border and settings.border_layer == BorderLayer.BACKGROUND:
        draw_border(canvas, settings)

    geometry = background_shape_geometry(settings, w)
    logger.debug("Clipping background to %s", geometry)
    destination_in(canvas, coverage_to_mask(geometry.fill_coverage(w, h)))
