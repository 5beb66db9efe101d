from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass

from PIL import Image

from pfpshop.core.models import BorderLayer, GenerationSettings, OutputFormat
from pfpshop.render.shapes import coverage_to_mask, destination_in, draw_border, image_mask_geometry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodedImage:
    """A finished, encoded profile picture."""
    data: bytes
    output_format: OutputFormat
    size: int

    @property
    def mime_type(self) -> str:
        return self.output_format.mime_type

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"


def apply_image_mask(canvas: Image.Image, settings: GenerationSettings) -> None:
    """Clip the whole composited image to the full-canvas version of the background shape."""
    geometry = image_mask_geometry(settings.background_shape, canvas.width)
    if geometry is None:
        return
    destination_in(canvas, coverage_to_mask(geometry.fill_coverage(canvas.width, canvas.height)))


def encode_canvas(canvas: Image.Image, output_format: OutputFormat, size: int) -> bytes:
    img = canvas
    if img.size != (size, size):
        img = img.resize((size, size), Image.LANCZOS)

    buf = io.BytesIO()
    if output_format is OutputFormat.JPEG:
        # No alpha in JPEG; transparent areas come out black, as from a browser canvas.
        flat = Image.new("RGBA", img.size, (0, 0, 0, 255))
        flat.alpha_composite(img)
        flat.convert("RGB").save(buf, format="JPEG", quality=95, optimize=True)
    elif output_format is OutputFormat.WEBP:
        img.save(buf, format="WEBP", quality=95)
    else:
        img.save(buf, format="PNG")
    return buf.getvalue()


def finish_canvas(canvas: Image.Image, settings: GenerationSettings) -> None:
    """Foreground border and final shape mask, applied in place."""
    if settings.border and settings.border_layer == BorderLayer.FOREGROUND:
        draw_border(canvas, settings)

    if settings.use_background_shape_as_image_mask:
        apply_image_mask(canvas, settings)


def finish(canvas: Image.Image, settings: GenerationSettings) -> EncodedImage:
    finish_canvas(canvas, settings)

    output_format = OutputFormat(settings.output_format)
    data = encode_canvas(canvas, output_format, settings.output_size)
    logger.debug("Encoded %s, %d bytes", output_format.mime_type, len(data))
    return EncodedImage(data=data, output_format=output_format, size=settings.output_size)
