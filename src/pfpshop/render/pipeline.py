"""
The rendering pipeline: background, subject, badge, finish.

Each call creates its own canvas and reads its inputs without modifying them,
so concurrent renders need no coordination.
"""
from __future__ import annotations

import logging
import time

from PIL import Image

from pfpshop.core.models import GenerationSettings
from pfpshop.render.background import decode_data_url_image, render_background
from pfpshop.render.badge import draw_badge
from pfpshop.render.finisher import EncodedImage, finish, finish_canvas
from pfpshop.render.shapes import resolve_shape
from pfpshop.render.subject import composite_subject

logger = logging.getLogger(__name__)


def new_canvas(size: int) -> Image.Image:
    return Image.new("RGBA", (size, size), (0, 0, 0, 0))


def _render(subject: Image.Image, settings: GenerationSettings) -> Image.Image:
    # Fail on a bad shape or background image before drawing anything.
    resolve_shape(settings.background_shape)
    background_image = None
    if settings.background_image:
        background_image = decode_data_url_image(settings.background_image)

    canvas = new_canvas(settings.output_size)
    render_background(canvas, settings, background_image)
    composite_subject(canvas, subject.convert("RGBA"), settings)
    if settings.badge_enabled:
        draw_badge(canvas, settings.badge_text, settings)
    return canvas


def render_canvas(subject: Image.Image, settings: GenerationSettings) -> Image.Image:
    """Composite everything, including the finishing border and mask, without encoding."""
    canvas = _render(subject, settings)
    finish_canvas(canvas, settings)
    return canvas


def render_profile_picture(subject: Image.Image, settings: GenerationSettings) -> EncodedImage:
    """Render ``subject`` with ``settings`` and encode the result."""
    start = time.perf_counter()
    canvas = _render(subject, settings)
    result = finish(canvas, settings)
    logger.info(
        "Rendered %dx%d %s in %.2fs",
        settings.output_size, settings.output_size, result.mime_type, time.perf_counter() - start,
    )
    return result
