from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np
from PIL import Image, ImageFilter

from pfpshop.core.models import REFERENCE_SIZE, GenerationSettings

logger = logging.getLogger(__name__)

# drop-shadow(-10px 10px 15px rgba(0, 0, 0, 0.45)) at the reference size
SHADOW_OFFSET_X = -10.0
SHADOW_OFFSET_Y = 10.0
SHADOW_BLUR = 15.0
SHADOW_OPACITY = 0.45


@dataclass(frozen=True)
class FilterTerm:
    """One CSS filter function. ``amount`` is a fraction (1.0 = 100%)."""
    name: str
    amount: float

    def css(self) -> str:
        if self.name == "drop-shadow":
            return (
                f"drop-shadow({SHADOW_OFFSET_X:g}px {SHADOW_OFFSET_Y:g}px {SHADOW_BLUR:g}px "
                f"rgba(0, 0, 0, {self.amount:g}))"
            )
        return f"{self.name}({self.amount * 100:g}%)"


@dataclass(frozen=True)
class SubjectPlacement:
    """Where the scaled subject lands on the canvas before rotation."""
    scale: float
    x: float
    y: float
    width: float
    height: float
    rotation: float

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)


def build_filter_chain(settings: GenerationSettings) -> Tuple[FilterTerm, ...]:
    """Filter functions to apply to the subject; neutral terms are left out."""
    chain = []
    if settings.subject_brightness != 100:
        chain.append(FilterTerm("brightness", settings.subject_brightness / 100.0))
    if settings.subject_contrast != 100:
        chain.append(FilterTerm("contrast", settings.subject_contrast / 100.0))
    if settings.subject_saturation != 100:
        chain.append(FilterTerm("saturate", settings.subject_saturation / 100.0))
    if settings.subject_shadow:
        chain.append(FilterTerm("drop-shadow", SHADOW_OPACITY))
    return tuple(chain)


def filter_css(chain: Tuple[FilterTerm, ...]) -> str:
    return " ".join(t.css() for t in chain) if chain else "none"


def _saturate_matrix(s: float) -> np.ndarray:
    return np.array(
        [
            [0.213 + 0.787 * s, 0.715 - 0.715 * s, 0.072 - 0.072 * s],
            [0.213 - 0.213 * s, 0.715 + 0.285 * s, 0.072 - 0.072 * s],
            [0.213 - 0.213 * s, 0.715 - 0.715 * s, 0.072 + 0.928 * s],
        ],
        dtype=np.float32,
    )


def apply_color_filters(img: Image.Image, chain: Tuple[FilterTerm, ...]) -> Image.Image:
    """Apply brightness/contrast/saturate terms in chain order (CSS semantics)."""
    terms = [t for t in chain if t.name != "drop-shadow"]
    rgba = img.convert("RGBA")
    if not terms:
        return rgba

    arr = np.asarray(rgba, dtype=np.float32) / 255.0
    rgb = arr[:, :, :3]
    for term in terms:
        if term.name == "brightness":
            rgb = rgb * term.amount
        elif term.name == "contrast":
            rgb = (rgb - 0.5) * term.amount + 0.5
        elif term.name == "saturate":
            rgb = rgb @ _saturate_matrix(term.amount).T
        else:
            raise ValueError(f"unknown filter {term.name!r}")
        rgb = np.clip(rgb, 0.0, 1.0)

    out = np.concatenate([rgb, arr[:, :, 3:]], axis=2)
    return Image.fromarray(np.rint(out * 255.0).astype(np.uint8), "RGBA")


def subject_placement(subject_size: Tuple[int, int], side: int, settings: GenerationSettings) -> SubjectPlacement:
    """Fit-inside scale, horizontally centered, bottom-aligned, shifted by the margins."""
    w, h = subject_size
    scale = min(side / w, side / h) * settings.subject_scale
    sw, sh = w * scale, h * scale
    x = (side - sw) / 2.0 + settings.subject_left_margin * side / 2.0
    y = side - sh - settings.subject_top_margin * side / 2.0
    return SubjectPlacement(scale=scale, x=x, y=y, width=sw, height=sh, rotation=settings.subject_rotation)


def _place_on_layer(subject: Image.Image, placement: SubjectPlacement, side: int) -> Image.Image:
    """Scale, translate and rotate ``subject`` onto a transparent side x side layer."""
    arr = np.asarray(subject, dtype=np.float32)
    # Resample premultiplied so transparent pixels don't bleed color into edges.
    arr[:, :, :3] *= arr[:, :, 3:] / 255.0

    new_w = max(1, int(round(subject.width * placement.scale)))
    new_h = max(1, int(round(subject.height * placement.scale)))
    interp = cv2.INTER_AREA if placement.scale < 1.0 else cv2.INTER_LANCZOS4
    resized = cv2.resize(arr, (new_w, new_h), interpolation=interp)

    # Canvas angles are clockwise on screen; OpenCV's are counter-clockwise.
    cx, cy = placement.x + new_w / 2.0, placement.y + new_h / 2.0
    m = cv2.getRotationMatrix2D((float(cx), float(cy)), -placement.rotation, 1.0)
    m[:, 2] += m[:, :2] @ np.array([placement.x, placement.y])
    layer = cv2.warpAffine(
        resized, m, (side, side),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0, 0),
    )
    layer = np.clip(layer, 0.0, 255.0)

    alpha = layer[:, :, 3:]
    safe = np.where(alpha > 0.0, alpha, 1.0)
    layer[:, :, :3] = np.where(alpha > 0.0, layer[:, :, :3] * 255.0 / safe, 0.0)
    return Image.fromarray(np.rint(np.clip(layer, 0.0, 255.0)).astype(np.uint8), "RGBA")


def _drop_shadow(layer: Image.Image, side: int) -> Image.Image:
    k = side / REFERENCE_SIZE
    dx = int(round(SHADOW_OFFSET_X * k))
    dy = int(round(SHADOW_OFFSET_Y * k))

    alpha = layer.getchannel("A").point(lambda p: int(round(p * SHADOW_OPACITY)))
    shifted = Image.new("L", layer.size, 0)
    shifted.paste(alpha, (dx, dy))
    # CSS blur radius is twice the Gaussian standard deviation.
    blurred = shifted.filter(ImageFilter.GaussianBlur(radius=SHADOW_BLUR * k / 2.0))

    shadow = Image.new("RGBA", layer.size, (0, 0, 0, 0))
    shadow.putalpha(blurred)
    return shadow


def composite_subject(canvas: Image.Image, subject: Image.Image, settings: GenerationSettings) -> None:
    """Filter, place and draw ``subject`` onto ``canvas`` (in place)."""
    side = canvas.width
    if subject.width == 0 or subject.height == 0 or settings.subject_scale <= 0:
        logger.debug("Nothing to composite (subject %sx%s, scale %s)",
                     subject.width, subject.height, settings.subject_scale)
        return

    chain = build_filter_chain(settings)
    placement = subject_placement(subject.size, side, settings)
    logger.debug("Subject filter=%s placement=%s", filter_css(chain), placement)

    filtered = apply_color_filters(subject, chain)
    layer = _place_on_layer(filtered, placement, side)

    if any(t.name == "drop-shadow" for t in chain):
        canvas.alpha_composite(_drop_shadow(layer, side))
    canvas.alpha_composite(layer)


def trim_transparent_edges(image: Image.Image, alpha_threshold: int = 48) -> Image.Image:
    """
    Crop a cutout to the box of pixels whose alpha is above ``alpha_threshold``.

    Returns a 0x0 image if no pixel qualifies.
    """
    rgba = image.convert("RGBA")
    opaque = np.asarray(rgba.getchannel("A")) > alpha_threshold
    rows = np.flatnonzero(opaque.any(axis=1))
    cols = np.flatnonzero(opaque.any(axis=0))
    if rows.size == 0 or cols.size == 0:
        return Image.new("RGBA", (0, 0))
    return rgba.crop((int(cols[0]), int(rows[0]), int(cols[-1]) + 1, int(rows[-1]) + 1))
