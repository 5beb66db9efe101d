from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

# Geometry constants are expressed at this canvas side and scaled linearly.
REFERENCE_SIZE = 1024


class BackgroundShape(str, Enum):
    RECT = "RECT"
    CIRCLE = "CIRCLE"
    ROUNDEDRECT = "ROUNDEDRECT"


class BorderLayer(str, Enum):
    BACKGROUND = "BACKGROUND"
    FOREGROUND = "FOREGROUND"


class OutputFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @property
    def pil_format(self) -> str:
        return self.value.upper()


@dataclass(frozen=True)
class GenerationSettings:
    """
    Everything that controls how a profile picture is rendered.

    brand_color:
        A color (``#F1337F``, ``rgb(...)``, named colors) or a gradient descriptor
        such as ``linear-gradient(90deg, rgb(...) 0%, rgb(...) 100%)``.
    background_image:
        Optional data URL of a raster drawn stretched over the fill.
    background_scale / background_vertical_position:
        Size of the background shape as a fraction of the canvas side, and its
        vertical anchor (1.0 = bottom-aligned).
    subject_top_margin / subject_left_margin:
        Offsets as a fraction of half the canvas side.
    subject_saturation / subject_contrast / subject_brightness:
        Percentages, 100 is neutral.
    output_size:
        Side length of the (square) output in pixels.

    Instances are immutable; use ``with_overwrites`` (or ``dataclasses.replace``)
    to derive variants.
    """
    brand_color: str = "#F1337F"
    background_image: Optional[str] = None
    background_shape: BackgroundShape = BackgroundShape.CIRCLE
    background_scale: float = 1.0
    background_vertical_position: float = 1.0

    subject_scale: float = 0.95
    subject_top_margin: float = 0.0
    subject_left_margin: float = 0.0
    subject_rotation: float = 0.0
    subject_saturation: float = 100.0
    subject_contrast: float = 100.0
    subject_brightness: float = 100.0
    subject_shadow: bool = False

    border: bool = False
    border_layer: BorderLayer = BorderLayer.FOREGROUND
    border_color: str = "#FFFFFF"
    border_thickness: float = 16.0

    badge_enabled: bool = False
    badge_text: str = "#OPENTOWORK"
    badge_background_color: str = "#2E7D32"
    badge_text_color: str = "#FFFFFF"
    badge_text_letter_spacing: float = 1.0
    badge_text_bold: bool = True

    output_format: OutputFormat = OutputFormat.PNG
    output_size: int = REFERENCE_SIZE

    use_background_shape_as_image_mask: bool = True

    def with_overwrites(self, **overwrites: Any) -> "GenerationSettings":
        """Return a new record with ``overwrites`` applied; ``self`` is unchanged."""
        return replace(self, **overwrites)
