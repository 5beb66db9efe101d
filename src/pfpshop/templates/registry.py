"""
Named presets: a settings overwrite plus the function that renders it.

Overwrites are computed from a base record and applied with
``GenerationSettings.with_overwrites``; the base is never modified, so one base
can feed many templates at once.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from PIL import Image

from pfpshop.core.colors import darken, lighten, parse_color, to_rgb_string
from pfpshop.core.models import BackgroundShape, GenerationSettings
from pfpshop.render.finisher import EncodedImage
from pfpshop.render.pipeline import render_profile_picture

logger = logging.getLogger(__name__)

RGBA_WHITE = "rgba(255, 255, 255, 1)"
IMAGE_TEMPLATE_ID = "gradient-bg-img"

Overwrites = Callable[[GenerationSettings], Dict[str, Any]]
Generate = Callable[[Image.Image, GenerationSettings], EncodedImage]


def _no_overwrites(_base: GenerationSettings) -> Dict[str, Any]:
    return {}


@dataclass(frozen=True)
class Template:
    template_id: str
    label: str
    compute_overwrites: Overwrites = _no_overwrites
    generate: Generate = render_profile_picture


@dataclass(frozen=True)
class Variation:
    template_id: str
    label: str
    settings: GenerationSettings
    image: EncodedImage


def _brand_rgb(base: GenerationSettings) -> str:
    """The brand color as ``rgb()``; black if it isn't a plain color (e.g. already a gradient)."""
    try:
        return to_rgb_string(parse_color(base.brand_color))
    except ValueError:
        logger.warning("Brand color %r is not a plain color; templates will use black", base.brand_color)
        return "rgb(0, 0, 0)"


def _lighter_darker(base: GenerationSettings, angle: int) -> str:
    color = _brand_rgb(base)
    return (
        f"linear-gradient({angle}deg, "
        f"{lighten(color, 32)} 0%, "
        f"{color} 50%, "
        f"{darken(color, 24)} 100%)"
    )


def _rings(bands: Iterable[str], width: int) -> str:
    stops = []
    for i, color in enumerate(bands):
        stops.append(f"{color} {i * width}%")
        stops.append(f"{color} {(i + 1) * width}%")
    return f"radial-gradient({', '.join(stops)})"


def _hollow_ring(base: GenerationSettings) -> Dict[str, Any]:
    color = _brand_rgb(base)
    return {
        "background_scale": 1.0,
        "background_vertical_position": 1.0,
        "border": False,
        "brand_color": f"radial-gradient({RGBA_WHITE} 0%, {RGBA_WHITE} 75%, {color} 75%, {color} 100%)",
    }


def _multiple_hollow_rings(base: GenerationSettings) -> Dict[str, Any]:
    color = _brand_rgb(base)
    return {
        "background_scale": 1.0,
        "background_vertical_position": 1.0,
        "border": False,
        "subject_scale": 0.9,
        "brand_color": _rings((color, RGBA_WHITE, color, RGBA_WHITE, color), 20),
    }


_TEMPLATE_LIST = (
    Template("default", "Default"),
    Template(
        "gradient-background-lighter-darker",
        "Vertical gradient",
        lambda base: {"brand_color": _lighter_darker(base, 0)},
    ),
    Template(
        "horizontal-gradient-background-lighter-darker",
        "Horizontal gradient",
        lambda base: {"brand_color": _lighter_darker(base, 90)},
    ),
    Template(
        "smaller-background",
        "Smaller background",
        lambda base: {
            "background_scale": 0.75,
            "background_vertical_position": 1.08,
            "border": False,
            "brand_color": _lighter_darker(base, 0),
        },
    ),
    Template(
        "smaller-background-bottom",
        "Smaller background, bottom",
        lambda base: {
            "background_scale": 0.8,
            "background_vertical_position": 0.8,
            "subject_scale": 0.9,
            "border": False,
            "brand_color": _lighter_darker(base, 0),
        },
    ),
    Template("hollow-ring", "Hollow ring", _hollow_ring),
    Template("multiple-hollow-rings", "Multiple hollow rings", _multiple_hollow_rings),
    Template(
        "default-black-and-white",
        "Black and white",
        lambda base: {"subject_saturation": 0.0, "subject_contrast": 115.0},
    ),
    Template(
        "smaller-square-bg",
        "Smaller square background",
        lambda base: {"background_shape": BackgroundShape.RECT, "background_scale": 0.7},
    ),
)

TEMPLATES: Dict[str, Template] = {t.template_id: t for t in _TEMPLATE_LIST}


def background_image_template(data_url: str, label: str = "Photo background") -> Template:
    """
    Template that draws ``data_url`` behind the subject. It is not part of
    TEMPLATES because the image has to come from the caller.
    """
    return Template(IMAGE_TEMPLATE_ID, label, lambda base: {"background_image": data_url})


def apply_template(
    base: GenerationSettings,
    template_id: str,
    templates: Optional[Mapping[str, Template]] = None,
) -> GenerationSettings:
    """New settings for ``template_id`` derived from ``base``. Raises KeyError for unknown ids."""
    template = (TEMPLATES if templates is None else templates)[template_id]
    return base.with_overwrites(**template.compute_overwrites(base))


def generate_variations(
    subject: Image.Image,
    base: GenerationSettings,
    template_ids: Optional[Iterable[str]] = None,
    max_workers: Optional[int] = None,
    templates: Optional[Mapping[str, Template]] = None,
) -> List[Variation]:
    """
    Render ``subject`` once per template, in template order.

    With ``max_workers`` > 1 the renders run in a thread pool; each one gets its
    own settings record and canvas. ``templates`` replaces the built-in registry,
    e.g. to add background_image_template().
    """
    registry = TEMPLATES if templates is None else templates
    ids = list(registry) if template_ids is None else list(template_ids)
    unknown = [i for i in ids if i not in registry]
    if unknown:
        raise KeyError(f"unknown template(s): {', '.join(unknown)}")

    # Force a lazily-opened image to decode once, before threads share it.
    subject.load()

    def run(template_id: str) -> Variation:
        template = registry[template_id]
        settings = apply_template(base, template_id, registry)
        logger.debug("Generating template %s", template_id)
        return Variation(template_id, template.label, settings, template.generate(subject, settings))

    if max_workers is not None and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(run, ids))
    return [run(i) for i in ids]
