#!/usr/bin/env python3
"""
pfp_render.py

Render a stylized square profile picture from an already background-removed
image (a PNG whose transparent pixels are the removed background):
- Trims the cutout to its visible pixels
- Fills a circle / rect / rounded-rect background with a color, gradient or image
- Places the subject (filters, margins, rotation), an optional border and badge
- Writes PNG, JPEG or WebP

Usage:
  python pfp_render.py --input cutout.png --output out.png
  python pfp_render.py -i cutout.png -o out.png --shape ROUNDEDRECT --brand-color "#0A66C2"
  python pfp_render.py -i cutout.png -o out.webp --settings settings.json --badge-text "#HIRING"
  python pfp_render.py -i cutout.png --all-templates --output-dir variations/
  python pfp_render.py -i cutout.png --all-templates --output-dir variations/ --template-image photo.jpg

Notes:
- settings.json may use camelCase or snake_case keys; command-line flags win.
"""

from __future__ import annotations

import argparse
import base64
import json
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from PIL import Image, ImageOps

from pfpshop.core.models import GenerationSettings
from pfpshop.render.finisher import EncodedImage
from pfpshop.render.pipeline import render_profile_picture
from pfpshop.render.subject import trim_transparent_edges
from pfpshop.templates.registry import TEMPLATES, apply_template, background_image_template, generate_variations
from pfpshop.validation.validator import format_report_text, settings_from_mapping, validate_settings

logger = logging.getLogger("pfp_render")

_SUFFIX_FORMATS = {".png": "png", ".jpg": "jpeg", ".jpeg": "jpeg", ".webp": "webp"}


def _load_cutout(path: str, trim: bool = True) -> Image.Image:
    """Load a cutout, apply EXIF orientation, return RGBA (optionally trimmed)."""
    img = Image.open(path)
    img = ImageOps.exif_transpose(img)
    img = img.convert("RGBA")
    if trim:
        img = trim_transparent_edges(img)
        if img.width == 0 or img.height == 0:
            raise ValueError(f"{path} has no visible pixels; is the background already removed?")
    return img


def file_to_data_url(path: str) -> str:
    mime = mimetypes.guess_type(path)[0] or "application/octet-stream"
    data = base64.b64encode(Path(path).read_bytes()).decode("ascii")
    return f"data:{mime};base64,{data}"


def _build_settings(args: argparse.Namespace) -> GenerationSettings:
    raw: Dict[str, Any] = {}
    if args.settings:
        with open(args.settings, "r", encoding="utf-8") as f:
            loaded = json.load(f)
        if not isinstance(loaded, dict):
            raise ValueError(f"{args.settings} must contain a JSON object")
        raw.update(loaded)

    flags = {
        "brand_color": args.brand_color,
        "background_shape": args.shape,
        "output_size": args.size,
        "output_format": args.format,
        "badge_text": args.badge_text,
    }
    if args.format is None and args.output:
        flags["output_format"] = _SUFFIX_FORMATS.get(Path(args.output).suffix.lower())
    if args.badge_text:
        flags["badge_enabled"] = True
    if args.background_image:
        flags["background_image"] = file_to_data_url(args.background_image)
    raw.update({k: v for k, v in flags.items() if v is not None})

    return settings_from_mapping(raw)


def _write(encoded: EncodedImage, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encoded.data)


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Render a stylized profile picture from a background-removed image.")
    p.add_argument("--input", "-i", required=True, help="Path to the cutout (PNG with transparency)")
    p.add_argument("--output", "-o", help="Path to the output image (png/jpg/webp)")
    p.add_argument("--settings", help="JSON file with generation settings")
    p.add_argument("--template", choices=sorted(TEMPLATES), help="Apply a template on top of the settings")
    p.add_argument("--all-templates", action="store_true", help="Render every template into --output-dir")
    p.add_argument("--output-dir", help="Directory for --all-templates output")
    p.add_argument("--workers", type=int, default=1, help="Parallel renders for --all-templates (default: 1)")
    p.add_argument("--template-image", help="With --all-templates, also render the photo-background template over this image")
    p.add_argument("--brand-color", help='Background color or gradient, e.g. "#F1337F"')
    p.add_argument("--shape", help="Background shape: CIRCLE, RECT or ROUNDEDRECT")
    p.add_argument("--size", type=int, help="Output size in pixels (64-4096, default: 1024)")
    p.add_argument("--format", help="Output format: png, jpeg or webp (default: from --output suffix)")
    p.add_argument("--badge-text", help="Enable the curved badge with this text")
    p.add_argument("--background-image", help="Image file drawn behind the subject")
    p.add_argument("--no-trim", action="store_true", help="Do not trim transparent edges of the input")
    p.add_argument("--report", action="store_true", help="Print the settings report before rendering")
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.all_templates and not args.output_dir:
        parser.error("--all-templates requires --output-dir")
    if not args.all_templates and not args.output:
        parser.error("--output is required unless --all-templates is given")

    try:
        subject = _load_cutout(args.input, trim=not args.no_trim)
        settings = _build_settings(args)
        if args.template:
            settings = apply_template(settings, args.template)
        logger.debug("Settings: %s", settings)
        if args.report:
            report = validate_settings(settings)
            print(format_report_text(report))
            if report.failures:
                logger.warning("Settings checks failed: %s", ", ".join(r.rule_id for r in report.failures))

        if args.all_templates:
            out_dir = Path(args.output_dir)
            ext = settings.output_format.value
            registry = dict(TEMPLATES)
            if args.template_image:
                template = background_image_template(file_to_data_url(args.template_image))
                registry[template.template_id] = template
            for variation in generate_variations(subject, settings, max_workers=args.workers, templates=registry):
                target = out_dir / f"{variation.template_id}.{ext}"
                _write(variation.image, target)
                print(f"Saved: {target}")
            return 0

        encoded = render_profile_picture(subject, settings)
        _write(encoded, Path(args.output))
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    print(f"Saved: {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
