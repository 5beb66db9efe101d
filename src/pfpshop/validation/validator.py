"""
The boundary between loosely typed input (JSON, CLI flags, form data) and
GenerationSettings.

``settings_from_mapping`` coerces and clamps; the renderer trusts its output and
does not re-check ranges. ``validate_settings`` reports on an existing record
without changing it.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import fields
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

from pfpshop.core.colors import is_color
from pfpshop.core.errors import SettingsError
from pfpshop.core.models import BackgroundShape, BorderLayer, GenerationSettings, OutputFormat
from pfpshop.render.gradient import css_gradient_to_canvas_gradient
from pfpshop.validation.report import RuleResult, ValidationReport

logger = logging.getLogger(__name__)

NUMERIC_RANGES: Dict[str, Tuple[float, float]] = {
    "background_scale": (0.0, 1.5),
    "background_vertical_position": (0.0, 2.0),
    "subject_scale": (0.0, 1.5),
    "subject_top_margin": (-2.0, 2.0),
    "subject_left_margin": (-2.0, 2.0),
    "subject_rotation": (-360.0, 360.0),
    "subject_saturation": (0.0, 200.0),
    "subject_contrast": (0.0, 200.0),
    "subject_brightness": (0.0, 200.0),
    "border_thickness": (0.0, 128.0),
    "badge_text_letter_spacing": (0.0, 2.0),
    "output_size": (64, 4096),
}

ENUM_FIELDS: Dict[str, Type[Enum]] = {
    "background_shape": BackgroundShape,
    "border_layer": BorderLayer,
    "output_format": OutputFormat,
}

BOOL_FIELDS = frozenset({
    "subject_shadow",
    "border",
    "badge_enabled",
    "badge_text_bold",
    "use_background_shape_as_image_mask",
})

COLOR_FIELDS = ("border_color", "badge_background_color", "badge_text_color")

_FIELD_NAMES = frozenset(f.name for f in fields(GenerationSettings))
_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")
_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off", ""}
_FORMAT_ALIASES = {"jpg": "jpeg", "image/jpg": "jpeg"}


def snake_case(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()


def _coerce_number(name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise SettingsError(f"{name}: expected a number, got {value!r}") from None
    if math.isnan(number):
        raise SettingsError(f"{name}: expected a number, got NaN")
    lo, hi = NUMERIC_RANGES[name]
    clamped = min(hi, max(lo, number))
    if clamped != number:
        logger.debug("Clamped %s from %s to %s", name, number, clamped)
    return clamped


def _coerce_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
    raise SettingsError(f"{name}: expected a boolean, got {value!r}")


def _coerce_enum(name: str, value: Any) -> Enum:
    enum_type = ENUM_FIELDS[name]
    if isinstance(value, enum_type):
        return value
    text = str(value).strip()
    if enum_type is OutputFormat:
        text = _FORMAT_ALIASES.get(text.lower(), text.lower())
        if text.startswith("image/"):
            text = text[len("image/"):]
    else:
        text = text.upper()
    try:
        return enum_type(text)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_type)
        raise SettingsError(f"{name}: {value!r} is not one of {allowed}") from None


def _coerce(name: str, value: Any) -> Any:
    if name in NUMERIC_RANGES:
        number = _coerce_number(name, value)
        return int(round(number)) if name == "output_size" else number
    if name in ENUM_FIELDS:
        return _coerce_enum(name, value)
    if name in BOOL_FIELDS:
        return _coerce_bool(name, value)
    if name == "background_image":
        return str(value) if value else None
    if value is None:
        raise SettingsError(f"{name}: expected a string, got None")
    return str(value)


def settings_from_mapping(
    raw: Mapping[str, Any],
    base: Optional[GenerationSettings] = None,
) -> GenerationSettings:
    """
    Build GenerationSettings from ``raw`` (camelCase or snake_case keys) on top
    of ``base`` (defaults if omitted).

    Numbers are coerced and clamped to their documented ranges. Unknown keys,
    unknown enum values and uncoercible values raise SettingsError.
    """
    overwrites: Dict[str, Any] = {}
    for key, value in raw.items():
        name = snake_case(key)
        if name not in _FIELD_NAMES:
            raise SettingsError(f"unknown setting {key!r}")
        overwrites[name] = _coerce(name, value)
    return (base or GenerationSettings()).with_overwrites(**overwrites)


def _range_rule(settings: GenerationSettings) -> RuleResult:
    out_of_range: List[str] = []
    for name, (lo, hi) in NUMERIC_RANGES.items():
        value = getattr(settings, name)
        if not isinstance(value, (int, float)) or not (lo <= value <= hi):
            out_of_range.append(name)
    ok = not out_of_range
    msg = "All numeric settings within range." if ok else f"Out of range: {', '.join(out_of_range)}."
    return RuleResult(rule_id="Ranges", passed=ok, message=msg, metrics={"out_of_range": out_of_range})


def _enum_rule(rule_id: str, name: str, settings: GenerationSettings) -> RuleResult:
    value = getattr(settings, name)
    enum_type = ENUM_FIELDS[name]
    try:
        enum_type(value)
        ok = True
    except ValueError:
        ok = False
    allowed = [m.value for m in enum_type]
    msg = f"{getattr(value, 'value', value)}" if ok else f"{value!r} is not one of {', '.join(allowed)}."
    return RuleResult(rule_id=rule_id, passed=ok, message=msg, metrics={"value": str(value), "allowed": allowed})


def _brand_color_rule(settings: GenerationSettings) -> RuleResult:
    paint = css_gradient_to_canvas_gradient(settings.brand_color, settings.output_size, settings.output_size)
    if isinstance(paint, str):
        ok = is_color(paint)
        msg = "Solid color." if ok else f"{paint!r} is neither a color nor a gradient; it will render black."
        return RuleResult(rule_id="Brand color", passed=ok, message=msg, metrics={"kind": "color"})

    kind = type(paint).__name__
    n = len(paint.stops)
    ok = n >= 1
    msg = f"{kind} with {n} color stop(s)."
    if not ok:
        msg += " No usable stops; the background will be transparent."
    return RuleResult(rule_id="Brand color", passed=ok, message=msg, metrics={"kind": kind, "stops": n})


def _colors_rule(settings: GenerationSettings) -> RuleResult:
    bad = [name for name in COLOR_FIELDS if not is_color(getattr(settings, name))]
    ok = not bad
    msg = "Border and badge colors parse." if ok else f"Unparseable: {', '.join(bad)}."
    return RuleResult(rule_id="Colors", passed=ok, message=msg, metrics={"invalid": bad})


def validate_settings(settings: GenerationSettings) -> ValidationReport:
    """Check ``settings`` and return a ValidationReport; nothing is modified."""
    results: List[RuleResult] = [
        _range_rule(settings),
        _enum_rule("Background shape", "background_shape", settings),
        _enum_rule("Border layer", "border_layer", settings),
        _enum_rule("Output format", "output_format", settings),
        _brand_color_rule(settings),
        _colors_rule(settings),
    ]
    passed = all(r.passed for r in results)
    return ValidationReport(passed=passed, results=results)


def format_report_text(report: ValidationReport) -> str:
    lines: List[str] = []
    lines.append("PFPShop Settings Report")
    lines.append("-" * 23)
    lines.append(f"Overall: {'PASS' if report.passed else 'FAIL'}")
    lines.append("")
    for r in report.results:
        mark = "✅" if r.passed else "❌"
        lines.append(f"{mark} {r.rule_id}: {r.message}")
    return "\n".join(lines)
