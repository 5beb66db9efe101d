import unittest

from tests._test_path import SRC  # noqa: F401

from pfpshop.core.errors import SettingsError
from pfpshop.core.models import BackgroundShape, BorderLayer, GenerationSettings, OutputFormat
from pfpshop.validation import validator as v


def _find(report, rule_id: str):
    for r in report.results:
        if r.rule_id == rule_id:
            return r
    raise AssertionError(f"Rule not found: {rule_id}")


class TestSettingsFromMapping(unittest.TestCase):
    def test_camel_case_keys_and_coercion(self):
        s = v.settings_from_mapping({
            "brandColor": "#000000",
            "backgroundShape": "roundedrect",
            "subjectScale": "0.8",
            "subjectShadow": "yes",
            "useBackgroundShapeAsImageMask": 0,
            "outputFormat": "image/jpg",
            "outputSize": 511.6,
        })
        self.assertEqual(s.brand_color, "#000000")
        self.assertEqual(s.background_shape, BackgroundShape.ROUNDEDRECT)
        self.assertEqual(s.subject_scale, 0.8)
        self.assertTrue(s.subject_shadow)
        self.assertFalse(s.use_background_shape_as_image_mask)
        self.assertEqual(s.output_format, OutputFormat.JPEG)
        self.assertEqual(s.output_size, 512)
        self.assertIsInstance(s.output_size, int)

    def test_snake_case_keys_on_top_of_base(self):
        base = GenerationSettings(border=True)
        s = v.settings_from_mapping({"border_layer": "background", "border_thickness": 4}, base=base)
        self.assertTrue(s.border)
        self.assertEqual(s.border_layer, BorderLayer.BACKGROUND)
        self.assertEqual(s.border_thickness, 4.0)
        self.assertEqual(base.border_layer, BorderLayer.FOREGROUND)

    def test_numbers_are_clamped(self):
        s = v.settings_from_mapping({"subjectSaturation": 500, "subjectScale": -1, "outputSize": 10})
        self.assertEqual(s.subject_saturation, 200.0)
        self.assertEqual(s.subject_scale, 0.0)
        self.assertEqual(s.output_size, 64)

    def test_empty_background_image_is_none(self):
        self.assertIsNone(v.settings_from_mapping({"backgroundImage": ""}).background_image)

    def test_rejections(self):
        bad = [
            {"noSuchSetting": 1},
            {"subjectScale": "big"},
            {"subjectScale": float("nan")},
            {"backgroundShape": "TRIANGLE"},
            {"outputFormat": "gif"},
            {"border": "maybe"},
            {"brandColor": None},
        ]
        for raw in bad:
            with self.subTest(raw=raw):
                with self.assertRaises(SettingsError):
                    v.settings_from_mapping(raw)

    def test_settings_error_is_value_error(self):
        with self.assertRaises(ValueError):
            v.settings_from_mapping({"border": "maybe"})


class TestValidateSettings(unittest.TestCase):
    def test_defaults_pass(self):
        report = v.validate_settings(GenerationSettings())
        self.assertTrue(report.passed)
        self.assertEqual(
            [r.rule_id for r in report.results],
            ["Ranges", "Background shape", "Border layer", "Output format", "Brand color", "Colors"],
        )
        self.assertEqual(report.failures, [])

    def test_out_of_range_and_bad_enum(self):
        s = GenerationSettings(subject_scale=3.0, output_size=10, background_shape="TRIANGLE")
        report = v.validate_settings(s)
        self.assertFalse(report.passed)
        ranges = _find(report, "Ranges")
        self.assertFalse(ranges.passed)
        self.assertEqual(ranges.metrics["out_of_range"], ["subject_scale", "output_size"])
        self.assertFalse(_find(report, "Background shape").passed)
        self.assertTrue(_find(report, "Border layer").passed)

    def test_brand_color_kinds(self):
        gradient = GenerationSettings(brand_color="radial-gradient(rgb(0, 0, 0) 0%, rgb(255, 255, 255) 100%)")
        r = _find(v.validate_settings(gradient), "Brand color")
        self.assertTrue(r.passed)
        self.assertEqual(r.metrics, {"kind": "RadialGradient", "stops": 2})

        garbage = GenerationSettings(brand_color="not-a-color")
        self.assertFalse(_find(v.validate_settings(garbage), "Brand color").passed)

    def test_bad_badge_color(self):
        report = v.validate_settings(GenerationSettings(badge_text_color="nope"))
        colors = _find(report, "Colors")
        self.assertFalse(colors.passed)
        self.assertEqual(colors.metrics["invalid"], ["badge_text_color"])

    def test_validation_does_not_modify(self):
        s = GenerationSettings(subject_scale=3.0)
        v.validate_settings(s)
        self.assertEqual(s.subject_scale, 3.0)

    def test_format_report_text(self):
        text = v.format_report_text(v.validate_settings(GenerationSettings(badge_text_color="nope")))
        lines = text.splitlines()
        self.assertEqual(lines[0], "PFPShop Settings Report")
        self.assertEqual(lines[2], "Overall: FAIL")
        self.assertIn("✅ Ranges: All numeric settings within range.", lines)
        self.assertIn("❌ Colors: Unparseable: badge_text_color.", lines)
