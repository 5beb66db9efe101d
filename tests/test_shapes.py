import unittest

import numpy as np
from PIL import Image

from tests._test_path import SRC  # noqa: F401

from pfpshop.core.errors import UnknownShapeError
from pfpshop.core.models import BackgroundShape, BorderLayer, GenerationSettings
from pfpshop.render.shapes import (
    background_shape_geometry,
    border_geometry,
    corner_radius,
    coverage_to_mask,
    destination_in,
    draw_border,
    image_mask_geometry,
    resolve_shape,
)


class TestBackgroundGeometry(unittest.TestCase):
    def test_full_circle(self):
        g = background_shape_geometry(GenerationSettings(), 1024)
        self.assertEqual((g.cx, g.cy, g.half_width, g.corner_radius), (512.0, 512.0, 512.0, 512.0))

    def test_small_circle_is_bottom_aligned(self):
        s = GenerationSettings(background_scale=0.5, background_vertical_position=1.0)
        g = background_shape_geometry(s, 1024)
        self.assertAlmostEqual(g.half_width, 256.0)
        self.assertAlmostEqual(g.cy, 768.0)
        self.assertAlmostEqual(g.bottom, 1024.0)

    def test_rect_box(self):
        s = GenerationSettings(background_shape=BackgroundShape.RECT, background_scale=0.5)
        g = background_shape_geometry(s, 1024)
        self.assertEqual((g.left, g.top, g.right, g.bottom), (256.0, 512.0, 768.0, 1024.0))
        self.assertEqual(g.corner_radius, 0.0)

    def test_anchor_is_shared_by_all_shapes(self):
        for shape in BackgroundShape:
            s = GenerationSettings(background_shape=shape, background_scale=0.6, background_vertical_position=0.8)
            g = background_shape_geometry(s, 1000)
            # bottom = H - H*scale*pos + H*scale
            self.assertAlmostEqual(g.bottom, 1000 - 600 * 0.8 + 600, places=6)

    def test_rounded_corner_scales_with_size(self):
        s = GenerationSettings(background_shape=BackgroundShape.ROUNDEDRECT)
        self.assertAlmostEqual(background_shape_geometry(s, 1024).corner_radius, 72.0)
        self.assertAlmostEqual(background_shape_geometry(s, 512).corner_radius, 36.0)
        self.assertAlmostEqual(corner_radius(2048), 144.0)

    def test_unknown_shape(self):
        with self.assertRaises(UnknownShapeError):
            resolve_shape("TRIANGLE")
        with self.assertRaises(ValueError):
            background_shape_geometry(GenerationSettings(background_shape="TRIANGLE"), 100)  # type: ignore[arg-type]
        self.assertIs(resolve_shape("RECT"), BackgroundShape.RECT)


class TestBorder(unittest.TestCase):
    def test_rect_border_is_inset_by_half_thickness(self):
        s = GenerationSettings(background_shape=BackgroundShape.RECT, background_scale=0.7,
                               border=True, border_thickness=20)
        bg = background_shape_geometry(s, 1024)
        path = border_geometry(s, 1024)
        self.assertAlmostEqual(path.left - bg.left, 10.0)
        self.assertAlmostEqual(path.top - bg.top, 10.0)
        self.assertAlmostEqual(bg.right - path.right, 10.0)
        self.assertAlmostEqual(bg.bottom - path.bottom, 10.0)

    def test_stroke_outer_edge_is_flush_with_background(self):
        s = GenerationSettings(background_shape=BackgroundShape.RECT, border=True, border_thickness=20,
                               border_color="#ff0000", output_size=200)
        canvas = Image.new("RGBA", (200, 200), (0, 0, 0, 0))
        draw_border(canvas, s)
        self.assertEqual(canvas.getpixel((0, 100)), (255, 0, 0, 255))
        self.assertEqual(canvas.getpixel((5, 100)), (255, 0, 0, 255))
        self.assertEqual(canvas.getpixel((19, 100)), (255, 0, 0, 255))
        self.assertEqual(canvas.getpixel((25, 100))[3], 0)
        self.assertEqual(canvas.getpixel((100, 100))[3], 0)

    def test_disabled_border_is_noop(self):
        canvas = Image.new("RGBA", (50, 50), (0, 0, 0, 0))
        draw_border(canvas, GenerationSettings(border=False, border_layer=BorderLayer.BACKGROUND))
        self.assertIsNone(canvas.getbbox())


class TestMasking(unittest.TestCase):
    def test_destination_in_keeps_overlap_only(self):
        canvas = Image.new("RGBA", (100, 100), (255, 0, 0, 255))
        g = image_mask_geometry(BackgroundShape.CIRCLE, 100)
        destination_in(canvas, coverage_to_mask(g.fill_coverage(100, 100)))
        self.assertEqual(canvas.getpixel((50, 50)), (255, 0, 0, 255))
        self.assertEqual(canvas.getpixel((0, 0))[3], 0)
        self.assertEqual(canvas.getpixel((99, 99))[3], 0)

    def test_circle_coverage_is_zero_outside(self):
        g = image_mask_geometry(BackgroundShape.CIRCLE, 128)
        cov = g.fill_coverage(128, 128)
        ys, xs = np.ogrid[0:128, 0:128]
        d = np.sqrt((xs + 0.5 - 64) ** 2 + (ys + 0.5 - 64) ** 2)
        self.assertTrue((cov[d > 64] == 0).all())
        self.assertTrue((cov[d < 63.5] == 1).all())

    def test_no_coverage_outside_any_shape(self):
        for shape in BackgroundShape:
            s = GenerationSettings(background_shape=shape, background_scale=0.6, background_vertical_position=0.9)
            g = background_shape_geometry(s, 200)
            sdf = g.signed_distance(200, 200)
            with self.subTest(shape=shape):
                self.assertTrue((g.fill_coverage(200, 200)[sdf > 0] == 0).all())
                self.assertTrue((g.stroke_coverage(200, 200, 8.0)[np.abs(sdf) > 4.0] == 0).all())

    def test_full_canvas_rect_keeps_edge_pixels(self):
        g = background_shape_geometry(GenerationSettings(background_shape=BackgroundShape.RECT), 50)
        self.assertTrue((g.fill_coverage(50, 50) == 1).all())

    def test_rect_needs_no_image_mask(self):
        self.assertIsNone(image_mask_geometry(BackgroundShape.RECT, 100))
        rounded = image_mask_geometry("ROUNDEDRECT", 1024)
        self.assertAlmostEqual(rounded.corner_radius, 72.0)
