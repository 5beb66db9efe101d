import base64
import io
import math
import unittest
from unittest.mock import patch

import numpy as np
from PIL import Image

from tests._test_path import SRC  # noqa: F401

from pfpshop.core.errors import BackgroundImageError, UnknownShapeError
from pfpshop.core.models import BackgroundShape, BorderLayer, GenerationSettings, OutputFormat
from pfpshop.render.badge import ANCHOR_ANGLE, badge_metrics
from pfpshop.render.pipeline import render_canvas, render_profile_picture

RED = (200, 30, 30, 255)


def _portrait(w=512, h=768):
    return Image.new("RGBA", (w, h), RED)


def _decode(result):
    img = Image.open(io.BytesIO(result.data))
    img.load()
    return img


def _png_data_url(color, size=(8, 8)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


class TestRenderProfilePicture(unittest.TestCase):
    def test_default_circle_png(self):
        result = render_profile_picture(_portrait(), GenerationSettings())
        self.assertEqual(result.output_format, OutputFormat.PNG)
        self.assertEqual(result.mime_type, "image/png")
        self.assertTrue(result.to_data_url().startswith("data:image/png;base64,"))

        img = _decode(result).convert("RGBA")
        self.assertEqual(img.size, (1024, 1024))
        # every pixel outside the circle is transparent
        alpha = np.asarray(img.getchannel("A"))
        ys, xs = np.mgrid[0:1024, 0:1024]
        outside = np.hypot(xs + 0.5 - 512, ys + 0.5 - 512) > 512
        self.assertEqual(int(alpha[outside].max()), 0)
        self.assertEqual(img.getpixel((0, 0))[3], 0)
        # brand color above the subject, subject at the bottom center
        self.assertEqual(img.getpixel((512, 20)), (241, 51, 127, 255))
        self.assertEqual(img.getpixel((512, 1000)), RED)

    def test_subject_is_bottom_aligned_at_configured_scale(self):
        settings = GenerationSettings(brand_color="rgba(0, 0, 0, 0)", use_background_shape_as_image_mask=False)
        img = render_canvas(_portrait(), settings)
        bbox = img.getbbox()
        self.assertIsNotNone(bbox)
        _, top, _, bottom = bbox
        self.assertEqual(bottom, 1024)
        # 768 px tall subject, fit scale 4/3, times 0.95
        self.assertAlmostEqual((bottom - top) / 1024, 0.95, delta=0.01)

    def test_deterministic(self):
        settings = GenerationSettings(output_size=256, subject_shadow=True, badge_enabled=True)
        a = render_profile_picture(_portrait(), settings)
        b = render_profile_picture(_portrait(), settings)
        self.assertEqual(a.data, b.data)

    def test_inputs_not_modified(self):
        subject = _portrait(64, 64)
        before = subject.tobytes()
        settings = GenerationSettings(output_size=128)
        render_profile_picture(subject, settings)
        self.assertEqual(subject.tobytes(), before)
        self.assertEqual(settings, GenerationSettings(output_size=128))

    def test_jpeg_and_webp(self):
        jpeg = render_profile_picture(_portrait(), GenerationSettings(output_size=128, output_format=OutputFormat.JPEG))
        self.assertEqual(jpeg.mime_type, "image/jpeg")
        self.assertTrue(jpeg.data.startswith(b"\xff\xd8"))
        self.assertEqual(_decode(jpeg).mode, "RGB")

        webp = render_profile_picture(_portrait(), GenerationSettings(output_size=128, output_format=OutputFormat.WEBP))
        self.assertEqual(webp.mime_type, "image/webp")
        self.assertEqual(webp.data[:4], b"RIFF")
        self.assertEqual(webp.data[8:12], b"WEBP")

    def test_unknown_shape_rejected(self):
        with self.assertRaises(UnknownShapeError):
            render_profile_picture(_portrait(), GenerationSettings(background_shape="TRIANGLE"))

    def test_bad_background_image_rejected(self):
        settings = GenerationSettings(background_image="data:image/png;base64,bm90IGFuIGltYWdl")
        with self.assertRaises(BackgroundImageError):
            render_profile_picture(_portrait(), settings)

    def test_oversized_background_image_rejected(self):
        settings = GenerationSettings(output_size=64, background_image=_png_data_url((0, 128, 0), size=(16, 16)))
        # 256 pixels is more than twice the limit, which Pillow treats as a decompression bomb
        with patch.object(Image, "MAX_IMAGE_PIXELS", 100):
            with self.assertRaises(BackgroundImageError) as cm:
                render_profile_picture(_portrait(), settings)
        self.assertIn("could not be decoded", str(cm.exception))

    def test_background_image_covers_fill(self):
        settings = GenerationSettings(
            output_size=256,
            background_shape=BackgroundShape.RECT,
            background_image=_png_data_url((0, 128, 0)),
        )
        img = render_canvas(_portrait(), settings)
        self.assertEqual(img.getpixel((2, 2)), (0, 128, 0, 255))

    def test_border_layer_order(self):
        subject = Image.new("RGBA", (256, 256), RED)
        base = GenerationSettings(output_size=256, subject_scale=1.0, border=True, border_thickness=20.0)

        front = render_canvas(subject, base.with_overwrites(border_layer=BorderLayer.FOREGROUND))
        back = render_canvas(subject, base.with_overwrites(border_layer=BorderLayer.BACKGROUND))

        # (5, 128) lies inside the ring band, which the subject also covers
        self.assertEqual(front.getpixel((5, 128)), (255, 255, 255, 255))
        self.assertEqual(back.getpixel((5, 128)), RED)

    def test_badge_arc_near_bottom_left(self):
        settings = GenerationSettings(output_size=256, badge_text="#TEST")
        plain = render_canvas(_portrait(), settings)
        badged = render_canvas(_portrait(), settings.with_overwrites(badge_enabled=True))
        self.assertNotEqual(plain.tobytes(), badged.tobytes())

        radius, thickness, _ = badge_metrics(256)
        r = radius + thickness * 0.3
        px = int(128 + r * math.cos(ANCHOR_ANGLE))
        py = int(128 + r * math.sin(ANCHOR_ANGLE))
        patch = {badged.getpixel((x, y)) for x in range(px - 7, px + 8) for y in range(py - 7, py + 8)}
        self.assertIn((46, 125, 50, 255), patch)
        # top-right stays as it was
        self.assertEqual(plain.getpixel((200, 40)), badged.getpixel((200, 40)))
