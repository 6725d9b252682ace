import tempfile
import unittest
from pathlib import Path

from PIL import Image

from product_studio.core.errors import MalformedImageError
from product_studio.core.settings import CompositorSettings
from product_studio.domain.models import CompositingOptions, TargetRegion
from product_studio.services.compositor import Compositor, apply_window_shadow, composite_product
from product_studio.services.imaging import b64_to_image, image_to_b64_png
from product_studio.services.mask_utils import alpha_mask, bbox_from_mask_l
from product_studio.services.placement import resize_product, resolve_placement

from fakes import html_b64, product_rgba, solid_b64

STRATEGIES = [
    CompositingOptions(grade=False),
    CompositingOptions(grade=False, vertical_position="center"),
    CompositingOptions(grade=False, vertical_position="bottom", horizontal_position="left"),
    CompositingOptions(grade=False, vertical_position="tabletop", horizontal_position="right"),
    CompositingOptions(grade=False, x=12, y=30),
    CompositingOptions(grade=False, target_region=TargetRegion(top=0.1, left=0.2, width=0.3, height=0.4)),
    CompositingOptions(grade=False, product_size_percent=0.6, shadow=True),
]


def _opaque_product(size=(60, 120), color=(200, 30, 30)):
    return Image.new("RGBA", size, color + (255,))


class TestCompositor(unittest.TestCase):
    def test_output_matches_background_dimensions(self):
        bg = Image.new("RGB", (320, 240), (120, 120, 120))
        for opts in STRATEGIES:
            out = Compositor().composite(bg, product_rgba(), opts)
            self.assertEqual(out["image"].size, bg.size)
            self.assertEqual(out["overlay"].size, bg.size)
            self.assertEqual(out["overlay"].mode, "RGBA")

    def test_overlay_and_composite_share_placement(self):
        bg = Image.new("RGB", (320, 240), (120, 120, 120))
        prod = _opaque_product()
        for opts in STRATEGIES:
            out = Compositor().composite(bg, prod, opts)
            resized = resize_product(prod, bg.height, opts.product_size_percent)
            pos = resolve_placement(bg.size, resized.size, opts)
            self.assertEqual(out["placement"], pos)
            self.assertEqual(out["product_size"], resized.size)

            x0, y0 = max(0, pos.x), max(0, pos.y)
            x1 = min(bg.width, pos.x + resized.width)
            y1 = min(bg.height, pos.y + resized.height)
            self.assertEqual(bbox_from_mask_l(alpha_mask(out["overlay"])), (x0, y0, x1, y1))

            # ungraded composite shows the exact product pixels where the overlay is opaque
            cx, cy = (x0 + x1) // 2, (y0 + y1) // 2
            self.assertEqual(out["image"].getpixel((cx, cy)), (200, 30, 30))
            self.assertEqual(out["overlay"].getpixel((cx, cy)), (200, 30, 30, 255))

    def test_overlay_is_transparent_outside_product(self):
        bg = Image.new("RGB", (320, 240), (120, 120, 120))
        out = Compositor().composite(bg, _opaque_product(), CompositingOptions(shadow=True))
        self.assertEqual(out["overlay"].getpixel((0, 0)), (0, 0, 0, 0))

    def test_shadow_failure_degrades_to_warning(self):
        bg = image_to_b64_png(Image.new("RGB", (200, 200), (120, 120, 120)))
        rgb_product = image_to_b64_png(Image.new("RGB", (50, 100), (10, 200, 10)))

        result = composite_product(bg, rgb_product, {"shadow": True})

        self.assertEqual(b64_to_image(result.image).size, (200, 200))
        self.assertTrue(any("shadow" in w for w in result.warnings))

    def test_shadow_darkens_surface_below_product(self):
        bg = Image.new("RGB", (200, 200), (200, 200, 200))
        prod = product_rgba(size=(40, 80))
        plain = Compositor().composite(bg, prod, CompositingOptions(grade=False, product_size_percent=0.4))
        shaded = Compositor().composite(bg, prod, CompositingOptions(grade=False, product_size_percent=0.4, shadow=True))
        pos, (pw, ph) = shaded["placement"], shaded["product_size"]
        below = (pos.x + pw // 2, pos.y + ph + 3)
        self.assertLess(sum(shaded["image"].getpixel(below)), sum(plain["image"].getpixel(below)))

    def test_rgba_background_stays_rgba(self):
        bg = Image.new("RGBA", (100, 100), (0, 0, 255, 255))
        out = Compositor().composite(bg, product_rgba(), CompositingOptions())
        self.assertEqual(out["image"].mode, "RGBA")
        out = Compositor().composite(bg.convert("RGB"), product_rgba(), CompositingOptions())
        self.assertEqual(out["image"].mode, "RGB")


class TestCompositeProduct(unittest.TestCase):
    def test_data_uri_and_raw_base64_give_same_result(self):
        red = solid_b64((1, 1), (255, 0, 0))
        blue = solid_b64((1, 1), (0, 0, 255, 255), mode="RGBA")

        raw = composite_product(red, blue)
        uri = composite_product("data:image/png;base64," + red, "data:image/png;base64," + blue)

        self.assertEqual(raw.image, uri.image)
        self.assertEqual(raw.overlay, uri.overlay)
        self.assertEqual(b64_to_image(uri.image).size, (1, 1))

    def test_sixteen_bit_background_keeps_its_tone(self):
        bg = image_to_b64_png(Image.new("I;16", (120, 120), 40000))
        result = composite_product(bg, image_to_b64_png(product_rgba()), {"grade": False})
        self.assertEqual(b64_to_image(result.image).getpixel((0, 0)), (156, 156, 156))

    def test_malformed_background_names_its_role(self):
        with self.assertRaises(MalformedImageError) as ctx:
            composite_product(html_b64(), solid_b64((4, 4), (0, 0, 255)))
        self.assertEqual(ctx.exception.role, "background")
        self.assertIn("background", str(ctx.exception))

    def test_malformed_product_names_its_role(self):
        with self.assertRaises(MalformedImageError) as ctx:
            composite_product(solid_b64((4, 4), (0, 0, 255)), html_b64())
        self.assertEqual(ctx.exception.role, "product")

    def test_background_is_checked_first(self):
        with self.assertRaises(MalformedImageError) as ctx:
            composite_product("", html_b64())
        self.assertEqual(ctx.exception.role, "background")

    def test_unknown_option_rejected(self):
        with self.assertRaises(ValueError):
            composite_product(solid_b64((4, 4), (0, 0, 255)), solid_b64((4, 4), (255, 0, 0)), {"zoom": 2})


class TestWindowShadow(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        # left half shaded, right half clear
        shade = Image.new("RGB", (40, 20), (255, 255, 255))
        shade.paste((128, 128, 128), (0, 0, 20, 20))
        self.path = str(Path(self._tmp.name) / "window-shadow.jpg")
        shade.save(self.path, quality=95)

    def test_multiply_darkens_shaded_areas_only(self):
        img = Image.new("RGB", (200, 100), (200, 200, 200))
        out = apply_window_shadow(img, self.path)
        self.assertEqual(out.size, img.size)
        self.assertLess(out.getpixel((20, 50))[0], 110)
        self.assertGreater(out.getpixel((180, 50))[0], 190)

    def test_cover_resize_fills_a_different_aspect(self):
        img = Image.new("RGBA", (60, 180), (200, 200, 200, 255))
        out = apply_window_shadow(img, self.path)
        self.assertEqual(out.size, (60, 180))
        self.assertEqual(out.mode, "RGBA")

    def test_skipped_without_configured_overlay(self):
        img = solid_b64((32, 32), (200, 200, 200))
        self.assertEqual(Compositor(CompositorSettings()).window_shadow(img), img)

    def test_configured_overlay_is_applied(self):
        compositor = Compositor(CompositorSettings(window_shadow_path=self.path))
        out = b64_to_image(compositor.window_shadow(solid_b64((100, 50), (200, 200, 200))))
        self.assertLess(out.getpixel((5, 25))[0], 110)

    def test_missing_overlay_file_raises(self):
        compositor = Compositor(CompositorSettings(window_shadow_path=self.path + ".gone"))
        with self.assertRaises(FileNotFoundError):
            compositor.window_shadow(solid_b64((8, 8), (200, 200, 200)))


if __name__ == "__main__":
    unittest.main()
