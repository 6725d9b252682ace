import base64
import unittest

from PIL import Image

from product_studio.core.errors import MalformedImageError
from product_studio.services.imaging import (
    b64_to_image,
    image_from_bytes,
    image_to_png_bytes,
    sniff_format,
    strip_data_uri,
)


class TestImaging(unittest.TestCase):
    def test_strip_data_uri(self):
        self.assertEqual(strip_data_uri("data:image/png;base64,AAAA"), "AAAA")
        self.assertEqual(strip_data_uri("data:image/svg+xml;base64,AAAA"), "AAAA")
        self.assertEqual(strip_data_uri("  AAAA "), "AAAA")

    def test_sniff_format(self):
        png = image_to_png_bytes(Image.new("RGB", (2, 2)))
        self.assertEqual(sniff_format(png), "png")
        self.assertEqual(sniff_format(b"\xff\xd8\xff\xe0rest"), "jpeg")
        self.assertEqual(sniff_format(b"RIFF\x00\x00\x00\x00WEBPVP8 "), "webp")
        self.assertIsNone(sniff_format(b"hello"))

    def test_html_error_page_is_rejected(self):
        with self.assertRaises(MalformedImageError) as ctx:
            image_from_bytes(b"  <html><body>Access denied</body></html>", role="product")
        self.assertIn("HTML", ctx.exception.reason)
        self.assertEqual(ctx.exception.role, "product")

    def test_empty_and_unknown_buffers(self):
        with self.assertRaises(MalformedImageError):
            image_from_bytes(b"")
        with self.assertRaises(MalformedImageError):
            image_from_bytes(b"\x00\x01\x02\x03garbage")

    def test_truncated_png_is_rejected(self):
        png = image_to_png_bytes(Image.new("RGB", (32, 32), (1, 2, 3)))
        with self.assertRaises(MalformedImageError):
            image_from_bytes(png[:20])

    def test_modes_are_normalized(self):
        grey = base64.b64encode(image_to_png_bytes(Image.new("L", (4, 4), 100))).decode()
        self.assertEqual(b64_to_image(grey).mode, "RGB")

        la = base64.b64encode(image_to_png_bytes(Image.new("LA", (4, 4), (100, 50)))).decode()
        self.assertEqual(b64_to_image(la).mode, "RGBA")

    def test_sixteen_bit_grey_is_scaled_not_clipped(self):
        deep = base64.b64encode(image_to_png_bytes(Image.new("I;16", (4, 4), 40000))).decode()
        img = b64_to_image(deep)
        self.assertEqual(img.mode, "RGB")
        self.assertEqual(img.getpixel((0, 0)), (156, 156, 156))

    def test_malformed_base64_is_reported(self):
        with self.assertRaises(MalformedImageError):
            b64_to_image("data:image/png;base64,@@@", role="overlay")


if __name__ == "__main__":
    unittest.main()
