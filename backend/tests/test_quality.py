import unittest

from PIL import Image, ImageDraw

from product_studio.domain.models import BrandPlaybook, Persona
from product_studio.services.imaging import image_to_b64_png
from product_studio.services.quality import HeuristicQualityValidator

from fakes import html_b64, solid_b64

PLAYBOOK = BrandPlaybook(brand_name="Marom", colors=["#f5e6d3"], mood="calm", aesthetic="minimal")


def _scene(size=(300, 300)):
    img = Image.new("RGB", size, (200, 190, 170))
    ImageDraw.Draw(img).rectangle([100, 100, 180, 250], fill=(180, 30, 30))
    return image_to_b64_png(img)


def _overlay(size=(300, 300), box=(100, 100, 180, 250)):
    ov = Image.new("RGBA", size, (0, 0, 0, 0))
    ImageDraw.Draw(ov).rectangle(box, fill=(180, 30, 30, 255))
    return image_to_b64_png(ov)


class TestHeuristicQualityValidator(unittest.TestCase):
    def setUp(self):
        self.validator = HeuristicQualityValidator()

    def test_good_image_passes(self):
        result = self.validator.validate(_scene(), solid_b64((10, 10), (1, 2, 3)), PLAYBOOK, overlay_b64=_overlay())
        self.assertTrue(result.passed)
        self.assertTrue(all(result.checks.values()))
        self.assertEqual(result.errors, [])

    def test_invalid_image_fails_format_check(self):
        result = self.validator.validate(html_b64(), None, PLAYBOOK)
        self.assertFalse(result.passed)
        self.assertFalse(result.checks["image_format"])
        self.assertTrue(result.errors[0].startswith("Invalid image format"))

    def test_invisible_product_is_an_error(self):
        empty = image_to_b64_png(Image.new("RGBA", (300, 300), (0, 0, 0, 0)))
        result = self.validator.validate(_scene(), None, PLAYBOOK, overlay_b64=empty)
        self.assertFalse(result.passed)
        self.assertFalse(result.checks["product_visibility"])

    def test_empty_cutout_fails_fidelity(self):
        blank = image_to_b64_png(Image.new("RGBA", (40, 40), (255, 255, 255, 0)))
        result = self.validator.validate(_scene(), blank, PLAYBOOK, overlay_b64=_overlay())
        self.assertFalse(result.passed)
        self.assertFalse(result.checks["product_fidelity"])
        self.assertIn("Product cutout is empty after isolation", result.errors)

    def test_tiny_product_is_a_warning(self):
        result = self.validator.validate(_scene(), None, PLAYBOOK, overlay_b64=_overlay(box=(10, 10, 12, 12)))
        self.assertTrue(result.passed)
        self.assertTrue(any("occupies only" in w for w in result.warnings))

    def test_low_resolution_and_blank_are_warnings(self):
        result = self.validator.validate(solid_b64((64, 64), (128, 128, 128)), None, PLAYBOOK)
        self.assertTrue(result.passed)
        self.assertFalse(result.checks["resolution"])
        self.assertFalse(result.checks["realism"])
        self.assertEqual(len(result.warnings), 2)

    def test_playbook_gaps_are_warnings(self):
        result = self.validator.validate(_scene(), None, BrandPlaybook(brand_name="Bare"))
        self.assertTrue(result.passed)
        self.assertIn("No brand colors specified in playbook", result.warnings)

    def test_persona_types_need_a_persona(self):
        no_persona = self.validator.validate(_scene(), None, PLAYBOOK, image_type="ugc_style")
        self.assertFalse(no_persona.checks["persona_accuracy"])

        with_persona = self.validator.validate(_scene(), None, PLAYBOOK, persona=Persona(name="Maya"), image_type="ugc_style")
        self.assertTrue(with_persona.checks["persona_accuracy"])

    def test_summary_is_plain_data(self):
        summary = self.validator.validate(_scene(), None, PLAYBOOK).summary()
        self.assertEqual(set(summary), {"passed", "checks", "errors", "warnings"})


if __name__ == "__main__":
    unittest.main()
