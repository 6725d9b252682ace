from __future__ import annotations

from typing import Optional

from PIL import ImageStat

from product_studio.domain.models import BrandPlaybook, Persona, ValidationResult
from product_studio.services.imaging import b64_to_image
from product_studio.services.mask_utils import alpha_mask, bbox_dominance_ratio, bbox_from_mask_l, coverage_ratio


class HeuristicQualityValidator:
    """Cheap, local checks on a rendered image.

    No perceptual or OCR comparison: fidelity is guaranteed by the overlay
    restoration, so this only catches broken renders and obvious misplacement.
    """

    def __init__(self, min_side: int = 256, min_visibility: float = 0.05, blank_stddev: float = 2.0):
        self.min_side = min_side
        self.min_visibility = min_visibility
        self.blank_stddev = blank_stddev

    def validate(
        self,
        generated_b64: str,
        original_product_b64: Optional[str],
        playbook: BrandPlaybook,
        *,
        persona: Optional[Persona] = None,
        image_type: Optional[str] = None,
        overlay_b64: Optional[str] = None,
    ) -> ValidationResult:
        result = ValidationResult(passed=True)

        try:
            image = b64_to_image(generated_b64, role="generated")
        except Exception as exc:
            return ValidationResult(passed=False, checks={"image_format": False}, errors=[f"Invalid image format: {exc}"])
        result.checks["image_format"] = True

        w, h = image.size
        result.checks["resolution"] = min(w, h) >= self.min_side
        if not result.checks["resolution"]:
            result.warnings.append(f"Low resolution output: {w}x{h}")

        if original_product_b64:
            try:
                product = b64_to_image(original_product_b64, role="product")
            except Exception as exc:
                result.checks["product_fidelity"] = False
                result.errors.append(f"Product fidelity check failed: {exc}")
            else:
                # a cutout that kept nothing means isolation removed the product
                result.checks["product_fidelity"] = coverage_ratio(alpha_mask(product)) > 0
                if not result.checks["product_fidelity"]:
                    result.errors.append("Product cutout is empty after isolation")
        else:
            result.checks["product_fidelity"] = True

        if overlay_b64:
            overlay = b64_to_image(overlay_b64, role="overlay")
            bbox = bbox_from_mask_l(alpha_mask(overlay))
            ratio = bbox_dominance_ratio(bbox, size=overlay.size)
            result.checks["product_visibility"] = bbox is not None
            if bbox is None:
                result.errors.append("Product is not visible in the composite")
            elif ratio < self.min_visibility:
                result.warnings.append(f"Product occupies only {ratio:.1%} of the frame")

        result.checks["brand_compliance"] = True
        if not playbook.colors:
            result.warnings.append("No brand colors specified in playbook")
        if not playbook.mood and not playbook.aesthetic:
            result.warnings.append("No visual mood or aesthetic specified in playbook")

        result.checks["persona_accuracy"] = persona is not None or image_type in (None, "product_only")

        stddev = max(ImageStat.Stat(image.convert("L")).stddev)
        result.checks["realism"] = stddev >= self.blank_stddev
        if not result.checks["realism"]:
            result.warnings.append("Image appears blank or flat")

        result.passed = not result.errors
        return result
