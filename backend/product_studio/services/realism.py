from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from PIL import Image

from product_studio.core.settings import EnhancerSettings
from product_studio.domain.models import EnhancementReport, StageReport
from product_studio.services.fidelity import reinject_lighting, restore_product_pixels
from product_studio.services.imaging import b64_to_image, image_to_b64_png
from product_studio.services.providers import ImageRefiner, SubjectEnhancer, Upscaler

logger = logging.getLogger("product-studio")

SUBJECT_ENHANCED_TYPES = {"product_persona", "ugc_style"}

RELIGHT_PROMPT = """You are a high-end product retouching and lighting specialist for commercial advertising.
Correct the lighting and shadows of the provided image so the product sits naturally in its scene.
Do NOT change composition, camera angle, product shape, background, or layout.
Do NOT add or remove objects. Do NOT stylize, repaint, or reimagine the scene.

Match the scene's light direction, light intensity, color temperature and ambient light on the product.
Add a realistic contact shadow where the product touches the surface and a soft occlusion shadow around it,
following the scene perspective and fading naturally.
No artificial glow, no exaggerated contrast, no plastic shine.

Return the same image with corrected lighting and natural shadow applied."""


@dataclass
class StageResult:
    name: str
    image: Optional[Image.Image] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.image is not None

    def or_else(self, previous: Image.Image) -> Image.Image:
        return self.image if self.image is not None else previous


class RealismEnhancer:
    """Relight -> upscale -> fidelity sandwich -> lighting re-injection -> subject enhancement.

    Every stage may fail on its own; the next stage then starts from the best
    image produced so far. ``enhance`` never raises.
    """

    def __init__(
        self,
        refiner: ImageRefiner | None = None,
        upscaler: Upscaler | None = None,
        subject_enhancer: SubjectEnhancer | None = None,
        settings: EnhancerSettings | None = None,
    ):
        self.refiner = refiner
        self.upscaler = upscaler
        self.subject_enhancer = subject_enhancer
        self.settings = settings or EnhancerSettings.from_env()

    def _run(self, name: str, fn: Callable[[], Image.Image], report: EnhancementReport) -> StageResult:
        try:
            result = StageResult(name, image=fn())
        except Exception as exc:
            logger.warning(f"{name} failed, keeping previous image: {exc}")
            report.stages.append(StageReport(name=name, status="failed", error=str(exc)))
            report.warnings.append(f"{name} failed: {exc}")
            return StageResult(name, error=exc)
        report.stages.append(StageReport(name=name, status="applied"))
        return result

    @staticmethod
    def _skip(name: str, report: EnhancementReport) -> None:
        report.stages.append(StageReport(name=name, status="skipped"))

    def enhance(
        self,
        image_b64: str,
        image_type: str,
        scale_factor: int = 2,
        overlay_b64: Optional[str] = None,
    ) -> EnhancementReport:
        report = EnhancementReport(image=image_b64)
        try:
            return self._enhance(image_b64, image_type, scale_factor, overlay_b64, report)
        except Exception as exc:
            logger.warning(f"Image enhancement failed, returning original: {exc}")
            report.image = image_b64
            report.warnings.append(f"enhancement failed: {exc}")
            return report

    def _enhance(
        self,
        image_b64: str,
        image_type: str,
        scale_factor: int,
        overlay_b64: Optional[str],
        report: EnhancementReport,
    ) -> EnhancementReport:
        cfg = self.settings
        current = b64_to_image(image_b64, role="composite")
        changed = False

        # 1. AI relight
        if self.refiner is not None:
            refiner = self.refiner
            src = current
            stage = self._run(
                "relight",
                lambda: b64_to_image(refiner.refine(image_to_b64_png(src), RELIGHT_PROMPT), role="relit"),
                report,
            )
            current = stage.or_else(current)
            changed = changed or stage.ok
        else:
            self._skip("relight", report)

        # 2. AI upscale
        if self.upscaler is not None:
            upscaler = self.upscaler
            src = current
            stage = self._run(
                "upscale",
                lambda: b64_to_image(upscaler.upscale(image_to_b64_png(src), scale_factor), role="upscaled"),
                report,
            )
            current = stage.or_else(current)
            changed = changed or stage.ok
        else:
            self._skip("upscale", report)

        # 3. Fidelity sandwich, 4. lighting re-injection
        if overlay_b64:
            enhanced = current
            sandwich = self._run(
                "fidelity_sandwich",
                lambda: restore_product_pixels(
                    enhanced=enhanced,
                    overlay_rgba=b64_to_image(overlay_b64, role="overlay"),
                    aspect_tolerance=cfg.aspect_tolerance,
                ),
                report,
            )
            current = sandwich.or_else(current)
            changed = changed or sandwich.ok

            if sandwich.ok:
                sandwiched = current
                relit = self._run(
                    "lighting_reinjection",
                    lambda: reinject_lighting(
                        sandwiched=sandwiched,
                        enhanced=enhanced,
                        blur_radius=cfg.relight_blur_radius,
                        opacity=cfg.relight_opacity,
                    ),
                    report,
                )
                current = relit.or_else(current)
            else:
                self._skip("lighting_reinjection", report)
        else:
            self._skip("fidelity_sandwich", report)
            self._skip("lighting_reinjection", report)

        # 5. Face/skin pass last, after the product pixels are exact again
        if image_type in SUBJECT_ENHANCED_TYPES and self.subject_enhancer is not None:
            enhancer = self.subject_enhancer
            src = current
            stage = self._run(
                "subject_enhancement",
                lambda: b64_to_image(enhancer.enhance(image_to_b64_png(src), "skin"), role="enhanced"),
                report,
            )
            current = stage.or_else(current)
            changed = changed or stage.ok
        else:
            self._skip("subject_enhancement", report)

        report.image = image_to_b64_png(current) if changed else image_b64
        return report


def enhance_for_realism(
    image_b64: str,
    image_type: str,
    scale_factor: int = 2,
    overlay_b64: Optional[str] = None,
    *,
    refiner: ImageRefiner | None = None,
    upscaler: Upscaler | None = None,
    subject_enhancer: SubjectEnhancer | None = None,
) -> str:
    enhancer = RealismEnhancer(refiner=refiner, upscaler=upscaler, subject_enhancer=subject_enhancer)
    return enhancer.enhance(image_b64, image_type, scale_factor, overlay_b64).image
