from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from PIL import Image, ImageChops, ImageOps

from product_studio.core.settings import CompositorSettings
from product_studio.domain.models import CompositeResult, CompositingOptions, Placement
from product_studio.services.grading import ColorGrader
from product_studio.services.imaging import b64_to_image, image_to_b64_png
from product_studio.services.placement import resize_product, resolve_placement
from product_studio.services.shadow import ShadowService

logger = logging.getLogger("product-studio")


def _layer(size: tuple[int, int], img: Image.Image, pos: Placement) -> Image.Image:
    """Full-canvas transparent layer holding ``img`` at ``pos`` (clipped at the edges)."""
    layer = Image.new("RGBA", size, (0, 0, 0, 0))
    layer.paste(img.convert("RGBA"), (pos.x, pos.y))
    return layer


def apply_window_shadow(image: Image.Image, overlay_path: str) -> Image.Image:
    """Multiply a window-light overlay, cover-resized to the image, over ``image``."""
    with Image.open(overlay_path) as src:
        shade = ImageOps.fit(src.convert("RGB"), image.size, method=Image.Resampling.LANCZOS)
    shaded = ImageChops.multiply(image.convert("RGB"), shade)
    if image.mode == "RGBA":
        shaded.putalpha(image.getchannel("A"))
    return shaded


class Compositor:
    def __init__(
        self,
        settings: CompositorSettings | None = None,
        shadow_service: ShadowService | None = None,
        grader: ColorGrader | None = None,
    ):
        self.settings = settings or CompositorSettings()
        self.shadow_service = shadow_service or ShadowService(self.settings)
        self.grader = grader or ColorGrader(self.settings)

    def composite(
        self,
        background: Image.Image,
        product: Image.Image,
        options: CompositingOptions | None = None,
    ) -> dict:
        """
        Compose layers: Background <- Shadow (optional) <- Product

        Returns a dict with the visible ``image``, the product-only ``overlay``
        (transparent canvas, background size), the resolved ``placement``,
        the resized ``product_size`` and degradable ``warnings``.
        """
        options = options or CompositingOptions()
        warnings: list[str] = []
        size = background.size

        # 1. Resize product to its share of the background height
        product_resized = resize_product(product, size[1], options.product_size_percent)

        # 2. One placement for both composite and overlay
        pos = resolve_placement(size, product_resized.size, options)

        # 3. Shadow (best effort)
        canvas = background.convert("RGBA")
        if options.shadow:
            try:
                shadow, shadow_pos = self.shadow_service.create_contact_shadow(product_resized, pos)
                canvas = Image.alpha_composite(canvas, _layer(size, shadow, shadow_pos))
            except Exception as exc:
                logger.warning(f"Shadow generation failed (skipping): {exc}")
                warnings.append(f"shadow skipped: {exc}")

        # 4. Product on top of its own shadow
        product_layer = _layer(size, product_resized, pos)
        canvas = Image.alpha_composite(canvas, product_layer)
        image = canvas if background.mode == "RGBA" else canvas.convert("RGB")

        # 5. Overlay: same product, same position, nothing else
        overlay = product_layer.copy()

        # 6. Grade the visible composite only; the overlay stays ground truth
        if options.grade:
            try:
                image = self.grader.grade(image)
            except Exception as exc:
                logger.warning(f"Cinematic grading failed, returning ungraded composite: {exc}")
                warnings.append(f"grading skipped: {exc}")

        return {
            "image": image,
            "overlay": overlay,
            "placement": pos,
            "product_size": product_resized.size,
            "warnings": warnings,
        }

    def window_shadow(self, image_b64: str) -> str:
        """Window shadow pass on an encoded image; a no-op when no overlay is configured."""
        path = self.settings.window_shadow_path
        if not path:
            return image_b64
        image = b64_to_image(image_b64, role="composite")
        return image_to_b64_png(apply_window_shadow(image, path))


def composite_product(
    background_b64: str,
    product_b64: str,
    options: Union[CompositingOptions, Dict[str, Any], None] = None,
    *,
    compositor: Optional[Compositor] = None,
) -> CompositeResult:
    """Layer a transparent product onto a background.

    Both inputs may be raw base64 or ``data:image/...;base64,`` URIs. Both are
    decoded and sniffed before any pixel work, so a malformed input fails
    with an error naming it.
    """
    if not isinstance(options, CompositingOptions):
        options = CompositingOptions.from_dict(options)

    background = b64_to_image(background_b64, role="background")
    product = b64_to_image(product_b64, role="product")

    out = (compositor or Compositor()).composite(background, product, options)
    return CompositeResult(
        image=image_to_b64_png(out["image"]),
        overlay=image_to_b64_png(out["overlay"]),
        placement=out["placement"],
        product_size=out["product_size"],
        warnings=out["warnings"],
    )
