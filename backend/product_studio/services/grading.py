from __future__ import annotations

import numpy as np
from PIL import Image, ImageEnhance

from product_studio.core.settings import CompositorSettings


def to_unit(img: Image.Image) -> np.ndarray:
    return np.asarray(img.convert("RGB"), dtype=np.float32) / 255.0


def from_unit(arr: np.ndarray) -> Image.Image:
    out = np.clip(arr * 255.0 + 0.5, 0, 255).astype(np.uint8)
    return Image.fromarray(out, mode="RGB")


def blend_overlay(base: np.ndarray, blend: np.ndarray) -> np.ndarray:
    """W3C 'overlay': multiply in the shadows, screen in the highlights of ``base``."""
    return np.where(base <= 0.5, 2.0 * base * blend, 1.0 - 2.0 * (1.0 - base) * (1.0 - blend))


def blend_soft_light(base: np.ndarray, blend: np.ndarray) -> np.ndarray:
    """W3C 'soft-light'."""
    d = np.where(base <= 0.25, ((16.0 * base - 12.0) * base + 4.0) * base, np.sqrt(base))
    return np.where(
        blend <= 0.5,
        base - (1.0 - 2.0 * blend) * base * (1.0 - base),
        base + (2.0 * blend - 1.0) * (d - base),
    )


def mix(base: np.ndarray, blended: np.ndarray, opacity) -> np.ndarray:
    """Source-over of a blended layer at ``opacity`` (scalar or HxWx1) on an opaque base."""
    return base * (1.0 - opacity) + blended * opacity


def split_alpha(img: Image.Image) -> tuple[Image.Image, Image.Image | None]:
    if img.mode == "RGBA":
        return img.convert("RGB"), img.getchannel("A")
    return img.convert("RGB"), None


def merge_alpha(rgb: Image.Image, alpha: Image.Image | None) -> Image.Image:
    if alpha is None:
        return rgb
    out = rgb.convert("RGBA")
    out.putalpha(alpha)
    return out


class ColorGrader:
    """Warm 'cinematic' tint plus a saturation lift, applied to the whole canvas."""

    def __init__(self, settings: CompositorSettings | None = None):
        self.settings = settings or CompositorSettings()

    def grade(self, image: Image.Image) -> Image.Image:
        cfg = self.settings
        rgb, alpha = split_alpha(image)

        base = to_unit(rgb)
        tint = np.asarray(cfg.grade_tint_rgb, dtype=np.float32).reshape(1, 1, 3) / 255.0
        tinted = mix(base, blend_overlay(base, tint), float(cfg.grade_tint_opacity))

        graded = from_unit(tinted)
        if abs(cfg.grade_saturation - 1.0) > 1e-6:
            graded = ImageEnhance.Color(graded).enhance(cfg.grade_saturation)

        return merge_alpha(graded, alpha)
