from __future__ import annotations

from PIL import Image, ImageFilter

from product_studio.core.errors import AspectRatioMismatchError
from product_studio.services.grading import (
    blend_soft_light,
    from_unit,
    merge_alpha,
    mix,
    split_alpha,
    to_unit,
)


def check_aspect(overlay_size: tuple[int, int], target_size: tuple[int, int], tolerance: float) -> None:
    ow, oh = overlay_size
    tw, th = target_size
    drift = abs((ow / oh) / (tw / th) - 1.0)
    if drift > tolerance:
        raise AspectRatioMismatchError(overlay_size, target_size)


def restore_product_pixels(
    *,
    enhanced: Image.Image,
    overlay_rgba: Image.Image,
    aspect_tolerance: float = 0.01,
) -> Image.Image:
    """Paste the original product pixels back over an AI-enhanced image.

    enhanced: relit/upscaled output (RGB or RGBA)
    overlay_rgba: product on a transparent canvas, captured at composite time

    The overlay is stretched (fill, never cover/contain) to the enhanced size
    so the product lands on the same normalized coordinates. Opaque overlay
    pixels come back byte-for-byte.
    """
    target = enhanced.size
    check_aspect(overlay_rgba.size, target, aspect_tolerance)

    ov = overlay_rgba.convert("RGBA")
    if ov.size != target:
        ov = ov.resize(target, Image.Resampling.LANCZOS)

    out = enhanced.convert("RGBA")
    out.paste(ov, (0, 0), mask=ov.getchannel("A"))
    return out if enhanced.mode == "RGBA" else out.convert("RGB")


def reinject_lighting(
    *,
    sandwiched: Image.Image,
    enhanced: Image.Image,
    blur_radius: float = 20.0,
    opacity: float = 0.40,
) -> Image.Image:
    """Bring the relit scene's light back onto the restored product.

    The enhanced image is blurred until text is illegible, leaving only large
    colour/light gradients, then soft-light blended at partial opacity.
    """
    rgb, alpha = split_alpha(sandwiched)

    light = enhanced.convert("RGB")
    if light.size != rgb.size:
        light = light.resize(rgb.size, Image.Resampling.LANCZOS)
    light = light.filter(ImageFilter.GaussianBlur(radius=blur_radius))

    base = to_unit(rgb)
    out = mix(base, blend_soft_light(base, to_unit(light)), float(opacity))
    return merge_alpha(from_unit(out), alpha)
