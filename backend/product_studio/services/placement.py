from __future__ import annotations

import math

from PIL import Image

from product_studio.domain.models import CompositingOptions, Placement

DEFAULT_SIZE_PERCENT = 0.25
BOTTOM_MARGIN_PX = 50


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def target_height(bg_h: int, size_percent: float | None) -> int:
    """Product height as a fraction of background height, never below 1px."""
    p = DEFAULT_SIZE_PERCENT if size_percent is None else float(size_percent)
    if p <= 0:
        return 1
    return max(1, round_half_up(bg_h * p))


def resize_product(product: Image.Image, bg_h: int, size_percent: float | None) -> Image.Image:
    """Scale to the target height; width follows the aspect ratio (no distortion).

    The alpha channel, when present, survives the resize.
    """
    pw, ph = product.size
    th = target_height(bg_h, size_percent)
    tw = max(1, round_half_up(pw * th / ph))
    if (tw, th) == (pw, ph):
        return product.copy()
    return product.resize((tw, th), Image.Resampling.LANCZOS)


def resolve_placement(
    bg_size: tuple[int, int],
    product_size: tuple[int, int],
    options: CompositingOptions,
) -> Placement:
    """Top-left offset of the product over the background.

    Precedence: target region > explicit x/y > qualitative alignment >
    default (center / tabletop).
    """
    bw, bh = bg_size
    pw, ph = product_size

    region = options.target_region
    if region is not None:
        cx = (region.left + region.width / 2) * bw
        cy = (region.top + region.height / 2) * bh
        return Placement(round_half_up(cx - pw / 2), round_half_up(cy - ph / 2))

    if options.x is not None:
        x = int(options.x)
    elif options.horizontal_position == "left":
        x = round_half_up(bw * 0.1)
    elif options.horizontal_position == "right":
        x = round_half_up(bw * 0.9 - pw)
    else:
        x = round_half_up((bw - pw) / 2)

    if options.y is not None:
        y = int(options.y)
    elif options.vertical_position == "center":
        y = round_half_up((bh - ph) / 2)
    elif options.vertical_position == "bottom":
        y = bh - ph - BOTTOM_MARGIN_PX
    else:
        # tabletop: visual base roughly three quarters down the frame
        y = round_half_up(bh * 0.75 - ph * 0.9)

    return Placement(x, y)
