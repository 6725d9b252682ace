from __future__ import annotations

from typing import Optional

from PIL import Image


def _to_bin_l(mask_l: Image.Image, *, threshold: int = 128) -> Image.Image:
    m = mask_l.convert("L")
    return m.point(lambda p: 255 if p >= threshold else 0, mode="L")


def alpha_mask(img: Image.Image) -> Image.Image:
    """Alpha channel as an L mask; fully opaque for images without alpha."""
    if img.mode == "RGBA":
        return img.getchannel("A")
    return Image.new("L", img.size, 255)


def bbox_from_mask_l(mask_l: Image.Image, *, threshold: int = 128) -> Optional[tuple[int, int, int, int]]:
    """Return bbox=(x0,y0,x1,y1) for non-zero pixels of a thresholded mask."""
    b = _to_bin_l(mask_l, threshold=threshold)
    return b.getbbox()


def bbox_dominance_ratio(bbox: tuple[int, int, int, int] | None, *, size: tuple[int, int]) -> float:
    """max(bbox_w/W, bbox_h/H) in [0,1]."""
    if not bbox:
        return 0.0
    w, h = size
    if w <= 0 or h <= 0:
        return 0.0
    x0, y0, x1, y1 = bbox
    bw = max(0, x1 - x0)
    bh = max(0, y1 - y0)
    return max(bw / w, bh / h)


def coverage_ratio(mask_l: Image.Image, *, threshold: int = 128) -> float:
    """Share of pixels at or above ``threshold``."""
    b = _to_bin_l(mask_l, threshold=threshold)
    hist = b.histogram()
    total = b.size[0] * b.size[1]
    return hist[255] / total if total else 0.0
