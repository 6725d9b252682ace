from __future__ import annotations

import base64
import binascii
import io
import re

import numpy as np
from PIL import Image

from product_studio.core.errors import MalformedImageError

_DATA_URI_RE = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)

_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"\xff\xd8\xff", "jpeg"),
    (b"GIF87a", "gif"),
    (b"GIF89a", "gif"),
    (b"BM", "bmp"),
    (b"II*\x00", "tiff"),
    (b"MM\x00*", "tiff"),
)

_WIDE_GREY = ("I", "I;16", "I;16B", "I;16L", "I;16N")


def strip_data_uri(b64: str) -> str:
    return _DATA_URI_RE.sub("", b64.strip(), count=1)


def sniff_format(data: bytes) -> str | None:
    """Identify an image container from its magic bytes."""
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    for sig, fmt in _SIGNATURES:
        if data.startswith(sig):
            return fmt
    return None


def normalize_mode(img: Image.Image) -> Image.Image:
    """RGB, or RGBA when the source declares transparency."""
    if img.mode in ("RGB", "RGBA"):
        return img
    if img.mode in _WIDE_GREY:
        # 16-bit samples clip to white under a plain convert("L")
        grey = np.clip(np.asarray(img, dtype=np.int64) >> 8, 0, 255).astype(np.uint8)
        return Image.fromarray(grey).convert("RGB")
    if img.mode in ("LA", "PA", "La", "RGBa") or "transparency" in img.info:
        return img.convert("RGBA")
    return img.convert("RGB")


def image_from_bytes(data: bytes, *, role: str = "input") -> Image.Image:
    if not data:
        raise MalformedImageError(role, "empty buffer")
    if data.lstrip()[:1] == b"<":
        raise MalformedImageError(role, "buffer contains HTML/XML (probably an error page), not an image")
    if sniff_format(data) is None:
        raise MalformedImageError(role, f"unrecognized image format (head={data[:8].hex()})")

    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except Exception as exc:
        raise MalformedImageError(role, f"unreadable image metadata: {exc}") from exc

    w, h = img.size
    if w <= 0 or h <= 0:
        raise MalformedImageError(role, f"invalid dimensions {w}x{h}")
    return normalize_mode(img)


def b64_to_bytes(b64: str, *, role: str = "input") -> bytes:
    if not b64 or not b64.strip():
        raise MalformedImageError(role, "missing image data")
    try:
        return base64.b64decode(strip_data_uri(b64))
    except (binascii.Error, ValueError) as exc:
        raise MalformedImageError(role, f"invalid base64: {exc}") from exc


def b64_to_image(b64: str, *, role: str = "input") -> Image.Image:
    """Decode raw base64 or a ``data:image/...;base64,`` URI into an image."""
    return image_from_bytes(b64_to_bytes(b64, role=role), role=role)


def image_to_png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def image_to_b64_png(img: Image.Image) -> str:
    return base64.b64encode(image_to_png_bytes(img)).decode("utf-8")


def has_alpha(img: Image.Image) -> bool:
    return img.mode == "RGBA"
