"""Smoke test: raw base64 and data-URI inputs must composite identically.

Usage (from the repo root, package installed):
    python scripts/test_compositor.py
"""
import sys

from PIL import Image

from product_studio.services.compositor import composite_product
from product_studio.services.imaging import b64_to_image, image_to_b64_png


def main() -> int:
    red = image_to_b64_png(Image.new("RGB", (1, 1), (255, 0, 0)))
    blue = image_to_b64_png(Image.new("RGBA", (1, 1), (0, 0, 255, 255)))

    print("Testing raw base64...")
    raw = composite_product(red, blue)
    print(f"  ok: {b64_to_image(raw.image).size}, placement={raw.placement}")

    print("Testing data URIs...")
    uri = composite_product("data:image/png;base64," + red, "data:image/png;base64," + blue)
    print(f"  ok: {b64_to_image(uri.image).size}, placement={uri.placement}")

    if raw.image != uri.image or raw.overlay != uri.overlay:
        print("FAIL: outputs differ")
        return 1

    print("Testing malformed background...")
    try:
        composite_product("PGh0bWw+PC9odG1sPg==", blue)
    except ValueError as exc:
        print(f"  rejected as expected: {exc}")
    else:
        print("FAIL: HTML accepted as an image")
        return 1

    print("All checks passed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
