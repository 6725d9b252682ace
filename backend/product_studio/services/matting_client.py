import os
import time
from pathlib import Path
from typing import Callable, Tuple
from urllib.parse import unquote, urlparse

import httpx
from PIL import Image

from product_studio.core.retry import call_with_retry, raise_for_provider_status
from product_studio.core.settings import RetrySettings
from product_studio.services.imaging import b64_to_bytes, b64_to_image, image_from_bytes, image_to_b64_png


class MattingClient:
    """Product isolation through the matting sidecar (rembg behind ``/matting``)."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 180,
        retry: RetrySettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        env_base = (os.getenv("MATTING_BASE_URL") or "").strip()
        self.base_url = base_url or env_base or "http://127.0.0.1:8911"
        self.timeout = timeout
        self.retry = retry or RetrySettings.from_env()
        self.sleep = sleep

    def _fetch(self, image_url: str) -> bytes:
        if image_url.startswith("data:"):
            return b64_to_bytes(image_url, role="product")
        if image_url.startswith("file://"):
            return Path(unquote(urlparse(image_url).path)).read_bytes()
        with httpx.Client(timeout=60, follow_redirects=True) as client:
            resp = client.get(image_url)
        raise_for_provider_status(resp.status_code, resp.text if resp.status_code >= 400 else "", provider="product image fetch")
        return resp.content

    def matting(self, image_bytes: bytes, filename: str = "image.png") -> Tuple[Image.Image, Image.Image]:
        """Return (product_rgba, product_mask_L)."""
        url = self.base_url.rstrip("/") + "/matting"
        with httpx.Client(timeout=self.timeout) as client:
            resp = client.post(url, files={"image": (filename, image_bytes, "application/octet-stream")})
        raise_for_provider_status(resp.status_code, resp.text, provider="matting")
        payload = resp.json()
        rgba = b64_to_image(payload["rgba_png_b64"], role="matting output").convert("RGBA")
        mask = b64_to_image(payload["mask_png_b64"], role="matting mask").convert("L")
        return rgba, mask

    def isolate_product(self, image_url: str) -> str:
        """Fetch a product photo and return a base64 PNG cutout.

        Images that already carry real transparency are passed through.
        """
        data = call_with_retry(lambda: self._fetch(image_url), settings=self.retry, sleep=self.sleep, label="product fetch")
        # fails fast on HTML error pages served in place of an image
        src = image_from_bytes(data, role="product")
        if src.mode == "RGBA" and src.getchannel("A").getextrema() != (255, 255):
            return image_to_b64_png(src)

        rgba, _mask = call_with_retry(
            lambda: self.matting(data, filename="product.png"),
            settings=self.retry,
            sleep=self.sleep,
            label="matting",
        )
        return image_to_b64_png(rgba)
