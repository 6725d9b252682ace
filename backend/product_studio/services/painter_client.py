from __future__ import annotations

import base64
import os
import time
from typing import Any, Callable, Optional

import requests

from product_studio.core.errors import ProviderError
from product_studio.core.retry import call_with_retry, raise_for_provider_status
from product_studio.core.settings import RetrySettings
from product_studio.services.imaging import b64_to_bytes


def _pick_output(payload: Any) -> Optional[str]:
    """Find the image in the many response shapes edit APIs use."""
    if isinstance(payload, dict):
        if isinstance(payload.get("output"), list) and payload["output"]:
            return _pick_output(payload["output"][0])
        if isinstance(payload.get("output"), str):
            return payload["output"]
        if isinstance(payload.get("data"), list) and payload["data"]:
            return _pick_output(payload["data"][0])
        for k in ("b64", "b64_json", "url"):
            if isinstance(payload.get(k), str):
                return payload[k]
        return None
    if isinstance(payload, list) and payload:
        return _pick_output(payload[0])
    if isinstance(payload, str):
        return payload
    return None


class PainterClient:
    """Image-to-image edit endpoint, used for relighting."""

    def __init__(
        self,
        retry: RetrySettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.edit_url = (os.getenv("PAINTER_EDIT_URL") or "").strip()
        self.token = (os.getenv("PAINTER_TOKEN") or "").strip()
        self.model = (os.getenv("PAINTER_MODEL") or "google/nano-banana").strip()
        self.retry = retry or RetrySettings(
            max_retries=int(os.getenv("PAINTER_RETRY_ATTEMPTS") or "3"),
        )
        self.sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self.edit_url and self.token)

    def _post_once(self, files: dict, data: dict, timeout: int) -> bytes:
        resp = requests.post(
            self.edit_url,
            headers={"Authorization": f"Bearer {self.token}"},
            files=files,
            data=data,
            timeout=timeout,
        )
        raise_for_provider_status(resp.status_code, resp.text, provider="painter edit")

        output_item = _pick_output(resp.json())
        if not isinstance(output_item, str) or not output_item:
            raise ProviderError("Painter edit missing output")

        if output_item.startswith("http://") or output_item.startswith("https://"):
            r2 = requests.get(output_item, timeout=60)
            raise_for_provider_status(r2.status_code, r2.text if not r2.ok else "", provider="painter download")
            return r2.content
        return b64_to_bytes(output_item, role="painter output")

    def edit(
        self,
        *,
        image_bytes: bytes,
        prompt: str,
        negative_prompt: str = "",
        prompt_strength: float = 0.35,
        output_format: str = "png",
        timeout: int = 300,
    ) -> bytes:
        if not self.configured:
            raise ProviderError("Painter not configured (need PAINTER_EDIT_URL + PAINTER_TOKEN)")

        files = {"image": ("input.png", image_bytes, "image/png")}
        data = {
            "model": self.model,
            "prompt": prompt,
            "negative_prompt": negative_prompt.strip()
            or "text changes, new logos, extra objects, watermark, repainted label, blurry, deformed",
            "prompt_strength": prompt_strength,
            "output_format": output_format,
        }
        return call_with_retry(
            lambda: self._post_once(files, data, timeout),
            settings=self.retry,
            sleep=self.sleep,
            label="painter edit",
        )

    def refine(self, image_b64: str, instruction: str) -> str:
        out = self.edit(image_bytes=b64_to_bytes(image_b64, role="refine input"), prompt=instruction)
        return base64.b64encode(out).decode("utf-8")
