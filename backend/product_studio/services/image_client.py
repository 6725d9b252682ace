from __future__ import annotations

import base64
import logging
import os
import time
from typing import Any, Callable, Dict, Optional

import httpx
import openai
from openai import OpenAI

from product_studio.core.errors import ProviderError, RateLimitError
from product_studio.core.retry import call_with_retry, parse_retry_after
from product_studio.core.settings import RetrySettings

logger = logging.getLogger("product-studio")

_SIZES = {
    "1:1": "1024x1024",
    "9:16": "1024x1536",
    "4:5": "1024x1536",
    "16:9": "1536x1024",
}

REALISM_KEYWORDS = (
    "photorealistic, professional photography, realistic lighting, sharp details, "
    "no AI artifacts, no oversaturation, realistic shadows"
)


class OpenAIImageClient:
    """Text-to-image generation over an OpenAI-compatible Images API."""

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        retry: RetrySettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = os.getenv("IMAGE_API_KEY") or os.getenv("OPENAI_API_KEY")
        self.base_url = os.getenv("IMAGE_BASE_URL") or os.getenv("OPENAI_BASE_URL") or None
        self.model = os.getenv("IMAGE_MODEL") or "gpt-image-1"
        self.retry = retry or RetrySettings.from_env()
        self.sleep = sleep

        self.client = client
        if self.client is None:
            if not self.api_key:
                logger.warning("Image generation client not configured (need IMAGE_API_KEY or OPENAI_API_KEY).")
            else:
                self.client = OpenAI(api_key=self.api_key, base_url=self.base_url)

    def _generate_once(self, params: Dict[str, Any]) -> str:
        try:
            resp = self.client.images.generate(**params)
        except openai.RateLimitError as exc:
            retry_after = exc.response.headers.get("retry-after") if exc.response is not None else None
            raise RateLimitError(
                f"image generation rate limited: {exc}",
                retry_after=float(retry_after) if retry_after else parse_retry_after(exc.body or str(exc)),
            ) from exc
        except openai.APIStatusError as exc:
            raise ProviderError(f"image generation failed: {exc}", status_code=exc.status_code) from exc

        if not resp.data:
            raise ProviderError("image generation returned no data")
        item = resp.data[0]
        if item.b64_json:
            return item.b64_json
        if item.url:
            r = httpx.get(item.url, timeout=120)
            r.raise_for_status()
            return base64.b64encode(r.content).decode("utf-8")
        raise ProviderError("image generation returned neither b64_json nor url")

    def generate(self, prompt: str, options: Optional[Dict[str, Any]] = None) -> str:
        if self.client is None:
            raise ProviderError("Image generation client not configured")
        options = options or {}
        full_prompt = prompt
        if options.get("realism_keywords", True):
            full_prompt = f"{prompt}, {REALISM_KEYWORDS}"

        params: Dict[str, Any] = {
            "model": self.model,
            "prompt": full_prompt,
            "size": _SIZES.get(options.get("aspect_ratio", "1:1"), "1024x1024"),
            "n": 1,
        }
        if self.model.startswith("dall-e"):
            params["response_format"] = "b64_json"

        return call_with_retry(
            lambda: self._generate_once(params),
            settings=self.retry,
            sleep=self.sleep,
            label="image generation",
        )

    def generate_background(self, location: str) -> str:
        prompt = (
            f"A beautiful empty background scene of {location}, no product, no person, background only, "
            "copy space, professional photography, high quality. "
            "Avoid: product, bottle, can, package, person, text"
        )
        return self.generate(prompt, {"aspect_ratio": "1:1"})
