from __future__ import annotations

import base64
import logging
import os
import time
from typing import Any, Callable, Dict

import httpx

from product_studio.core.errors import ProviderError
from product_studio.core.retry import call_with_retry, raise_for_provider_status
from product_studio.core.settings import RetrySettings
from product_studio.services.imaging import strip_data_uri

logger = logging.getLogger("product-studio")


class UpscaleClient:
    """Upscaling and subject (skin) enhancement over a task-based HTTP API.

    The API either answers synchronously (``data.base64`` / ``data.url``) or
    returns a task id (``data.id``) that is polled until completion.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        poll_interval: float = 2.0,
        max_polls: int = 150,
        retry: RetrySettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = (base_url or os.getenv("UPSCALE_BASE_URL") or "https://api.freepik.com/v1").rstrip("/")
        self.api_key = api_key or (os.getenv("UPSCALE_API_KEY") or "").strip()
        self.enhance_path = os.getenv("UPSCALE_ENHANCE_PATH") or "/ai/skin-enhancer"
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.retry = retry or RetrySettings.from_env()
        self.sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {"x-freepik-api-key": self.api_key, "Content-Type": "application/json"}

    def _request(self, method: str, path: str, body: Dict[str, Any] | None = None) -> Dict[str, Any]:
        with httpx.Client(timeout=120) as client:
            resp = client.request(method, self.base_url + path, headers=self._headers(), json=body)
        raise_for_provider_status(resp.status_code, resp.text, provider=f"upscale {path}")
        return resp.json()

    def _download(self, url: str) -> str:
        with httpx.Client(timeout=120, follow_redirects=True) as client:
            resp = client.get(url)
        resp.raise_for_status()
        return base64.b64encode(resp.content).decode("utf-8")

    def _poll(self, task_id: str) -> str:
        for attempt in range(self.max_polls):
            self.sleep(self.poll_interval)
            payload = call_with_retry(
                lambda: self._request("GET", f"/ai/tasks/{task_id}"),
                settings=self.retry,
                sleep=self.sleep,
                label="upscale poll",
            )
            data = payload.get("data") or {}
            status = payload.get("status") or data.get("status")
            if status == "failed":
                raise ProviderError(f"upscale task {task_id} failed: {payload.get('error') or data.get('error')}")
            if status == "completed":
                if data.get("base64"):
                    return data["base64"]
                if data.get("url"):
                    return self._download(data["url"])
                raise ProviderError(f"upscale task {task_id} completed without an image")
            if attempt % 10 == 0:
                logger.info(f"upscale task {task_id} still processing ({attempt + 1}/{self.max_polls})")
        raise ProviderError(f"upscale task {task_id} timed out after {self.max_polls} polls")

    def _resolve(self, payload: Dict[str, Any]) -> str:
        data = payload.get("data") or {}
        if data.get("base64"):
            return data["base64"]
        if data.get("url"):
            return self._download(data["url"])
        if data.get("id"):
            return self._poll(str(data["id"]))
        raise ProviderError(f"unknown upscale response format: {str(payload)[:300]}")

    def _submit(self, path: str, body: Dict[str, Any]) -> str:
        if not self.configured:
            raise ProviderError("Upscaler not configured (need UPSCALE_API_KEY)")
        payload = call_with_retry(
            lambda: self._request("POST", path, body),
            settings=self.retry,
            sleep=self.sleep,
            label=f"upscale {path}",
        )
        return self._resolve(payload)

    def upscale(self, image_b64: str, scale_factor: int) -> str:
        return self._submit(
            "/ai/upscale",
            {
                "image": {"base64": strip_data_uri(image_b64)},
                "scale_factor": scale_factor,
                "optimized_for": "quality",
            },
        )

    def enhance(self, image_b64: str, mode: str) -> str:
        return self._submit(self.enhance_path, {"image": strip_data_uri(image_b64), "mode": mode})
