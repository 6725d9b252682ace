from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Callable, TypeVar

from product_studio.core.errors import MalformedImageError, ProviderError, RateLimitError
from product_studio.core.settings import RetrySettings

logger = logging.getLogger("product-studio")

T = TypeVar("T")

_RETRY_AFTER_RE = re.compile(r'"?retry_after"?\s*[:=]\s*(\d+(?:\.\d+)?)')


def parse_retry_after(payload: Any, default: float = 10.0) -> float:
    """Extract the server-suggested wait (seconds) from a 429 payload.

    Accepts a decoded JSON dict, or the raw body / error message text
    (e.g. ``{"detail": "...", "retry_after": 6}``).
    """
    if isinstance(payload, dict):
        value = payload.get("retry_after")
        if value is None and isinstance(payload.get("error"), dict):
            value = payload["error"].get("retry_after")
        if value is not None:
            try:
                return float(value)
            except (TypeError, ValueError):
                return default
        payload = json.dumps(payload)
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        m = _RETRY_AFTER_RE.search(payload)
        if m:
            return float(m.group(1))
    return default


def raise_for_provider_status(status_code: int, body: str, *, provider: str) -> None:
    if status_code < 400:
        return
    if status_code == 429:
        raise RateLimitError(
            f"{provider} rate limited (429): {body[:300]}",
            retry_after=parse_retry_after(body),
        )
    raise ProviderError(f"{provider} failed status={status_code} body={body[:500]}", status_code=status_code)


def _is_permanent(exc: Exception) -> bool:
    if isinstance(exc, MalformedImageError):
        return True
    code = getattr(exc, "status_code", None)
    return isinstance(exc, ProviderError) and code is not None and 400 <= code < 500 and code != 429


def call_with_retry(
    fn: Callable[[], T],
    *,
    settings: RetrySettings | None = None,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "provider",
) -> T:
    """Run ``fn`` with exponential backoff.

    Generic failures sleep ``base_delay * 2**attempt`` and consume the retry
    budget. Rate-limit responses sleep ``retry_after + buffer`` and do not;
    they have their own cap (``max_rate_limit_waits``).
    """
    cfg = settings or RetrySettings()
    attempt = 0
    rate_limit_waits = 0

    while True:
        try:
            return fn()
        except RateLimitError as exc:
            if rate_limit_waits >= cfg.max_rate_limit_waits:
                raise
            rate_limit_waits += 1
            wait_s = exc.retry_after + cfg.rate_limit_buffer
            logger.warning(
                f"{label} rate limited (429), waiting {wait_s:.1f}s",
                extra={"props": {"retry_after": exc.retry_after, "rate_limit_waits": rate_limit_waits}},
            )
            sleep(wait_s)
        except Exception as exc:
            if _is_permanent(exc) or attempt >= cfg.max_retries:
                raise
            delay = cfg.base_delay * (2 ** attempt)
            attempt += 1
            logger.warning(
                f"{label} attempt {attempt}/{cfg.max_retries + 1} failed: {exc}; retrying in {delay:.1f}s"
            )
            sleep(delay)
