from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw else default


def _env_rgb(name: str, default: tuple[int, int, int]) -> tuple[int, int, int]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    parts = [int(p) for p in raw.split(",")]
    if len(parts) != 3:
        raise ValueError(f"{name} must be 'r,g,b' (got: {raw})")
    return parts[0], parts[1], parts[2]


@dataclass(frozen=True)
class CompositorSettings:
    # Shadow constants are hand-tuned, hence env-overridable.
    shadow_flatten_ratio: float = 0.30
    shadow_anchor_ratio: float = 0.15
    shadow_blur_radius: float = 8.0
    shadow_opacity: float = 1.0

    grade_tint_rgb: tuple[int, int, int] = (255, 240, 220)
    grade_tint_opacity: float = 0.10
    grade_saturation: float = 1.15

    # Window-light overlay multiplied over product-only images; empty disables it.
    window_shadow_path: str = ""

    @classmethod
    def from_env(cls) -> "CompositorSettings":
        d = cls()
        return cls(
            shadow_flatten_ratio=_env_float("SHADOW_FLATTEN_RATIO", d.shadow_flatten_ratio),
            shadow_anchor_ratio=_env_float("SHADOW_ANCHOR_RATIO", d.shadow_anchor_ratio),
            shadow_blur_radius=_env_float("SHADOW_BLUR_RADIUS", d.shadow_blur_radius),
            shadow_opacity=_env_float("SHADOW_OPACITY", d.shadow_opacity),
            grade_tint_rgb=_env_rgb("GRADE_TINT_RGB", d.grade_tint_rgb),
            grade_tint_opacity=_env_float("GRADE_TINT_OPACITY", d.grade_tint_opacity),
            grade_saturation=_env_float("GRADE_SATURATION", d.grade_saturation),
            window_shadow_path=(os.getenv("WINDOW_SHADOW_PATH") or "").strip(),
        )


@dataclass(frozen=True)
class EnhancerSettings:
    relight_blur_radius: float = 20.0
    relight_opacity: float = 0.40
    # Relative tolerance before the overlay is considered misaligned.
    aspect_tolerance: float = 0.01

    @classmethod
    def from_env(cls) -> "EnhancerSettings":
        d = cls()
        return cls(
            relight_blur_radius=_env_float("REINJECT_BLUR_RADIUS", d.relight_blur_radius),
            relight_opacity=_env_float("REINJECT_OPACITY", d.relight_opacity),
            aspect_tolerance=_env_float("SANDWICH_ASPECT_TOLERANCE", d.aspect_tolerance),
        )


@dataclass(frozen=True)
class RetrySettings:
    max_retries: int = 3
    base_delay: float = 1.0
    rate_limit_buffer: float = 1.0
    default_retry_after: float = 10.0
    max_rate_limit_waits: int = 5

    @classmethod
    def from_env(cls) -> "RetrySettings":
        d = cls()
        return cls(
            max_retries=_env_int("PROVIDER_MAX_RETRIES", d.max_retries),
            base_delay=_env_float("PROVIDER_RETRY_BASE_DELAY", d.base_delay),
            rate_limit_buffer=_env_float("PROVIDER_RATE_LIMIT_BUFFER", d.rate_limit_buffer),
            default_retry_after=_env_float("PROVIDER_DEFAULT_RETRY_AFTER", d.default_retry_after),
            max_rate_limit_waits=_env_int("PROVIDER_MAX_RATE_LIMIT_WAITS", d.max_rate_limit_waits),
        )


def output_root() -> Path:
    # backend/product_studio/core/settings.py -> repo_root/assets
    repo_root = Path(__file__).resolve().parents[3]
    return Path(os.getenv("PRODUCT_STUDIO_OUTPUT_DIR", str(repo_root / "assets")))
