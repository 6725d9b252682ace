from __future__ import annotations


class StudioError(Exception):
    """Base class for pipeline errors."""


class MalformedImageError(StudioError, ValueError):
    """An input buffer is not a decodable image (fatal for that image only)."""

    def __init__(self, role: str, reason: str):
        self.role = role
        self.reason = reason
        super().__init__(f"{role} image is malformed: {reason}")


class ShadowError(StudioError):
    pass


class AspectRatioMismatchError(StudioError):
    def __init__(self, overlay_size: tuple[int, int], target_size: tuple[int, int]):
        self.overlay_size = overlay_size
        self.target_size = target_size
        super().__init__(
            f"overlay {overlay_size[0]}x{overlay_size[1]} cannot be aligned with "
            f"{target_size[0]}x{target_size[1]} (aspect ratio changed)"
        )


class BatchAbortedError(StudioError):
    """Lookup failure that stops a whole batch before any generation."""


class ProviderError(StudioError):
    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class RateLimitError(ProviderError):
    def __init__(self, message: str, retry_after: float = 10.0):
        self.retry_after = float(retry_after)
        super().__init__(message, status_code=429)
