from __future__ import annotations

from pathlib import Path

from product_studio.core.settings import output_root
from product_studio.domain.models import UploadResult


class LocalStorage:
    """Filesystem storage; files are served by the app under ``/assets``."""

    def __init__(self, root: Path | str | None = None, public_prefix: str = "/assets"):
        self.root = Path(root) if root is not None else output_root()
        self.public_prefix = public_prefix.rstrip("/")

    def upload(self, data: bytes, bucket: str, path: str, content_type: str) -> UploadResult:
        rel = Path(bucket) / path.lstrip("/")
        if ".." in rel.parts:
            raise ValueError(f"invalid storage path: {path}")
        dest = self.root / rel
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
        return UploadResult(path=path, url=f"{self.public_prefix}/{rel.as_posix()}")
