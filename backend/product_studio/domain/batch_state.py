import time
import uuid
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Batch:
    batch_id: str
    project_id: str
    audience_id: str
    status: str = "queued"  # queued|processing|completed|failed|cancelled
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())
    completed_at: Optional[float] = None

    step: str = ""
    current: int = 0
    total: int = 0
    details: Optional[str] = None

    images: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def progress(self) -> float:
        return self.current / self.total if self.total else 0.0


_batch_store: Dict[str, Batch] = {}
_batch_lock = threading.Lock()


def create_batch(project_id: str, audience_id: str) -> Batch:
    batch = Batch(batch_id=uuid.uuid4().hex, project_id=project_id, audience_id=audience_id)
    with _batch_lock:
        _batch_store[batch.batch_id] = batch
    return batch


def get_batch(batch_id: str) -> Optional[Batch]:
    with _batch_lock:
        return _batch_store.get(batch_id)


def update_progress(batch_id: str, step: str, current: int, total: int, details: Optional[str] = None) -> None:
    with _batch_lock:
        batch = _batch_store.get(batch_id)
        if not batch:
            return
        if batch.status == "queued":
            batch.status = "processing"
        batch.step = step
        batch.current = current
        batch.total = total
        batch.details = details
        batch.updated_at = time.time()


def finish_batch(batch_id: str, *, images: List[Dict[str, Any]], errors: List[str], warnings: List[str]) -> None:
    with _batch_lock:
        batch = _batch_store.get(batch_id)
        if not batch:
            return
        batch.images = images
        batch.errors = errors
        batch.warnings = warnings
        if batch.status != "cancelled":
            batch.status = "completed" if images else "failed"
        batch.completed_at = time.time()
        batch.updated_at = time.time()


def is_cancelled(batch_id: str) -> bool:
    with _batch_lock:
        batch = _batch_store.get(batch_id)
        return bool(batch and batch.status == "cancelled")


def cancel_batch(batch_id: str) -> bool:
    with _batch_lock:
        batch = _batch_store.get(batch_id)
        if not batch:
            return False
        if batch.completed_at is None:
            batch.status = "cancelled"
        batch.updated_at = time.time()
        return True
