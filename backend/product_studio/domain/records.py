from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Dict, List, Optional

from product_studio.domain.models import GeneratedImageRecord


class RecordStore:
    """Append-only store of generated image records.

    Records are kept in memory and, when ``root`` is set, also written as
    ``<root>/<id>.json``. Inserting an existing id is rejected: records are
    immutable once written.
    """

    def __init__(self, root: Path | str | None = None):
        self.root = Path(root) if root is not None else None
        self._records: Dict[str, GeneratedImageRecord] = {}
        self._lock = threading.Lock()

    def insert(self, record: GeneratedImageRecord) -> GeneratedImageRecord:
        with self._lock:
            if record.id in self._records:
                raise ValueError(f"record {record.id} already exists")
            if self.root is not None:
                self.root.mkdir(parents=True, exist_ok=True)
                (self.root / f"{record.id}.json").write_text(
                    json.dumps(record.as_dict(), ensure_ascii=False, indent=2),
                    encoding="utf-8",
                )
            self._records[record.id] = record
        return record

    def get(self, record_id: str) -> Optional[GeneratedImageRecord]:
        with self._lock:
            return self._records.get(record_id)

    def list(self, project_id: str | None = None) -> List[GeneratedImageRecord]:
        with self._lock:
            items = list(self._records.values())
        if project_id is not None:
            items = [r for r in items if r.project_id == project_id]
        return sorted(items, key=lambda r: r.created_at)
