from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from product_studio.domain.models import Audience, BrandPlaybook, Persona, Product


class InMemoryCatalog:
    """Read-only brand/audience/product lookups for one or more projects.

    JSON layout (``from_json_file``)::

        {"projects": {"<project_id>": {
            "playbook": {...}, "audiences": [...], "personas": [...], "products": [...]}}}
    """

    def __init__(self):
        self._playbooks: Dict[str, BrandPlaybook] = {}
        self._audiences: Dict[str, Dict[str, Audience]] = {}
        self._personas: Dict[str, Dict[str, Persona]] = {}
        self._products: Dict[str, Dict[str, Product]] = {}

    def add_playbook(self, project_id: str, playbook: BrandPlaybook) -> None:
        self._playbooks[project_id] = playbook

    def add_audience(self, project_id: str, audience: Audience) -> None:
        self._audiences.setdefault(project_id, {})[audience.id] = audience

    def add_persona(self, project_id: str, persona: Persona) -> None:
        self._personas.setdefault(project_id, {})[persona.name] = persona

    def add_product(self, project_id: str, product: Product) -> None:
        self._products.setdefault(project_id, {})[product.id] = product

    def get_playbook(self, project_id: str) -> Optional[BrandPlaybook]:
        return self._playbooks.get(project_id)

    def get_audience(self, project_id: str, audience_id: str) -> Optional[Audience]:
        return self._audiences.get(project_id, {}).get(audience_id)

    def get_persona(self, project_id: str, persona_name: str) -> Optional[Persona]:
        return self._personas.get(project_id, {}).get(persona_name)

    def get_products(self, project_id: str, product_ids: List[str]) -> List[Product]:
        """Products in request order; unknown ids are dropped."""
        by_id = self._products.get(project_id, {})
        return [by_id[pid] for pid in product_ids if pid in by_id]

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "InMemoryCatalog":
        catalog = cls()
        for project_id, proj in (raw.get("projects") or {}).items():
            if proj.get("playbook"):
                catalog.add_playbook(project_id, BrandPlaybook(**proj["playbook"]))
            for a in proj.get("audiences") or []:
                catalog.add_audience(project_id, Audience(**a))
            for p in proj.get("personas") or []:
                catalog.add_persona(project_id, Persona(**p))
            for p in proj.get("products") or []:
                catalog.add_product(project_id, Product(**p))
        return catalog

    @classmethod
    def from_json_file(cls, path: Path | str) -> "InMemoryCatalog":
        return cls.from_dict(json.loads(Path(path).read_text(encoding="utf-8")))
