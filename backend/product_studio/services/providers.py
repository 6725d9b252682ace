"""Capabilities the pipeline consumes.

Every provider is passed in explicitly. Optional capabilities (refine,
upscale, subject enhancement) are ``None`` when not configured; nothing
inspects objects for methods at runtime.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from product_studio.domain.models import (
    Audience,
    BrandPlaybook,
    GeneratedImageRecord,
    Persona,
    Product,
    ScenePlan,
    UploadResult,
    ValidationResult,
)


class ProductIsolator(Protocol):
    def isolate_product(self, image_url: str) -> str:
        """Return a base64 PNG cutout (with alpha where available)."""


class ImageGenerator(Protocol):
    def generate(self, prompt: str, options: Optional[Dict[str, Any]] = None) -> str: ...

    def generate_background(self, location: str) -> str: ...


class ImageRefiner(Protocol):
    def refine(self, image_b64: str, instruction: str) -> str: ...


class Upscaler(Protocol):
    def upscale(self, image_b64: str, scale_factor: int) -> str: ...


class SubjectEnhancer(Protocol):
    def enhance(self, image_b64: str, mode: str) -> str: ...


class StorageBackend(Protocol):
    def upload(self, data: bytes, bucket: str, path: str, content_type: str) -> UploadResult: ...


class QualityValidator(Protocol):
    def validate(
        self,
        generated_b64: str,
        original_product_b64: Optional[str],
        playbook: BrandPlaybook,
        *,
        persona: Optional[Persona] = None,
        image_type: Optional[str] = None,
        overlay_b64: Optional[str] = None,
    ) -> ValidationResult: ...


class ScenePlanner(Protocol):
    def plan(
        self,
        image_type: str,
        playbook: BrandPlaybook,
        audience: Audience,
        product: Product,
        *,
        persona: Optional[Persona] = None,
        angle: Optional[str] = None,
        funnel_stage: Optional[str] = None,
    ) -> ScenePlan: ...


class Catalog(Protocol):
    def get_playbook(self, project_id: str) -> Optional[BrandPlaybook]: ...

    def get_audience(self, project_id: str, audience_id: str) -> Optional[Audience]: ...

    def get_persona(self, project_id: str, persona_name: str) -> Optional[Persona]: ...

    def get_products(self, project_id: str, product_ids: List[str]) -> List[Product]: ...


class RecordStore(Protocol):
    def insert(self, record: GeneratedImageRecord) -> GeneratedImageRecord: ...


@dataclass
class ProviderSet:
    isolator: ProductIsolator
    generator: ImageGenerator
    storage: StorageBackend
    catalog: Catalog
    records: RecordStore
    validator: QualityValidator
    planner: ScenePlanner
    refiner: Optional[ImageRefiner] = None
    upscaler: Optional[Upscaler] = None
    subject_enhancer: Optional[SubjectEnhancer] = None
