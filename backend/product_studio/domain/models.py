from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

ImageType = Literal["product_only", "product_persona", "ugc_style"]
IMAGE_TYPES: tuple[str, ...] = ("product_only", "product_persona", "ugc_style")

VERTICAL_POSITIONS = {"center", "bottom", "tabletop"}
HORIZONTAL_POSITIONS = {"center", "left", "right"}

DEFAULT_VARIATIONS: Dict[str, int] = {
    "product_only": 4,
    "product_persona": 5,
    "ugc_style": 3,
}


@dataclass(frozen=True)
class Placement:
    x: int
    y: int


@dataclass(frozen=True)
class TargetRegion:
    """Normalized (0-1) region of the background the product should fill."""

    top: float
    left: float
    width: float
    height: float

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "TargetRegion":
        return cls(
            top=float(raw["top"]),
            left=float(raw["left"]),
            width=float(raw["width"]),
            height=float(raw["height"]),
        )


_OPTION_ALIASES = {
    "productSizePercent": "product_size_percent",
    "verticalPosition": "vertical_position",
    "horizontalPosition": "horizontal_position",
    "targetRegion": "target_region",
}


@dataclass(frozen=True)
class CompositingOptions:
    product_size_percent: Optional[float] = None
    vertical_position: Optional[str] = None
    horizontal_position: Optional[str] = None
    x: Optional[int] = None
    y: Optional[int] = None
    target_region: Optional[TargetRegion] = None
    shadow: bool = False
    grade: bool = True

    def __post_init__(self):
        if self.vertical_position is not None and self.vertical_position not in VERTICAL_POSITIONS:
            raise ValueError(f"unknown vertical_position: {self.vertical_position}")
        if self.horizontal_position is not None and self.horizontal_position not in HORIZONTAL_POSITIONS:
            raise ValueError(f"unknown horizontal_position: {self.horizontal_position}")

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "CompositingOptions":
        """Build options from snake_case or camelCase JSON keys."""
        data: Dict[str, Any] = {}
        for k, v in (raw or {}).items():
            key = _OPTION_ALIASES.get(k, k)
            if key not in cls.__dataclass_fields__:
                raise ValueError(f"unknown compositing option: {k}")
            data[key] = v
        region = data.get("target_region")
        if isinstance(region, dict):
            data["target_region"] = TargetRegion.from_dict(region)
        return cls(**data)


@dataclass
class CompositeResult:
    image: str
    overlay: str
    placement: Placement
    product_size: tuple[int, int]
    warnings: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, str]:
        return {"image": self.image, "overlay": self.overlay}


@dataclass
class StageReport:
    name: str
    status: str  # applied|skipped|failed
    error: Optional[str] = None


@dataclass
class EnhancementReport:
    image: str
    stages: List[StageReport] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class ValidationResult:
    passed: bool
    checks: Dict[str, bool] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "checks": dict(self.checks),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class BrandPlaybook:
    brand_name: str
    colors: List[str] = field(default_factory=list)
    mood: str = ""
    aesthetic: str = ""
    guidelines: str = ""


@dataclass(frozen=True)
class Audience:
    id: str
    name: str
    description: str = ""


@dataclass(frozen=True)
class Persona:
    name: str
    image_prompt: str = ""
    casting_notes: str = ""
    visual_style: str = ""
    age_range: str = ""
    image_url: Optional[str] = None


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    description: str = ""
    category: str = ""
    image_urls: List[str] = field(default_factory=list)

    @property
    def primary_image_url(self) -> Optional[str]:
        return self.image_urls[0] if self.image_urls else None


@dataclass(frozen=True)
class ScenePlan:
    scene_description: str
    location: str
    lighting: str = "soft natural window light"
    mood: str = ""
    product_action: str = "holding"
    composition_notes: str = ""

    def as_dict(self) -> Dict[str, str]:
        return {
            "scene_description": self.scene_description,
            "location": self.location,
            "lighting": self.lighting,
            "mood": self.mood,
            "product_action": self.product_action,
            "composition_notes": self.composition_notes,
        }


@dataclass
class AudienceImageGenerationConfig:
    product_ids: List[str]
    image_types: List[str] = field(default_factory=lambda: list(IMAGE_TYPES))
    variations_per_type: Union[int, Dict[str, int]] = field(default_factory=lambda: dict(DEFAULT_VARIATIONS))
    campaign_id: Optional[str] = None
    platform: Optional[str] = None
    funnel_stage: Optional[str] = None
    angle: Optional[str] = None
    scale_factor: int = 2

    def __post_init__(self):
        unknown = [t for t in self.image_types if t not in IMAGE_TYPES]
        if unknown:
            raise ValueError(f"unknown image types: {unknown}")
        if self.scale_factor not in (2, 4):
            raise ValueError(f"scale_factor must be 2 or 4 (got: {self.scale_factor})")

    def variations_for(self, image_type: str) -> int:
        if isinstance(self.variations_per_type, int):
            return self.variations_per_type
        return int(self.variations_per_type.get(image_type, DEFAULT_VARIATIONS[image_type]))

    def metadata(self) -> Dict[str, Optional[str]]:
        return {
            "campaign_id": self.campaign_id,
            "platform": self.platform,
            "funnel_stage": self.funnel_stage,
            "angle": self.angle,
        }


@dataclass(frozen=True)
class UploadResult:
    path: str
    url: str


@dataclass(frozen=True)
class GeneratedImageRecord:
    """Immutable artifact written once per successful generation."""

    id: str
    project_id: str
    image_type: str
    audience_id: str
    persona_name: Optional[str]
    product_ids: tuple[str, ...]
    storage_bucket: str
    storage_path: str
    storage_url: str
    validation: Dict[str, Any]
    scene_plan: Dict[str, Any]
    metadata: Dict[str, Any] = field(default_factory=dict)
    approved: bool = False
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "image_type": self.image_type,
            "audience_id": self.audience_id,
            "persona_name": self.persona_name,
            "product_ids": list(self.product_ids),
            "storage_bucket": self.storage_bucket,
            "storage_path": self.storage_path,
            "storage_url": self.storage_url,
            "validation": self.validation,
            "scene_plan": self.scene_plan,
            "metadata": self.metadata,
            "approved": self.approved,
            "created_at": self.created_at,
        }


@dataclass
class ProgressUpdate:
    current: int
    total: int
    details: Optional[str] = None


@dataclass
class PipelineResult:
    generated_images: List[GeneratedImageRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        return "completed" if self.generated_images else "failed"
