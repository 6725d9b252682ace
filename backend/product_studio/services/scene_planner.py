from __future__ import annotations

from typing import List, Optional

from product_studio.domain.models import Audience, BrandPlaybook, Persona, Product, ScenePlan


def _choose_location(product: Product) -> tuple[str, str, str]:
    """Pick (location, lighting, action) from keywords in the product text."""
    t = f"{product.name} {product.description} {product.category}".lower()

    def has_any(keys: List[str]) -> bool:
        return any(k in t for k in keys)

    if has_any(["shampoo", "conditioner", "hair", "scalp"]):
        return (
            "bright bathroom shelf next to a frosted shower screen",
            "soft natural light through frosted glass, light steam",
            f"pouring {product.name} into an open palm",
        )
    if has_any(["serum", "cream", "moisturizer", "skin", "lotion", "mask", "face"]):
        return (
            "marble bathroom vanity with a folded towel",
            "soft diffused window light",
            f"dabbing {product.name} onto the cheek with fingertips",
        )
    if has_any(["body", "shower gel", "soap", "bath"]):
        return (
            "spa bath ledge with stones and eucalyptus",
            "warm ambient light",
            f"smoothing {product.name} onto the arm",
        )
    if has_any(["coffee", "tea", "snack", "drink", "juice", "chocolate"]):
        return (
            "kitchen counter by a sunny window",
            "morning window light",
            f"holding {product.name} at chest height",
        )
    return (
        "clean wooden tabletop in a softly lit room",
        "soft natural window light",
        f"holding {product.name} naturally",
    )


class TemplateScenePlanner:
    """Deterministic scene plans built from the playbook and product keywords."""

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
    ) -> ScenePlan:
        location, lighting, action = _choose_location(product)
        aesthetic = playbook.aesthetic or "clean"
        mood = playbook.mood or "professional"
        extras = ", ".join(p for p in (angle, funnel_stage) if p)

        if image_type == "product_only":
            desc = f"Empty {location}, {aesthetic} aesthetic, {mood} mood, copy space in the lower third"
            notes = "Background only, no product and no people"
        elif image_type == "ugc_style":
            who = persona.name if persona else "a creator"
            desc = f"Authentic selfie-style scene of {who} at a {location}, talking to camera, smartphone aesthetic"
            notes = "Vertical framing, hand raised towards the lower frame"
        else:
            who = persona.name if persona else "a person"
            desc = f"Lifestyle scene of {who} at a {location}, {aesthetic} aesthetic, {mood} mood"
            notes = "Persona on the left, space for the product on the right"

        if extras:
            desc = f"{desc}, {extras}"
        if audience.description:
            desc = f"{desc}, for {audience.description}"

        return ScenePlan(
            scene_description=desc,
            location=location,
            lighting=lighting,
            mood=mood,
            product_action=action,
            composition_notes=notes,
        )
