from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Callable, List, Optional

from product_studio.core.errors import BatchAbortedError
from product_studio.core.logger import TaskLogger
from product_studio.core.settings import CompositorSettings, EnhancerSettings
from product_studio.domain.models import (
    IMAGE_TYPES,
    Audience,
    AudienceImageGenerationConfig,
    BrandPlaybook,
    CompositingOptions,
    GeneratedImageRecord,
    Persona,
    PipelineResult,
    Product,
    ProgressUpdate,
    ScenePlan,
)
from product_studio.services.compositor import Compositor, composite_product
from product_studio.services.imaging import b64_to_bytes
from product_studio.services.providers import ProviderSet
from product_studio.services.realism import RealismEnhancer

GENERATED_BUCKET = "generated-assets"

ProgressCallback = Callable[[str, ProgressUpdate], None]


@dataclass(frozen=True)
class TypeRecipe:
    image_type: str
    label: str
    slug: str
    options: CompositingOptions
    aspect_ratio: Optional[str] = None
    needs_persona: bool = False
    window_shadow: bool = False


RECIPES = {
    "product_only": TypeRecipe(
        image_type="product_only",
        label="product-only",
        slug="product-only",
        options=CompositingOptions(product_size_percent=0.60, vertical_position="tabletop", shadow=True),
        window_shadow=True,
    ),
    "product_persona": TypeRecipe(
        image_type="product_persona",
        label="product+persona",
        slug="product-persona",
        options=CompositingOptions(
            product_size_percent=0.30, vertical_position="bottom", horizontal_position="right", shadow=False
        ),
        aspect_ratio="1:1",
        needs_persona=True,
    ),
    "ugc_style": TypeRecipe(
        image_type="ugc_style",
        label="UGC",
        slug="ugc",
        options=CompositingOptions(product_size_percent=0.35, vertical_position="bottom", shadow=False),
        aspect_ratio="9:16",
        needs_persona=True,
    ),
}


def scene_prompt(plan: ScenePlan, persona: Optional[Persona], recipe: TypeRecipe) -> str:
    """Background prompt for persona scenes. The product itself is composited later."""
    parts = [plan.scene_description]
    if persona is not None:
        who = persona.image_prompt or persona.name
        if persona.age_range:
            who = f"{who}, {persona.age_range}"
        parts.append(f"Person: {who}")
        if persona.visual_style:
            parts.append(f"Style: {persona.visual_style}")
    parts.append(f"Lighting: {plan.lighting}")
    if plan.composition_notes:
        parts.append(plan.composition_notes)
    if recipe.image_type == "ugc_style":
        parts.append("shot on a smartphone, natural imperfections, candid")
    parts.append("Leave the hand area empty; do not draw any product, bottle or packaging")
    return ". ".join(parts)


class _ProgressReporter:
    """Wraps the caller's callback: ``current`` never decreases and callback errors never escape."""

    def __init__(self, callback: Optional[ProgressCallback], log: TaskLogger):
        self.callback = callback
        self.log = log
        self.current = 0
        self.total = 0

    def __call__(self, step: str, current: Optional[int] = None, total: Optional[int] = None, details: Optional[str] = None):
        if total is not None:
            self.total = total
        if current is not None:
            self.current = max(self.current, current)
        if self.callback is None:
            return
        try:
            self.callback(step, ProgressUpdate(current=self.current, total=self.total, details=details))
        except Exception as exc:
            self.log.warning(f"Progress callback failed (ignored): {exc}", step=step)


@dataclass
class _BatchContext:
    project_id: str
    audience_id: str
    config: AudienceImageGenerationConfig
    playbook: BrandPlaybook
    audience: Audience
    persona: Optional[Persona]
    products: List[Product]


class PipelineOrchestrator:
    """Generates a batch of audience images, one at a time.

    Lookup failures abort the whole batch. Past that point every image is
    independent: a failure is recorded and the batch moves on.
    """

    def __init__(
        self,
        providers: ProviderSet,
        compositor_settings: CompositorSettings | None = None,
        enhancer_settings: EnhancerSettings | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.providers = providers
        self.compositor = Compositor(compositor_settings or CompositorSettings.from_env())
        self.enhancer = RealismEnhancer(
            refiner=providers.refiner,
            upscaler=providers.upscaler,
            subject_enhancer=providers.subject_enhancer,
            settings=enhancer_settings or EnhancerSettings.from_env(),
        )
        self.clock = clock

    def run(
        self,
        project_id: str,
        audience_id: str,
        config: AudienceImageGenerationConfig,
        on_progress: Optional[ProgressCallback] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
        trace_id: Optional[str] = None,
    ) -> PipelineResult:
        log = TaskLogger(trace_id)
        progress = _ProgressReporter(on_progress, log)
        result = PipelineResult()

        log.info("Batch started", project_id=project_id, audience_id=audience_id)
        try:
            ctx = self._load_context(project_id, audience_id, config, progress, log)
            self._generate_all(ctx, result, progress, should_cancel, log)
        except BatchAbortedError as exc:
            log.error(f"Batch aborted: {exc}")
            result.errors.append(f"Pipeline failed: {exc}")
        except Exception as exc:
            log.exception(f"Batch crashed: {exc}")
            result.errors.append(f"Pipeline failed: {exc}")

        log.info(
            "Batch finished",
            status=result.status,
            generated=len(result.generated_images),
            errors=len(result.errors),
            warnings=len(result.warnings),
        )
        return result

    def _load_context(
        self,
        project_id: str,
        audience_id: str,
        config: AudienceImageGenerationConfig,
        progress: _ProgressReporter,
        log: TaskLogger,
    ) -> _BatchContext:
        catalog = self.providers.catalog

        progress("Reading brand playbook...", 0, 0)
        playbook = catalog.get_playbook(project_id)
        if playbook is None:
            raise BatchAbortedError("Brand identity playbook not found")

        progress("Loading audience & persona data...")
        audience = catalog.get_audience(project_id, audience_id)
        if audience is None:
            raise BatchAbortedError("Audience not found")
        persona = catalog.get_persona(project_id, audience.name) if audience.name else None

        progress("Fetching products...")
        products = catalog.get_products(project_id, list(config.product_ids))
        if not products:
            raise BatchAbortedError(f"Products not found. Searched for: {', '.join(config.product_ids)}")
        if not any(p.primary_image_url for p in products):
            raise BatchAbortedError("None of the requested products has an image")

        log.info(
            "Context loaded",
            brand=playbook.brand_name,
            audience=audience.name,
            persona=persona.name if persona else None,
            products=len(products),
        )
        return _BatchContext(project_id, audience_id, config, playbook, audience, persona, products)

    def _plan_jobs(self, ctx: _BatchContext, warnings: List[str]) -> List[tuple[TypeRecipe, int]]:
        jobs: List[tuple[TypeRecipe, int]] = []
        for image_type in IMAGE_TYPES:
            if image_type not in ctx.config.image_types:
                continue
            recipe = RECIPES[image_type]
            if recipe.needs_persona and ctx.persona is None:
                warnings.append(f"No persona found for audience {ctx.audience.name}, skipping {recipe.label} images")
                continue
            count = min(ctx.config.variations_for(image_type), len(ctx.products))
            jobs.extend((recipe, i) for i in range(count))
        return jobs

    def _generate_all(
        self,
        ctx: _BatchContext,
        result: PipelineResult,
        progress: _ProgressReporter,
        should_cancel: Optional[Callable[[], bool]],
        log: TaskLogger,
    ) -> None:
        jobs = self._plan_jobs(ctx, result.warnings)
        total = len(jobs)
        progress(f"Generating {total} images...", 0, total)

        cancelled = False
        for n, (recipe, i) in enumerate(jobs, start=1):
            if should_cancel is not None and should_cancel():
                cancelled = True
                result.warnings.append(f"Batch cancelled, {total - n + 1} remaining image(s) skipped")
                log.warning("Batch cancelled", remaining=total - n + 1)
                break

            progress(f"Creating {recipe.label} image {n}/{total}...", n, total, details=f"{recipe.label} image {i + 1}")
            product = ctx.products[i]
            if not product.primary_image_url:
                result.warnings.append(f"Product {product.name} has no image, skipping")
                continue

            try:
                record = self._generate_one(ctx, recipe, i, product, result.warnings, progress)
            except Exception as exc:
                log.warning(f"{recipe.label} image {i + 1} failed: {exc}", product_id=product.id)
                result.errors.append(f"Failed to generate {recipe.label} image {i + 1}: {exc}")
                continue
            result.generated_images.append(record)
            log.info(f"{recipe.label} image {i + 1} stored", record_id=record.id, path=record.storage_path)

        if cancelled:
            progress("Cancelled", details=f"{len(result.generated_images)} generated")
        else:
            progress("Completed", total, total, details=f"{len(result.generated_images)} generated, {len(result.errors)} failed")

    def _generate_one(
        self,
        ctx: _BatchContext,
        recipe: TypeRecipe,
        i: int,
        product: Product,
        warnings: List[str],
        progress: _ProgressReporter,
    ) -> GeneratedImageRecord:
        p = self.providers
        persona = ctx.persona if recipe.needs_persona else None
        tag = f"{recipe.label} image {i + 1}"

        progress(f"Planning scene for {product.name}...", details=tag)
        plan = p.planner.plan(
            recipe.image_type,
            ctx.playbook,
            ctx.audience,
            product,
            persona=persona,
            angle=ctx.config.angle,
            funnel_stage=ctx.config.funnel_stage,
        )

        progress("Isolating product from background...", details=tag)
        product_b64 = p.isolator.isolate_product(product.primary_image_url)

        progress("Generating scene...", details=tag)
        if recipe.image_type == "product_only":
            background_b64 = p.generator.generate_background(plan.location)
        else:
            background_b64 = p.generator.generate(
                scene_prompt(plan, persona, recipe), {"aspect_ratio": recipe.aspect_ratio}
            )

        progress("Compositing product...", details=tag)
        composite = composite_product(background_b64, product_b64, recipe.options, compositor=self.compositor)
        warnings.extend(f"{tag}: {w}" for w in composite.warnings)
        image_b64 = composite.image
        if recipe.window_shadow:
            try:
                image_b64 = self.compositor.window_shadow(image_b64)
            except Exception as exc:
                progress.log.warning(f"Window shadow failed for {tag}, keeping composite: {exc}")
                warnings.append(f"{tag}: window shadow skipped: {exc}")

        progress("Validating image quality...", details=tag)
        validation = p.validator.validate(
            image_b64,
            product_b64,
            ctx.playbook,
            persona=persona,
            image_type=recipe.image_type,
            overlay_b64=composite.overlay,
        )
        if not validation.passed:
            warnings.append(f"Quality validation failed for {tag}")
            warnings.extend(validation.errors)

        progress("Enhancing image realism...", details=tag)
        report = self.enhancer.enhance(image_b64, recipe.image_type, ctx.config.scale_factor, composite.overlay)
        warnings.extend(f"{tag}: {w}" for w in report.warnings)

        progress("Saving image...", details=tag)
        data = b64_to_bytes(report.image, role="enhanced")
        path = f"{ctx.project_id}/generated-assets/{int(self.clock() * 1000)}-{recipe.slug}-{i}.png"
        upload = p.storage.upload(data, GENERATED_BUCKET, path, "image/png")

        record = GeneratedImageRecord(
            id=uuid.uuid4().hex,
            project_id=ctx.project_id,
            image_type=recipe.image_type,
            audience_id=ctx.audience_id,
            persona_name=ctx.persona.name if ctx.persona else None,
            product_ids=(product.id,),
            storage_bucket=GENERATED_BUCKET,
            storage_path=upload.path,
            storage_url=upload.url,
            validation=validation.summary(),
            scene_plan=plan.as_dict(),
            metadata={
                **ctx.config.metadata(),
                "enhancement": {s.name: s.status for s in report.stages},
            },
        )
        return p.records.insert(record)


def generate_audience_images(
    project_id: str,
    audience_id: str,
    config: AudienceImageGenerationConfig,
    on_progress: Optional[ProgressCallback] = None,
    *,
    providers: ProviderSet,
    should_cancel: Optional[Callable[[], bool]] = None,
    trace_id: Optional[str] = None,
) -> PipelineResult:
    """Generate every requested image type for one audience.

    Never raises for generation problems: per-image failures land in
    ``errors``, degradations in ``warnings``; ``status`` is ``failed`` only
    when nothing was produced.
    """
    return PipelineOrchestrator(providers).run(
        project_id,
        audience_id,
        config,
        on_progress=on_progress,
        should_cancel=should_cancel,
        trace_id=trace_id,
    )
