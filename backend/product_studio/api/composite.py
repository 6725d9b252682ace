import json
from typing import Optional

from fastapi import APIRouter, Form, HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from product_studio.core.errors import MalformedImageError
from product_studio.core.logger import TaskLogger
from product_studio.domain.models import IMAGE_TYPES, CompositingOptions
from product_studio.services.compositor import composite_product
from product_studio.services.realism import RealismEnhancer

router = APIRouter()


def _parse_options(options_json: Optional[str]) -> CompositingOptions:
    if not options_json:
        return CompositingOptions()
    try:
        raw = json.loads(options_json)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail=f"options_json is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise HTTPException(status_code=400, detail="options_json must be a JSON object")
    try:
        return CompositingOptions.from_dict(raw)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/composite")
async def composite(
    background: str = Form(...),
    product: str = Form(...),
    options_json: Optional[str] = Form(None),
):
    """Layer a product cutout onto a background (base64 or data URI inputs)."""
    options = _parse_options(options_json)
    task_log = TaskLogger()
    try:
        result = await run_in_threadpool(composite_product, background, product, options)
    except MalformedImageError as exc:
        task_log.warning(f"Rejected composite input: {exc}", role=exc.role)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    task_log.info("Composite done", x=result.placement.x, y=result.placement.y)
    return {
        **result.as_dict(),
        "placement": {"x": result.placement.x, "y": result.placement.y},
        "product_size": list(result.product_size),
        "warnings": result.warnings,
    }


@router.post("/enhance")
async def enhance(
    request: Request,
    image: str = Form(...),
    image_type: str = Form("product_only"),
    scale_factor: int = Form(2),
    overlay: Optional[str] = Form(None),
):
    """Run the realism stages with whatever providers are configured."""
    if image_type not in IMAGE_TYPES:
        raise HTTPException(status_code=400, detail=f"unknown image_type: {image_type}")
    if scale_factor not in (2, 4):
        raise HTTPException(status_code=400, detail="scale_factor must be 2 or 4")

    providers = request.app.state.providers
    enhancer = RealismEnhancer(
        refiner=providers.refiner,
        upscaler=providers.upscaler,
        subject_enhancer=providers.subject_enhancer,
    )
    report = await run_in_threadpool(enhancer.enhance, image, image_type, scale_factor, overlay)
    return {
        "image": report.image,
        "stages": [{"name": s.name, "status": s.status, "error": s.error} for s in report.stages],
        "warnings": report.warnings,
    }
