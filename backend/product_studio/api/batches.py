import json
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from fastapi import APIRouter, Form, HTTPException, Request

from product_studio.core.logger import TaskLogger
from product_studio.domain.batch_state import (
    cancel_batch,
    create_batch,
    finish_batch,
    get_batch,
    is_cancelled,
    update_progress,
)
from product_studio.domain.models import AudienceImageGenerationConfig, ProgressUpdate
from product_studio.services.pipeline import generate_audience_images

router = APIRouter()

EXECUTOR = ThreadPoolExecutor(max_workers=int(os.getenv("BATCH_WORKERS", "1")))


def _parse_config(config_json: Optional[str], product_ids: Optional[str]) -> AudienceImageGenerationConfig:
    try:
        raw = json.loads(config_json) if config_json else {}
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail=f"config_json is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise HTTPException(status_code=400, detail="config_json must be a JSON object")
    if product_ids:
        raw["product_ids"] = [p.strip() for p in product_ids.split(",") if p.strip()]
    if not raw.get("product_ids"):
        raise HTTPException(status_code=400, detail="product_ids required")
    try:
        return AudienceImageGenerationConfig(**raw)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/batches")
async def batch_start(
    request: Request,
    project_id: str = Form(...),
    audience_id: str = Form(...),
    product_ids: Optional[str] = Form(None),
    config_json: Optional[str] = Form(None),
):
    config = _parse_config(config_json, product_ids)
    providers = request.app.state.providers
    batch = create_batch(project_id=project_id, audience_id=audience_id)

    def _on_progress(step: str, update: ProgressUpdate):
        update_progress(batch.batch_id, step, update.current, update.total, update.details)

    def _run():
        try:
            result = generate_audience_images(
                project_id,
                audience_id,
                config,
                _on_progress,
                providers=providers,
                should_cancel=lambda: is_cancelled(batch.batch_id),
                trace_id=batch.batch_id,
            )
        except Exception as exc:
            TaskLogger(batch.batch_id).exception(f"Batch worker crashed: {exc}")
            finish_batch(batch.batch_id, images=[], errors=[f"Pipeline failed: {exc}"], warnings=[])
            return
        finish_batch(
            batch.batch_id,
            images=[r.as_dict() for r in result.generated_images],
            errors=result.errors,
            warnings=result.warnings,
        )

    EXECUTOR.submit(_run)
    return {"batch_id": batch.batch_id, "status": batch.status}


@router.get("/batches/{batch_id}")
async def batch_status(batch_id: str):
    batch = get_batch(batch_id)
    if not batch:
        raise HTTPException(status_code=404, detail="batch not found")
    return {
        "batch_id": batch.batch_id,
        "project_id": batch.project_id,
        "audience_id": batch.audience_id,
        "status": batch.status,
        "step": batch.step,
        "current": batch.current,
        "total": batch.total,
        "progress": batch.progress,
        "details": batch.details,
        "images": batch.images,
        "errors": batch.errors,
        "warnings": batch.warnings,
    }


@router.get("/projects/{project_id}/images")
async def project_images(request: Request, project_id: str):
    """Stored image records of a project, oldest first."""
    records = request.app.state.providers.records.list(project_id)
    return {"project_id": project_id, "images": [r.as_dict() for r in records]}


@router.delete("/batches/{batch_id}")
async def batch_cancel(batch_id: str):
    ok = cancel_batch(batch_id)
    if not ok:
        raise HTTPException(status_code=404, detail="batch not found")
    return {"cancelled": True}
