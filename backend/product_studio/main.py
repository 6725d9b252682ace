from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

# Load backend/.env before anything reads its settings from the environment.
_backend_dir = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=_backend_dir / ".env", override=False)

from product_studio.core.logger import setup_logger
from product_studio.core.settings import output_root
from product_studio.services.factory import build_default_providers

from product_studio.api import batches
from product_studio.api import composite

logger = setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Product Studio backend...")
    if getattr(app.state, "providers", None) is None:
        app.state.providers = build_default_providers()
    p = app.state.providers
    logger.info(
        f"Providers ready: relight={'on' if p.refiner else 'off'}, "
        f"upscale={'on' if p.upscaler else 'off'}, skin={'on' if p.subject_enhancer else 'off'}"
    )

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title="Product Studio",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(composite.router, prefix="/api/v1")
app.include_router(batches.router, prefix="/api/v1")

# Stored assets (generated-assets/, records/)
_assets_root = output_root()
_assets_root.mkdir(parents=True, exist_ok=True)
app.mount("/assets", StaticFiles(directory=str(_assets_root)), name="assets")


@app.get("/health")
async def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("product_studio.main:app", host="0.0.0.0", port=8000, reload=True)
