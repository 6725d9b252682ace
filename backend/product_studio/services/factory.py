import logging
import os

from product_studio.core.settings import output_root
from product_studio.domain.catalog import InMemoryCatalog
from product_studio.domain.records import RecordStore
from product_studio.services.image_client import OpenAIImageClient
from product_studio.services.matting_client import MattingClient
from product_studio.services.painter_client import PainterClient
from product_studio.services.providers import ProviderSet
from product_studio.services.quality import HeuristicQualityValidator
from product_studio.services.scene_planner import TemplateScenePlanner
from product_studio.services.storage import LocalStorage
from product_studio.services.upscale_client import UpscaleClient

logger = logging.getLogger("product-studio")


def build_default_providers() -> ProviderSet:
    """Wire the concrete clients from environment configuration.

    Optional capabilities stay ``None`` when their credentials are missing;
    the enhancer then skips those stages.
    """
    catalog_path = (os.getenv("CATALOG_PATH") or "").strip()
    if catalog_path:
        catalog = InMemoryCatalog.from_json_file(catalog_path)
        logger.info(f"Catalog loaded from {catalog_path}")
    else:
        catalog = InMemoryCatalog()
        logger.warning("CATALOG_PATH not set, starting with an empty catalog")

    records_dir = (os.getenv("RECORDS_DIR") or "").strip() or str(output_root() / "records")

    painter = PainterClient()
    upscaler = UpscaleClient()
    if not painter.configured:
        logger.warning("Painter not configured (PAINTER_EDIT_URL/PAINTER_TOKEN), relight disabled")
    if not upscaler.configured:
        logger.warning("Upscaler not configured (UPSCALE_API_KEY), upscale and skin pass disabled")

    return ProviderSet(
        isolator=MattingClient(),
        generator=OpenAIImageClient(),
        storage=LocalStorage(),
        catalog=catalog,
        records=RecordStore(records_dir),
        validator=HeuristicQualityValidator(),
        planner=TemplateScenePlanner(),
        refiner=painter if painter.configured else None,
        upscaler=upscaler if upscaler.configured else None,
        subject_enhancer=upscaler if upscaler.configured else None,
    )
