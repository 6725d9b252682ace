from PIL import Image, ImageFilter

from product_studio.core.errors import ShadowError
from product_studio.core.settings import CompositorSettings
from product_studio.domain.models import Placement
from product_studio.services.placement import round_half_up


class ShadowService:
    def __init__(self, settings: CompositorSettings | None = None):
        self.settings = settings or CompositorSettings()

    def silhouette(self, product_rgba: Image.Image) -> Image.Image:
        """Flat black copy of the product shape (product alpha, black RGB)."""
        if product_rgba.mode != "RGBA":
            raise ShadowError(f"product has no alpha channel (mode={product_rgba.mode})")
        alpha = product_rgba.getchannel("A")
        black = Image.new("RGB", product_rgba.size, (0, 0, 0))
        black.putalpha(alpha)
        return black

    def create_contact_shadow(
        self,
        product_rgba: Image.Image,
        placement: Placement,
        *,
        flatten_ratio: float | None = None,
        blur_radius: float | None = None,
        opacity: float | None = None,
    ) -> tuple[Image.Image, Placement]:
        """Create a flattened, blurred silhouette to sit under the product base.

        Args:
            product_rgba: resized product cutout (RGBA)
            placement: where the product itself is placed
        Returns:
            (shadow RGBA layer, shadow top-left offset on the background)
        """
        cfg = self.settings
        flatten_ratio = cfg.shadow_flatten_ratio if flatten_ratio is None else flatten_ratio
        blur_radius = cfg.shadow_blur_radius if blur_radius is None else blur_radius
        opacity = cfg.shadow_opacity if opacity is None else opacity

        pw, ph = product_rgba.size
        shadow = self.silhouette(product_rgba)

        # Foreshortening: a shadow cast on a horizontal surface
        sh = max(1, round_half_up(ph * flatten_ratio))
        shadow = shadow.resize((pw, sh), Image.Resampling.BILINEAR)

        if blur_radius > 0:
            shadow = shadow.filter(ImageFilter.GaussianBlur(blur_radius))

        if opacity < 1.0:
            alpha = shadow.getchannel("A").point(lambda v: int(v * max(0.0, opacity)))
            shadow.putalpha(alpha)

        offset = Placement(
            placement.x,
            placement.y + ph - round_half_up(ph * cfg.shadow_anchor_ratio),
        )
        return shadow, offset
