import json
from pathlib import Path

from PIL import Image, ImageDraw


REPO_ROOT = Path(__file__).resolve().parents[1]
FIXTURES_DIR = REPO_ROOT / "scripts" / "fixtures"


def create_test_assets():
    FIXTURES_DIR.mkdir(parents=True, exist_ok=True)

    # 1. Product cutout: a bottle with a "label" on transparent
    product = Image.new("RGBA", (300, 600), (0, 0, 0, 0))
    draw = ImageDraw.Draw(product)
    draw.rounded_rectangle((60, 120, 240, 590), radius=30, fill=(235, 235, 240, 255))
    draw.rectangle((115, 20, 185, 125), fill=(40, 40, 40, 255))
    draw.rectangle((80, 280, 220, 420), fill=(200, 30, 60, 255))
    draw.text((110, 335), "MAROM", fill=(255, 255, 255, 255))
    out_prod = FIXTURES_DIR / "test_product.png"
    product.save(out_prod)
    print(f"Created {out_prod}")

    # 2. Background: wall over a tabletop
    background = Image.new("RGB", (1024, 1024), (236, 228, 214))
    draw = ImageDraw.Draw(background)
    draw.rectangle((0, 700, 1024, 1024), fill=(165, 120, 85))
    out_bg = FIXTURES_DIR / "test_background.png"
    background.save(out_bg)
    print(f"Created {out_bg}")

    # 3. Catalog for CATALOG_PATH, pointing at the product fixture
    catalog = {
        "projects": {
            "demo": {
                "playbook": {
                    "brand_name": "Marom",
                    "colors": ["#ece4d6", "#c81e3c"],
                    "mood": "calm",
                    "aesthetic": "minimal natural",
                },
                "audiences": [{"id": "aud-1", "name": "Maya", "description": "busy young parents"}],
                "personas": [
                    {
                        "name": "Maya",
                        "image_prompt": "woman in her early thirties with curly dark hair",
                        "visual_style": "warm, candid",
                        "age_range": "30-35",
                    }
                ],
                "products": [
                    {
                        "id": "p1",
                        "name": "Marom Hair Serum",
                        "category": "hair",
                        "image_urls": [out_prod.resolve().as_uri()],
                    }
                ],
            }
        }
    }
    out_catalog = FIXTURES_DIR / "catalog.json"
    out_catalog.write_text(json.dumps(catalog, indent=2), encoding="utf-8")
    print(f"Created {out_catalog}")


if __name__ == "__main__":
    create_test_assets()
