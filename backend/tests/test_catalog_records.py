import json
import tempfile
import unittest
from pathlib import Path

from product_studio.domain.catalog import InMemoryCatalog
from product_studio.domain.models import GeneratedImageRecord
from product_studio.domain.records import RecordStore
from product_studio.services.storage import LocalStorage

CATALOG = {
    "projects": {
        "proj-1": {
            "playbook": {"brand_name": "Marom", "colors": ["#ffffff"], "mood": "calm"},
            "audiences": [{"id": "aud-1", "name": "Maya"}],
            "personas": [{"name": "Maya", "age_range": "30-35"}],
            "products": [
                {"id": "p1", "name": "Shampoo", "image_urls": ["https://cdn.example/p1.png"]},
                {"id": "p2", "name": "Conditioner"},
            ],
        }
    }
}


def _record(record_id="r1", project_id="proj-1", created_at=1.0):
    return GeneratedImageRecord(
        id=record_id,
        project_id=project_id,
        image_type="product_only",
        audience_id="aud-1",
        persona_name=None,
        product_ids=("p1",),
        storage_bucket="generated-assets",
        storage_path="proj-1/generated-assets/1-product-only-0.png",
        storage_url="/assets/generated-assets/proj-1/generated-assets/1-product-only-0.png",
        validation={"passed": True},
        scene_plan={"location": "kitchen"},
        created_at=created_at,
    )


class TestCatalog(unittest.TestCase):
    def test_from_json_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "catalog.json"
            path.write_text(json.dumps(CATALOG), encoding="utf-8")
            catalog = InMemoryCatalog.from_json_file(path)

        self.assertEqual(catalog.get_playbook("proj-1").brand_name, "Marom")
        self.assertEqual(catalog.get_audience("proj-1", "aud-1").name, "Maya")
        self.assertEqual(catalog.get_persona("proj-1", "Maya").age_range, "30-35")
        self.assertIsNone(catalog.get_playbook("other"))

    def test_products_keep_request_order_and_drop_unknown(self):
        catalog = InMemoryCatalog.from_dict(CATALOG)
        products = catalog.get_products("proj-1", ["p2", "nope", "p1"])
        self.assertEqual([p.id for p in products], ["p2", "p1"])
        self.assertIsNone(products[0].primary_image_url)
        self.assertEqual(products[1].primary_image_url, "https://cdn.example/p1.png")


class TestRecordStore(unittest.TestCase):
    def test_insert_is_write_once(self):
        store = RecordStore()
        store.insert(_record())
        with self.assertRaises(ValueError):
            store.insert(_record())

    def test_list_filters_by_project(self):
        store = RecordStore()
        store.insert(_record("r2", created_at=2.0))
        store.insert(_record("r1", created_at=1.0))
        store.insert(_record("r3", project_id="proj-2"))
        self.assertEqual([r.id for r in store.list("proj-1")], ["r1", "r2"])

    def test_persists_json(self):
        with tempfile.TemporaryDirectory() as tmp:
            RecordStore(tmp).insert(_record())
            data = json.loads((Path(tmp) / "r1.json").read_text(encoding="utf-8"))
        self.assertEqual(data["product_ids"], ["p1"])
        self.assertFalse(data["approved"])


class TestLocalStorage(unittest.TestCase):
    def test_upload_writes_under_bucket(self):
        with tempfile.TemporaryDirectory() as tmp:
            result = LocalStorage(tmp).upload(b"png-bytes", "generated-assets", "proj-1/a.png", "image/png")
            self.assertEqual((Path(tmp) / "generated-assets" / "proj-1" / "a.png").read_bytes(), b"png-bytes")
        self.assertEqual(result.path, "proj-1/a.png")
        self.assertEqual(result.url, "/assets/generated-assets/proj-1/a.png")

    def test_rejects_path_traversal(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ValueError):
                LocalStorage(tmp).upload(b"x", "generated-assets", "../../etc/passwd", "image/png")


if __name__ == "__main__":
    unittest.main()
