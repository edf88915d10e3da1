"""Unit tests for catalog extraction from knowledge-doc text."""

from __future__ import annotations

import json

from content_ingest.catalog.doc_extraction import DocCatalogExtractor, doc_item_id, split_by_sections
from content_ingest.config import Settings
from content_ingest.store import paths
from content_ingest.store.repositories import CatalogRepository

TENANT = "biz-1"

DOC = """\
Welcome to our family restaurant by the harbour.

STARTERS
Lentil soup with lemon and mint, 60 TL
Hummus with warm pita bread, 70 TL

## Desserts
Baklava with pistachio, 150 TL per portion

Drinks:
Ayran
"""


def test_split_by_sections() -> None:
    sections = split_by_sections(DOC)
    assert [s.title for s in sections] == ["General", "STARTERS", "Desserts"]
    assert sections[1].text.startswith("Lentil soup")


def test_sections_are_capped() -> None:
    sections = split_by_sections("MENU\n" + "x" * 500, max_chars=100)
    assert len(sections[0].text) == 100


def test_item_id_is_deterministic() -> None:
    a = doc_item_id(TENANT, "d1", "Starters", "Soup", 60.0, "fixed")
    assert a == doc_item_id(TENANT, "d1", "STARTERS", "SOUP", 60.0, "fixed")
    assert a != doc_item_id(TENANT, "d1", "Starters", "Soup", None, "unknown")
    assert len(a) == 20


class TestExtractAndSave:
    def _extractor(self, store, model_factory, *responses: str, **overrides) -> DocCatalogExtractor:  # noqa: ANN001, ANN003
        settings = Settings(_env_file=None, **overrides)
        return DocCatalogExtractor(settings, model_factory(*responses), CatalogRepository(store))

    def test_items_saved_with_source(self, store, model_factory) -> None:  # noqa: ANN001
        general = "[]"
        starters = json.dumps(
            [
                {"name": "Lentil soup", "price": 60, "currency": "TRY", "priceType": "fixed"},
                {"name": "lentil SOUP", "price": 60, "priceType": "fixed"},
                {"name": "Hummus", "price": "70 TL", "priceType": "fixed"},
            ]
        )
        desserts = json.dumps([{"name": "Baklava", "price": 150, "priceType": "per_person", "currency": "GBP"}])
        extractor = self._extractor(store, model_factory, general, starters, desserts)

        count, run_id = extractor.extract_and_save(TENANT, "doc-1", DOC)

        assert count == 3
        assert run_id.startswith("run_")
        saved = {data["name"]: data for _, data in store.query(paths.tenant_catalog(TENANT))}
        assert set(saved) == {"Lentil soup", "Hummus", "Baklava"}
        assert saved["Hummus"]["price"] == 70.0
        assert saved["Baklava"]["priceType"] == "per_person"
        assert saved["Baklava"]["currency"] == "GBP"
        assert saved["Baklava"]["section"] == "Desserts"
        assert all(d["status"] == "active" for d in saved.values())
        assert all(d["source"] == {"type": "doc", "docId": "doc-1", "extractionRunId": run_id} for d in saved.values())

    def test_unknown_price_is_null(self, store, model_factory) -> None:  # noqa: ANN001
        reply = json.dumps([{"name": "Ayran", "price": None, "priceType": "unknown"}])
        extractor = self._extractor(store, model_factory, reply)
        extractor.extract_and_save(TENANT, "doc-1", "DRINKS\nAyran, cold and salted, made daily")
        (_, item), = store.query(paths.tenant_catalog(TENANT))
        assert item["price"] is None
        assert item["priceType"] == "unknown"

    def test_unparseable_section_yields_nothing(self, store, model_factory) -> None:  # noqa: ANN001
        extractor = self._extractor(store, model_factory, "Sorry, I cannot help with that.")
        count, _ = extractor.extract_and_save(TENANT, "doc-1", "DRINKS\nAyran, cold and salted, made daily")
        assert count == 0

    def test_item_cap(self, store, model_factory) -> None:  # noqa: ANN001
        reply = json.dumps([{"name": f"Item {i}", "price": i, "priceType": "fixed"} for i in range(10)])
        extractor = self._extractor(store, model_factory, reply, catalog_max_items_per_doc=4)
        count, _ = extractor.extract_and_save(TENANT, "doc-1", "MENU\nA long list of items follows here")
        assert count == 4

    def test_rerun_deactivates_stale_items(self, store, model_factory) -> None:  # noqa: ANN001
        text = "MENU\nTea and coffee served all day long"
        first = self._extractor(store, model_factory, json.dumps([{"name": "Tea", "price": 20}]))
        first.extract_and_save(TENANT, "doc-1", text)
        second = self._extractor(store, model_factory, json.dumps([{"name": "Coffee", "price": 40}]))
        second.extract_and_save(TENANT, "doc-1", text)

        status = {data["name"]: data["status"] for _, data in store.query(paths.tenant_catalog(TENANT))}
        assert status == {"Tea": "inactive", "Coffee": "active"}
