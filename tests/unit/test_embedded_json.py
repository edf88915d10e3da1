"""Unit tests for Tier 2 embedded JSON extraction and page classification."""

from __future__ import annotations

import json

from bs4 import BeautifulSoup

from content_ingest.extraction.embedded_json import (
    BLOCKED_403,
    CAPTCHA_CHALLENGE,
    EMBEDDED_JSON_OK,
    JS_SHELL_DETECTED,
    NO_ITEMS_FOUND,
    Candidate,
    candidates_to_text,
    detect_spa_shell,
    extract_embedded_json,
    find_product_candidates,
    parse_loose_json,
)

NEXT_DATA = {
    "props": {
        "pageProps": {
            "products": [
                {"name": "Margherita", "price": 120, "priceCurrency": "TRY", "category": "Pizza"},
                {"name": "Ayran", "price": 25.0, "priceCurrency": "TRY"},
            ]
        }
    }
}


def _next_page(data: dict) -> str:
    return (
        '<html><body><div id="__next"></div>'
        f'<script id="__NEXT_DATA__" type="application/json">{json.dumps(data)}</script>'
        "</body></html>"
    )


class TestExtractEmbeddedJson:
    def test_next_data_products(self) -> None:
        result = extract_embedded_json(_next_page(NEXT_DATA))
        assert result.classification == EMBEDDED_JSON_OK
        assert result.source == "next_data"
        assert [c.name for c in result.candidates] == ["Margherita", "Ayran"]
        assert "1. Margherita" in result.text
        assert "Price: TRY 120" in result.text
        assert "Price: TRY 25" in result.text
        assert "Category: Pizza" in result.text

    def test_window_state(self) -> None:
        state = {"menu": {"items": [{"title": "Latte", "price": "90"}]}}
        html = f"<html><body><script>window.__INITIAL_STATE__ = {json.dumps(state)};</script></body></html>"
        result = extract_embedded_json(html)
        assert result.ok
        assert result.source == "initial_state"
        assert result.candidates[0].name == "Latte"

    def test_json_ld_menu(self) -> None:
        menu = {
            "@type": "Menu",
            "hasMenuSection": [
                {
                    "name": "Starters",
                    "hasMenuItem": [
                        {"name": "Lentil soup", "offers": {"price": "60", "priceCurrency": "TRY"}},
                    ],
                }
            ],
        }
        html = f'<html><body><script type="application/ld+json">{json.dumps(menu)}</script></body></html>'
        result = extract_embedded_json(html)
        assert result.source == "json_ld"
        assert result.candidates[0].category == "Starters"
        assert "Price: TRY 60" in result.text

    def test_forbidden_status(self) -> None:
        assert extract_embedded_json("<html></html>", status=403).classification == BLOCKED_403

    def test_captcha(self) -> None:
        html = '<html><body><div class="g-recaptcha"></div></body></html>'
        assert extract_embedded_json(html).classification == CAPTCHA_CHALLENGE

    def test_spa_shell(self) -> None:
        html = (
            '<html><body><div id="root"></div><noscript>Please enable JavaScript</noscript>'
            + "<script src='/a.js'></script>" * 5
            + "</body></html>"
        )
        assert extract_embedded_json(html).classification == JS_SHELL_DETECTED

    def test_no_items(self) -> None:
        html = "<html><body><p>" + "We are a family-run restaurant in the old town. " * 10 + "</p></body></html>"
        assert extract_embedded_json(html).classification == NO_ITEMS_FOUND


class TestHelpers:
    def test_array_needs_one_priced_element(self) -> None:
        assert find_product_candidates({"items": [{"name": "a"}, {"name": "b"}]}) == []
        found = find_product_candidates({"items": [{"name": "a"}, {"name": "b", "price": 5}]})
        assert [c.name for c in found] == ["a", "b"]

    def test_depth_bound(self) -> None:
        deep: dict = {"products": [{"name": "deep", "price": 1}]}
        for _ in range(12):
            deep = {"data": deep}
        assert find_product_candidates(deep) == []

    def test_trailing_commas_repaired(self) -> None:
        assert parse_loose_json('{"a": [1, 2,], }') == {"a": [1, 2]}
        assert parse_loose_json("{not json") is None

    def test_candidates_to_text_limit(self) -> None:
        candidates = [Candidate(name=f"item {i}") for i in range(5)]
        assert candidates_to_text(candidates, limit=2).count("item") == 2

    def test_spa_detection_ignores_content_pages(self) -> None:
        soup = BeautifulSoup("<html><body>" + "<p>Real content here.</p>" * 20 + "</body></html>", "html.parser")
        assert not detect_spa_shell(soup)
