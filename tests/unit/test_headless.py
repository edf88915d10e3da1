"""Unit tests for Tier 3 headless rendering (remote service mocked)."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import requests

from content_ingest.extraction.headless import (
    HEADLESS_BLOCKED,
    HEADLESS_CAPTCHA,
    HEADLESS_ERROR,
    HEADLESS_JSON_OK,
    HEADLESS_NO_ITEMS,
    HEADLESS_TIMEOUT,
    HeadlessRenderer,
    clean_rendered_text,
    scan_rendered_html,
)


def _renderer(session: MagicMock, token: str = "secret") -> HeadlessRenderer:
    return HeadlessRenderer("https://render.example.com/", token, timeout=10, wait_ms=1000, session=session)


def _rendered(html: str) -> MagicMock:
    session = MagicMock()
    session.post.return_value.text = html
    return session


class TestHeadlessRenderer:
    def test_without_token_does_not_call_out(self) -> None:
        session = MagicMock()
        result = _renderer(session, token="").extract("https://example.com/")
        assert result.classification == HEADLESS_ERROR
        session.post.assert_not_called()

    def test_request_shape(self) -> None:
        session = _rendered("<html></html>")
        _renderer(session).render("https://example.com/menu")
        args, kwargs = session.post.call_args
        assert args[0] == "https://render.example.com/content"
        assert kwargs["params"] == {"token": "secret", "stealth": "true"}
        assert kwargs["json"]["url"] == "https://example.com/menu"
        assert kwargs["json"]["waitForTimeout"] == 1000

    def test_items_from_rendered_json(self) -> None:
        data = {"result": {"productList": [{"itemName": "Cheesecake", "unitPrice": 80, "price": 80}]}}
        html = f'<html><script type="application/json">{json.dumps(data)}</script></html>'
        result = _renderer(_rendered(html)).extract("https://example.com/")
        assert result.classification == HEADLESS_JSON_OK
        assert result.candidates[0].name == "Cheesecake"
        assert "Cheesecake" in result.text

    def test_no_items_returns_visible_text(self) -> None:
        html = "<html><body><h1>Menu</h1><p>Burger 200 TL</p><script>ignored()</script></body></html>"
        result = _renderer(_rendered(html)).extract("https://example.com/")
        assert result.classification == HEADLESS_NO_ITEMS
        assert result.text == "Menu Burger 200 TL"

    def test_rate_limited(self) -> None:
        limited = requests.Response()
        limited.status_code = 429
        session = MagicMock()
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError(response=limited)
        assert _renderer(session).extract("https://example.com/").classification == HEADLESS_BLOCKED

    def test_forbidden(self) -> None:
        denied = requests.Response()
        denied.status_code = 403
        session = MagicMock()
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError(response=denied)
        assert _renderer(session).extract("https://example.com/").classification == HEADLESS_BLOCKED

    def test_captcha_page(self) -> None:
        html = '<html><body><div class="g-recaptcha"></div><p>Verify you are human</p></body></html>'
        result = _renderer(_rendered(html)).extract("https://example.com/")
        assert result.classification == HEADLESS_CAPTCHA
        assert result.text == ""

    def test_server_error(self) -> None:
        failed = requests.Response()
        failed.status_code = 500
        session = MagicMock()
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError(response=failed)
        assert _renderer(session).extract("https://example.com/").classification == HEADLESS_ERROR

    def test_timeout(self) -> None:
        session = MagicMock()
        session.post.side_effect = requests.ReadTimeout()
        assert _renderer(session).extract("https://example.com/").classification == HEADLESS_TIMEOUT


def test_inline_object_fallback() -> None:
    html = '<script>render({"name": "Baklava", "price": 150});</script>'
    assert [c.name for c in scan_rendered_html(html)] == ["Baklava"]


def test_clean_rendered_text_caps_length() -> None:
    assert len(clean_rendered_text("<p>" + "a " * 100 + "</p>", max_chars=10)) == 10
