"""Unit tests for Tier 1 static HTML extraction."""

from content_ingest.extraction.static_html import extract_static, score_link

PAGE = """
<html><head><title>Cafe</title><style>.x{}</style></head>
<body>
  <header>Site header</header>
  <nav><a href="/about">About</a></nav>
  <div class="sidebar">Sidebar promo</div>
  <main>
    <h1>Our Menu</h1>
    <p>Margherita pizza with fresh basil and mozzarella. 120 TL</p>
    <p>Pepperoni pizza with spicy salami and oregano. 140 TL</p>
    <a href="/menu.pdf">Full menu (PDF)</a>
    <a href="/drinks">Drinks</a>
    <a href="mailto:hi@example.com">Mail us menu</a>
    <a href="#top">Back to menu</a>
  </main>
  <footer>Copyright</footer>
  <script>var x = "hidden";</script>
</body></html>
"""


def test_main_content_extracted() -> None:
    result = extract_static(PAGE)
    assert "Margherita pizza" in result.text
    assert "Pepperoni pizza" in result.text


def test_boilerplate_removed() -> None:
    text = extract_static(PAGE).text
    for noise in ("Site header", "Sidebar promo", "Copyright", "hidden", "About"):
        assert noise not in text


def test_links_ranked_and_filtered() -> None:
    links = extract_static(PAGE).links
    assert links[0] == "/menu.pdf"
    assert "/drinks" in links
    assert not any(link.startswith(("mailto:", "#")) for link in links)


def test_falls_back_to_body_when_selectors_short() -> None:
    html = "<html><body><main>tiny</main><div>" + "Opening hours daily from nine to five. " * 5 + "</div></body></html>"
    assert "Opening hours" in extract_static(html).text


def test_text_truncated() -> None:
    html = "<main>" + "word " * 1_000 + "</main>"
    assert len(extract_static(html, max_chars=100).text) == 100


def test_score_link() -> None:
    assert score_link("/price-list.pdf", "") > score_link("/menu", "Menu")
    assert score_link("/about", "About us") == 0
    assert score_link("/gallery/dish.jpg", "") == 3
