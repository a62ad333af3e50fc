import pytest
from unittest.mock import AsyncMock

from themefit_core.snapshot import EXTRACT_JS, capture_snapshot, element_selector, snapshot_from_html


class TestStaticSnapshot:

    def test_product_page(self, product_html, product_url):
        snap = snapshot_from_html(product_html, product_url)

        assert snap.title == "Lavender Soap"
        assert snap.product_form.selector == "form.product-form"
        assert snap.product_form.has_submit is True
        assert snap.product_form.has_quantity is True
        assert snap.description == "Gentle soap."
        assert [c.text for c in snap.usp_candidates] == ["Vegan | Plastic free"]
        assert snap.usp_candidates[0].selector == "ul.product__usp"
        assert [b.text for b in snap.badge_candidates] == ["New"]
        assert snap.source_url == product_url
        assert snap.captured_at

    def test_images(self, product_html):
        snap = snapshot_from_html(product_html)
        assert [i.src for i in snap.images] == ["/img/soap.jpg"]

    def test_empty_page(self):
        snap = snapshot_from_html("", "https://x.example/products/y")
        assert snap.title == ""
        assert snap.product_form.selector == ""
        assert snap.images == []

    def test_element_selector(self):
        from bs4 import BeautifulSoup
        soup = BeautifulSoup('<div id="main"></div><p class="a b"></p><span></span>', "html.parser")
        assert element_selector(soup.div) == "#main"
        assert element_selector(soup.p) == "p.a.b"
        assert element_selector(soup.span) == "span"


@pytest.mark.asyncio
async def test_capture_snapshot_from_page():
    page = AsyncMock()
    page.evaluate.return_value = {
        "title": "Soap",
        "productForm": {"selector": "form.product-form", "has_submit": True},
        "images": [{"src": "a.jpg", "alt": "", "selector": "img"}],
        "description": "",
        "uspCandidates": [],
        "badgeCandidates": [],
        "sourceUrl": "https://x.example/products/soap",
        "capturedAt": "2024-01-01T00:00:00Z",
    }

    snap = await capture_snapshot(page)

    assert snap.title == "Soap"
    assert len(snap.images) == 1
    assert page.evaluate.call_args[0][0] == EXTRACT_JS
