"""
Shared fixtures: a small product page, snapshots and adapters
"""

import pytest

from themefit_core.config import Config
from themefit_core.models import ContentPayload, Strategy, ThemeAdapter

PRODUCT_URL = "https://soap-shop.example/products/lavender-soap?tf_variant=v-42"

PRODUCT_HTML = """
<html><body>
<main class="product">
  <h1 class="product__title">Lavender Soap</h1>
  <p class="product__subtitle">Handmade in Provence</p>
  <div class="price"><span class="money">$19.90</span></div>
  <div class="product__media"><img src="/img/soap.jpg" srcset="/img/soap-2x.jpg 2x" alt="Soap"></div>
  <div class="product__description"><p>Gentle soap.</p></div>
  <ul class="product__usp"><li>Vegan</li><li>Plastic free</li></ul>
  <span class="badge">New</span>
  <form class="product-form" action="/cart/add">
    <input name="quantity" value="1">
    <button type="submit" name="add">Add to cart</button>
  </form>
</main>
</body></html>
"""


@pytest.fixture
def soap_snapshot():
    return {
        "title": "Soap",
        "images": [{"src": "/img/soap.jpg", "alt": "", "selector": "img.product-image"}],
        "uspCandidates": [],
        "badgeCandidates": [],
        "productForm": {"selector": ".product-form"},
    }


@pytest.fixture
def product_html():
    return PRODUCT_HTML


@pytest.fixture
def product_url():
    return PRODUCT_URL


@pytest.fixture
def adapter():
    return ThemeAdapter(
        selectors={
            "product_title": ".does-not-exist, h1.product__title",
            "product_description": ".product__description",
            "hero_image": ".product__media img",
            "usp_list": ".product__usp",
            "cta_primary": 'button[name="add"]',
        },
        order=["product_title", "hero_image", "product_description", "cta_primary", "usp_list"],
        confidence={
            "product_title": 0.95,
            "product_description": 0.9,
            "hero_image": 0.85,
            "usp_list": 0.8,
            "cta_primary": 0.9,
        },
        strategies={
            "product_title": Strategy.TEXT,
            "product_description": Strategy.HTML,
            "hero_image": Strategy.IMAGE_SRC,
            "usp_list": Strategy.LIST_TEXT,
            "cta_primary": Strategy.TEXT,
        },
        fingerprint="abc123def456",
    )


@pytest.fixture
def payload():
    return ContentPayload(
        content={
            "product_title": "Lavender Soap - Summer Edition",
            "product_description": "<p>Now with <strong>shea butter</strong>.</p>",
            "hero_image": {"src": "/img/summer.jpg", "alt": "Summer soap"},
            "usp_list": ["Vegan", "Zero waste", "Made in France"],
            "cta_primary": "Buy the summer bar",
        },
        variant_id="v-42",
        shop="soap-shop.example",
        product_id="p-1",
        backend_url="https://api.themefit.example",
        theme_fingerprint="abc123def456",
    )


@pytest.fixture
def runtime_config(tmp_path):
    return Config(
        db_path=tmp_path / "adapters.db",
        payload_dir=tmp_path / "variants",
        api_base="http://api.test",
        debounce_ms=20,
        max_reapply_per_window=10,
        reapply_window_seconds=10.0,
        highlight_seconds=0.05,
    )
