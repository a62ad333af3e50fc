import pytest

from themefit_core.errors import AdapterValidationError, PayloadError
from themefit_core.models import (
    ContentPayload,
    DOMSnapshot,
    Strategy,
    ThemeAdapter,
    split_selector_list,
)


def _adapter_dict(**overrides):
    data = {
        "selectors": {"product_title": "h1", "hero_image": ".product__media img"},
        "order": ["product_title", "hero_image"],
        "confidence": {"product_title": 0.9, "hero_image": 0.8},
        "strategies": {"product_title": "text", "hero_image": "image_src"},
    }
    data.update(overrides)
    return data


class TestSelectorList:

    def test_plain_split(self):
        assert split_selector_list("h1, .product-title ,[data-title]") == ["h1", ".product-title", "[data-title]"]

    def test_commas_inside_brackets_and_quotes(self):
        parts = split_selector_list('a[title="x, y"], :is(h1, h2), .t')
        assert parts == ['a[title="x, y"]', ":is(h1, h2)", ".t"]

    def test_empty(self):
        assert split_selector_list("") == []
        assert split_selector_list(" , ") == []


class TestThemeAdapter:

    def test_from_dict_valid(self):
        adapter = ThemeAdapter.from_dict(_adapter_dict())
        assert adapter.strategies["hero_image"] is Strategy.IMAGE_SRC
        assert adapter.candidates("product_title") == ["h1"]

    def test_theme_fingerprint_alias(self):
        adapter = ThemeAdapter.from_dict(_adapter_dict(theme_fingerprint="0123456789ab"))
        assert adapter.fingerprint == "0123456789ab"

    @pytest.mark.parametrize("overrides", [
        {"confidence": {"product_title": 0.9}},
        {"strategies": {"product_title": "text", "hero_image": "sparkle"}},
        {"order": ["product_title", "product_title"]},
        {"order": ["badges"]},
        {"confidence": {"product_title": 1.5, "hero_image": 0.8}},
        {"confidence": {"product_title": True, "hero_image": 0.8}},
        {"selectors": {"product_title": "  ", "hero_image": "img"}},
        {"selectors": {}, "confidence": {}, "strategies": {}, "order": []},
        {"order": "product_title"},
    ])
    def test_from_dict_rejects_inconsistent_maps(self, overrides):
        with pytest.raises(AdapterValidationError):
            ThemeAdapter.from_dict(_adapter_dict(**overrides))

    def test_order_may_be_a_subset(self):
        adapter = ThemeAdapter.from_dict(_adapter_dict(order=["hero_image"]))
        assert adapter.order == ["hero_image"]

    def test_stamped_keeps_created_at(self):
        adapter = ThemeAdapter.from_dict(_adapter_dict())
        first = adapter.stamped("2024-01-01T00:00:00+00:00")
        second = first.stamped("2024-02-01T00:00:00+00:00")
        assert second.created_at == "2024-01-01T00:00:00+00:00"
        assert second.updated_at == "2024-02-01T00:00:00+00:00"
        assert adapter.created_at is None

    def test_json_round_trip_preserves_source(self):
        adapter = ThemeAdapter.from_dict(_adapter_dict(source="heuristic"))
        assert ThemeAdapter.from_dict(adapter.to_dict()) == adapter


class TestDOMSnapshot:

    def test_camel_case(self, soap_snapshot):
        snap = DOMSnapshot.from_dict(soap_snapshot)
        assert snap.title == "Soap"
        assert snap.product_form.selector == ".product-form"
        assert len(snap.images) == 1

    def test_worker_keys(self):
        snap = DOMSnapshot.from_dict({
            "product_title": "Soap",
            "product_form": ".product-form",
            "product_images": [{"src": "a.jpg"}],
            "usp_lists": [{"selector": "ul.usp", "items": ["Vegan", "", "Local"]}],
            "badges": [{"text": "New", "selector": ".badge"}],
            "url": "https://x.example/products/soap",
        })
        assert snap.product_form.selector == ".product-form"
        assert snap.usp_candidates[0].text == "Vegan | Local"
        assert snap.badge_candidates[0].selector == ".badge"
        assert snap.source_url.endswith("/products/soap")


class TestContentPayload:

    def test_empty_values_are_absent(self):
        payload = ContentPayload(content={"product_title": "  ", "usp_list": [], "badges": None})
        assert payload.value_for("product_title") is None
        assert payload.has_content() is False

    def test_from_dict_with_embedded_adapter(self):
        payload = ContentPayload.from_dict({
            "variant_id": "v1",
            "shop": "s.example",
            "content": {"product_title": "New"},
            "adapter": _adapter_dict(),
        })
        assert payload.adapter is not None
        assert payload.has_content()

    def test_invalid_embedded_adapter_is_dropped(self):
        payload = ContentPayload.from_dict({"content": {"product_title": "New"}, "adapter": {"selectors": 1}})
        assert payload.adapter is None
        assert payload.value_for("product_title") == "New"

    @pytest.mark.parametrize("data", [None, [], "text", {"content": ["a"]}])
    def test_malformed_payload(self, data):
        with pytest.raises(PayloadError):
            ContentPayload.from_dict(data)
