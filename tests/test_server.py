import pytest

from themefit_core import server
from themefit_core.adapter_store import AdapterStore, MemoryAdapterCache, SQLiteAdapterStore
from themefit_core.models import ContentPayload
from themefit_core.payloads import PayloadDirectory


@pytest.fixture
def client(tmp_path, monkeypatch):
    store = AdapterStore(durable=SQLiteAdapterStore(str(tmp_path / "adapters.db")), cache=MemoryAdapterCache())
    payloads = PayloadDirectory(tmp_path / "variants")
    monkeypatch.setattr(server, "store", store)
    monkeypatch.setattr(server, "payloads", payloads)
    return server.app.test_client()


def test_health_endpoint(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    data = resp.get_json()
    assert data.get('status') == 'healthy'
    assert data['adapters'] == {"cached_adapters": 0, "durable_adapters": 0}


def test_adapter_round_trip(client, adapter):
    server.store.save("shop.example", adapter.fingerprint, adapter)

    resp = client.get(f'/api/adapters/shop.example/{adapter.fingerprint}')
    assert resp.status_code == 200
    assert resp.get_json()["selectors"] == adapter.selectors


def test_adapter_not_found(client):
    resp = client.get('/api/adapters/shop.example/000000000000')
    assert resp.status_code == 404


def test_adapter_invalidate(client, adapter):
    server.store.save("shop.example", "fp", adapter)
    resp = client.delete('/api/adapters/shop.example/fp')
    assert resp.status_code == 200
    assert resp.get_json()["ok"] is True
    assert server.store.stats()["cached_adapters"] == 0


def test_variant_data(client, payload):
    server.payloads.save(payload)

    resp = client.get('/api/variant-data?av=v-42&shop=soap-shop.example')
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["variant_id"] == "v-42"
    assert data["content"]["product_title"] == "Lavender Soap - Summer Edition"
    assert ContentPayload.from_dict(data).has_content()


def test_variant_data_requires_params(client):
    assert client.get('/api/variant-data?av=v-42').status_code == 400
    assert client.get('/api/variant-data?shop=x').status_code == 400


def test_variant_data_not_found(client):
    assert client.get('/api/variant-data?av=nope&shop=soap-shop.example').status_code == 404


def test_broken_payload_file(client, tmp_path):
    path = server.payloads.path_for("soap-shop.example", "v-1")
    path.parent.mkdir(parents=True)
    path.write_text("{oops", encoding="utf-8")
    assert client.get('/api/variant-data?av=v-1&shop=soap-shop.example').status_code == 500


def test_cors_headers(client):
    resp = client.get('/health', headers={"Origin": "https://soap-shop.example"})
    assert resp.headers.get("Access-Control-Allow-Origin") in ("*", "https://soap-shop.example")
