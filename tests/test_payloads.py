import json

import pytest

from themefit_core.errors import PayloadError
from themefit_core.models import ContentPayload
from themefit_core.payloads import PayloadDirectory


def test_save_and_load(tmp_path, payload):
    directory = PayloadDirectory(tmp_path)
    path = directory.save(payload)

    assert path == tmp_path / "soap-shop.example" / "v-42.json"
    loaded = directory.load("soap-shop.example", "v-42")
    assert loaded.content == payload.content
    assert directory.list_variants("soap-shop.example") == ["v-42"]


def test_missing(tmp_path):
    assert PayloadDirectory(tmp_path).load("shop", "nope") is None
    assert PayloadDirectory(tmp_path).list_variants("shop") == []


def test_keys_cannot_escape_the_directory(tmp_path):
    directory = PayloadDirectory(tmp_path / "variants")
    path = directory.path_for("../../etc", "..")
    assert tmp_path / "variants" in path.parents


def test_file_without_ids_gets_them_from_the_path(tmp_path):
    directory = PayloadDirectory(tmp_path)
    p = directory.path_for("shop", "v1")
    p.parent.mkdir(parents=True)
    p.write_text(json.dumps({"content": {"product_title": "T"}}), encoding="utf-8")

    loaded = directory.load("shop", "v1")
    assert loaded.variant_id == "v1"
    assert loaded.shop == "shop"


def test_save_requires_ids(tmp_path):
    with pytest.raises(PayloadError):
        PayloadDirectory(tmp_path).save(ContentPayload(content={"product_title": "T"}))
