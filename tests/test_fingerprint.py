from themefit_core.fingerprint import FINGERPRINT_LENGTH, fingerprint, fingerprint_parts
from themefit_core.models import DOMSnapshot


def test_deterministic(soap_snapshot):
    a = DOMSnapshot.from_dict(soap_snapshot)
    b = DOMSnapshot.from_dict(dict(soap_snapshot))
    assert fingerprint(a) == fingerprint(b)


def test_short_hex(soap_snapshot):
    fp = fingerprint(DOMSnapshot.from_dict(soap_snapshot))
    assert len(fp) == FINGERPRINT_LENGTH
    int(fp, 16)


def test_sensitive_to_structure(soap_snapshot):
    base = fingerprint(DOMSnapshot.from_dict(soap_snapshot))

    more_images = dict(soap_snapshot, images=soap_snapshot["images"] * 2)
    other_form = dict(soap_snapshot, productForm={"selector": "form.cart"})

    assert fingerprint(DOMSnapshot.from_dict(more_images)) != base
    assert fingerprint(DOMSnapshot.from_dict(other_form)) != base


def test_ignores_content_outside_the_shape(soap_snapshot):
    base = fingerprint(DOMSnapshot.from_dict(soap_snapshot))
    other_description = dict(soap_snapshot, description="completely different copy")
    assert fingerprint(DOMSnapshot.from_dict(other_description)) == base


def test_parts_layout(soap_snapshot):
    assert fingerprint_parts(DOMSnapshot.from_dict(soap_snapshot)) == "Soap|.product-form|1|0|0"
