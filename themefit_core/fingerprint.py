"""
Theme fingerprinting.

A fingerprint summarises the structural shape of a product page so that a
theme adapter can be reused until the theme meaningfully changes. Counts are
used instead of image/USP/badge content because content varies per product.
Collisions between genuinely different themes are an accepted risk.
"""

import hashlib

from .models import DOMSnapshot

FINGERPRINT_LENGTH = 12


def fingerprint_parts(snapshot: DOMSnapshot) -> str:
    """The ordered source string the digest is computed from."""
    return "|".join([
        snapshot.title.strip(),
        snapshot.product_form.selector.strip(),
        str(len(snapshot.images)),
        str(len(snapshot.usp_candidates)),
        str(len(snapshot.badge_candidates)),
    ])


def fingerprint(snapshot: DOMSnapshot) -> str:
    """Short, deterministic identifier of the snapshot's structural shape."""
    digest = hashlib.sha1(fingerprint_parts(snapshot).encode("utf-8")).hexdigest()
    return digest[:FINGERPRINT_LENGTH]
