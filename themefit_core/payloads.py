#!/usr/bin/env python3
"""
File-backed variant payloads for the read API.

Layout: <payload_dir>/<shop>/<variant_id>.json, one ContentPayload per file.
Variant CRUD lives elsewhere; this directory is only read (and written by
tests and local tooling).
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import List, Optional

from .config import config
from .errors import PayloadError
from .models import ContentPayload

logger = logging.getLogger(__name__)


def _sanitize_key(s: str) -> str:
    s = (s or "").strip()
    if not s:
        return "default"
    s2 = "".join(ch if ch.isalnum() or ch in ("-", "_", ".") else "_" for ch in s)
    # no dot-only names, they would resolve outside the shop directory
    if set(s2) == {"."}:
        s2 = s2.replace(".", "_")
    if len(s2) > 100:
        h = hashlib.sha1(s.encode("utf-8")).hexdigest()
        s2 = s2[:60] + "_" + h
    return s2


class PayloadDirectory:
    def __init__(self, base_dir: Optional[Path] = None):
        self.base_dir = Path(base_dir or config.payload_dir)

    def path_for(self, shop: str, variant_id: str) -> Path:
        return self.base_dir / _sanitize_key(shop) / f"{_sanitize_key(variant_id)}.json"

    def load(self, shop: str, variant_id: str) -> Optional[ContentPayload]:
        """Payload for (shop, variant), None when missing. Malformed files raise PayloadError."""
        p = self.path_for(shop, variant_id)
        if not p.exists():
            return None
        try:
            with open(p, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PayloadError(f"Unreadable payload {p}: {e}") from e
        payload = ContentPayload.from_dict(data)
        if not payload.variant_id:
            payload.variant_id = variant_id
        if not payload.shop:
            payload.shop = shop
        return payload

    def save(self, payload: ContentPayload) -> Path:
        if not payload.shop or not payload.variant_id:
            raise PayloadError("Payload needs shop and variant_id to be stored")
        p = self.path_for(payload.shop, payload.variant_id)
        p.parent.mkdir(parents=True, exist_ok=True)
        with open(p, "w", encoding="utf-8") as f:
            json.dump(payload.to_dict(), f, ensure_ascii=False, indent=2)
        logger.info(f"Stored payload {payload.shop}/{payload.variant_id}")
        return p

    def list_variants(self, shop: str) -> List[str]:
        d = self.base_dir / _sanitize_key(shop)
        if not d.is_dir():
            return []
        return sorted(p.stem for p in d.glob("*.json"))
