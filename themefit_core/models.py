"""
Data model shared by selector inference, the adapter store and the runtime.

DOMSnapshot is read-only input captured from a product page, ThemeAdapter is
the scored field -> selector -> strategy mapping for one theme shape, and
ContentPayload carries the literal values of one ad variant.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import AdapterValidationError, PayloadError

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Strategy(str, Enum):
    """How a field value is written into the DOM."""
    TEXT = "text"
    HTML = "html"
    IMAGE_SRC = "image_src"
    LIST_TEXT = "list_text"

    @classmethod
    def parse(cls, value: Any) -> "Strategy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise AdapterValidationError(f"Unknown strategy: {value!r}")


class FieldName:
    """Canonical semantic fields. Adapters may carry other names as plain strings."""
    PRODUCT_TITLE = "product_title"
    PRODUCT_SUBTITLE = "product_subtitle"
    PRODUCT_DESCRIPTION = "product_description"
    HERO_IMAGE = "hero_image"
    CTA_PRIMARY = "cta_primary"
    USP_LIST = "usp_list"
    BADGES = "badges"

    ALL = (
        PRODUCT_TITLE,
        PRODUCT_SUBTITLE,
        PRODUCT_DESCRIPTION,
        HERO_IMAGE,
        CTA_PRIMARY,
        USP_LIST,
        BADGES,
    )


# Fields whose absence on the page is worth a warning
FALLBACK_REQUIRED_FIELDS = frozenset({
    FieldName.PRODUCT_TITLE,
    FieldName.PRODUCT_DESCRIPTION,
    FieldName.HERO_IMAGE,
    FieldName.CTA_PRIMARY,
})


def split_selector_list(expression: str) -> List[str]:
    """
    Split a comma-separated selector list into candidates.

    Commas inside brackets, parentheses or quotes belong to the candidate,
    e.g. 'a[title="x, y"], :is(h1, h2)' yields two candidates.
    """
    parts: List[str] = []
    buf: List[str] = []
    depth = 0
    quote = ""
    for ch in expression or "":
        if quote:
            buf.append(ch)
            if ch == quote:
                quote = ""
            continue
        if ch in ("'", '"'):
            quote = ch
        elif ch in "([":
            depth += 1
        elif ch in ")]":
            depth = max(0, depth - 1)
        elif ch == "," and depth == 0:
            part = "".join(buf).strip()
            if part:
                parts.append(part)
            buf = []
            continue
        buf.append(ch)
    tail = "".join(buf).strip()
    if tail:
        parts.append(tail)
    return parts


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass
class ProductForm:
    selector: str = ""
    has_submit: bool = False
    has_quantity: bool = False
    has_variant_selector: bool = False


@dataclass
class SnapshotImage:
    src: str = ""
    alt: str = ""
    selector: str = ""


@dataclass
class Candidate:
    text: str = ""
    selector: str = ""


@dataclass
class DOMSnapshot:
    """Structured snapshot of one product page."""
    title: str = ""
    product_form: ProductForm = field(default_factory=ProductForm)
    images: List[SnapshotImage] = field(default_factory=list)
    description: str = ""
    usp_candidates: List[Candidate] = field(default_factory=list)
    badge_candidates: List[Candidate] = field(default_factory=list)
    source_url: str = ""
    captured_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DOMSnapshot":
        """
        Build a snapshot from camelCase, snake_case or the mapping worker's
        legacy keys (product_title, product_images, usp_lists, badges, url).
        """
        form = _pick(data, "productForm", "product_form", default={}) or {}
        if isinstance(form, str):
            form = {"selector": form}

        images = [
            SnapshotImage(
                src=str(img.get("src") or ""),
                alt=str(img.get("alt") or ""),
                selector=str(img.get("selector") or ""),
            )
            for img in _pick(data, "images", "product_images", default=[]) or []
            if isinstance(img, dict)
        ]

        usp = []
        for item in _pick(data, "uspCandidates", "usp_candidates", "usp_lists", default=[]) or []:
            if not isinstance(item, dict):
                continue
            text = item.get("text")
            if text is None and isinstance(item.get("items"), list):
                text = " | ".join(str(i) for i in item["items"] if i)
            usp.append(Candidate(text=str(text or ""), selector=str(item.get("selector") or "")))

        badges = [
            Candidate(text=str(b.get("text") or ""), selector=str(b.get("selector") or ""))
            for b in _pick(data, "badgeCandidates", "badge_candidates", "badges", default=[]) or []
            if isinstance(b, dict)
        ]

        return cls(
            title=str(_pick(data, "title", "product_title", default="")),
            product_form=ProductForm(
                selector=str(form.get("selector") or ""),
                has_submit=bool(form.get("has_submit", False)),
                has_quantity=bool(form.get("has_quantity", False)),
                has_variant_selector=bool(form.get("has_variant_selector", False)),
            ),
            images=images,
            description=str(_pick(data, "description", "product_description", default="")),
            usp_candidates=usp,
            badge_candidates=badges,
            source_url=str(_pick(data, "sourceUrl", "source_url", "url", default="")),
            captured_at=str(_pick(data, "capturedAt", "captured_at", "timestamp", default="")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "productForm": {
                "selector": self.product_form.selector,
                "has_submit": self.product_form.has_submit,
                "has_quantity": self.product_form.has_quantity,
                "has_variant_selector": self.product_form.has_variant_selector,
            },
            "images": [{"src": i.src, "alt": i.alt, "selector": i.selector} for i in self.images],
            "description": self.description,
            "uspCandidates": [{"text": c.text, "selector": c.selector} for c in self.usp_candidates],
            "badgeCandidates": [{"text": c.text, "selector": c.selector} for c in self.badge_candidates],
            "sourceUrl": self.source_url,
            "capturedAt": self.captured_at,
        }


@dataclass
class ThemeAdapter:
    """
    Field -> selector mapping for one theme shape.

    Every key in selectors has a matching entry in confidence and strategies;
    order lists a subset of those keys in application order.
    """
    selectors: Dict[str, str]
    order: List[str]
    confidence: Dict[str, float]
    strategies: Dict[str, Strategy]
    fingerprint: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    source: str = "llm"

    def validate(self) -> "ThemeAdapter":
        """Raise AdapterValidationError unless the adapter is internally consistent."""
        keys = set(self.selectors)
        if not keys:
            raise AdapterValidationError("Adapter has no selectors")
        if set(self.confidence) != keys:
            raise AdapterValidationError(
                f"confidence keys {sorted(self.confidence)} do not match selectors {sorted(keys)}"
            )
        if set(self.strategies) != keys:
            raise AdapterValidationError(
                f"strategies keys {sorted(self.strategies)} do not match selectors {sorted(keys)}"
            )
        if len(set(self.order)) != len(self.order):
            raise AdapterValidationError("order contains duplicates")
        unknown = [f for f in self.order if f not in keys]
        if unknown:
            raise AdapterValidationError(f"order references unknown fields: {unknown}")
        for name, selector in self.selectors.items():
            if not isinstance(selector, str) or not split_selector_list(selector):
                raise AdapterValidationError(f"Empty selector for {name}")
        for name, score in self.confidence.items():
            if not 0.0 <= score <= 1.0:
                raise AdapterValidationError(f"confidence for {name} out of range: {score}")
        for name, strategy in self.strategies.items():
            if not isinstance(strategy, Strategy):
                raise AdapterValidationError(f"Invalid strategy for {name}: {strategy!r}")
        return self

    def is_valid(self) -> bool:
        try:
            self.validate()
            return True
        except AdapterValidationError:
            return False

    def candidates(self, field_name: str) -> List[str]:
        return split_selector_list(self.selectors.get(field_name, ""))

    def stamped(self, now: Optional[str] = None) -> "ThemeAdapter":
        """Copy with timestamps set; an existing created_at is kept."""
        now = now or utc_now_iso()
        return replace(self, created_at=self.created_at or now, updated_at=now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selectors": dict(self.selectors),
            "order": list(self.order),
            "confidence": dict(self.confidence),
            "strategies": {k: v.value for k, v in self.strategies.items()},
            "fingerprint": self.fingerprint,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ThemeAdapter":
        """Decode and validate; raises AdapterValidationError on any shape problem."""
        if not isinstance(data, dict):
            raise AdapterValidationError(f"Adapter must be an object, got {type(data).__name__}")
        selectors = data.get("selectors")
        order = data.get("order")
        confidence = data.get("confidence")
        strategies = data.get("strategies")
        if not isinstance(selectors, dict):
            raise AdapterValidationError("selectors must be an object")
        if not isinstance(order, list):
            raise AdapterValidationError("order must be a list")
        if not isinstance(confidence, dict):
            raise AdapterValidationError("confidence must be an object")
        if not isinstance(strategies, dict):
            raise AdapterValidationError("strategies must be an object")

        scores: Dict[str, float] = {}
        for name, score in confidence.items():
            if isinstance(score, bool) or not isinstance(score, (int, float)):
                raise AdapterValidationError(f"confidence for {name} is not a number: {score!r}")
            scores[str(name)] = float(score)

        adapter = cls(
            selectors={str(k): v for k, v in selectors.items()},
            order=[str(f) for f in order],
            confidence=scores,
            strategies={str(k): Strategy.parse(v) for k, v in strategies.items()},
            fingerprint=str(_pick(data, "fingerprint", "theme_fingerprint", default="")),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            source=str(data.get("source") or "llm"),
        )
        return adapter.validate()


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


@dataclass
class ContentPayload:
    """Literal field values of one ad variant. Absent values leave the page untouched."""
    content: Dict[str, Any] = field(default_factory=dict)
    variant_id: str = ""
    shop: str = ""
    product_id: str = ""
    backend_url: str = ""
    theme_fingerprint: str = ""
    adapter: Optional[ThemeAdapter] = None

    def value_for(self, field_name: str) -> Any:
        value = self.content.get(field_name)
        return None if _is_empty(value) else value

    def has_content(self) -> bool:
        return any(not _is_empty(v) for v in self.content.values())

    @classmethod
    def from_dict(cls, data: Any) -> "ContentPayload":
        if not isinstance(data, dict):
            raise PayloadError(f"Payload must be an object, got {type(data).__name__}")
        content = data.get("content") or {}
        if not isinstance(content, dict):
            raise PayloadError("Payload content must be an object")

        adapter = None
        if data.get("adapter") is not None:
            # a broken embedded adapter only costs us the adapter, not the payload
            try:
                adapter = ThemeAdapter.from_dict(data["adapter"])
            except AdapterValidationError as e:
                logger.warning(f"Ignoring invalid embedded adapter: {e}")

        return cls(
            content=content,
            variant_id=str(data.get("variant_id") or ""),
            shop=str(data.get("shop") or ""),
            product_id=str(data.get("product_id") or ""),
            backend_url=str(data.get("backend_url") or ""),
            theme_fingerprint=str(data.get("theme_fingerprint") or ""),
            adapter=adapter,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "variant_id": self.variant_id,
            "shop": self.shop,
            "product_id": self.product_id,
            "backend_url": self.backend_url,
            "theme_fingerprint": self.theme_fingerprint,
            "content": dict(self.content),
        }
        if self.adapter is not None:
            out["adapter"] = self.adapter.to_dict()
        return out
