"""
Deterministic heuristic adapter (used when the LLM is unavailable)

Static selector fallback lists per field, covering the class names common
Shopify themes ship with. Confidence values are hand-picked tuning constants
meaning "moderate trust, heuristic only", not calibrated probabilities.
"""

from typing import Dict, List, Optional

from .fingerprint import fingerprint
from .models import DOMSnapshot, FieldName, Strategy, ThemeAdapter

# Default fallback patterns (used when LLM unavailable)
DEFAULT_SELECTORS: Dict[str, List[str]] = {
    FieldName.PRODUCT_TITLE: [
        'h1', '.product-title', '.product__title', '[data-product-title]',
    ],
    FieldName.PRODUCT_SUBTITLE: [
        '.product__subtitle', '.product-subtitle', '.product__text.subtitle',
    ],
    FieldName.PRODUCT_DESCRIPTION: [
        '.product__description', '.product-description', '[data-product-description]', '.rte',
    ],
    FieldName.HERO_IMAGE: [
        '.product__media img', '.product__media-item img', '.product-gallery img', '.product__image img',
        'img.product-image',
    ],
    FieldName.CTA_PRIMARY: [
        'button[name="add"]', '.product-form__submit', 'form[action*="/cart/add"] button[type="submit"]',
        '.add-to-cart',
    ],
    FieldName.USP_LIST: [
        '.product__usp', '.product-usp', '.usp-list', '.product__benefits', '.product-benefits',
    ],
    FieldName.BADGES: [
        '.product__badge', '.product-badge', '.badge', '.product__tag',
    ],
}

DEFAULT_CONFIDENCE: Dict[str, float] = {
    FieldName.PRODUCT_TITLE: 0.8,
    FieldName.PRODUCT_SUBTITLE: 0.5,
    FieldName.PRODUCT_DESCRIPTION: 0.6,
    FieldName.HERO_IMAGE: 0.8,
    FieldName.CTA_PRIMARY: 0.7,
    FieldName.USP_LIST: 0.5,
    FieldName.BADGES: 0.5,
}

DEFAULT_STRATEGIES: Dict[str, Strategy] = {
    FieldName.PRODUCT_TITLE: Strategy.TEXT,
    FieldName.PRODUCT_SUBTITLE: Strategy.TEXT,
    FieldName.PRODUCT_DESCRIPTION: Strategy.HTML,
    FieldName.HERO_IMAGE: Strategy.IMAGE_SRC,
    FieldName.CTA_PRIMARY: Strategy.TEXT,
    FieldName.USP_LIST: Strategy.LIST_TEXT,
    FieldName.BADGES: Strategy.TEXT,
}

DEFAULT_ORDER: List[str] = [
    FieldName.PRODUCT_TITLE,
    FieldName.PRODUCT_SUBTITLE,
    FieldName.HERO_IMAGE,
    FieldName.PRODUCT_DESCRIPTION,
    FieldName.CTA_PRIMARY,
    FieldName.USP_LIST,
    FieldName.BADGES,
]


def build_heuristic_adapter(snapshot: Optional[DOMSnapshot] = None) -> ThemeAdapter:
    """
    Constant adapter from static data, plus the snapshot's fingerprint.

    Never raises: fingerprinting a DOMSnapshot is a pure string operation and
    everything else is a copy of module constants.
    """
    return ThemeAdapter(
        selectors={name: ", ".join(sels) for name, sels in DEFAULT_SELECTORS.items()},
        order=list(DEFAULT_ORDER),
        confidence=dict(DEFAULT_CONFIDENCE),
        strategies=dict(DEFAULT_STRATEGIES),
        fingerprint=fingerprint(snapshot) if snapshot is not None else "",
        source="heuristic",
    )
