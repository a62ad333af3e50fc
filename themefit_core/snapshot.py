"""
DOM snapshot capture.

Two producers of the same DOMSnapshot shape:
- capture_snapshot(page): live playwright page, extraction runs in the browser
- snapshot_from_html(html, url): static markup parsed with BeautifulSoup
"""

import logging
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from .models import DOMSnapshot, utc_now_iso

logger = logging.getLogger(__name__)

TITLE_SELECTORS = ['h1', '.product-title', '[data-product-title]', '.product__title']
FORM_SELECTOR = '.product-form, form[action*="/cart/add"], .product__form'
IMAGE_SELECTOR = '.product__image, .product-image, [data-product-image] img, .product__media img'
DESCRIPTION_SELECTORS = ['.product-description', '.product__description', '[data-product-description]']
BADGE_SELECTOR = '.badge, .label, .tag, [class*="badge"]'
MAX_USP_LISTS = 3
MAX_BADGES = 20

EXTRACT_JS = """
(cfg) => {
    function getSelector(el) {
        if (el.id) return '#' + el.id;
        if (el.classList && el.classList.length) {
            return el.tagName.toLowerCase() + '.' + Array.from(el.classList).join('.');
        }
        return el.tagName.toLowerCase();
    }
    function firstText(selectors) {
        for (const sel of selectors) {
            const el = document.querySelector(sel);
            if (el) return (el.textContent || '').trim();
        }
        return '';
    }

    const form = document.querySelector(cfg.form);
    const productForm = form ? {
        selector: getSelector(form),
        has_submit: !!form.querySelector('button[type="submit"], input[type="submit"]'),
        has_quantity: !!form.querySelector('input[name="quantity"], .quantity-selector'),
        has_variant_selector: !!form.querySelector('select[name="id"], .variant-selector')
    } : {selector: ''};

    const images = Array.from(document.querySelectorAll(cfg.images)).map(img => ({
        src: img.currentSrc || img.src || '',
        alt: img.alt || '',
        selector: getSelector(img)
    }));

    const uspCandidates = Array.from(document.querySelectorAll('main ul, main ol, .product ul, .product ol'))
        .filter(list => list.children.length > 0)
        .slice(0, cfg.maxUsp)
        .map(list => ({
            text: Array.from(list.children).map(li => (li.textContent || '').trim()).join(' | '),
            selector: getSelector(list)
        }));

    const badgeCandidates = Array.from(document.querySelectorAll(cfg.badges))
        .slice(0, cfg.maxBadges)
        .map(b => ({ text: (b.textContent || '').trim(), selector: getSelector(b) }));

    return {
        title: firstText(cfg.title),
        productForm,
        images,
        description: firstText(cfg.description),
        uspCandidates,
        badgeCandidates,
        sourceUrl: window.location.href,
        capturedAt: new Date().toISOString()
    };
}
"""


async def capture_snapshot(page) -> DOMSnapshot:
    """Extract a snapshot from a loaded playwright page."""
    data = await page.evaluate(EXTRACT_JS, {
        "title": TITLE_SELECTORS,
        "form": FORM_SELECTOR,
        "images": IMAGE_SELECTOR,
        "description": DESCRIPTION_SELECTORS,
        "badges": BADGE_SELECTOR,
        "maxUsp": MAX_USP_LISTS,
        "maxBadges": MAX_BADGES,
    })
    snapshot = DOMSnapshot.from_dict(data or {})
    logger.info(
        f"Captured snapshot of {snapshot.source_url}: {len(snapshot.images)} images, "
        f"{len(snapshot.usp_candidates)} USP lists, {len(snapshot.badge_candidates)} badges"
    )
    return snapshot


def element_selector(el: Tag) -> str:
    """Same naming rule as the in-browser extractor: #id, tag.classes or tag."""
    if el.get("id"):
        return f"#{el['id']}"
    classes = el.get("class") or []
    if classes:
        return el.name + "." + ".".join(classes)
    return el.name


def _first_text(soup: BeautifulSoup, selectors: List[str]) -> str:
    for sel in selectors:
        el = soup.select_one(sel)
        if el is not None:
            return el.get_text().strip()
    return ""


def snapshot_from_html(html: str, url: str = "", captured_at: Optional[str] = None) -> DOMSnapshot:
    """Build a snapshot from static HTML (no script execution)."""
    soup = BeautifulSoup(html or "", "html.parser")

    form = soup.select_one(FORM_SELECTOR)
    product_form = {"selector": ""}
    if form is not None:
        product_form = {
            "selector": element_selector(form),
            "has_submit": form.select_one('button[type="submit"], input[type="submit"]') is not None,
            "has_quantity": form.select_one('input[name="quantity"], .quantity-selector') is not None,
            "has_variant_selector": form.select_one('select[name="id"], .variant-selector') is not None,
        }

    images = [
        {"src": img.get("src", ""), "alt": img.get("alt", ""), "selector": element_selector(img)}
        for img in soup.select(IMAGE_SELECTOR)
    ]

    lists = [
        lst for lst in soup.select('main ul, main ol, .product ul, .product ol')
        if lst.find("li") is not None
    ][:MAX_USP_LISTS]
    usp = [
        {
            "text": " | ".join(li.get_text().strip() for li in lst.find_all("li", recursive=False)),
            "selector": element_selector(lst),
        }
        for lst in lists
    ]

    badges = [
        {"text": b.get_text().strip(), "selector": element_selector(b)}
        for b in soup.select(BADGE_SELECTOR)[:MAX_BADGES]
    ]

    return DOMSnapshot.from_dict({
        "title": _first_text(soup, TITLE_SELECTORS),
        "productForm": product_form,
        "images": images,
        "description": _first_text(soup, DESCRIPTION_SELECTORS),
        "uspCandidates": usp,
        "badgeCandidates": badges,
        "sourceUrl": url,
        "capturedAt": captured_at or utc_now_iso(),
    })
