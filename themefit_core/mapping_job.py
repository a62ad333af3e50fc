"""
Theme mapping job: capture -> infer -> stamp -> save.

Runs out of band (once per theme shape), never on page view.

Usage:
    store = AdapterStore()
    inference = SelectorInference(llm=setup_llm())
    adapter = await map_product_page("https://shop.example/products/soap", "shop.example",
                                     store=store, inference=inference)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from .adapter_store import AdapterStore
from .config import config
from .fingerprint import fingerprint
from .models import DOMSnapshot, ThemeAdapter
from .selector_inference import InferenceOptions, SelectorInference
from .snapshot import capture_snapshot, snapshot_from_html

logger = logging.getLogger(__name__)


@dataclass
class MappingResult:
    shop_id: str
    fingerprint: str
    adapter: ThemeAdapter
    snapshot: DOMSnapshot
    reused: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shop_id": self.shop_id,
            "fingerprint": self.fingerprint,
            "adapter": self.adapter.to_dict(),
            "reused": self.reused,
            "metadata": dict(self.metadata),
        }


async def build_theme_adapter(
    snapshot: Union[DOMSnapshot, Dict[str, Any]],
    shop_id: str,
    store: AdapterStore,
    inference: Optional[SelectorInference] = None,
    options: Optional[InferenceOptions] = None,
    force: bool = False,
) -> MappingResult:
    """
    Infer and persist the adapter for one snapshot.

    An adapter already stored under the same fingerprint is reused unless
    force=True. Store write failures (AdapterStoreError) propagate.
    """
    if isinstance(snapshot, dict):
        snapshot = DOMSnapshot.from_dict(snapshot)
    inference = inference or SelectorInference()

    fp = fingerprint(snapshot)
    if not force:
        existing = store.load(shop_id, fp)
        if existing is not None:
            logger.info(f"Reusing stored theme adapter for shop {shop_id}, fingerprint {fp}")
            return MappingResult(shop_id, fp, existing, snapshot, reused=True)

    adapter = await inference.infer(snapshot, options)
    stored = store.save(shop_id, fp, adapter.stamped())
    return MappingResult(
        shop_id,
        fp,
        stored,
        snapshot,
        metadata={"source": stored.source, "fields": list(stored.order)},
    )


async def map_product_page(
    url: str,
    shop_id: str,
    store: Optional[AdapterStore] = None,
    inference: Optional[SelectorInference] = None,
    options: Optional[InferenceOptions] = None,
    headless: bool = True,
    force: bool = False,
) -> MappingResult:
    """Open the product page in chromium, snapshot it and build the adapter."""
    from playwright.async_api import async_playwright

    store = store or AdapterStore(ttl_seconds=config.cache_ttl_seconds)

    logger.info(f"Mapping theme for shop {shop_id} from {url}")
    async with async_playwright() as p:
        browser = await p.chromium.launch(
            headless=headless,
            args=["--no-sandbox", "--disable-dev-shm-usage"],
        )
        try:
            page = await browser.new_page()
            await page.goto(url, wait_until="domcontentloaded")
            await page.wait_for_timeout(2000)
            snapshot = await capture_snapshot(page)
        finally:
            await browser.close()

    return await build_theme_adapter(snapshot, shop_id, store, inference, options, force=force)


async def map_html(
    html: str,
    url: str,
    shop_id: str,
    store: AdapterStore,
    inference: Optional[SelectorInference] = None,
    options: Optional[InferenceOptions] = None,
    force: bool = False,
) -> MappingResult:
    """Same as map_product_page for markup that is already at hand."""
    snapshot = snapshot_from_html(html, url)
    return await build_theme_adapter(snapshot, shop_id, store, inference, options, force=force)
