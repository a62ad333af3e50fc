"""
Injection Runtime - applies a variant payload to a product page and keeps it applied.

    IDLE -> LOADING -> MATCHING -> PATCHED -> OBSERVING <-> REAPPLYING
                                                   \\-> TORN_DOWN

Usage:
    document = PageDocument(html, url="https://shop.example/products/soap?tf_variant=v1")
    runtime = InjectionRuntime(document)
    await runtime.start()
    ...
    runtime.teardown()

Everything after the payload fetch runs synchronously on the event loop.
Mutation records arrive on a later loop turn; drift detected there is
reapplied through a debounced, rate-bounded scheduler.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from bs4 import Tag

from ..config import Config, config as default_config
from ..models import FALLBACK_REQUIRED_FIELDS, ContentPayload, ThemeAdapter
from .analytics import AnalyticsBeacon
from .dom import MutationObserver, MutationRecord, PageDocument
from .guard import is_protected_element
from .payload import PayloadLoader
from .reconciler import ReapplyScheduler
from .strategies import AppliedPatch, build_patch

logger = logging.getLogger(__name__)

APPLIED_ATTR = "data-themefit-applied"
VARIANT_ATTR = "data-themefit-variant"
HIGHLIGHT_ATTR = "data-themefit-highlight"

VIEW_EVENT = "variant_view"


class RuntimeState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    MATCHING = "matching"
    PATCHED = "patched"
    OBSERVING = "observing"
    REAPPLYING = "reapplying"
    TORN_DOWN = "torn_down"


class InjectionRuntime:
    def __init__(
        self,
        document: PageDocument,
        *,
        config: Optional[Config] = None,
        payload_loader: Optional[PayloadLoader] = None,
        adapter: Optional[ThemeAdapter] = None,
        analytics: Optional[AnalyticsBeacon] = None,
    ):
        self.document = document
        self.config = config or default_config
        self.loader = payload_loader or PayloadLoader(self.config)
        self.analytics = analytics or AnalyticsBeacon()
        self._explicit_adapter = adapter

        self.state = RuntimeState.IDLE
        self.payload: Optional[ContentPayload] = None
        self.adapter: Optional[ThemeAdapter] = None
        self.applied_patches: List[AppliedPatch] = []
        self.reapply_count = 0

        self._observer: Optional[MutationObserver] = None
        self._scheduler: Optional[ReapplyScheduler] = None
        self._highlight_timers: List[asyncio.TimerHandle] = []
        self._view_tracked = False

    def is_product_page(self) -> bool:
        return self.config.product_path_marker in self.document.path

    async def start(self) -> bool:
        """Load, match, patch and start observing. Returns True once OBSERVING."""
        if self.state != RuntimeState.IDLE:
            logger.debug(f"start() ignored in state {self.state.value}")
            return False
        if not self.is_product_page():
            logger.debug(f"Not a product page: {self.document.path}")
            return False
        active = self.document.active_runtime
        if active is not None and active is not self:
            logger.info("Injection runtime already active on this page")
            return False

        self.document.active_runtime = self
        self.state = RuntimeState.LOADING
        payload = await self.loader.load(self.document)
        if self.state == RuntimeState.TORN_DOWN:
            return False
        if payload is None or not payload.has_content():
            logger.info("No variant content for this page, leaving it untouched")
            self._release_document()
            self.state = RuntimeState.IDLE
            return False

        self.payload = payload
        self.adapter = await self.loader.resolve_adapter(payload, self._explicit_adapter)
        if self.state == RuntimeState.TORN_DOWN:
            return False

        self.state = RuntimeState.MATCHING
        applied = self.apply_injection()
        self.state = RuntimeState.PATCHED
        logger.info(f"Variant {payload.variant_id or '?'} applied to {applied} field(s)")

        self._observe()
        self.state = RuntimeState.OBSERVING
        return True

    def apply_injection(self) -> int:
        """
        One full pass over adapter.order; rebuilds applied_patches. Returns fields applied.

        An element belongs to the first field in order that resolves to it;
        later fields resolving to the same element are skipped.
        """
        if self.payload is None or self.adapter is None:
            return 0

        records: List[AppliedPatch] = []
        claimed: Set[int] = set()
        for field_name in self.adapter.order:
            value = self.payload.value_for(field_name)
            if value is None:
                continue
            try:
                record = self._apply_field(field_name, value, claimed)
            except Exception as e:
                logger.error(f"Failed to apply {field_name}: {e}")
                continue
            if record is not None:
                records.append(record)

        self.applied_patches = records
        if records and not self._view_tracked:
            self._view_tracked = True
            self.analytics.track(VIEW_EVENT, self.payload, fields=[r.field for r in records])
        return len(records)

    def _apply_field(self, field_name: str, value: Any, claimed: Set[int]) -> Optional[AppliedPatch]:
        strategy = self.adapter.strategies[field_name]
        patch = build_patch(strategy, field_name, value)
        if patch is None:
            return None

        element, selector = self._find(field_name)
        if element is None:
            if field_name in FALLBACK_REQUIRED_FIELDS:
                logger.warning(f"No element found for {field_name}, original content kept")
            else:
                logger.debug(f"No element found for {field_name}")
            return None

        if id(element) in claimed:
            logger.debug(f"{selector} already patched by an earlier field, skipping {field_name}")
            return None

        # already showing our value: record it without touching the DOM
        if element.get(APPLIED_ATTR) and patch.is_applied(element):
            claimed.add(id(element))
            return AppliedPatch(field_name, selector, strategy, patch)

        if is_protected_element(element):
            logger.warning(f"Skipping protected element for {field_name} ({selector})")
            return None

        if not patch.apply(self.document, element):
            logger.debug(f"{strategy.value} patch does not fit <{element.name}> for {field_name}")
            return None
        self._mark(element)
        claimed.add(id(element))
        return AppliedPatch(field_name, selector, strategy, patch)

    def _find(self, field_name: str):
        for selector in self.adapter.candidates(field_name):
            element = self.document.query_selector(selector)
            if element is not None:
                return element, selector
        return None, None

    def _mark(self, element: Tag):
        self.document.set_attribute(element, APPLIED_ATTR, "true")
        self.document.set_attribute(element, VARIANT_ATTR, self.payload.variant_id)
        if element.get(HIGHLIGHT_ATTR):
            return
        self.document.set_attribute(element, HIGHLIGHT_ATTR, "true")
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        handle = loop.call_later(self.config.highlight_seconds, self._clear_highlight, element)
        self._highlight_timers.append(handle)

    def _clear_highlight(self, element: Tag):
        if self.state != RuntimeState.TORN_DOWN:
            self.document.remove_attribute(element, HIGHLIGHT_ATTR)

    def _observe(self):
        self._scheduler = ReapplyScheduler(
            self._reapply,
            debounce_seconds=self.config.debounce_ms / 1000.0,
            max_runs=self.config.max_reapply_per_window,
            window_seconds=self.config.reapply_window_seconds,
        )
        self._observer = MutationObserver(self._on_mutations)
        self._observer.observe(self.document, child_list=True, attributes=True)

    def _on_mutations(self, records: List[MutationRecord], observer: MutationObserver):
        if self.state not in (RuntimeState.OBSERVING, RuntimeState.REAPPLYING):
            return
        if self.has_drift():
            logger.debug(f"Drift detected after {len(records)} mutation(s), scheduling reapply")
            self._scheduler.request()

    def has_drift(self) -> bool:
        """True when an applied element no longer shows its value. Missing elements are not drift."""
        for record in self.applied_patches:
            element = self.document.query_selector(record.selector_used)
            if element is None:
                continue
            if not record.patch.is_applied(element):
                return True
        return False

    def _reapply(self):
        if self.state == RuntimeState.TORN_DOWN:
            return
        self.state = RuntimeState.REAPPLYING
        try:
            applied = self.apply_injection()
            self.reapply_count += 1
            logger.info(f"Reapplied variant to {applied} field(s)")
        finally:
            if self.state == RuntimeState.REAPPLYING:
                self.state = RuntimeState.OBSERVING

    def teardown(self):
        if self._observer is not None:
            self._observer.disconnect()
            self._observer = None
        if self._scheduler is not None:
            self._scheduler.cancel()
        for handle in self._highlight_timers:
            handle.cancel()
        self._highlight_timers = []
        self.applied_patches = []
        self._release_document()
        self.state = RuntimeState.TORN_DOWN
        logger.debug("Injection runtime torn down")

    def _release_document(self):
        if self.document.active_runtime is self:
            self.document.active_runtime = None

    def debug_info(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "variant_id": self.payload.variant_id if self.payload else None,
            "adapter_fingerprint": self.adapter.fingerprint if self.adapter else None,
            "adapter_source": self.adapter.source if self.adapter else None,
            "applied_patches": [p.to_dict() for p in self.applied_patches],
            "reapply_count": self.reapply_count,
            "deferred_reapplies": self._scheduler.deferred_count if self._scheduler else 0,
        }


async def run_injection(document: PageDocument, **kwargs) -> InjectionRuntime:
    """Create and start a runtime for document."""
    runtime = InjectionRuntime(document, **kwargs)
    await runtime.start()
    return runtime
