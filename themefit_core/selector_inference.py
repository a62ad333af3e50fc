"""
Selector Inference - DOM snapshot -> ThemeAdapter

Asks the LLM for a field -> selector mapping with confidence scores and
injection strategies. Any failure (no backend, transport error, timeout,
malformed JSON, inconsistent maps) is logged and recovered with the
deterministic heuristic adapter, so infer() always returns a valid adapter.

Usage:
    inference = SelectorInference(llm=setup_llm())
    adapter = await inference.infer(snapshot)
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Set, Union

from .config import config
from .errors import AdapterValidationError, InferenceError
from .fallback import FallbackChain
from .fingerprint import fingerprint
from .heuristic_adapter import build_heuristic_adapter
from .models import DOMSnapshot, FieldName, Strategy, ThemeAdapter, split_selector_list

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("selectors", "order", "confidence", "strategies")


@dataclass
class InferenceOptions:
    max_selectors: int = config.max_selectors
    confidence_threshold: float = config.confidence_threshold
    extract_images: bool = True
    extract_usp: bool = True
    extract_badges: bool = True
    timeout: float = config.inference_timeout


def _excerpt(text: str, limit: int = 200) -> str:
    text = " ".join((text or "").split())
    return text if len(text) <= limit else text[:limit] + "..."


def build_prompt(snapshot: DOMSnapshot, options: InferenceOptions) -> str:
    """Natural-language description of the snapshot's salient DOM facts."""
    lines = [
        f'- Product title text: "{_excerpt(snapshot.title, 120)}"',
        f'- Product form selector: "{snapshot.product_form.selector or "unknown"}"',
    ]
    if options.extract_images:
        image_selectors = sorted({img.selector for img in snapshot.images if img.selector})
        lines.append(
            f"- {len(snapshot.images)} product images, selectors: "
            f"{', '.join(image_selectors[:8]) or 'none'}"
        )
    if options.extract_usp:
        usp_selectors = sorted({c.selector for c in snapshot.usp_candidates if c.selector})
        lines.append(
            f"- {len(snapshot.usp_candidates)} USP list candidates, selectors: "
            f"{', '.join(usp_selectors[:5]) or 'none'}"
        )
    if options.extract_badges:
        badge_selectors = sorted({c.selector for c in snapshot.badge_candidates if c.selector})
        lines.append(
            f"- {len(snapshot.badge_candidates)} badge candidates, selectors: "
            f"{', '.join(badge_selectors[:5]) or 'none'}"
        )
    lines.append(f'- Description excerpt: "{_excerpt(snapshot.description)}"')
    if snapshot.source_url:
        lines.append(f"- URL: {snapshot.source_url}")

    facts = "\n".join(lines)
    fields = ", ".join(FieldName.ALL)
    strategies = ", ".join(s.value for s in Strategy)

    return f"""You analyze Shopify product page themes. Map semantic content fields to CSS selectors
so that variant copy can be injected into the page.

Page facts:
{facts}

Requirements:
- Use at most {options.max_selectors} fields, chosen from: {fields}
- Each selector may list fallbacks separated by commas, most specific first
- Never map price, money, cart total or checkout elements
- Assign a confidence score between 0.0 and 1.0 per field
- Pick one strategy per field from: {strategies}
- Only return fields with confidence >= {options.confidence_threshold}
- "order" lists the fields in injection priority

Return ONLY a JSON object with exactly these four keys:
{{
  "selectors": {{"product_title": "h1.product__title, h1"}},
  "order": ["product_title"],
  "confidence": {{"product_title": 0.92}},
  "strategies": {{"product_title": "text"}}
}}"""


def response_text(response: Any) -> str:
    """Text out of a client result ({"text": ...}, .content, or plain string)."""
    if isinstance(response, dict):
        return str(response.get("text") or response.get("content") or "")
    if hasattr(response, "content"):
        return str(response.content)
    return str(response or "")


def parse_adapter_response(text: str) -> Dict[str, Any]:
    """Decode the LLM answer; exactly the four adapter maps are accepted."""
    text = (text or "").strip()
    fenced = re.search(r'```(?:json)?\s*(\{.*?\})\s*```', text, re.DOTALL)
    if fenced:
        text = fenced.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise AdapterValidationError(f"Response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AdapterValidationError(f"Response must be a JSON object, got {type(data).__name__}")
    keys = set(data)
    missing = [k for k in REQUIRED_KEYS if k not in keys]
    extra = sorted(keys - set(REQUIRED_KEYS))
    if missing or extra:
        raise AdapterValidationError(f"Unexpected response keys (missing={missing}, extra={extra})")
    return data


def _snapshot_selectors(snapshot: Optional[DOMSnapshot]) -> Set[str]:
    if snapshot is None:
        return set()
    seen = {snapshot.product_form.selector}
    seen.update(img.selector for img in snapshot.images)
    seen.update(c.selector for c in snapshot.usp_candidates)
    seen.update(c.selector for c in snapshot.badge_candidates)
    return {s for s in seen if s}


def selector_confidence(selector: str, snapshot: Optional[DOMSnapshot] = None) -> float:
    """
    Structural score for a selector expression, capped at 0.95.

    Starts at 0.5; data attributes, ids and classes add specificity, a single
    short candidate adds more. A candidate the snapshot itself recorded is
    known to exist on the page.
    """
    score = 0.5
    if "[data-" in selector:
        score += 0.2
    if "#" in selector or "[id" in selector:
        score += 0.15
    if re.search(r"\.[A-Za-z_-]", selector) or "[class" in selector:
        score += 0.1

    candidates = split_selector_list(selector)
    if len(candidates) == 1:
        score += 0.1
    if len(selector) < 50:
        score += 0.1
    if _snapshot_selectors(snapshot).intersection(candidates):
        score += 0.1
    return round(min(score, 0.95), 2)


def cap_confidence(adapter: ThemeAdapter, snapshot: Optional[DOMSnapshot] = None) -> ThemeAdapter:
    """Reported confidences never exceed what the selector's structure supports."""
    capped = {}
    for name, reported in adapter.confidence.items():
        ceiling = selector_confidence(adapter.selectors[name], snapshot)
        if reported > ceiling:
            logger.debug(f"Confidence for {name} lowered from {reported} to {ceiling}")
        capped[name] = min(reported, ceiling)
    return replace(adapter, confidence=capped)


def filter_adapter(adapter: ThemeAdapter, options: InferenceOptions) -> ThemeAdapter:
    """Drop low-confidence and disabled fields, cap at max_selectors."""
    def wanted(name: str) -> bool:
        if adapter.confidence[name] < options.confidence_threshold:
            return False
        if not options.extract_images and adapter.strategies[name] == Strategy.IMAGE_SRC:
            return False
        if not options.extract_usp and name == FieldName.USP_LIST:
            return False
        if not options.extract_badges and name == FieldName.BADGES:
            return False
        return True

    ranked = list(adapter.order) + sorted(
        (k for k in adapter.selectors if k not in adapter.order),
        key=lambda k: adapter.confidence[k],
        reverse=True,
    )
    kept = [name for name in ranked if wanted(name)][:max(0, options.max_selectors)]
    if not kept:
        raise AdapterValidationError("No field passed the confidence threshold")

    keep = set(kept)
    return replace(
        adapter,
        selectors={k: v for k, v in adapter.selectors.items() if k in keep},
        order=[f for f in adapter.order if f in keep],
        confidence={k: v for k, v in adapter.confidence.items() if k in keep},
        strategies={k: v for k, v in adapter.strategies.items() if k in keep},
    ).validate()


class SelectorInference:
    """
    Turns DOM snapshots into theme adapters.

    Pure apart from logging: fingerprinting happens here, timestamps and
    persistence are the caller's job.
    """

    def __init__(self, llm: Any = None, options: Optional[InferenceOptions] = None):
        self.llm = llm
        self.options = options or InferenceOptions()

    async def infer(
        self,
        snapshot: Union[DOMSnapshot, Dict[str, Any]],
        options: Optional[InferenceOptions] = None,
    ) -> ThemeAdapter:
        opts = options or self.options
        try:
            if isinstance(snapshot, dict):
                snapshot = DOMSnapshot.from_dict(snapshot)

            chain = FallbackChain("selector-inference")
            if self.llm is not None:
                chain.add("llm", self._infer_with_llm, priority=10)
            chain.add("heuristic", lambda snap, _opts: build_heuristic_adapter(snap))

            result = await chain.execute_async(snapshot, opts)
            if result.success:
                if result.strategy_used != "llm":
                    logger.info(f"Using heuristic theme adapter ({result.errors or 'no LLM configured'})")
                return result.value
        except Exception as e:
            logger.error(f"Selector inference failed unexpectedly: {e}")

        return build_heuristic_adapter(snapshot if isinstance(snapshot, DOMSnapshot) else None)

    async def _infer_with_llm(self, snapshot: DOMSnapshot, opts: InferenceOptions) -> ThemeAdapter:
        prompt = build_prompt(snapshot, opts)
        try:
            response = await asyncio.wait_for(self.llm.ainvoke(prompt), timeout=opts.timeout)
        except asyncio.TimeoutError as e:
            raise InferenceError(f"LLM did not answer within {opts.timeout}s") from e

        data = parse_adapter_response(response_text(response))
        adapter = cap_confidence(ThemeAdapter.from_dict(data), snapshot)
        adapter = filter_adapter(adapter, opts)
        logger.info(f"LLM theme adapter with {len(adapter.selectors)} fields: {adapter.order}")
        return replace(adapter, fingerprint=fingerprint(snapshot), source="llm")
