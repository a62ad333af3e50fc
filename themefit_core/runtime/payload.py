"""
Payload and adapter loading for the injection runtime.

Payload sources, first hit wins:
    1. inline <script id="themefit-data" type="application/json"> blob
    2. GET {api_base}/api/variant-data?av=<variant>&shop=<host>

Adapter sources, first hit wins:
    1. adapter handed to the runtime
    2. adapter embedded in the payload
    3. GET {api_base}/api/adapters/<shop>/<theme_fingerprint>
    4. heuristic adapter
"""

import asyncio
import json
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import quote, urlencode

import aiohttp

from ..config import Config, config as default_config
from ..errors import AdapterValidationError, PayloadError
from ..heuristic_adapter import build_heuristic_adapter
from ..models import ContentPayload, ThemeAdapter
from .dom import PageDocument

logger = logging.getLogger(__name__)

FetchJson = Callable[[str], Awaitable[Optional[Any]]]


async def fetch_json(url: str, timeout: int = 10) -> Optional[Any]:
    """GET a JSON document; None on 404."""
    timeout_obj = aiohttp.ClientTimeout(total=timeout)
    async with aiohttp.ClientSession(timeout=timeout_obj) as session:
        async with session.get(url, headers={"Accept": "application/json"}) as resp:
            if resp.status == 404:
                return None
            if resp.status != 200:
                error_text = await resp.text()
                raise PayloadError(f"GET {url} failed with {resp.status}: {error_text[:200]}")
            return await resp.json(content_type=None)


class PayloadLoader:
    def __init__(self, config: Optional[Config] = None, fetch: Optional[FetchJson] = None):
        self.config = config or default_config
        self._fetch = fetch

    async def _get(self, url: str) -> Optional[Any]:
        if self._fetch is not None:
            return await self._fetch(url)
        return await fetch_json(url, timeout=self.config.fetch_timeout)

    def load_inline(self, document: PageDocument) -> Optional[ContentPayload]:
        el = document.get_element_by_id(self.config.inline_payload_id)
        if el is None:
            return None
        try:
            # script bodies are not "text" to bs4, read the raw string
            return ContentPayload.from_dict(json.loads(el.string or "null"))
        except (ValueError, PayloadError) as e:
            logger.warning(f"Ignoring malformed inline payload: {e}")
            return None

    async def load_remote(self, document: PageDocument) -> Optional[ContentPayload]:
        variant_id = document.query_param(self.config.variant_param)
        if not variant_id:
            return None
        query = urlencode({"av": variant_id, "shop": document.host})
        url = f"{self.config.api_base.rstrip('/')}/api/variant-data?{query}"
        try:
            data = await self._get(url)
            if data is None:
                logger.info(f"No payload for variant {variant_id}")
                return None
            return ContentPayload.from_dict(data)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, PayloadError) as e:
            logger.warning(f"Payload fetch failed for variant {variant_id}: {e}")
            return None

    async def load(self, document: PageDocument) -> Optional[ContentPayload]:
        payload = self.load_inline(document)
        if payload is not None:
            logger.debug("Using inline payload")
            return payload
        return await self.load_remote(document)

    async def resolve_adapter(
        self,
        payload: ContentPayload,
        explicit: Optional[ThemeAdapter] = None,
    ) -> ThemeAdapter:
        if explicit is not None:
            return explicit
        if payload.adapter is not None:
            return payload.adapter

        if payload.shop and payload.theme_fingerprint:
            url = (
                f"{self.config.api_base.rstrip('/')}/api/adapters/"
                f"{quote(payload.shop, safe='')}/{quote(payload.theme_fingerprint, safe='')}"
            )
            try:
                data = await self._get(url)
                if data is not None:
                    return ThemeAdapter.from_dict(data)
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, PayloadError,
                    AdapterValidationError) as e:
                logger.warning(f"Adapter fetch failed for {payload.shop}/{payload.theme_fingerprint}: {e}")

        logger.info("No stored theme adapter, using heuristic selectors")
        return replace(build_heuristic_adapter(), fingerprint=payload.theme_fingerprint)
