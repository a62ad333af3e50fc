"""Fire-and-forget analytics events (POST {backend_url}/analytics)."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import aiohttp

from ..models import ContentPayload, utc_now_iso

logger = logging.getLogger(__name__)

Sender = Callable[[str, Dict[str, Any]], Awaitable[Any]]


async def post_json(url: str, body: Dict[str, Any], timeout: int = 5) -> int:
    timeout_obj = aiohttp.ClientTimeout(total=timeout)
    async with aiohttp.ClientSession(timeout=timeout_obj) as session:
        async with session.post(url, json=body) as resp:
            return resp.status


class AnalyticsBeacon:
    def __init__(self, sender: Optional[Sender] = None):
        self._sender = sender or post_json
        self._tasks: Set[asyncio.Task] = set()
        self.sent = 0

    def build_event(self, event_type: str, payload: ContentPayload, **extra) -> Dict[str, Any]:
        event = {
            "event_type": event_type,
            "variant_id": payload.variant_id,
            "shop": payload.shop,
            "product_id": payload.product_id,
            "timestamp": utc_now_iso(),
        }
        event.update(extra)
        return event

    def track(self, event_type: str, payload: ContentPayload, **extra) -> Optional[asyncio.Task]:
        """Schedule the POST and return immediately; failures are only logged."""
        if not payload.backend_url:
            logger.warning(f"No backend URL, {event_type} event not sent")
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No event loop, {event_type} event not sent")
            return None

        url = f"{payload.backend_url.rstrip('/')}/analytics"
        task = loop.create_task(self._send(url, self.build_event(event_type, payload, **extra)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _send(self, url: str, event: Dict[str, Any]):
        try:
            await self._sender(url, event)
            self.sent += 1
        except Exception as e:
            logger.error(f"Analytics event {event.get('event_type')} failed: {e}")

    async def drain(self):
        """Wait for in-flight events (tests, shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
