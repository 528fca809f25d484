import asyncio
import json
import logging

import aiohttp

from core.models import NotificationEvent
from core.notifications import NotificationClient

log = logging.getLogger(__name__)


class WebhookClient(NotificationClient):
    """Posts each event as a JSON document to a configured URL."""

    def __init__(self, url: str | None = None, headers: str | None = None):
        from config import settings

        url = url or settings.webhook_url
        headers = headers or settings.webhook_headers
        super().__init__(enabled=bool(url))
        self._url = url
        self._headers = json.loads(headers) if headers else {}

    async def send(self, event: NotificationEvent) -> bool:
        if not self.is_enabled():
            return False

        try:
            async with aiohttp.ClientSession() as session:
                payload = self._format_event(event)
                async with session.post(self._url, json=payload, headers=self._headers) as resp:
                    if resp.status in (200, 201, 202, 204):
                        log.info(f"Webhook notification sent for {event.fingerprint}")
                        return True
                    log.error(f"Webhook notification failed: {resp.status}")
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.error(f"Webhook notification error: {e}", exc_info=True)
            return False
