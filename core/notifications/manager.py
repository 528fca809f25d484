import asyncio
import logging
from typing import Dict, List

from core.models import NotificationEvent
from core.notifications import NotificationClient
from core.notifications.webhook import WebhookClient

log = logging.getLogger(__name__)


class NotificationManager:
    def __init__(self, clients: List[NotificationClient] | None = None):
        self.clients: List[NotificationClient] = (
            clients if clients is not None else [WebhookClient()]
        )
        self._enabled_clients = [c for c in self.clients if c.is_enabled()]
        log.info(
            f"NotificationManager initialized with {len(self._enabled_clients)} enabled clients"
        )

    async def send_to_all(self, event: NotificationEvent) -> Dict[str, bool]:
        if not self._enabled_clients:
            log.debug(f"No notification clients enabled, dropping {event.fingerprint}")
            return {}

        tasks = [client.send(event) for client in self._enabled_clients]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        result_dict = {}
        for i, result in enumerate(results):
            client_name = self._enabled_clients[i].__class__.__name__
            if isinstance(result, Exception):
                log.error(f"{client_name} failed: {result}")
                result_dict[client_name] = False
            else:
                result_dict[client_name] = result

        return result_dict

    def get_enabled_channels(self) -> List[str]:
        return [c.__class__.__name__ for c in self._enabled_clients]
