from abc import ABC, abstractmethod
from typing import Any, Dict

from core.models import NotificationEvent, NumericChat


class NotificationClient(ABC):
    def __init__(self, enabled: bool = False):
        self._enabled = enabled

    def is_enabled(self) -> bool:
        return self._enabled

    @abstractmethod
    async def send(self, event: NotificationEvent) -> bool:
        pass

    def _format_event(self, event: NotificationEvent) -> Dict[str, Any]:
        target = event.target
        chat = target.id if isinstance(target, NumericChat) else target.handle
        previous = str(event.previous_price) if event.previous_price is not None else None

        return {
            "chat": chat,
            "job_id": event.job_id,
            "listing_id": event.listing_id,
            "title": event.title,
            "price": str(event.price),
            "previous_price": previous,
            "link": event.link,
            "is_price_drop": event.is_price_drop,
        }
