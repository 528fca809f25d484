import logging

from config import settings
from core.errors import ParseError, RejectedQueryError, StoreError
from core.query import ALL, parse_query
from db.store import Store
from watcher.scheduler import Scheduler

log = logging.getLogger(__name__)


class Controller:
    """Operations behind the chat commands.

    Requests arrive from the chat transport with the requester's id; queries
    without a ``chat/`` prefix go to the requester's default chat.
    """

    def __init__(self, scheduler: Scheduler, store: Store):
        self.scheduler = scheduler
        self.store = store

    async def default_chat(self, requester: str) -> str:
        try:
            chat = await self.store.get_chat(requester)
        except StoreError as e:
            log.error(f"Couldn't get chat for {requester}: {e}")
            chat = None
        return chat or settings.default_chat or requester

    async def set_default_chat(self, requester: str, chat: str) -> None:
        await self.store.set_chat(requester, chat.strip())
        log.info(f"Default chat for {requester} is now {chat.strip()}")

    async def register(self, raw: str, requester: str) -> str:
        parsed = parse_query(raw, await self.default_chat(requester))
        job = await self.scheduler.add(parsed)
        return job.id

    async def register_batch(self, text: str, requester: str) -> list[str]:
        registered = []
        for line in text.splitlines():
            if not line.strip():
                continue
            try:
                registered.append(await self.register(line, requester))
            except (ParseError, RejectedQueryError) as e:
                log.warning(f"Skipping batch line {line!r}: {e}")
        return registered

    async def stop(self, raw: str, requester: str) -> list[str]:
        parsed = parse_query(raw, await self.default_chat(requester))
        if parsed.query == ALL:
            return await self.scheduler.stop_all()
        if await self.scheduler.stop(parsed.id):
            return [parsed.id]
        return []

    def status(self) -> list[str]:
        return self.scheduler.status()

    def export(self) -> str:
        return "\n".join(self.scheduler.status())
