import asyncio

import httpx

from config import settings


class RateLimitedTransport(httpx.AsyncBaseTransport):
    """Single global request slot with a fixed cool-down after every response.

    The slot is held while the response body is read and for ``delay`` seconds
    afterwards, so the total request rate stays capped no matter how many
    searches share the transport. Setting ``cancel`` cuts the cool-down short.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        delay: float | None = None,
        cancel: asyncio.Event | None = None,
    ):
        self._transport = transport or httpx.AsyncHTTPTransport()
        self.delay = settings.request_delay_seconds if delay is None else delay
        self.cancel = cancel or asyncio.Event()
        self._lock = asyncio.Lock()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        async with self._lock:
            try:
                response = await self._transport.handle_async_request(request)
                await response.aread()
            finally:
                await self._cooldown()
        return response

    async def _cooldown(self) -> None:
        if self.delay > 0:
            await sleep_unless_cancelled(self.cancel, self.delay)

    async def aclose(self) -> None:
        await self._transport.aclose()


async def sleep_unless_cancelled(cancel: asyncio.Event, seconds: float) -> bool:
    """Sleep up to ``seconds``; return True if ``cancel`` was set meanwhile."""
    if cancel.is_set():
        return True
    try:
        await asyncio.wait_for(cancel.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return False
    return True
