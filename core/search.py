import asyncio
import logging
from collections.abc import Awaitable, Callable
from decimal import Decimal, InvalidOperation

import httpx

from config import settings
from core.errors import FatalFetchError, TransientFetchError
from core.filter import apply_filters
from core.geo import GeoTable
from core.models import Listing, RawListing, SearchSpec, Snapshot
from core.transport import RateLimitedTransport

log = logging.getLogger(__name__)

OnMatch = Callable[[Listing], Awaitable[None]]


def diff_listing(listing: Listing, snapshot: Snapshot) -> bool:
    """Record ``listing`` in ``snapshot`` and set its previous price.

    Returns True when the listing was never seen or its price strictly dropped.
    """
    previous = snapshot.get(listing.id)
    listing.previous_price = previous
    snapshot[listing.id] = listing.price
    return previous is None or listing.price < previous


async def ignore_matches(listing: Listing) -> None:
    return None


class SearchClient:
    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        geo: GeoTable | None = None,
        cancel: asyncio.Event | None = None,
        search_url: str | None = None,
        link_base: str | None = None,
    ):
        self.cancel = cancel or asyncio.Event()
        self._transport = transport or RateLimitedTransport(cancel=self.cancel)
        self.geo = geo or GeoTable()
        self.search_url = search_url or settings.search_url
        self.link_base = (link_base or settings.item_link_base).rstrip("/")
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if not self._client:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                headers={"Accept": "application/json"},
                timeout=settings.request_timeout_seconds,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def search(self, spec: SearchSpec, snapshot: Snapshot, on_match: OnMatch) -> int:
        """Sweep every result page for ``spec``, oldest offset first.

        Returns the number of listings that passed the term filters. Returns
        early, without error, once the cancel event is set.
        """
        start = 0
        matched = 0
        while not self.cancel.is_set():
            try:
                page = await self.fetch_page(spec, start)
            except TransientFetchError as e:
                log.warning(f"Retrying page at start={start}: {e}")
                continue

            if not page:
                break

            for raw in page:
                if not apply_filters(raw, spec):
                    continue
                matched += 1
                listing = self._to_listing(raw)
                if diff_listing(listing, snapshot):
                    await on_match(listing)

            start += len(page)
        return matched

    def _to_listing(self, raw: RawListing) -> Listing:
        listing_id = raw.listing_id
        return Listing(
            id=listing_id,
            title=raw.title,
            price=raw.price,
            link=f"{self.link_base}/{listing_id}",
        )

    def build_params(self, spec: SearchSpec, start: int) -> dict[str, str]:
        params = {
            "keywords": spec.keywords,
            "order_by": "newest",
            "start": str(start),
        }
        if spec.area_code and spec.area_code > 0:
            coords = self.geo.lat_long(spec.area_code)
            if coords is None:
                raise FatalFetchError(f"lat long not found for {spec.area_code}")
            params["latitude"] = f"{coords[0]:.5f}"
            params["longitude"] = f"{coords[1]:.5f}"
            if spec.radius_km and spec.radius_km > 0:
                params["distance"] = str(spec.radius_km * 1000)
        if spec.min_price and spec.min_price > 0:
            params["min_sale_price"] = str(spec.min_price)
        if spec.max_price and spec.max_price > 0:
            params["max_sale_price"] = str(spec.max_price)
        return params

    async def fetch_page(self, spec: SearchSpec, start: int) -> list[RawListing]:
        params = self.build_params(spec, start)
        client = await self._get_client()

        request = asyncio.ensure_future(client.get(self.search_url, params=params))
        cancelled = asyncio.ensure_future(self.cancel.wait())
        try:
            await asyncio.wait({request, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (request, cancelled):
                if not task.done():
                    task.cancel()

        if not request.done() or request.cancelled():
            # Let the abandoned request unwind and free the transport slot
            await asyncio.wait({request})
            log.debug(f"Page start={start} abandoned for {spec.keywords!r}")
            return []

        try:
            resp = request.result()
        except httpx.TimeoutException as e:
            raise TransientFetchError(f"request timed out: {e!r}") from e
        except httpx.HTTPError as e:
            raise FatalFetchError(f"get request failed: {e}") from e

        if resp.status_code == 502:
            raise TransientFetchError("502 bad gateway")
        if resp.status_code != 200:
            raise FatalFetchError(f"invalid status code: {resp.status_code}")

        try:
            data = resp.json(parse_float=Decimal)
        except ValueError as e:
            raise FatalFetchError(f"couldn't decode json: {e}") from e

        log.debug(f"Fetched page start={start} for {spec.keywords!r}")
        return parse_search_objects(data)


def parse_search_objects(data: object) -> list[RawListing]:
    if not isinstance(data, dict):
        raise FatalFetchError("couldn't decode json: expected an object")
    objects = data.get("search_objects") or []
    if not isinstance(objects, list):
        raise FatalFetchError("couldn't decode json: search_objects is not a list")

    results = []
    for obj in objects:
        if not isinstance(obj, dict):
            raise FatalFetchError("couldn't decode json: search object is not an object")
        try:
            price = Decimal(str(obj.get("price", 0)))
        except InvalidOperation as e:
            raise FatalFetchError(f"couldn't decode price {obj.get('price')!r}") from e
        results.append(
            RawListing(
                id=str(obj.get("id", "")),
                title=obj.get("title") or "",
                price=price,
                description=obj.get("description") or "",
                web_slug=obj.get("web_slug") or "",
            )
        )
    return results
