from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

Snapshot = dict[str, Decimal]


class JobState(Enum):
    REGISTERED = "registered"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True)
class NumericChat:
    id: int


@dataclass(frozen=True)
class HandleChat:
    handle: str


ChatRef = NumericChat | HandleChat


def chat_ref(chat: str) -> ChatRef:
    """Numeric chat ids (users, groups) vs. string handles such as "@channel"."""
    text = chat.strip()
    digits = text[1:] if text.startswith("-") else text
    if digits.isdigit():
        return NumericChat(int(text))
    return HandleChat(text)


@dataclass(frozen=True)
class SearchSpec:
    keywords: str
    include_terms: frozenset[str] = frozenset()
    exclude_terms: frozenset[str] = frozenset()
    area_code: int | None = None
    radius_km: int | None = None
    min_price: int | None = None
    max_price: int | None = None


@dataclass(frozen=True)
class ParsedQuery:
    id: str
    chat: str
    query: str
    spec: SearchSpec


@dataclass
class QueryJob:
    id: str
    chat: str
    spec: SearchSpec
    state: JobState = JobState.REGISTERED
    created_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def from_parsed(cls, parsed: ParsedQuery) -> "QueryJob":
        return cls(id=parsed.id, chat=parsed.chat, spec=parsed.spec)

    @property
    def is_running(self) -> bool:
        return self.state is JobState.RUNNING


@dataclass
class RawListing:
    """One object of a search results page, before filtering."""

    id: str
    title: str
    price: Decimal
    description: str = ""
    web_slug: str = ""

    @property
    def listing_id(self) -> str:
        # Stable id is the trailing segment of the slug ("iphone-13-pro-9xk2m")
        if self.web_slug:
            return self.web_slug.rsplit("-", 1)[-1]
        return self.id


@dataclass
class Listing:
    id: str
    title: str
    price: Decimal
    link: str
    previous_price: Decimal | None = None
    observed_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_price_drop(self) -> bool:
        return self.previous_price is not None and self.price < self.previous_price


@dataclass(frozen=True)
class NotificationEvent:
    job_id: str
    chat: str
    listing_id: str
    title: str
    price: Decimal
    previous_price: Decimal | None
    link: str
    is_price_drop: bool

    @classmethod
    def from_listing(cls, job: QueryJob, listing: Listing) -> "NotificationEvent":
        return cls(
            job_id=job.id,
            chat=job.chat,
            listing_id=listing.id,
            title=listing.title,
            price=listing.price,
            previous_price=listing.previous_price,
            link=listing.link,
            is_price_drop=listing.is_price_drop,
        )

    @property
    def target(self) -> ChatRef:
        return chat_ref(self.chat)

    @property
    def fingerprint(self) -> str:
        previous = "new" if self.previous_price is None else f"{self.previous_price:.2f}"
        return f"{self.chat}/{self.listing_id}/{self.price:.2f}-{previous}"
