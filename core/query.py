"""Query language for watch searches.

A raw query looks like ``[chat/]include+terms[:exclude+terms][?code=..&km=..&min=..&max=..]``.
Include terms must all appear in a listing, any exclude term rejects it, and
``&`` joins words into a phrase (``iphone&13+pro``).
"""

import re
from urllib.parse import unquote_plus

from core.errors import ParseError
from core.models import ParsedQuery, SearchSpec

ALL = "*"

_PARAMS = {
    "code": "area_code",
    "km": "radius_km",
    "min": "min_price",
    "max": "max_price",
}
_BAD_ESCAPE = re.compile(r"%(?![0-9a-fA-F]{2})")
_INTEGER = re.compile(r"[+-]?\d+")


def normalize_query(query: str) -> str:
    return query.strip().lower().replace(" ", "+")


def parse_query(raw: str, default_chat: str = "") -> ParsedQuery:
    chat, sep, query = raw.partition("/")
    if not sep:
        chat, query = default_chat, raw
    chat = chat.strip().lower()
    query = normalize_query(query)
    return ParsedQuery(id=f"{chat}/{query}", chat=chat, query=query, spec=parse_spec(query))


def parse_spec(query: str) -> SearchSpec:
    section, _, params = query.partition("?")
    filters = _parse_params(params)

    keywords, _, excludes = section.partition(":")
    return SearchSpec(
        keywords=keywords.replace("&", "+"),
        include_terms=_split_terms(keywords),
        exclude_terms=_split_terms(excludes),
        **filters,
    )


def _split_terms(section: str) -> frozenset[str]:
    return frozenset(term.replace("&", " ") for term in section.split("+") if term)


def _unquote(text: str) -> str:
    if _BAD_ESCAPE.search(text):
        raise ParseError(f"couldn't decode query fragment {text!r}")
    try:
        return unquote_plus(text, errors="strict")
    except UnicodeDecodeError as e:
        raise ParseError(f"couldn't decode query fragment {text!r}") from e


def _parse_params(params: str) -> dict[str, int | None]:
    values: dict[str, str] = {}
    for piece in params.split("&"):
        if not piece:
            continue
        if ";" in piece:
            raise ParseError(f"invalid semicolon separator in {piece!r}")
        key, _, value = piece.partition("=")
        values.setdefault(_unquote(key), _unquote(value))

    filters: dict[str, int | None] = {}
    for key, name in _PARAMS.items():
        value = values.get(key, "").strip()
        if not value:
            filters[name] = None
            continue
        if not _INTEGER.fullmatch(value):
            raise ParseError(f"couldn't parse int {value!r} for {key}")
        filters[name] = int(value)
    return filters
