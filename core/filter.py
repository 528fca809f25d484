from core.models import RawListing, SearchSpec


def _haystack(listing: RawListing) -> tuple[str, str]:
    return listing.title.lower(), listing.description.lower()


def matches_include_terms(listing: RawListing, spec: SearchSpec) -> bool:
    if not spec.include_terms:
        return True
    title, description = _haystack(listing)
    return all(
        term.lower() in title or term.lower() in description for term in spec.include_terms
    )


def matches_exclude_terms(listing: RawListing, spec: SearchSpec) -> bool:
    if not spec.exclude_terms:
        return True
    title, description = _haystack(listing)
    return not any(
        term.lower() in title or term.lower() in description for term in spec.exclude_terms
    )


def apply_filters(listing: RawListing, spec: SearchSpec) -> bool:
    return matches_exclude_terms(listing, spec) and matches_include_terms(listing, spec)
