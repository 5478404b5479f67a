"""
Tracked pages — the closed set of page ids the tracker accepts.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TrackedPage:
    page_id: str
    label: str


TRACKED_PAGES: dict[str, TrackedPage] = {
    p.page_id: p
    for p in (
        TrackedPage("home", "fyrk.no"),
        TrackedPage("okr", "fyrk.no/okr-sjekken"),
        TrackedPage("konseptspeil", "fyrk.no/konseptspeilet"),
        TrackedPage("antakelseskart", "fyrk.no/antakelseskart"),
        TrackedPage("beslutningslogg", "fyrk.no/beslutningslogg"),
        TrackedPage("premortem", "fyrk.no/verktoy/pre-mortem"),
    )
}

DEFAULT_PAGE_ID = "home"


def is_tracked(page_id: object) -> bool:
    return isinstance(page_id, str) and page_id in TRACKED_PAGES


def resolve_page_id(page_id: object) -> str:
    """Return ``page_id`` if it is tracked, otherwise the default page."""
    if is_tracked(page_id):
        return page_id  # type: ignore[return-value]
    return DEFAULT_PAGE_ID
