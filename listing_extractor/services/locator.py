"""Finds listing cards in a search page and the nodes that carry each field.

Every field has a ranked tuple of lookups. They are tried in order and the
first one that matches wins; when none match the field is simply absent.
Avito reshuffles its markup regularly, so a broken selector and a missing
value look the same to the caller.
"""

import logging
from typing import List, NamedTuple, Optional, Sequence

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)


class Lookup(NamedTuple):
    selector: str
    # read the value from this attribute, falling back to the node text
    attribute: Optional[str] = None


ITEM_SELECTOR = 'div[class*="iva-item-root"]'

LINK_LOOKUPS = (Lookup('a[data-marker*="item-title"]'),)
PRICE_LOOKUPS = (
    Lookup('meta[itemprop="price"]', attribute="content"),
    Lookup('span[data-marker*="price"]'),
)
PARAMS_LOOKUPS = (
    Lookup('div[class*="living-params"]'),
    Lookup('p[data-marker*="item-specific-params"]'),
)
FLOOR_LOOKUPS = (
    Lookup('*:-soup-contains-own("этаж")'),
    Lookup('span[data-marker*="item-specific-params"]'),
)
DISTRICT_LOOKUPS = (
    Lookup('div[class*="geo-georeferences"] span'),
    Lookup('div[data-marker*="item-address"] span'),
)


class ItemSources(NamedTuple):
    """Raw text sources found in one card. ``None`` means not found."""

    href: str
    title: str
    price_text: Optional[str] = None
    params_text: Optional[str] = None
    floor_text: Optional[str] = None
    district_text: Optional[str] = None


def locate_items(document: BeautifulSoup) -> List[Tag]:
    return document.select(ITEM_SELECTOR)


def first_match(node: Tag, lookups: Sequence[Lookup]) -> Optional[tuple[Tag, Lookup]]:
    for lookup in lookups:
        found = node.select_one(lookup.selector)
        if found is not None:
            return found, lookup
    return None


def _node_value(node: Tag, lookup: Lookup) -> str:
    if lookup.attribute:
        value = node.get(lookup.attribute)
        if value is not None:
            return value if isinstance(value, str) else " ".join(value)
    return node.get_text()


def read_lookup(node: Tag, lookups: Sequence[Lookup]) -> Optional[str]:
    match = first_match(node, lookups)
    if match is None:
        return None
    found, lookup = match
    return _node_value(found, lookup)


def locate_sources(item: Tag) -> Optional[ItemSources]:
    """Collect every text source of a card, or ``None`` when it has no link."""
    match = first_match(item, LINK_LOOKUPS)
    if match is None:
        return None
    link, _ = match
    href = (link.get("href") or "").strip()
    if not href:
        return None

    district = read_lookup(item, DISTRICT_LOOKUPS)
    return ItemSources(
        href=href,
        title=link.get("title") or "",
        price_text=read_lookup(item, PRICE_LOOKUPS),
        params_text=read_lookup(item, PARAMS_LOOKUPS),
        floor_text=read_lookup(item, FLOOR_LOOKUPS),
        district_text=district.strip() if district is not None else None,
    )
