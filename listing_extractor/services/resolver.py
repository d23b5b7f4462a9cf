import logging
import math
import re
from decimal import Decimal, InvalidOperation
from html import unescape
from typing import Iterable, Optional, TypeVar
from urllib.parse import urljoin

from listing_extractor.schemas.listing import UNSPECIFIED_DISTRICT, ListingRecord
from listing_extractor.services.diagnostics import DiagnosticsSink
from listing_extractor.services.locator import ItemSources

logger = logging.getLogger(__name__)

T = TypeVar("T")

ROOMS_PATTERN = re.compile(r"(\d+)-к")
# both spellings of the unit occur in card markup
AREA_PATTERN = re.compile(r"(\d+[.,]\d+|\d+)\s*м(?:²|\^2)")
TITLE_FLOOR_PATTERN = re.compile(r"(\d+)/(\d+)\s*эт")
BLOCK_FLOOR_PATTERN = re.compile(r"(\d+)\s*/\s*(\d+)")
PRICE_NOISE_PATTERN = re.compile(r"[^\d,.]")

SCALE_WORDS = (
    ("млн", Decimal(1_000_000)),
    ("тыс", Decimal(1_000)),
)


def resolve_field(candidates: Iterable[Optional[T]]) -> Optional[T]:
    """Return the first candidate that was actually parsed.

    ``None`` and zero both mean "unparsed" and are skipped. Pass a generator
    to keep later sources from being evaluated once an earlier one matched.
    """
    for candidate in candidates:
        if candidate is None or candidate == 0:
            continue
        return candidate
    return None


def clean_title(raw: Optional[str]) -> str:
    if not raw:
        return ""
    return unescape(raw).replace("&nbsp;", " ").replace("\xa0", " ")


def _price_scale(text: str) -> Decimal:
    for word, scale in SCALE_WORDS:
        if word in text:
            return scale
    return Decimal(1)


def parse_price(text: Optional[str]) -> Optional[float]:
    if not text or not text.strip():
        return None
    decoded = unescape(text)
    cleaned = PRICE_NOISE_PATTERN.sub("", decoded).replace(",", ".")
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    price = float(value * _price_scale(decoded))
    return price if math.isfinite(price) else None


def match_rooms(text: Optional[str]) -> Optional[int]:
    if not text:
        return None
    match = ROOMS_PATTERN.search(text)
    if not match:
        return None
    try:
        return int(match.group(1))
    except ValueError:
        return None


def match_area(text: Optional[str]) -> Optional[float]:
    if not text:
        return None
    match = AREA_PATTERN.search(text)
    if not match:
        return None
    try:
        area = float(match.group(1).replace(",", "."))
    except ValueError:
        return None
    return area if math.isfinite(area) else None


def _match_floor(pattern: re.Pattern, text: Optional[str]) -> Optional[tuple[int, int]]:
    if not text:
        return None
    match = pattern.search(text)
    if not match:
        return None
    try:
        floor, total = int(match.group(1)), int(match.group(2))
    except ValueError:
        return None
    if floor == 0:
        return None
    return floor, total


def match_title_floor(text: Optional[str]) -> Optional[tuple[int, int]]:
    return _match_floor(TITLE_FLOOR_PATTERN, text)


def match_block_floor(text: Optional[str]) -> Optional[tuple[int, int]]:
    return _match_floor(BLOCK_FLOOR_PATTERN, text)


def build_record(
    sources: ItemSources,
    base_url: str,
    page: int,
    sink: DiagnosticsSink,
    unspecified_district: str = UNSPECIFIED_DISTRICT,
) -> ListingRecord:
    title = clean_title(sources.title)

    price = None
    if sources.price_text is not None:
        price = parse_price(sources.price_text)
        if price is None:
            logger.debug("Unparsed price %r on page %s", sources.price_text, page)
            sink.report(page, "parse", f"Unable to parse price {sources.price_text!r} for {sources.href}")

    rooms = resolve_field(match_rooms(text) for text in (title, sources.params_text))
    area = resolve_field(match_area(text) for text in (title, sources.params_text))
    floors = resolve_field(
        matcher(text)
        for matcher, text in ((match_title_floor, title), (match_block_floor, sources.floor_text))
    )
    floor, total_floors = floors or (0, 0)

    return ListingRecord(
        url=urljoin(base_url, sources.href),
        price=price or 0,
        area=area or 0,
        floor=floor,
        total_floors=total_floors,
        district=sources.district_text or unspecified_district,
        rooms=rooms or 0,
    )
