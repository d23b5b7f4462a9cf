import logging
import time
from pathlib import Path
from random import uniform
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup

from listing_extractor.core.config import Settings, get_settings
from listing_extractor.schemas.listing import UNSPECIFIED_DISTRICT, ListingRecord, PageScan, ScanStatus
from listing_extractor.services.diagnostics import DiagnosticsSink, LoggingSink
from listing_extractor.services.locator import locate_items, locate_sources
from listing_extractor.services.resolver import build_record

from .base import BaseConnector

logger = logging.getLogger(__name__)

BASE_URL = "https://www.avito.ru"
BLOCK_MARKER = "Доступ ограничен"


def parse_document(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def extract_page(
    document: BeautifulSoup,
    page: int,
    sink: DiagnosticsSink,
    base_url: str = BASE_URL,
    block_marker: str = BLOCK_MARKER,
    unspecified_district: str = UNSPECIFIED_DISTRICT,
) -> PageScan:
    """Turn one parsed search page into records.

    Cards without a title link are dropped silently. Any other failure inside
    a card is reported to ``sink`` and only that card is skipped.
    """
    if block_marker and block_marker in str(document):
        return PageScan(ScanStatus.BLOCKED, [])

    items = locate_items(document)
    if not items:
        return PageScan(ScanStatus.EMPTY, [])

    records: List[ListingRecord] = []
    for index, item in enumerate(items):
        try:
            sources = locate_sources(item)
            if sources is None:
                continue
            records.append(build_record(sources, base_url, page, sink, unspecified_district))
        except Exception as exc:
            logger.exception("Failed to parse item %s on page %s", index, page)
            sink.report(page, "parse", f"Failed to parse item {index}: {exc!r}")
    logger.debug("Page %s: %s cards, %s records", page, len(items), len(records))
    return PageScan(ScanStatus.OK, records)


class AvitoConnector(BaseConnector):
    name = "avito"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.Client] = None,
        sink: Optional[DiagnosticsSink] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.sink = sink or LoggingSink()
        self.cache_dir = Path(self.settings.cache_dir)
        self.min_delay = max(self.settings.min_delay_seconds, 0)
        self.max_delay = max(self.settings.max_delay_seconds, self.min_delay)
        self._client = client
        self._owns_client = client is None

    def close(self) -> None:
        if self._client and self._owns_client:
            self._client.close()
            self._client = None

    def _headers(self) -> dict:
        return {
            "User-Agent": self.settings.user_agent,
            "Accept-Language": self.settings.accept_language,
        }

    def _client_or_default(self) -> httpx.Client:
        if self._client:
            return self._client
        self._client = httpx.Client(
            headers=self._headers(),
            timeout=self.settings.request_timeout_seconds,
            follow_redirects=True,
        )
        return self._client

    def _delay(self) -> None:
        if self.max_delay:
            time.sleep(uniform(self.min_delay, self.max_delay))

    def build_page_url(self, page: int) -> str:
        base = self.settings.base_url.rstrip("/")
        city = self.settings.city.strip("/")
        path = self.settings.search_path.strip("/")
        return f"{base}/{city}/{path}?p={page}"

    def cache_path(self, page: int) -> Path:
        return self.cache_dir / f"debug_page_{page}.html"

    def error_dump_path(self, page: int) -> Path:
        return self.cache_dir / f"error_debug_page_{page}.html"

    def _fetch_html(self, url: str) -> str:
        # injected clients may lack the configured headers
        response = self._client_or_default().get(url, headers=self._headers())
        response.raise_for_status()
        return response.text

    def load_page(self, page: int) -> str:
        cached = self.cache_path(page)
        if self.settings.use_saved_html and cached.exists():
            logger.info("Using saved page %s", cached)
            return cached.read_text(encoding="utf-8")

        url = self.build_page_url(page)
        logger.info("[avito] fetching %s", url)
        html = self._fetch_html(url)
        cached.parent.mkdir(parents=True, exist_ok=True)
        cached.write_text(html, encoding="utf-8")
        logger.info("Saved page %s to %s", page, cached)
        self._delay()
        return html

    def parse_page(self, html: str, page: int) -> PageScan:
        return extract_page(
            parse_document(html),
            page,
            self.sink,
            base_url=self.settings.base_url,
            block_marker=self.settings.block_marker,
            unspecified_district=self.settings.unspecified_district,
        )

    def _dump_empty_page(self, html: str, page: int) -> None:
        target = self.error_dump_path(page)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(html, encoding="utf-8")
        except OSError as exc:
            logger.warning("Unable to save empty page %s: %s", page, exc)
            return
        logger.info("Empty page saved to %s", target)

    def fetch_listings(self) -> List[ListingRecord]:
        records: List[ListingRecord] = []
        for page in range(1, self.settings.pages + 1):
            logger.info("Processing page %s", page)
            try:
                html = self.load_page(page)
                scan = self.parse_page(html, page)
            except Exception as exc:
                logger.warning("Failed to load page %s: %s", page, exc)
                self.sink.report(page, "load", f"Failed to load page {page}: {exc!r}")
                continue

            if scan.status is ScanStatus.BLOCKED:
                logger.warning("Access blocked on page %s, stopping", page)
                break
            if scan.status is ScanStatus.EMPTY:
                logger.warning("No listing cards on page %s, stopping", page)
                self._dump_empty_page(html, page)
                break

            records.extend(scan.records)
            logger.info("Page %s: %s records", page, len(scan.records))
        return records
