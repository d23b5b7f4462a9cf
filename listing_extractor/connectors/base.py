from abc import ABC, abstractmethod
from typing import List

from listing_extractor.schemas.listing import ListingRecord, PageScan


class BaseConnector(ABC):
    name: str

    @abstractmethod
    def load_page(self, page: int) -> str:  # pragma: no cover - interface
        """Return the HTML of one search page, from cache or the network."""

    @abstractmethod
    def parse_page(self, html: str, page: int) -> PageScan:  # pragma: no cover - interface
        """Extract listing records from one search page."""

    @abstractmethod
    def fetch_listings(self) -> List[ListingRecord]:  # pragma: no cover - interface
        """Walk the search pages in order and collect every record."""
