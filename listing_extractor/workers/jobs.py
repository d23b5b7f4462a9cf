import logging
from typing import List, Optional

import httpx

from listing_extractor.connectors.avito import AvitoConnector
from listing_extractor.core.config import Settings, get_settings
from listing_extractor.schemas.listing import ListingRecord
from listing_extractor.services.diagnostics import DiagnosticsSink, FanOutSink, FileSink, LoggingSink
from listing_extractor.services.filtering import filter_complete

logger = logging.getLogger(__name__)


def default_sink(settings: Settings) -> DiagnosticsSink:
    return FanOutSink(LoggingSink(), FileSink(settings.parse_error_log, settings.load_error_log))


def collect_listings(
    settings: Optional[Settings] = None,
    client: Optional[httpx.Client] = None,
    sink: Optional[DiagnosticsSink] = None,
) -> List[ListingRecord]:
    settings = settings or get_settings()
    connector = AvitoConnector(settings=settings, client=client, sink=sink or default_sink(settings))
    try:
        records = connector.fetch_listings()
    finally:
        connector.close()

    complete = filter_complete(records)
    logger.info(
        "[avito] city=%s pages=%s records=%s complete=%s",
        settings.city,
        settings.pages,
        len(records),
        len(complete),
    )
    return complete
