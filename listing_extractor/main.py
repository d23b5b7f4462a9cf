import logging

from listing_extractor.core.config import get_settings
from listing_extractor.core.logging_config import setup_logging
from listing_extractor.workers.jobs import collect_listings

logger = logging.getLogger(__name__)


def run() -> None:
    setup_logging()
    settings = get_settings()
    logger.info("Starting %s (%s)", settings.app_name, settings.environment)
    listings = collect_listings(settings)
    logger.info("Collected %s listings", len(listings))


if __name__ == "__main__":
    run()
