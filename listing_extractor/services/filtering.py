from typing import Iterable, List

from listing_extractor.schemas.listing import ListingRecord


def is_complete(record: ListingRecord) -> bool:
    return record.price > 0 and record.area > 0 and record.rooms > 0 and record.floor > 0


def filter_complete(records: Iterable[ListingRecord]) -> List[ListingRecord]:
    return [record for record in records if is_complete(record)]
