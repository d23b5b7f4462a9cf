from datetime import datetime
from enum import Enum
from typing import List, Literal, NamedTuple

from pydantic import BaseModel, ConfigDict, Field

UNSPECIFIED_DISTRICT = "Не указан"

Channel = Literal["parse", "load"]


class ListingRecord(BaseModel):
    """One flat advertisement as extracted from a search result card.

    Numeric fields use 0 for "could not be parsed"; callers decide whether
    such a record is usable.
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(min_length=1)
    price: float = Field(default=0, ge=0, allow_inf_nan=False)
    area: float = Field(default=0, ge=0, allow_inf_nan=False)
    floor: int = Field(default=0, ge=0)
    total_floors: int = Field(default=0, ge=0)
    district: str = Field(default=UNSPECIFIED_DISTRICT, min_length=1)
    rooms: int = Field(default=0, ge=0)


class Diagnostic(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    page: int
    channel: Channel
    message: str


class ScanStatus(str, Enum):
    OK = "ok"
    BLOCKED = "blocked"
    EMPTY = "empty"


class PageScan(NamedTuple):
    status: ScanStatus
    records: List[ListingRecord]
