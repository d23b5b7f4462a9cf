import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from listing_extractor.schemas.listing import Channel, Diagnostic

logger = logging.getLogger(__name__)


def make_diagnostic(page: int, channel: Channel, message: str, timestamp: Optional[datetime] = None) -> Diagnostic:
    return Diagnostic(timestamp=timestamp or datetime.now(), page=page, channel=channel, message=message)


class DiagnosticsSink(ABC):
    @abstractmethod
    def emit(self, event: Diagnostic) -> None:  # pragma: no cover - interface
        """Record one parse or load failure."""

    def report(self, page: int, channel: Channel, message: str) -> Diagnostic:
        event = make_diagnostic(page, channel, message)
        self.emit(event)
        return event


class MemorySink(DiagnosticsSink):
    def __init__(self) -> None:
        self.events: List[Diagnostic] = []

    def emit(self, event: Diagnostic) -> None:
        self.events.append(event)

    def by_channel(self, channel: Channel) -> List[Diagnostic]:
        return [event for event in self.events if event.channel == channel]


class LoggingSink(DiagnosticsSink):
    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self.log = log or logger

    def emit(self, event: Diagnostic) -> None:
        self.log.warning("[%s] page=%s %s", event.channel, event.page, event.message)


class FileSink(DiagnosticsSink):
    """Appends one line per event to the parse or load error log."""

    def __init__(self, parse_log: Path, load_log: Path) -> None:
        self.paths = {"parse": Path(parse_log), "load": Path(load_log)}

    def emit(self, event: Diagnostic) -> None:
        line = f"[{event.timestamp:%Y-%m-%d %H:%M:%S}] Page {event.page}: {event.message}\n"
        with self.paths[event.channel].open("a", encoding="utf-8") as handle:
            handle.write(line)


class FanOutSink(DiagnosticsSink):
    def __init__(self, *sinks: DiagnosticsSink) -> None:
        self.sinks = sinks

    def emit(self, event: Diagnostic) -> None:
        for sink in self.sinks:
            sink.emit(event)
