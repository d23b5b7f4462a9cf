from pathlib import Path

import httpx
import pytest

from listing_extractor.connectors.avito import (
    AvitoConnector,
    ScanStatus,
    extract_page,
    parse_document,
)
from listing_extractor.core.config import Settings
from listing_extractor.services.diagnostics import MemorySink

FIXTURES = Path(__file__).parent / "fixtures"


def _read_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def _settings(tmp_path: Path, **overrides) -> Settings:
    values = {
        "cache_dir": tmp_path,
        "pages": 3,
        "use_saved_html": True,
        "min_delay_seconds": 0,
        "max_delay_seconds": 0,
        "parse_error_log": tmp_path / "parse_errors.log",
        "load_error_log": tmp_path / "load_errors.log",
    }
    values.update(overrides)
    return Settings(**values)


def _cache(tmp_path: Path, page: int, fixture: str) -> None:
    (tmp_path / f"debug_page_{page}.html").write_text(_read_fixture(fixture), encoding="utf-8")


def _failing_client() -> httpx.Client:
    def transport(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request {request.url}")

    return httpx.Client(transport=httpx.MockTransport(transport))


def test_extract_page_parses_cards():
    sink = MemorySink()
    scan = extract_page(parse_document(_read_fixture("avito_search_page1.html")), 1, sink)

    assert scan.status is ScanStatus.OK
    assert len(scan.records) == 3

    first, second, studio = scan.records
    assert first.url == "https://www.avito.ru/ulyanovsk/kvartiry/2-k._kvartira_54m_59et._1001"
    assert first.price == 4_350_000
    assert first.area == 54.3
    assert first.rooms == 2
    assert (first.floor, first.total_floors) == (5, 9)
    assert first.district == "р-н Ленинский"

    assert second.price == 2_350_000
    assert second.rooms == 3
    assert second.area == 61.0
    assert (second.floor, second.total_floors) == (3, 10)
    assert second.district == "ул. Гончарова, 12"

    assert studio.price == 0
    assert studio.rooms == 0
    assert studio.area == 25.0
    assert (studio.floor, studio.total_floors) == (2, 5)
    assert studio.district == "Не указан"

    assert len(sink.events) == 1
    assert sink.events[0].channel == "parse"
    assert sink.events[0].page == 1


def test_extract_page_skips_card_without_link_silently():
    html = (
        '<div class="iva-item-root-x"><meta itemprop="price" content="100"></div>'
        '<div class="iva-item-root-x">'
        '<a data-marker="item-title" href="/item/2" title="1-к, 30 м², 1/5 эт."></a>'
        "</div>"
    )
    sink = MemorySink()
    scan = extract_page(parse_document(html), 2, sink)
    assert [record.url for record in scan.records] == ["https://www.avito.ru/item/2"]
    assert sink.events == []


def test_extract_page_skips_failing_card_only(monkeypatch):
    from listing_extractor.connectors import avito

    calls = {"count": 0}
    real_build = avito.build_record

    def flaky_build(*args, **kwargs):
        calls["count"] += 1
        if calls["count"] == 1:
            raise ValueError("broken card")
        return real_build(*args, **kwargs)

    monkeypatch.setattr(avito, "build_record", flaky_build)
    sink = MemorySink()
    scan = extract_page(parse_document(_read_fixture("avito_search_page2.html") * 2), 3, sink)

    assert len(scan.records) == 1
    assert len(sink.by_channel("parse")) == 1
    assert "broken card" in sink.events[0].message


def test_extract_page_detects_block_and_empty_pages():
    sink = MemorySink()
    blocked = extract_page(parse_document(_read_fixture("avito_blocked.html")), 1, sink)
    empty = extract_page(parse_document(_read_fixture("avito_empty.html")), 1, sink)
    assert blocked == (ScanStatus.BLOCKED, [])
    assert empty == (ScanStatus.EMPTY, [])
    assert sink.events == []


def test_extract_page_is_idempotent():
    html = _read_fixture("avito_search_page1.html")
    first = extract_page(parse_document(html), 1, MemorySink())
    second = extract_page(parse_document(html), 1, MemorySink())
    assert [r.model_dump_json() for r in first.records] == [r.model_dump_json() for r in second.records]


def test_fetch_listings_reads_cached_pages_in_order(tmp_path):
    _cache(tmp_path, 1, "avito_search_page1.html")
    _cache(tmp_path, 2, "avito_search_page2.html")
    _cache(tmp_path, 3, "avito_empty.html")
    sink = MemorySink()
    connector = AvitoConnector(settings=_settings(tmp_path), client=_failing_client(), sink=sink)

    records = connector.fetch_listings()

    assert [record.url.rsplit("_", 1)[-1] for record in records] == ["1001", "1002", "1004", "1005"]
    assert (tmp_path / "error_debug_page_3.html").exists()
    assert len(sink.by_channel("parse")) == 1


def test_fetch_listings_stops_on_block(tmp_path):
    _cache(tmp_path, 1, "avito_search_page2.html")
    _cache(tmp_path, 2, "avito_blocked.html")
    _cache(tmp_path, 3, "avito_search_page1.html")
    connector = AvitoConnector(settings=_settings(tmp_path), client=_failing_client(), sink=MemorySink())

    records = connector.fetch_listings()

    assert len(records) == 1
    assert not (tmp_path / "error_debug_page_2.html").exists()


def test_fetch_listings_fetches_live_pages_and_caches_them(tmp_path):
    requested = []
    pages = {
        "1": _read_fixture("avito_search_page1.html"),
        "2": _read_fixture("avito_search_page2.html"),
    }

    def transport(request: httpx.Request) -> httpx.Response:
        requested.append(request)
        page = request.url.params.get("p")
        if page in pages:
            return httpx.Response(200, text=pages[page])
        return httpx.Response(200, text=_read_fixture("avito_empty.html"))

    settings = _settings(tmp_path, use_saved_html=False)
    client = httpx.Client(transport=httpx.MockTransport(transport))
    connector = AvitoConnector(settings=settings, client=client, sink=MemorySink())

    records = connector.fetch_listings()

    assert len(records) == 4
    assert [request.url.params["p"] for request in requested] == ["1", "2", "3"]
    assert requested[0].url.path == "/ulyanovsk/kvartiry/prodam/vtorichka-ASgBAQICAUSSA8YQAUDmBxSMUg"
    assert requested[0].headers["Accept-Language"].startswith("ru-RU")
    assert all(request.headers["User-Agent"] == settings.user_agent for request in requested)
    assert (tmp_path / "debug_page_1.html").read_text(encoding="utf-8") == pages["1"]


def test_fetch_listings_skips_page_that_fails_to_load(tmp_path):
    _cache(tmp_path, 2, "avito_search_page2.html")

    def transport(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    sink = MemorySink()
    connector = AvitoConnector(
        settings=_settings(tmp_path, pages=2),
        client=httpx.Client(transport=httpx.MockTransport(transport)),
        sink=sink,
    )

    records = connector.fetch_listings()

    assert len(records) == 1
    load_events = sink.by_channel("load")
    assert len(load_events) == 1
    assert load_events[0].page == 1


@pytest.mark.parametrize("page, expected", [(1, "?p=1"), (7, "?p=7")])
def test_build_page_url(tmp_path, page, expected):
    connector = AvitoConnector(settings=_settings(tmp_path, city="/samara/"), sink=MemorySink())
    url = connector.build_page_url(page)
    assert url.startswith("https://www.avito.ru/samara/kvartiry/prodam/")
    assert url.endswith(expected)


def test_extract_page_keeps_card_with_oversized_room_token():
    html = (
        '<div class="iva-item-root-x">'
        f'<a data-marker="item-title" href="/item/9" title="{"9" * 5000}-к квартира, 40 м², 2/5 эт."></a>'
        '<meta itemprop="price" content="3000000">'
        "</div>"
    )
    sink = MemorySink()
    scan = extract_page(parse_document(html), 1, sink)

    assert len(scan.records) == 1
    record = scan.records[0]
    assert record.rooms == 0
    assert record.area == 40.0
    assert (record.floor, record.total_floors) == (2, 5)
    assert sink.events == []
