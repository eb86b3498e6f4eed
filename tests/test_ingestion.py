"""Tests for CSV → Redis ingestion."""

import pytest

from locator.errors import SourceFileError
from locator.services import ingestion
from locator.services.ingestion import (
    STORE_TABLE,
    ZIP_TABLE,
    TableSpec,
    group_rows,
    handle_file_change,
    ingest_file,
    ingest_rows,
    read_csv_rows,
)
from locator.settings import get_settings

STORE_CSV = (
    "storeNum,name,zip,lat,long\n"
    "1001,Joplin Main St,64804,37.0634,-94.5133\n"
    "1002,Carthage,64836,37.1765,-94.3102\n"
)


def test_group_rows_grouping_row_then_field_rows() -> None:
    rows = [{"storeNum": "7"}, {"storeNum": "", "lat": "1.0"}, {"storeNum": "", "long": "2.0"}]
    assert group_rows(rows, "storeNum") == [("7", {"lat": "1.0", "long": "2.0"})]


def test_group_rows_one_full_row_per_record() -> None:
    rows = [
        {"zip": "64804", "lat": "37.04", "long": "-94.51"},
        {"zip": "64836", "lat": "37.16", "long": "-94.31"},
    ]
    assert group_rows(rows, "zip") == [
        ("64804", {"lat": "37.04", "long": "-94.51"}),
        ("64836", {"lat": "37.16", "long": "-94.31"}),
    ]


def test_group_rows_merges_reappearing_key() -> None:
    rows = [{"zip": "1", "lat": "1"}, {"zip": "2", "lat": "2"}, {"zip": "1", "long": "9"}]
    assert group_rows(rows, "zip") == [("1", {"lat": "1", "long": "9"}), ("2", {"lat": "2"})]


def test_group_rows_skips_orphans_and_empty_cells() -> None:
    stats = ingestion.IngestionStats()
    rows = [{"zip": "", "lat": "5"}, {"zip": "1", "lat": "1", "long": ""}]
    assert group_rows(rows, "zip", stats) == [("1", {"lat": "1"})]
    assert stats.orphans == 1
    assert stats.rows == 2


async def test_ingest_two_field_rows_produce_one_record(cache, fake_redis) -> None:
    spec = TableSpec(prefix="store:", key_column="storeNum")
    rows = [{"storeNum": "7"}, {"storeNum": "", "name": "Seven"}, {"storeNum": "", "city": "Joplin"}]
    stats = await ingest_rows(cache, rows, spec)
    assert fake_redis.data == {"store:7": {"name": "Seven", "city": "Joplin"}}
    assert stats.records == 1
    assert stats.written == 1


async def test_ingest_rejects_store_without_coordinates(cache, fake_redis) -> None:
    rows = [
        {"storeNum": "1", "zip": "64804", "lat": "37.0", "long": "-94.5"},
        {"storeNum": "2", "zip": "64836", "lat": "", "long": "-94.3"},
        {"storeNum": "3", "zip": "MO-1", "lat": "37.1", "long": "-94.3"},
        {"storeNum": "4", "zip": "6480²", "lat": "37.1", "long": "-94.3"},
    ]
    stats = await ingest_rows(cache, rows, STORE_TABLE)
    assert set(fake_redis.data) == {"store:1"}
    assert stats.rejected == 3


async def test_ingest_continues_after_write_errors(broken_cache) -> None:
    rows = [{"zip": "1", "lat": "1", "long": "1"}, {"zip": "2", "lat": "2", "long": "2"}]
    stats = await ingest_rows(broken_cache, rows, ZIP_TABLE)
    assert stats.errors == 2
    assert stats.written == 0


async def test_reingesting_same_file_is_idempotent(tmp_path, cache, fake_redis) -> None:
    path = tmp_path / "storeList.csv"
    path.write_text(STORE_CSV)

    await ingest_rows(cache, read_csv_rows(path), STORE_TABLE)
    first = {k: dict(v) for k, v in fake_redis.data.items()}
    await ingest_rows(cache, read_csv_rows(path), STORE_TABLE)

    assert fake_redis.data == first
    assert first["store:1001"] == {
        "name": "Joplin Main St",
        "zip": "64804",
        "lat": "37.0634",
        "long": "-94.5133",
    }


async def test_ingest_file_releases_connection(tmp_path, fake_redis, monkeypatch) -> None:
    path = tmp_path / "zipList.csv"
    path.write_text("zip,lat,long\n64804,37.04,-94.51\n")
    monkeypatch.setattr(ingestion.CacheStore, "from_url", classmethod(lambda cls, url: cls(fake_redis)))

    stats = await ingest_file(path, ZIP_TABLE, redis_url="redis://unused")

    assert stats.written == 1
    assert fake_redis.data == {"zip:64804": {"lat": "37.04", "long": "-94.51"}}
    assert fake_redis.closed


async def test_ingest_file_releases_connection_on_missing_file(tmp_path, fake_redis, monkeypatch) -> None:
    monkeypatch.setattr(ingestion.CacheStore, "from_url", classmethod(lambda cls, url: cls(fake_redis)))
    with pytest.raises(FileNotFoundError):
        await ingest_file(tmp_path / "missing.csv", ZIP_TABLE, redis_url="redis://unused")
    assert fake_redis.closed


async def test_ingest_file_rejects_invalid_utf8_without_writing(tmp_path, fake_redis, monkeypatch) -> None:
    path = tmp_path / "zipList.csv"
    path.write_bytes(b"zip,lat,long\n64804,37.04,-94.51\n64836,\xff\xfe,-94.3\n")
    monkeypatch.setattr(ingestion.CacheStore, "from_url", classmethod(lambda cls, url: cls(fake_redis)))

    with pytest.raises(SourceFileError, match="zipList.csv"):
        await ingest_file(path, ZIP_TABLE, redis_url="redis://unused")

    assert fake_redis.data == {}
    assert fake_redis.closed


async def test_handle_file_change_dispatches_by_name(tmp_path, monkeypatch) -> None:
    settings = get_settings()
    monkeypatch.setattr(settings, "catalog_dir", str(tmp_path))
    calls = []

    async def fake_ingest_file(path, spec, redis_url=None):
        calls.append((path.name, spec))
        return ingestion.IngestionStats(source=str(path))

    monkeypatch.setattr(ingestion, "ingest_file", fake_ingest_file)

    assert await handle_file_change(settings.store_file) is not None
    assert await handle_file_change(settings.zip_file) is not None
    assert await handle_file_change("notes.txt") is None
    assert calls == [(settings.store_file, STORE_TABLE), (settings.zip_file, ZIP_TABLE)]
