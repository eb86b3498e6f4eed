"""Ingestion service: CSV file → grouped records → Redis hashes.

This is the pipeline behind the file-change trigger. Each source table has a
grouping column (storeNum for stores, zip for postal codes); every other
column becomes a field of the hash <prefix>:<group value>.

Flow:
1. Stream rows from the CSV file
2. Buffer rows into groups (a row with a key value selects its group, a row
   with an empty key value attaches to the group selected last)
3. Validate required numeric fields; reject incomplete records
4. Write each record with one HSET (best effort: failures are logged)

Re-running on an unchanged file writes identical hashes.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
import logging
import math
from pathlib import Path

from locator.errors import CacheUnavailable, IngestionFieldWriteError, SourceFileError
from locator.services.geo import is_postal_code
from locator.settings import get_settings
from locator.stores.redis import PREFIX_STORE, PREFIX_ZIP, CacheStore

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class TableSpec:
    """How one source table maps onto Redis."""

    prefix: str
    key_column: str
    required_numeric: tuple[str, ...] = ()
    integer_fields: tuple[str, ...] = ()


STORE_TABLE = TableSpec(
    prefix=PREFIX_STORE,
    key_column="storeNum",
    required_numeric=("lat", "long"),
    integer_fields=("zip",),
)
ZIP_TABLE = TableSpec(
    prefix=PREFIX_ZIP,
    key_column="zip",
    required_numeric=("lat", "long"),
)


@dataclass
class IngestionStats:
    """Statistics from one ingestion run."""

    source: str = ""
    rows: int = 0
    records: int = 0
    written: int = 0
    rejected: int = 0
    orphans: int = 0
    errors: int = 0


def read_csv_rows(path: str | Path) -> Iterator[dict[str, str]]:
    """Stream rows of a CSV file with a header row."""
    with open(path, newline="", encoding="utf-8-sig") as f:
        for row in csv.DictReader(f):
            yield {k.strip(): (v or "") for k, v in row.items() if k}


def group_rows(
    rows: Iterable[dict[str, str]],
    key_column: str,
    stats: IngestionStats | None = None,
) -> list[tuple[str, dict[str, str]]]:
    """Collect rows into (key value, fields) groups.

    A row whose key column is non-empty selects that group (creating it on
    first sight); its other non-empty cells become fields. A row with an empty
    key column attaches to the group selected most recently. Groups come back
    in first-seen order; a later value for the same field wins.
    """
    stats = stats if stats is not None else IngestionStats()
    groups: dict[str, dict[str, str]] = {}
    current: str | None = None

    for row in rows:
        stats.rows += 1
        key_value = (row.get(key_column) or "").strip()
        if key_value:
            current = key_value
            groups.setdefault(current, {})
        elif current is None:
            stats.orphans += 1
            logger.warning(f"Ingestion row {stats.rows} has no {key_column} and no preceding group, skipped")
            continue

        for column, value in row.items():
            if column == key_column:
                continue
            value = (value or "").strip()
            if value:
                groups[current][column] = value

    return list(groups.items())


def _invalid_reason(fields: dict[str, str], spec: TableSpec) -> str | None:
    for name in spec.required_numeric:
        try:
            value = float(fields.get(name, ""))
        except ValueError:
            return f"missing or non-numeric {name}"
        if not math.isfinite(value):
            return f"non-finite {name}"
    for name in spec.integer_fields:
        if not is_postal_code(fields.get(name, "")):
            return f"missing or non-numeric {name}"
    return None


async def ingest_rows(
    cache: CacheStore,
    rows: Iterable[dict[str, str]],
    spec: TableSpec,
    source: str = "",
) -> IngestionStats:
    """Group, validate and write rows into Redis.

    Write failures are logged and counted; the run always continues.
    """
    stats = IngestionStats(source=source)
    groups = group_rows(rows, spec.key_column, stats)
    stats.records = len(groups)

    for key_value, fields in groups:
        key = f"{spec.prefix}{key_value}"
        reason = _invalid_reason(fields, spec)
        if reason:
            stats.rejected += 1
            logger.warning(f"Rejecting {key}: {reason}")
            continue

        try:
            await cache.put_fields(key, fields)
        except CacheUnavailable as e:
            stats.errors += 1
            err = IngestionFieldWriteError(f"failed to write {key}: {e}")
            logger.error(f"Ingestion error: {err}")
            continue
        stats.written += 1

    logger.info(
        f"Ingestion of {source or spec.prefix} complete: {stats.written}/{stats.records} records written, "
        f"{stats.rejected} rejected, {stats.errors} errors"
    )
    return stats


async def ingest_file(path: str | Path, spec: TableSpec, redis_url: str | None = None) -> IngestionStats:
    """Load one CSV file into Redis over a dedicated connection.

    The connection is released when the file is done, also on failure.
    Rows are grouped before anything is written, so an undecodable file is
    rejected as a whole and the cache keeps its previous records.

    Raises:
        FileNotFoundError: If the file does not exist.
        SourceFileError: If the file is not valid UTF-8 CSV.
    """
    logger.info(f"Ingesting {path} into {spec.prefix}*")
    cache = CacheStore.from_url(redis_url or get_settings().redis_url)
    try:
        return await ingest_rows(cache, read_csv_rows(path), spec, source=str(path))
    except (UnicodeDecodeError, csv.Error) as e:
        logger.error(f"Ingestion of {path} aborted, unreadable source: {e}")
        raise SourceFileError(f"{Path(path).name} is not a readable CSV file: {e}") from e
    finally:
        await cache.close()


def table_for_file(file_name: str) -> TableSpec | None:
    """Map a changed file name to its table, or None if it is not a catalog file."""
    settings = get_settings()
    name = Path(file_name).name
    if name == settings.store_file:
        return STORE_TABLE
    if name == settings.zip_file:
        return ZIP_TABLE
    return None


async def handle_file_change(file_name: str, redis_url: str | None = None) -> IngestionStats | None:
    """Entry point for the file-change trigger.

    Returns:
        Ingestion stats, or None when the file is not a catalog source.
    """
    spec = table_for_file(file_name)
    if spec is None:
        logger.info(f"Ignoring change to {file_name}")
        return None
    path = Path(get_settings().catalog_dir) / Path(file_name).name
    return await ingest_file(path, spec, redis_url=redis_url)
