#!/usr/bin/env python3
"""Load catalog CSV files into Redis.

Wire this to the storage bucket's change notification: it receives the name
of the changed object and loads it if it is the store or ZIP file. Other
names are ignored.

Usage:
  python -m scripts.load_cache storeList.csv
  python -m scripts.load_cache storeList.csv zipList.csv

Env vars:
  REDIS_URL=redis://localhost:6379/0
  CATALOG_DIR=data
  STORE_FILE=storeList.csv
  ZIP_FILE=zipList.csv
"""

import asyncio
from dataclasses import asdict
import logging
import os
import sys

# Ensure imports work when executed as a script/module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from locator.errors import SourceFileError  # noqa: E402
from locator.services.ingestion import handle_file_change  # noqa: E402


async def main(file_names: list[str]) -> int:
    if not file_names:
        raise SystemExit("usage: python -m scripts.load_cache <file name> [...]")

    failed = 0
    for name in file_names:
        try:
            stats = await handle_file_change(name)
        except (FileNotFoundError, SourceFileError) as e:
            print(f"{name}: failed: {e}", file=sys.stderr)
            failed += 1
            continue
        if stats is None:
            print(f"{name}: ignored")
        else:
            print(f"{name}: {asdict(stats)}")
    return 1 if failed else 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    raise SystemExit(asyncio.run(main(sys.argv[1:])))
