from __future__ import annotations

import argparse
import asyncio
import logging
import os
from typing import List, Optional

from app.config import PROJECT_ROOT, get_log_level
from app.db.pokemon_store import PokemonStore
from app.models.pokemon import ColumnMapping
from app.services.csv_service import read_headers, write_csv
from app.services.session_service import run_fetch, run_import

logger = logging.getLogger(__name__)


def parse_mapping(text: str) -> ColumnMapping:
    """Parse HEADER:FIELD[:TYPE] into a ColumnMapping (TYPE defaults to string)."""
    parts = text.rsplit(":", 2) if text.count(":") >= 2 else text.split(":", 1)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ValueError(f"Invalid mapping (expected HEADER:FIELD[:TYPE]): {text}")
    data_type = parts[2] if len(parts) > 2 else "string"
    return ColumnMapping(csv_header=parts[0], pokemon_field=parts[1], data_type=data_type)


def _progress(current: int, total: int) -> None:
    logger.info("Fetched %d/%d", current, total)


def run_fetch_export(*, out_dir: str, batch_size: Optional[int] = None, limit: Optional[int] = None) -> str:
    store = PokemonStore()
    result = asyncio.run(run_fetch(store, batch_size=batch_size, list_limit=limit))
    if not result.complete:
        logger.warning("%d entries could not be fetched: %s", len(result.failed), ", ".join(result.failed))
    return write_csv(store.records(), store.columns(), out_dir)


def run_convert(path: str, mappings: List[ColumnMapping], *, out_dir: str) -> str:
    store = PokemonStore()
    run_import(store, path, mappings)
    return write_csv(store.records(), store.columns(), out_dir)


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Pokemon data acquisition tasks")
    sub = parser.add_subparsers(dest="cmd", required=True)
    default_out = os.path.join(PROJECT_ROOT, "data", "exports")

    fetch = sub.add_parser("fetch", help="Fetch the full PokeAPI catalog and export it to CSV")
    fetch.add_argument("--out-dir", default=default_out, help="Output directory for the CSV export")
    fetch.add_argument("--batch-size", type=int, default=None, help="Concurrent detail requests per batch")
    fetch.add_argument("--limit", type=int, default=None, help="Catalog listing limit")

    headers = sub.add_parser("headers", help="Print the header row of a CSV file")
    headers.add_argument("file", help="CSV file path")

    convert = sub.add_parser("convert", help="Import a CSV with column mappings and export the normalized table")
    convert.add_argument("file", help="CSV file path")
    convert.add_argument(
        "--map",
        dest="mappings",
        action="append",
        required=True,
        help="HEADER:FIELD[:TYPE], TYPE in string|number|boolean (repeatable)",
    )
    convert.add_argument("--out-dir", default=default_out, help="Output directory for the CSV export")

    args = parser.parse_args(argv)
    logging.basicConfig(level=get_log_level(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.cmd == "fetch":
        path = run_fetch_export(out_dir=args.out_dir, batch_size=args.batch_size, limit=args.limit)
        print(path)
        return 0

    if args.cmd == "headers":
        for h in read_headers(os.path.abspath(args.file)):
            print(h)
        return 0

    if args.cmd == "convert":
        try:
            mappings = [parse_mapping(m) for m in args.mappings]
        except ValueError as exc:
            parser.error(str(exc))
        path = run_convert(os.path.abspath(args.file), mappings, out_dir=args.out_dir)
        print(path)
        return 0

    parser.error("unknown command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
