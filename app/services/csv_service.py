"""CSV import/export for the Pokemon table.

Import is two-step: read_headers() lets the caller build column mappings, then
import_with_mapping() streams the rows chunk by chunk and converts each one into
a Pokemon under those mappings. export_to_csv() writes the table back out in a
shape the importer accepts.

Sources may be a path (relative paths resolve against the project root) or an
open text stream.
"""
from __future__ import annotations

import csv
import io
import logging
import math
import os
import re
import time
from contextlib import contextmanager
from typing import IO, Any, Callable, Dict, Iterator, List, Optional, Sequence, Union

from app.config import PROJECT_ROOT, get_import_chunk_size
from app.errors import EmptyExportError, FormatError
from app.models.pokemon import (
    EXPORT_COLUMNS,
    FIELD_ATTRS,
    NUMERIC_FIELDS,
    ColumnMapping,
    CustomColumn,
    Pokemon,
    is_base_field,
)

logger = logging.getLogger(__name__)

CsvSource = Union[str, "os.PathLike[str]", IO[str]]

TRUTHY = {"true", "1", "yes"}
TYPE_SPLIT_RE = re.compile(r"[,/]")
TYPES_JOINER = ", "


def _resolve_path(path: str, project_root: str) -> str:
    """Resolve a possibly relative path against the project root."""
    if os.path.isabs(path):
        return path
    return os.path.join(project_root, path)


@contextmanager
def _open_source(source: CsvSource, project_root: Optional[str] = None) -> Iterator[IO[str]]:
    if isinstance(source, (str, os.PathLike)):
        path = _resolve_path(os.fspath(source), os.path.abspath(project_root or PROJECT_ROOT))
        if not os.path.isfile(path):
            raise FileNotFoundError(f"CSV file not found: {path}")
        with open(path, newline="", encoding="utf-8-sig") as f:
            yield f
    else:
        yield source


def read_headers(source: CsvSource, *, project_root: Optional[str] = None) -> List[str]:
    """Return the first row of the source as the list of headers.

    Only the first row is read. Raises FormatError if the source has no rows.
    """
    with _open_source(source, project_root) as f:
        reader = csv.reader(f)
        try:
            for row in reader:
                if row:
                    return [h.lstrip("\ufeff") if i == 0 else h for i, h in enumerate(row)]
        except csv.Error as exc:
            raise FormatError(f"Malformed CSV: {exc}") from exc
    raise FormatError("No headers found in CSV")


# --- coercion ---

def _to_number(value: Any) -> Union[int, float]:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        num = float(value)
    else:
        s = str(value).strip()
        if not s:
            return 0
        try:
            return int(s)
        except ValueError:
            pass
        try:
            num = float(s)
        except ValueError:
            return 0
    if not math.isfinite(num):
        return 0
    if isinstance(value, int):
        return value
    return int(num) if num.is_integer() else num


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def convert_value(value: Any, data_type: str) -> Any:
    """Coerce a raw cell to the declared type.

    Never raises: non-numeric numbers become 0, booleans are True only for
    'true', '1' or 'yes' (case-insensitive), everything else is stringified.
    """
    if data_type == "number":
        return _to_number(value)
    if data_type == "boolean":
        if isinstance(value, bool):
            return value
        return _to_text(value).lower() in TRUTHY
    return _to_text(value)


def split_types(value: str) -> List[str]:
    return [t.strip().lower() for t in TYPE_SPLIT_RE.split(value) if t.strip()]


def coerce_base_value(name: str, value: Any) -> Any:
    """Convert a value to the type of the fixed field `name`.

    Applied after the mapping's own conversion, so a base field always keeps its
    declared type: numeric stats become numbers, `types` becomes a tag list
    and `name`/`sprite` become text.
    """
    attr = FIELD_ATTRS[name]
    if attr in NUMERIC_FIELDS:
        return _to_number(value)
    if attr == "types":
        if isinstance(value, (list, tuple)):
            return [str(v).strip().lower() for v in value if str(v).strip()]
        return split_types(_to_text(value))
    if attr == "sprite":
        return None if value in (None, "") else _to_text(value)
    return _to_text(value)


def transform_row(row: Dict[str, Any], mappings: Sequence[ColumnMapping], row_index: int) -> Pokemon:
    """Build one Pokemon from a CSV row; blank cells keep the seeded defaults."""
    pokemon = Pokemon(id=row_index + 1)
    for mapping in mappings:
        value = row.get(mapping.csv_header)
        if value is None or value == "":
            continue
        converted = convert_value(value, mapping.data_type)
        if is_base_field(mapping.pokemon_field):
            converted = coerce_base_value(mapping.pokemon_field, converted)
        pokemon.set_field(mapping.pokemon_field, converted)
    return pokemon


def usable_mappings(mappings: Sequence[ColumnMapping]) -> List[ColumnMapping]:
    return [m for m in mappings if (m.pokemon_field or "").strip()]


def import_with_mapping(
    source: CsvSource,
    mappings: Sequence[ColumnMapping],
    on_progress: Optional[Callable[[int], None]] = None,
    *,
    chunk_size: Optional[int] = None,
    project_root: Optional[str] = None,
) -> List[Pokemon]:
    """Stream the CSV and convert every row under the given mappings.

    Contract:
    - on_progress(rows_so_far) runs after each chunk of chunk_size rows
    - blank lines are skipped; row ids are 1-based over the remaining rows
    - any error aborts the whole import; no partial list is returned
    """
    active = usable_mappings(mappings)
    if not active:
        raise ValueError("Please map at least one column")
    size = max(1, int(chunk_size or get_import_chunk_size()))

    results: List[Pokemon] = []
    with _open_source(source, project_root) as f:
        reader = csv.DictReader(f)
        try:
            if not reader.fieldnames:
                raise FormatError("No headers found in CSV")
            chunk: List[Dict[str, Any]] = []
            for row in reader:
                chunk.append(row)
                if len(chunk) >= size:
                    _process_chunk(chunk, active, results, on_progress)
                    chunk = []
            if chunk:
                _process_chunk(chunk, active, results, on_progress)
        except csv.Error as exc:
            logger.exception("Aborting CSV import after %d rows", len(results))
            raise FormatError(f"Malformed CSV: {exc}") from exc
    return results


def _process_chunk(
    chunk: List[Dict[str, Any]],
    mappings: Sequence[ColumnMapping],
    results: List[Pokemon],
    on_progress: Optional[Callable[[int], None]],
) -> None:
    offset = len(results)
    try:
        converted = [transform_row(row, mappings, offset + i) for i, row in enumerate(chunk)]
    except Exception:
        logger.exception("Aborting CSV import at row %d", offset + 1)
        raise
    results.extend(converted)
    logger.debug("Imported %d rows", len(results))
    if on_progress:
        on_progress(len(results))


# --- export ---

def export_columns(columns: Sequence[CustomColumn]) -> List[str]:
    return [*EXPORT_COLUMNS, *(c.id for c in columns)]


def export_to_csv(pokemon: Sequence[Pokemon], columns: Sequence[CustomColumn]) -> str:
    """Serialize rows plus custom columns (in schema order) to CSV text."""
    if not pokemon:
        raise EmptyExportError()
    header = export_columns(columns)
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(header)
    for p in pokemon:
        out = []
        for col in header:
            value = p.get_field(col)
            if col == "types" and isinstance(value, (list, tuple)):
                out.append(TYPES_JOINER.join(_to_text(v) for v in value))
            else:
                out.append(_to_text(value))
        writer.writerow(out)
    return buf.getvalue()


def export_filename(now: Optional[float] = None) -> str:
    millis = int((now if now is not None else time.time()) * 1000)
    return f"pokemon_data_{millis}.csv"


def write_csv(pokemon: Sequence[Pokemon], columns: Sequence[CustomColumn], out_dir: str) -> str:
    """Write the export into out_dir and return the file path."""
    text = export_to_csv(pokemon, columns)
    os.makedirs(out_dir, exist_ok=True)
    path = os.path.join(out_dir, export_filename())
    with open(path, "w", newline="", encoding="utf-8") as f:
        f.write(text)
    return path
