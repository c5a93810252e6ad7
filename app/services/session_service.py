"""Glue between the data sources and the record store.

run_fetch() and run_import() hold the store's busy guard for the duration of
the operation and only call replace_all() on success, so a failed fetch or
import leaves the current table untouched and records the error message.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from app.db.pokemon_store import PokemonStore
from app.models.pokemon import (
    MAPPING_TO_COLUMN_TYPE,
    ColumnMapping,
    CustomColumn,
    Pokemon,
    column_id_from_name,
    default_for_type,
    is_base_field,
)
from app.services.csv_service import CsvSource, coerce_base_value, convert_value, import_with_mapping, usable_mappings
from app.services.pokeapi_service import FetchResult, fetch_all_pokemon

logger = logging.getLogger(__name__)

COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "eq": lambda a, b: a == b,
    "ne": lambda a, b: a != b,
    "gt": lambda a, b: a > b,
    "ge": lambda a, b: a >= b,
    "lt": lambda a, b: a < b,
    "le": lambda a, b: a <= b,
    "contains": lambda a, b: b in a,
}

COLUMN_TO_MAPPING_TYPE = {column_type: mapping_type for mapping_type, column_type in MAPPING_TO_COLUMN_TYPE.items()}


async def run_fetch(store: PokemonStore, **fetch_kwargs: Any) -> FetchResult:
    with store.begin("fetch"):
        try:
            result = await fetch_all_pokemon(store.set_progress, **fetch_kwargs)
        except Exception as exc:
            store.set_error(str(exc) or "Failed to fetch Pokemon data")
            store.set_progress(0, 0)
            raise
        store.replace_all(result.pokemon)
        store.set_progress(len(result.pokemon), result.attempted)
    logger.info("Loaded %d Pokemon from PokeAPI", len(result.pokemon))
    return result


def run_import(
    store: PokemonStore,
    source: CsvSource,
    mappings: Sequence[ColumnMapping],
    *,
    register_columns: bool = True,
    chunk_size: Optional[int] = None,
) -> List[Pokemon]:
    """Import a CSV into the store.

    With register_columns, mapping targets that are not base fields become
    custom columns so every imported row conforms to the schema. New columns
    and rows are committed together; a failure leaves both untouched.
    """
    with store.begin("import"):
        try:
            active, new_columns = resolve_targets(store, usable_mappings(mappings), register_columns)
            records = import_with_mapping(
                source,
                active,
                lambda rows: store.set_progress(rows, 0),
                chunk_size=chunk_size,
            )
            store.replace_all(records, new_columns)
        except Exception as exc:
            store.set_error(f"Error processing CSV file: {exc}")
            store.set_progress(0, 0)
            raise
        store.set_progress(len(records), len(records))
    logger.info("Loaded %d Pokemon from CSV (%d new columns)", len(records), len(new_columns))
    return records


def resolve_targets(
    store: PokemonStore,
    mappings: Sequence[ColumnMapping],
    register_columns: bool = True,
) -> Tuple[List[ColumnMapping], List[CustomColumn]]:
    """Point every mapping at a base field or a custom column id.

    Targets that are not base fields are reduced to a column id the same way
    column names are. Values bound for an existing column are converted to
    that column's type. Unknown ids become new columns when register_columns is
    set and raise ValueError otherwise. Nothing is written to the store.
    """
    resolved: List[ColumnMapping] = []
    new_columns: Dict[str, CustomColumn] = {}
    for m in mappings:
        target = m.pokemon_field.strip()
        if is_base_field(target):
            resolved.append(m.model_copy(update={"pokemon_field": target}))
            continue
        target = column_id_from_name(target)
        if not target:
            raise ValueError(f"Mapping target does not yield a usable column id: {m.pokemon_field!r}")
        data_type = m.data_type
        column = store.get_column(target) or new_columns.get(target)
        if column is not None:
            data_type = COLUMN_TO_MAPPING_TYPE[column.type]
        elif not is_base_field(target):
            if not register_columns:
                raise ValueError(f"Unknown field: {m.pokemon_field}")
            col_type = MAPPING_TO_COLUMN_TYPE[m.data_type]
            new_columns[target] = CustomColumn(
                id=target,
                name=m.csv_header.strip() or target,
                type=col_type,
                default_value=default_for_type(col_type),
            )
        resolved.append(m.model_copy(update={"pokemon_field": target, "data_type": data_type}))
    return resolved, list(new_columns.values())


def coerce_updates(store: PokemonStore, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Convert edited values to the type of their target field.

    Raises ValueError for a key that is neither a base field nor a column.
    """
    out: Dict[str, Any] = {}
    for key, value in fields.items():
        if is_base_field(key):
            out[key] = coerce_base_value(key, value)
            continue
        column = store.get_column(key)
        if column is None:
            raise ValueError(f"Unknown field: {key}")
        out[key] = convert_value(value, COLUMN_TO_MAPPING_TYPE[column.type])
    return out


def build_predicate(conditions: Sequence[Dict[str, Any]]) -> Callable[[Pokemon], bool]:
    """AND-combine {field, op, value} conditions into a row predicate.

    Rows whose value cannot be compared (missing field, mismatched types) do
    not match.
    """
    checks = []
    for cond in conditions:
        op = cond.get("op") or "eq"
        if op not in COMPARATORS:
            raise ValueError(f"Unsupported operator: {op}")
        checks.append((cond["field"], COMPARATORS[op], cond.get("value")))

    def predicate(pokemon: Pokemon) -> bool:
        for field, compare, expected in checks:
            actual = pokemon.get_field(field)
            if actual is None:
                return False
            try:
                if not compare(actual, expected):
                    return False
            except TypeError:
                return False
        return True

    return predicate
