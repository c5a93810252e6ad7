import pytest

from app.db.pokemon_store import PokemonStore, close_store, get_store
from app.errors import BusyError
from app.models.pokemon import CustomColumn, Pokemon


def _store_with(*hps):
    store = PokemonStore()
    store.replace_all([Pokemon(id=i + 1, name=f"mon{i + 1}", hp=hp) for i, hp in enumerate(hps)])
    return store


def test_replace_all_clears_error_and_backfills_schema():
    store = PokemonStore()
    store.add_column(CustomColumn.from_name("Generation", "number"))
    store.set_error("previous failure")
    store.replace_all([Pokemon(id=1), Pokemon(id=2, extra={"generation": 3})])
    assert store.error is None
    assert [p.extra["generation"] for p in store.records()] == [0, 3]


def test_insert_allows_duplicate_ids():
    store = _store_with(10)
    store.insert(Pokemon(id=1, name="dup"))
    assert [p.id for p in store.records()] == [1, 1]


def test_update_merges_first_match_and_noop_when_missing():
    store = _store_with(10, 20)
    updated = store.update(2, {"name": "Renamed", "specialAttack": 99})
    assert updated.name == "Renamed"
    assert updated.special_attack == 99
    assert store.update(42, {"name": "x"}) is None
    assert [p.name for p in store.records()] == ["mon1", "Renamed"]


def test_remove_drops_all_matching():
    store = _store_with(10, 20)
    store.insert(Pokemon(id=1))
    assert store.remove(1) == 2
    assert [p.id for p in store.records()] == [2]
    assert store.remove(99) == 0


def test_add_column_backfills_and_rejects_duplicates():
    store = _store_with(10, 20)
    store.add_column(CustomColumn.from_name("Legendary", "boolean"))
    assert all(p.extra["legendary"] is False for p in store.records())
    with pytest.raises(ValueError):
        store.add_column(CustomColumn.from_name("legendary", "text"))
    assert [c.id for c in store.columns()] == ["legendary"]


def test_add_column_rejects_base_field_ids():
    store = PokemonStore()
    with pytest.raises(ValueError):
        store.add_column(CustomColumn.from_name("HP", "number"))


def test_remove_column_strips_key_and_unknown_is_noop():
    store = _store_with(10)
    store.add_column(CustomColumn.from_name("Notes"))
    assert store.remove_column("missing") is False
    assert store.remove_column("notes") is True
    assert store.columns() == []
    assert "notes" not in store.records()[0].extra


def test_bulk_update_only_touches_matching_rows():
    store = _store_with(50, 101, 100, 150)
    store.add_column(CustomColumn.from_name("Legendary", "boolean"))
    n = store.bulk_update(lambda p: p.hp > 100, {"legendary": True})
    assert n == 2
    flags = {p.hp: p.extra["legendary"] for p in store.records()}
    assert flags == {50: False, 101: True, 100: False, 150: True}


def test_clear_empties_rows_and_schema():
    store = _store_with(1)
    store.add_column(CustomColumn.from_name("Notes"))
    store.set_error("x")
    store.clear()
    assert store.records() == [] and store.columns() == [] and store.error is None


def test_begin_rejects_concurrent_operation_and_releases():
    store = PokemonStore()
    with store.begin("fetch"):
        assert store.status()["busy"] is True
        with pytest.raises(BusyError):
            with store.begin("import"):
                pass
    assert store.is_busy is False

    with pytest.raises(RuntimeError):
        with store.begin("import"):
            raise RuntimeError("boom")
    assert store.is_busy is False


def test_query_sorts_and_paginates():
    store = _store_with(30, 10, 20, 40)
    res = store.query(sort_by="hp", descending=True, page=1, page_size=3)
    assert res["total"] == 4
    assert [p.hp for p in res["items"]] == [40, 30, 20]
    res2 = store.query(sort_by="hp", page=2, page_size=3)
    assert [p.hp for p in res2["items"]] == [40]


def test_query_missing_values_sort_last():
    store = PokemonStore()
    store.replace_all([Pokemon(id=1, sprite=None), Pokemon(id=2, sprite="b"), Pokemon(id=3, sprite="a")])
    res = store.query(sort_by="sprite", descending=True)
    assert [p.id for p in res["items"]] == [2, 3, 1]


def test_module_singleton_lifecycle():
    close_store()
    s1 = get_store()
    assert get_store() is s1
    s1.insert(Pokemon(id=1))
    close_store()
    assert get_store() is not s1
    assert len(get_store()) == 0


def test_edits_reject_keys_outside_schema():
    store = _store_with(10, 20)
    store.add_column(CustomColumn.from_name("Notes"))
    with pytest.raises(ValueError):
        store.update(1, {"foo": 1})
    with pytest.raises(ValueError):
        store.bulk_update(lambda p: True, {"notes": "x", "foo": 1})
    with pytest.raises(ValueError):
        store.insert(Pokemon(id=3, extra={"foo": 1}))
    assert [p.extra for p in store.records()] == [{"notes": ""}, {"notes": ""}]
    assert store.update(1, {"notes": "ok"}).extra == {"notes": "ok"}


def test_replace_all_with_columns_commits_together():
    store = _store_with(10)
    with pytest.raises(ValueError):
        store.replace_all(
            [Pokemon(id=9)],
            [CustomColumn.from_name("Notes"), CustomColumn(id="extra", name="Extra")],
        )
    assert store.columns() == []
    assert [p.id for p in store.records()] == [1]

    store.replace_all([Pokemon(id=2, extra={"notes": "n", "stray": 1})], [CustomColumn.from_name("Notes")])
    assert [c.id for c in store.columns()] == ["notes"]
    assert store.records()[0].extra == {"notes": "n"}
