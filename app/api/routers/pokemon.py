from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, ValidationError

from app.db.pokemon_store import PokemonStore, get_store
from app.models.pokemon import Pokemon
from app.services.session_service import build_predicate, coerce_updates


router = APIRouter(tags=["pokemon"])


class BulkCondition(BaseModel):
    field: str
    op: Literal["eq", "ne", "gt", "ge", "lt", "le", "contains"] = "eq"
    value: Any = None


class BulkUpdateRequest(BaseModel):
    """Apply `updates` to every row matching all `where` conditions (empty matches all)."""

    where: List[BulkCondition] = Field(default_factory=list)
    updates: Dict[str, Any]


@router.get("/status")
def api_status(store: PokemonStore = Depends(get_store)):
    return store.status()


@router.get("/pokemon")
def api_list_pokemon(
    sort_by: Optional[str] = Query(None, description="Field or custom column id to sort by"),
    descending: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=1000),
    store: PokemonStore = Depends(get_store),
):
    res = store.query(sort_by=sort_by, descending=descending, page=page, page_size=page_size)
    return {
        **res,
        "items": [p.to_row() for p in res["items"]],
        "columns": [c.model_dump(by_alias=True) for c in store.columns()],
    }


@router.get("/pokemon/{pokemon_id}")
def api_get_pokemon(pokemon_id: int, store: PokemonStore = Depends(get_store)):
    pokemon = store.get(pokemon_id)
    if pokemon is None:
        raise HTTPException(status_code=404, detail="Pokemon not found")
    return pokemon.to_row()


@router.post("/pokemon", status_code=201)
def api_insert_pokemon(payload: Dict[str, Any], store: PokemonStore = Depends(get_store)):
    """Append a row. Keys must be base fields or existing column ids."""
    if "id" not in payload:
        raise HTTPException(status_code=400, detail="id is required")
    try:
        pokemon = Pokemon(id=int(payload["id"]))
    except (TypeError, ValueError, ValidationError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid id: {exc}")
    try:
        pokemon.merge(coerce_updates(store, {k: v for k, v in payload.items() if k != "id"}))
        return store.insert(pokemon).to_row()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.patch("/pokemon/{pokemon_id}")
def api_update_pokemon(pokemon_id: int, updates: Dict[str, Any], store: PokemonStore = Depends(get_store)):
    try:
        pokemon = store.update(pokemon_id, coerce_updates(store, updates))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if pokemon is None:
        raise HTTPException(status_code=404, detail="Pokemon not found")
    return pokemon.to_row()


@router.delete("/pokemon/{pokemon_id}")
def api_delete_pokemon(pokemon_id: int, store: PokemonStore = Depends(get_store)):
    removed = store.remove(pokemon_id)
    if not removed:
        raise HTTPException(status_code=404, detail="Pokemon not found")
    return {"removed": removed}


@router.post("/pokemon/bulk-update")
def api_bulk_update(req: BulkUpdateRequest, store: PokemonStore = Depends(get_store)):
    try:
        predicate = build_predicate([c.model_dump() for c in req.where])
        updated = store.bulk_update(predicate, coerce_updates(store, req.updates))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"updated": updated}


@router.delete("/pokemon")
def api_clear(store: PokemonStore = Depends(get_store)):
    """Drop all rows and custom columns."""
    store.clear()
    return {"status": "ok"}
