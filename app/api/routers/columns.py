from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.db.pokemon_store import PokemonStore, get_store
from app.models.pokemon import ColumnType, CustomColumn


router = APIRouter(tags=["columns"])


class ColumnCreate(BaseModel):
    name: str = Field(..., description="Display name, e.g. 'Legendary Status'")
    type: ColumnType = "text"


@router.get("/columns")
def api_list_columns(store: PokemonStore = Depends(get_store)):
    return [c.model_dump(by_alias=True) for c in store.columns()]


@router.post("/columns", status_code=201)
def api_add_column(payload: ColumnCreate, store: PokemonStore = Depends(get_store)):
    """Add a custom column; every existing row gets the type's default value."""
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Please enter a column name")
    try:
        column = CustomColumn.from_name(payload.name, payload.type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    try:
        store.add_column(column)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return column.model_dump(by_alias=True)


@router.delete("/columns/{column_id}")
def api_remove_column(column_id: str, store: PokemonStore = Depends(get_store)):
    # Unknown ids are a no-op
    removed = store.remove_column(column_id)
    return {"removed": removed}
