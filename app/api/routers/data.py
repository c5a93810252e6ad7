import io
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from app.db.pokemon_store import PokemonStore, get_store
from app.errors import BusyError, EmptyExportError, FormatError, NetworkError
from app.models.pokemon import POKEMON_FIELDS, ColumnMapping
from app.services.csv_service import export_filename, export_to_csv, read_headers
from app.services.session_service import run_fetch, run_import


router = APIRouter(tags=["data"])


class FetchRequest(BaseModel):
    batch_size: Optional[int] = Field(None, ge=1, le=500, description="Concurrent detail requests per batch")
    limit: Optional[int] = Field(None, ge=1, description="Catalog listing limit")


class CsvSourceRequest(BaseModel):
    """Either a server-side path (relative to the project root) or inline CSV text."""

    path: Optional[str] = None
    content: Optional[str] = None


class CsvImportRequest(CsvSourceRequest):
    mappings: List[ColumnMapping]
    register_columns: bool = True


def _source(req: CsvSourceRequest):
    if req.content is not None:
        return io.StringIO(req.content, newline="")
    if req.path:
        if not req.path.lower().endswith(".csv"):
            raise HTTPException(status_code=400, detail="Please upload a CSV file")
        return req.path
    raise HTTPException(status_code=400, detail="Either path or content is required")


@router.post("/pokemon/fetch")
async def api_fetch_pokemon(req: Optional[FetchRequest] = None, store: PokemonStore = Depends(get_store)):
    """Replace the table with the full PokeAPI catalog."""
    req = req or FetchRequest()
    try:
        result = await run_fetch(store, batch_size=req.batch_size, list_limit=req.limit)
    except BusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except NetworkError as exc:
        raise HTTPException(status_code=502, detail=f"Failed to fetch Pokemon data: {exc}")
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Failed to fetch Pokemon data: {exc}")
    return {"status": "ok", **result.summary()}


@router.get("/csv/fields")
def api_csv_fields():
    """Base fields a CSV column can be mapped to, with suggested data types."""
    return POKEMON_FIELDS


@router.post("/csv/headers")
def api_csv_headers(req: CsvSourceRequest):
    try:
        headers = read_headers(_source(req))
    except (FileNotFoundError, FormatError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"headers": headers}


@router.post("/csv/import")
def api_csv_import(req: CsvImportRequest, store: PokemonStore = Depends(get_store)):
    try:
        records = run_import(store, _source(req), req.mappings, register_columns=req.register_columns)
    except HTTPException:
        raise
    except BusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except (FileNotFoundError, FormatError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Error processing CSV file: {exc}")
    return {
        "status": "ok",
        "imported": len(records),
        "columns": [c.model_dump(by_alias=True) for c in store.columns()],
    }


@router.get("/csv/export")
def api_csv_export(store: PokemonStore = Depends(get_store)):
    try:
        text = export_to_csv(store.records(), store.columns())
    except EmptyExportError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return Response(
        content=text,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={export_filename()}"},
    )
