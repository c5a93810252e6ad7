from contextlib import asynccontextmanager
from fastapi import FastAPI
from app.db.pokemon_store import close_store

# Routers
from app.api.routers.pokemon import router as pokemon_router
from app.api.routers.columns import router as columns_router
from app.api.routers.data import router as data_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Drop the session's table on shutdown."""
    try:
        yield
    finally:
        close_store()


app = FastAPI(title="Pokemon Research Lab", version="0.1", lifespan=lifespan)

app.include_router(data_router)
app.include_router(pokemon_router)
app.include_router(columns_router)
