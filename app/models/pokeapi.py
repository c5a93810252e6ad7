from typing import List, Optional

from pydantic import BaseModel, Field


class NamedResource(BaseModel):
    name: str
    url: Optional[str] = None


class PokemonListResponse(BaseModel):
    count: int = 0
    next: Optional[str] = None
    previous: Optional[str] = None
    results: List[NamedResource] = Field(default_factory=list)


class PokemonSprites(BaseModel):
    front_default: Optional[str] = None


class PokemonTypeSlot(BaseModel):
    slot: int = 0
    type: NamedResource


class PokemonStatEntry(BaseModel):
    base_stat: int = 0
    stat: NamedResource


class PokeAPIResponse(BaseModel):
    """Subset of the /pokemon/{name} payload that the table uses."""

    id: int
    name: str
    height: int = 0
    weight: int = 0
    sprites: PokemonSprites = Field(default_factory=PokemonSprites)
    types: List[PokemonTypeSlot] = Field(default_factory=list)
    stats: List[PokemonStatEntry] = Field(default_factory=list)
