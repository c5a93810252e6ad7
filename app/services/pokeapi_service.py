"""PokeAPI client and batched catalog fetcher.

Usage:
- result = await fetch_all_pokemon(on_progress=lambda current, total: ...)

Flow:
1. GET {base}/pokemon?limit=N for the catalog listing. Any failure here raises
   NetworkError and nothing is returned.
2. The listing is cut into batches (default 50). Batches run one after the
   other; inside a batch every detail request runs concurrently.
3. A detail request that fails is logged and left out of the result.
4. on_progress(accumulated, total) is called after each batch.
5. The accumulated rows are sorted by id.

An httpx.AsyncClient can be injected (tests use httpx.MockTransport).
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from app.config import get_batch_size, get_list_limit, get_pokeapi_base_url, get_timeout
from app.errors import NetworkError
from app.models.pokeapi import NamedResource, PokeAPIResponse, PokemonListResponse
from app.models.pokemon import Pokemon

logger = logging.getLogger(__name__)

USER_AGENT = "PokemonResearchLab/0.1"

ProgressCallback = Callable[[int, int], None]

# PokeAPI stat name -> Pokemon attribute
STAT_FIELDS: Dict[str, str] = {
    "hp": "hp",
    "attack": "attack",
    "defense": "defense",
    "special-attack": "special_attack",
    "special-defense": "special_defense",
    "speed": "speed",
}


@dataclass
class FetchResult:
    pokemon: List[Pokemon]
    attempted: int
    failed: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed and len(self.pokemon) == self.attempted

    def summary(self) -> Dict[str, Any]:
        return {
            "attempted": self.attempted,
            "fetched": len(self.pokemon),
            "failed": len(self.failed),
            "failed_names": list(self.failed),
            "complete": self.complete,
        }


def transform_pokemon_data(data: Dict[str, Any]) -> Pokemon:
    """Flatten a /pokemon/{name} payload into a table row."""
    parsed = PokeAPIResponse.model_validate(data)
    stats = {s.stat.name: s.base_stat for s in parsed.stats}
    name = parsed.name[:1].upper() + parsed.name[1:]
    row: Dict[str, Any] = {
        "id": parsed.id,
        "name": name,
        "sprite": parsed.sprites.front_default,
        "types": [t.type.name for t in parsed.types],
        "height": parsed.height,
        "weight": parsed.weight,
    }
    for stat_name, attr in STAT_FIELDS.items():
        row[attr] = stats.get(stat_name) or 0
    return Pokemon(**row)


def _client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=timeout if timeout is not None else get_timeout(),
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        follow_redirects=True,
    )


async def _get_json(client: httpx.AsyncClient, url: str, **params: Any) -> Any:
    try:
        resp = await client.get(url, params=params or None)
    except httpx.HTTPError as exc:
        raise NetworkError(f"Request to {url} failed: {exc}", url=url) from exc
    if resp.status_code < 200 or resp.status_code >= 300:
        raise NetworkError(f"HTTP error! status: {resp.status_code}", url=url, status_code=resp.status_code)
    try:
        return resp.json()
    except ValueError as exc:
        raise NetworkError(f"Invalid JSON from {url}", url=url, status_code=resp.status_code) from exc


async def fetch_pokemon_list(
    client: httpx.AsyncClient,
    *,
    base_url: Optional[str] = None,
    limit: Optional[int] = None,
) -> PokemonListResponse:
    base = (base_url or get_pokeapi_base_url()).rstrip("/")
    url = f"{base}/pokemon"
    data = await _get_json(client, url, limit=limit or get_list_limit())
    try:
        return PokemonListResponse.model_validate(data)
    except ValidationError as exc:
        raise NetworkError(f"Unexpected catalog listing payload from {url}", url=url) from exc


async def fetch_pokemon_details(
    client: httpx.AsyncClient,
    name_or_id: Any,
    *,
    base_url: Optional[str] = None,
) -> Pokemon:
    base = (base_url or get_pokeapi_base_url()).rstrip("/")
    data = await _get_json(client, f"{base}/pokemon/{name_or_id}")
    return transform_pokemon_data(data)


async def _fetch_or_none(client: httpx.AsyncClient, name: str, base_url: Optional[str]) -> Optional[Pokemon]:
    try:
        return await fetch_pokemon_details(client, name, base_url=base_url)
    except Exception as exc:
        # One bad upstream entry must not sink the whole catalog
        logger.warning("Failed to fetch %s: %s", name, exc)
        return None


async def fetch_pokemon_batch(
    client: httpx.AsyncClient,
    entries: Sequence[NamedResource],
    on_progress: Optional[ProgressCallback] = None,
    *,
    batch_size: Optional[int] = None,
    base_url: Optional[str] = None,
) -> FetchResult:
    """Resolve catalog entries to rows, batch_size concurrent requests at a time."""
    size = max(1, int(batch_size or get_batch_size()))
    total = len(entries)
    results: List[Pokemon] = []
    failed: List[str] = []

    for start in range(0, total, size):
        batch = entries[start:start + size]
        fetched = await asyncio.gather(*(_fetch_or_none(client, e.name, base_url) for e in batch))
        for entry, pokemon in zip(batch, fetched):
            if pokemon is None:
                failed.append(entry.name)
            else:
                results.append(pokemon)
        logger.debug("Fetched batch %d-%d: %d/%d rows so far", start + 1, start + len(batch), len(results), total)
        if on_progress:
            try:
                on_progress(len(results), total)
            except Exception:
                logger.exception("Progress callback failed")

    return FetchResult(pokemon=results, attempted=total, failed=failed)


async def fetch_all_pokemon(
    on_progress: Optional[ProgressCallback] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
    base_url: Optional[str] = None,
    batch_size: Optional[int] = None,
    list_limit: Optional[int] = None,
    timeout: Optional[float] = None,
) -> FetchResult:
    """Fetch the whole catalog and return rows sorted by id.

    Raises NetworkError only when the catalog listing itself cannot be
    obtained; individual detail failures show up in FetchResult.failed.
    """
    owns_client = client is None
    http = client or _client(timeout)
    try:
        try:
            listing = await fetch_pokemon_list(http, base_url=base_url, limit=list_limit)
        except NetworkError as exc:
            logger.error("Error fetching Pokemon list: %s", exc)
            raise
        result = await fetch_pokemon_batch(
            http,
            listing.results,
            on_progress,
            batch_size=batch_size,
            base_url=base_url,
        )
    finally:
        if owns_client:
            await http.aclose()

    result.pokemon.sort(key=lambda p: p.id)
    if result.failed:
        logger.warning("Fetched %d of %d Pokemon; %d failed", len(result.pokemon), result.attempted, len(result.failed))
    return result
