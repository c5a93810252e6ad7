import asyncio

import httpx
import pytest

from app.errors import NetworkError
from app.services.pokeapi_service import fetch_all_pokemon, transform_pokemon_data

BASE = "https://pokeapi.test/api/v2"


def _detail(pid, name):
    return {
        "id": pid,
        "name": name,
        "height": 7,
        "weight": 69,
        "sprites": {"front_default": f"https://img.test/{pid}.png"},
        "types": [{"slot": 1, "type": {"name": "grass"}}, {"slot": 2, "type": {"name": "poison"}}],
        "stats": [
            {"base_stat": 45, "stat": {"name": "hp"}},
            {"base_stat": 49, "stat": {"name": "attack"}},
            {"base_stat": 49, "stat": {"name": "defense"}},
            {"base_stat": 65, "stat": {"name": "special-attack"}},
            {"base_stat": 65, "stat": {"name": "special-defense"}},
            {"base_stat": 45, "stat": {"name": "speed"}},
        ],
    }


def _catalog_transport(count, *, failing=(), listing_status=200, seen=None):
    names = [f"mon{i}" for i in range(1, count + 1)]

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if seen is not None:
            seen.append(request)
        if path.endswith("/pokemon"):
            if listing_status != 200:
                return httpx.Response(listing_status)
            # Listing in reverse id order to check the final sort
            results = [{"name": n, "url": f"{BASE}/pokemon/{n}/"} for n in reversed(names)]
            return httpx.Response(200, json={"count": count, "next": None, "previous": None, "results": results})
        name = path.rsplit("/", 1)[-1]
        if name in failing:
            return httpx.Response(500)
        return httpx.Response(200, json=_detail(int(name[3:]), name))

    return httpx.MockTransport(handler)


def test_transform_pokemon_data_flattens_stats_and_types():
    p = transform_pokemon_data(_detail(1, "bulbasaur"))
    assert p.id == 1
    assert p.name == "Bulbasaur"
    assert p.sprite == "https://img.test/1.png"
    assert p.types == ["grass", "poison"]
    assert (p.hp, p.attack, p.defense) == (45, 49, 49)
    assert (p.special_attack, p.special_defense, p.speed) == (65, 65, 45)
    assert (p.height, p.weight) == (7, 69)


def test_transform_missing_stat_defaults_to_zero():
    data = _detail(2, "ivysaur")
    data["stats"] = [s for s in data["stats"] if s["stat"]["name"] != "speed"]
    data["sprites"] = {"front_default": None}
    p = transform_pokemon_data(data)
    assert p.speed == 0
    assert p.sprite is None


def test_fetch_all_batches_progress_and_partial_failure():
    progress = []
    transport = _catalog_transport(120, failing={"mon7", "mon88"})

    async def run():
        async with httpx.AsyncClient(transport=transport) as client:
            return await fetch_all_pokemon(
                lambda current, total: progress.append((current, total)),
                client=client,
                base_url=BASE,
                batch_size=50,
            )

    result = asyncio.run(run())
    # Listing is reversed: mon88 sits in the first batch, mon7 in the last
    assert progress == [(49, 120), (99, 120), (118, 120)]
    ids = [p.id for p in result.pokemon]
    assert ids == sorted(ids)
    assert 7 not in ids and 88 not in ids
    assert sorted(result.failed) == ["mon7", "mon88"]
    assert result.attempted == 120
    assert result.complete is False


def test_fetch_all_progress_counts_without_failures():
    progress = []
    transport = _catalog_transport(120)

    async def run():
        async with httpx.AsyncClient(transport=transport) as client:
            return await fetch_all_pokemon(
                lambda current, total: progress.append((current, total)),
                client=client,
                base_url=BASE,
                batch_size=50,
            )

    result = asyncio.run(run())
    assert progress == [(50, 120), (100, 120), (120, 120)]
    assert [p.id for p in result.pokemon] == list(range(1, 121))
    assert result.complete is True


def test_fetch_all_listing_failure_raises_network_error():
    transport = _catalog_transport(5, listing_status=503)

    async def run():
        async with httpx.AsyncClient(transport=transport) as client:
            return await fetch_all_pokemon(client=client, base_url=BASE)

    with pytest.raises(NetworkError) as ei:
        asyncio.run(run())
    assert ei.value.status_code == 503


def test_fetch_all_listing_transport_error_raises_network_error():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await fetch_all_pokemon(client=client, base_url=BASE)

    with pytest.raises(NetworkError):
        asyncio.run(run())


def test_fetch_list_uses_limit_query():
    seen = []
    transport = _catalog_transport(2, seen=seen)

    async def run():
        async with httpx.AsyncClient(transport=transport) as client:
            return await fetch_all_pokemon(client=client, base_url=BASE, list_limit=10000)

    asyncio.run(run())
    listing = seen[0]
    assert listing.url.path == "/api/v2/pokemon"
    assert listing.url.params["limit"] == "10000"
