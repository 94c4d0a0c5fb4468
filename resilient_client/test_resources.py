"""Tests for resource endpoint helpers."""

import asyncio
import json

import httpx

from resilient_client import MAX_PAGE_SIZE, PageMeta, ResourceEndpoint


def test_page_meta_total_pages():
    meta = PageMeta(total=25, page=2, limit=10)

    assert meta.total_pages == 3
    assert meta.has_next is True
    assert PageMeta(total=0, page=1, limit=10).total_pages == 0
    assert PageMeta(total=5, page=1, limit=0).total_pages == 0


def test_list_parses_meta_and_clamps_limit(make_client):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={
            "data": [{"id": 1}],
            "meta": {"total": 1, "page": 1, "limit": MAX_PAGE_SIZE},
        })

    async def scenario():
        async with make_client(handler) as client:
            barques = ResourceEndpoint(client, "barques")
            return await barques.list(page=1, limit=500, status="active", search=None)

    data, meta = asyncio.run(scenario())

    params = seen[0].url.params
    assert seen[0].url.path == "/barques"
    assert params["limit"] == str(MAX_PAGE_SIZE)
    assert params["status"] == "active"
    assert "search" not in params
    assert data == [{"id": 1}]
    assert isinstance(meta, PageMeta)
    assert meta.total == 1


def test_crud_paths_and_verbs(make_client):
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path, request.content))
        if request.method == "DELETE":
            return httpx.Response(204)
        return httpx.Response(200, json={"data": {"id": "b1"}})

    async def scenario():
        async with make_client(handler) as client:
            barques = ResourceEndpoint(client, "/barques/")
            created = await barques.create({"name": "Sea", "port": None})
            fetched = await barques.retrieve("b1")
            await barques.update("b1", {"name": "Sea 2"})
            await barques.partial_update("b1", {"capacity": 4})
            await barques.destroy("b1")
            return created, fetched, barques.sub_path("b1", "assignments")

    created, fetched, assignments_path = asyncio.run(scenario())

    assert created == fetched == {"id": "b1"}
    assert assignments_path == "/barques/b1/assignments"
    assert [(method, path) for method, path, _ in seen] == [
        ("POST", "/barques"),
        ("GET", "/barques/b1"),
        ("PUT", "/barques/b1"),
        ("PATCH", "/barques/b1"),
        ("DELETE", "/barques/b1"),
    ]
    assert json.loads(seen[0][2]) == {"name": "Sea"}


def test_create_is_retried_only_when_idempotent(make_client, sleeper):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(502)
        return httpx.Response(201, json={"data": {"id": "a1"}})

    async def scenario():
        async with make_client(handler) as client:
            assignments = ResourceEndpoint(client, "/barques/b1/assignments")
            return await assignments.create({"gerantId": "g1"}, idempotent=True)

    assert asyncio.run(scenario()) == {"id": "a1"}
    assert len(calls) == 2
    assert len(sleeper.delays) == 1
