"""Shared fixtures: an in-process mock of the HTTP app the executor talks to."""

from __future__ import annotations

import json

import httpx
import pytest
import pytest_asyncio

from gotfetch.executor import RequestExecutor

BASE_URL = "http://testserver"


def _json_response(status: int, payload) -> httpx.Response:
    return httpx.Response(status, json=payload)


def app(request: httpx.Request) -> httpx.Response:
    """Route table mirroring the integration server used by the original suite."""
    path = request.url.path
    method = request.method

    if method == "POST" and path == "/data":
        try:
            data = json.loads(request.content)
        except ValueError:
            return _json_response(500, {"status": 500, "error": "Invalid JSON or no data at all!"})
        return _json_response(200, {"data": data})

    if method == "POST" and path == "/redirect":
        return httpx.Response(301, headers={"Location": "/data"})

    if method == "POST" and path == "/redirect-loop":
        return httpx.Response(301, headers={"Location": "/redirect-loop"})

    if method == "GET" and path == "/json":
        return _json_response(200, {"data": "ok"})

    if method == "GET" and path.startswith("/status/"):
        code = int(path.rsplit("/", 1)[1])
        phrase = httpx.codes.get_reason_phrase(code)
        return _json_response(code, {"status": code, "error": phrase})

    if method == "GET" and path == "/any":
        return httpx.Response(401, text="Unauthorized")

    return httpx.Response(200, text="Nothing to see here!")


@pytest.fixture
def transport() -> httpx.MockTransport:
    return httpx.MockTransport(app)


@pytest_asyncio.fixture
async def executor(transport):
    async with RequestExecutor(transport=transport) as executor:
        yield executor
