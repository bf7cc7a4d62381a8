"""Tests for ResponseError and the response classifier."""

from __future__ import annotations

import httpx
import pytest

from gotfetch.errors import (
    TOO_MANY_REDIRECTS,
    GotFetchError,
    RequestCancelled,
    ResponseError,
    classify,
    too_many_redirects,
)


class TestResponseError:
    def test_status_fields_mirror_each_other(self) -> None:
        error = ResponseError("Not Found", 404, {"detail": "missing"})
        assert str(error) == "Not Found"
        assert error.status == error.status_code == 404
        assert error.status_text == error.message == "Not Found"
        assert error.body == {"detail": "missing"}
        assert error.kind == "ResponseError"

    def test_to_dict_uses_wire_names(self) -> None:
        error = ResponseError("Unauthorized", 401, "Unauthorized")
        assert error.to_dict() == {
            "kind": "ResponseError",
            "message": "Unauthorized",
            "status": 401,
            "statusCode": 401,
            "statusText": "Unauthorized",
            "body": "Unauthorized",
        }

    def test_too_many_redirects_is_synthetic_429(self) -> None:
        error = too_many_redirects()
        assert error.message == TOO_MANY_REDIRECTS == "ERR_TOO_MANY_REDIRECTS"
        assert error.status == 429
        assert error.body is None

    def test_cancelled_is_distinct_from_response_error(self) -> None:
        error = RequestCancelled("search")
        assert isinstance(error, GotFetchError)
        assert not isinstance(error, ResponseError)
        assert error.kind == "Cancelled"
        assert error.name == "search"


REQUEST = httpx.Request("GET", "http://testserver/resource")


def _response(status: int, **kwargs) -> httpx.Response:
    return httpx.Response(status, request=REQUEST, **kwargs)


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


@pytest.mark.asyncio
async def test_classify_parses_json_body() -> None:
    response = _response(500, json={"status": 500, "error": "Internal Server Error"})
    error = await classify(response)
    assert error.status == 500
    assert error.status_text == "Internal Server Error"
    assert error.body == {"status": 500, "error": "Internal Server Error"}


@pytest.mark.asyncio
async def test_classify_keeps_plain_text_as_string() -> None:
    response = _response(401, text="Unauthorized")
    error = await classify(response)
    assert error.status == 401
    assert error.message == "Unauthorized"
    assert error.body == "Unauthorized"


@pytest.mark.asyncio
async def test_classify_drains_streamed_body_and_closes() -> None:
    response = _response(
        502,
        headers={"Content-Type": "text/plain"},
        content=_chunks(b'{"retry":', b' false}'),
    )
    error = await classify(response)
    assert error.body == {"retry": False}
    assert response.is_closed


@pytest.mark.asyncio
async def test_classify_degrades_malformed_json_to_text() -> None:
    response = _response(
        500,
        headers={"Content-Type": "application/json; charset=utf-8"},
        content=b"{not json",
    )
    error = await classify(response)
    assert error.body == "{not json"


@pytest.mark.asyncio
async def test_classify_content_type_match_is_case_insensitive() -> None:
    response = _response(
        400,
        headers={"Content-Type": "Application/JSON"},
        content=b'{"field": "required"}',
    )
    error = await classify(response)
    assert error.body == {"field": "required"}


@pytest.mark.asyncio
async def test_classify_empty_body_is_none() -> None:
    error = await classify(_response(503))
    assert error.status == 503
    assert error.message == "Service Unavailable"
    assert error.body is None
