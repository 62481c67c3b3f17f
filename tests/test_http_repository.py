"""Tests for the HTTP repository adapter using ``httpx.MockTransport``."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from devvault.services.errors import NotFoundError, RepositoryError, ValidationError
from devvault.services.http_repository import HttpItemRepository, HttpRepositorySettings, item_from_payload
from devvault.services.repository import CreateItemRequest, ItemType, UpdateItemRequest

BASE_URL = "http://vault.test/api"


def _payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": 7,
        "type": "snippet",
        "title": "grep",
        "description": None,
        "content": "grep -rn",
        "createdAt": 1700000000,
        "updatedAt": 1700000001,
        "tags": [{"id": 1, "name": "cli"}],
    }
    payload.update(overrides)
    return payload


def _repository(
    handler: Callable[[httpx.Request], httpx.Response],
    **settings: Any,
) -> tuple[HttpItemRepository, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    config = HttpRepositorySettings(base_url=BASE_URL, api_token="secret-token", retry_min_seconds=0, **settings)
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(record),
        base_url=BASE_URL,
        headers={"Authorization": f"Bearer {config.api_token}"},
    )
    return HttpItemRepository(config, client=client), seen


@pytest.mark.asyncio
async def test_create_posts_camel_case_payload() -> None:
    repository, seen = _repository(lambda request: httpx.Response(201, json=_payload()))

    item = await repository.create_item(
        CreateItemRequest(type=ItemType.SNIPPET, title=" grep ", content="grep -rn", tag_names=("cli",))
    )

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/api/items"
    assert json.loads(request.content) == {
        "type": "snippet",
        "title": "grep",
        "content": "grep -rn",
        "tagNames": ["cli"],
    }
    assert request.headers["Authorization"] == "Bearer secret-token"
    assert item.id == 7
    assert item.tag_names() == ["cli"]
    assert item.created_at == 1700000000


@pytest.mark.asyncio
async def test_create_with_empty_title_never_hits_the_network() -> None:
    repository, seen = _repository(lambda request: httpx.Response(201, json=_payload()))

    with pytest.raises(ValidationError):
        await repository.create_item(CreateItemRequest(type=ItemType.NOTE, title="  "))

    assert seen == []


@pytest.mark.asyncio
async def test_update_sends_only_present_fields() -> None:
    repository, seen = _repository(lambda request: httpx.Response(200, json=_payload(content="rg")))

    item = await repository.update_item(UpdateItemRequest(id=7, content="rg", tag_names=()))

    request = seen[0]
    assert request.method == "PATCH"
    assert request.url.path == "/api/items/7"
    assert json.loads(request.content) == {"content": "rg", "tagNames": []}
    assert item.content == "rg"


@pytest.mark.asyncio
async def test_get_maps_404_to_not_found() -> None:
    repository, _ = _repository(lambda request: httpx.Response(404, json={"message": "missing"}))

    with pytest.raises(NotFoundError) as excinfo:
        await repository.get_item(9)

    assert excinfo.value.item_id == 9


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 422])
async def test_validation_statuses_map_to_validation_error(status: int) -> None:
    repository, _ = _repository(
        lambda request: httpx.Response(status, json={"message": "Title cannot be empty.", "field": "title"})
    )

    with pytest.raises(ValidationError) as excinfo:
        await repository.update_item(UpdateItemRequest(id=7, content="x"))

    assert excinfo.value.field_name == "title"
    assert excinfo.value.message == "Title cannot be empty."


@pytest.mark.asyncio
async def test_server_errors_map_to_repository_error() -> None:
    repository, _ = _repository(lambda request: httpx.Response(503, text="maintenance"))

    with pytest.raises(RepositoryError) as excinfo:
        await repository.delete_item(7)

    assert excinfo.value.details == {"status": 503}
    assert excinfo.value.operation == "delete"
    assert excinfo.value.message == "maintenance"


@pytest.mark.asyncio
async def test_delete_accepts_no_content() -> None:
    repository, seen = _repository(lambda request: httpx.Response(204))

    assert await repository.delete_item(7) is None
    assert seen[0].method == "DELETE"


@pytest.mark.asyncio
async def test_transport_errors_are_not_retried_by_default() -> None:
    def fail(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    repository, seen = _repository(fail)

    with pytest.raises(RepositoryError) as excinfo:
        await repository.get_item(1)

    assert len(seen) == 1
    assert excinfo.value.operation == "get"


@pytest.mark.asyncio
async def test_transport_errors_retry_up_to_max_attempts() -> None:
    attempts = {"count": 0}

    def flaky(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(200, json=_payload())

    repository, seen = _repository(flaky, max_retries=3, retry_max_seconds=0)

    item = await repository.get_item(7)

    assert item.title == "grep"
    assert len(seen) == 3


@pytest.mark.asyncio
async def test_malformed_payload_is_a_repository_error() -> None:
    repository, _ = _repository(lambda request: httpx.Response(200, json={"id": "seven"}))

    with pytest.raises(RepositoryError) as excinfo:
        await repository.get_item(7)

    assert excinfo.value.operation == "decode"


def test_item_from_payload_defaults_optional_fields() -> None:
    item = item_from_payload({"id": 1, "type": "link", "title": "Docs", "content": "https://example.com"})

    assert item.type is ItemType.LINK
    assert item.tags == ()
    assert item.description is None


@pytest.mark.asyncio
async def test_aclose_leaves_injected_client_open() -> None:
    repository, _ = _repository(lambda request: httpx.Response(204))

    await repository.aclose()
    await repository.delete_item(1)


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [httpx.TooManyRedirects, httpx.DecodingError])
async def test_non_transport_request_errors_map_to_repository_error(error: type[httpx.RequestError]) -> None:
    def fail(request: httpx.Request) -> httpx.Response:
        raise error("broken response", request=request)

    repository, seen = _repository(fail, max_retries=3, retry_max_seconds=0)

    with pytest.raises(RepositoryError) as excinfo:
        await repository.update_item(UpdateItemRequest(id=7, title="grep"))

    assert len(seen) == 1
    assert excinfo.value.operation == "update"
