"""HTTP adapter implementing :class:`ItemRepository` against the storage service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping

import httpx
from jsonschema import Draft7Validator
from jsonschema import ValidationError as SchemaValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .errors import NotFoundError, RepositoryError, ValidationError
from .repository import CreateItemRequest, Item, ItemType, Tag, UpdateItemRequest, require_title

__all__ = ["HttpItemRepository", "HttpRepositorySettings", "ITEM_SCHEMA", "item_from_payload"]

LOGGER = logging.getLogger(__name__)

ITEM_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["id", "type", "title", "content"],
    "properties": {
        "id": {"type": "integer"},
        "type": {"type": "string", "enum": [member.value for member in ItemType]},
        "title": {"type": "string"},
        "description": {"type": ["string", "null"]},
        "content": {"type": "string"},
        "createdAt": {"type": "integer"},
        "updatedAt": {"type": "integer"},
        "metadata": {"type": ["object", "null"]},
        "tags": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "name"],
                "properties": {
                    "id": {"type": "integer"},
                    "name": {"type": "string"},
                },
            },
        },
    },
}

_ITEM_VALIDATOR = Draft7Validator(ITEM_SCHEMA)


@dataclass(slots=True)
class HttpRepositorySettings:
    """Connection parameters for :class:`HttpItemRepository`."""

    base_url: str
    api_token: str = ""
    request_timeout: float = 10.0
    max_retries: int = 1
    retry_min_seconds: float = 0.25
    retry_max_seconds: float = 2.0


class HttpItemRepository:
    """Talks to the storage service's ``/items`` JSON endpoints.

    Transport failures (connection errors, timeouts) are retried up to
    ``max_retries`` attempts in total; HTTP error statuses are mapped onto the
    workspace error taxonomy and never retried.
    """

    def __init__(
        self,
        settings: HttpRepositorySettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._owns_client = client is None
        headers = {"Accept": "application/json"}
        if settings.api_token:
            headers["Authorization"] = f"Bearer {settings.api_token}"
        self._client = client or httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            timeout=settings.request_timeout,
            headers=headers,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def create_item(self, request: CreateItemRequest) -> Item:
        title = require_title(request.title)
        payload: Dict[str, Any] = {
            "type": ItemType.coerce(request.type).value,
            "title": title,
            "content": request.content,
            "tagNames": list(request.tag_names),
        }
        if request.description is not None:
            payload["description"] = request.description
        data = await self._request("POST", "/items", operation="create", json=payload)
        return item_from_payload(data)

    async def update_item(self, request: UpdateItemRequest) -> Item:
        payload: Dict[str, Any] = {}
        if request.type is not None:
            payload["type"] = ItemType.coerce(request.type).value
        if request.title is not None:
            payload["title"] = require_title(request.title)
        if request.description is not None:
            payload["description"] = request.description
        if request.content is not None:
            payload["content"] = request.content
        if request.tag_names is not None:
            payload["tagNames"] = list(request.tag_names)
        data = await self._request(
            "PATCH", f"/items/{request.id}", operation="update", json=payload, item_id=request.id
        )
        return item_from_payload(data)

    async def get_item(self, item_id: int) -> Item:
        data = await self._request("GET", f"/items/{item_id}", operation="get", item_id=item_id)
        return item_from_payload(data)

    async def delete_item(self, item_id: int) -> None:
        await self._request("DELETE", f"/items/{item_id}", operation="delete", item_id=item_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _request(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        item_id: int | None = None,
        json: Mapping[str, Any] | None = None,
    ) -> Any:
        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._client.request(method, url, json=json)
        except httpx.RequestError as exc:
            LOGGER.warning("%s %s failed: %s", method, url, exc)
            raise RepositoryError(
                message=f"Storage service unreachable: {exc}",
                operation=operation,
            ) from exc

        if response.status_code == 404:
            raise NotFoundError(message=f"Item {item_id} does not exist", item_id=item_id)
        if response.status_code in (400, 422):
            raise ValidationError(
                message=_error_message(response) or "Request rejected by storage service",
                field_name=_error_field(response),
            )
        if response.is_error:
            raise RepositoryError(
                message=_error_message(response) or f"Storage service returned {response.status_code}",
                details={"status": response.status_code},
                operation=operation,
            )
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RepositoryError(
                message="Storage service returned malformed JSON",
                operation=operation,
            ) from exc

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(httpx.TransportError),
        )


def item_from_payload(payload: Any) -> Item:
    """Validate a JSON item payload and convert it into an :class:`Item`."""

    try:
        _ITEM_VALIDATOR.validate(payload)
    except SchemaValidationError as error:
        path = ".".join(str(part) for part in error.path)
        detail = f"{path}: {error.message}" if path else error.message
        raise RepositoryError(message=f"Unexpected item payload ({detail})", operation="decode") from error
    tags = tuple(Tag(id=int(entry["id"]), name=str(entry["name"])) for entry in payload.get("tags") or ())
    return Item(
        id=int(payload["id"]),
        type=ItemType.coerce(payload["type"]),
        title=payload["title"],
        content=payload["content"],
        description=payload.get("description"),
        created_at=int(payload.get("createdAt") or 0),
        updated_at=int(payload.get("updatedAt") or 0),
        tags=tags,
        metadata=payload.get("metadata"),
    )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(body, Mapping):
        return str(body.get("message") or body.get("error") or "").strip()
    return ""


def _error_field(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, Mapping):
        return str(body.get("field") or "")
    return ""
