"""Thin async HTTP collaborator for the posture API.

Responses use the ``{"status", "data", "message"}`` envelope; callers get the
``data`` part, or an ApiError carrying the server's message.
"""
import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from gym_posture.client.errors import ApiError, MalformedResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30.0


def parse_response(schema: type[T] | Any, data: Any) -> T:
    """Validate ``data`` against ``schema`` (a model class or any typing form)."""
    try:
        if isinstance(schema, type) and issubclass(schema, BaseModel):
            return schema.model_validate(data)
        return TypeAdapter(schema).validate_python(data)
    except PydanticValidationError as e:
        logger.warning("Malformed response for %s: %s", getattr(schema, "__name__", schema), e)
        raise MalformedResponse(f"Unexpected response format: {e.error_count()} invalid field(s)") from e


class ApiClient:
    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        headers = {"X-API-Key": api_key} if api_key else {}
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise ApiError(f"Network error: {e}") from e

        if response.is_error:
            message = _error_message(_json_or_none(response)) or f"Request failed with status {response.status_code}"
            logger.warning("%s %s -> %d: %s", method, path, response.status_code, message)
            raise ApiError(message, status_code=response.status_code)

        try:
            body = response.json() if response.content else None
        except ValueError as e:
            raise MalformedResponse(f"{method} {path} returned non-JSON body") from e

        if isinstance(body, dict) and "status" in body and "data" in body:
            return body["data"]
        raise MalformedResponse(f"{method} {path} returned an unexpected envelope")

    async def get(self, path: str, params: dict | None = None) -> Any:
        return await self._request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self._request("POST", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self._request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self._request("DELETE", path)

    async def post_form_data(self, path: str, data: dict[str, str], files: dict[str, tuple]) -> Any:
        return await self._request("POST", path, data=data, files=files)


def _json_or_none(response: httpx.Response) -> Any:
    # proxies answer errors with HTML
    try:
        return response.json() if response.content else None
    except ValueError:
        return None


def _error_message(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    if body.get("message"):
        return body["message"]
    detail = body.get("detail")
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list) and detail:
        return "; ".join(str(d.get("msg", d)) if isinstance(d, dict) else str(d) for d in detail)
    return None
