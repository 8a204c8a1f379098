# saffeh/services/gateway.py
"""
Backend gateway — the single place the client talks HTTP to the Saffeh API.

Every failure is normalized into an ApiError subclass:
  non-2xx            → status preserved, message from body (message | error)
  HTML error page    → status preserved, "HTML page instead of JSON"
  unparseable 2xx    → MalformedResponseError (status 0)
  transport failure  → NetworkError (status 0)
No retries here; polling loops decide whether to try again.
"""

from typing import Any, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from saffeh.config import settings
from saffeh.services.errors import (
    ApiError,
    MalformedResponseError,
    NetworkError,
    http_error_for,
)
from saffeh.utils.json_parser import is_json_content, looks_like_html, safe_parse_json
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)

_BODY_METHODS = {"POST", "PUT", "PATCH"}


class BackendGateway:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS
        self._transport = transport

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Optional[dict] = None,
        token: Optional[str] = None,
    ) -> Any:
        """Issue one request and return the decoded JSON body, or raise ApiError."""
        method = method.upper()
        url = f"{self.base_url}{endpoint}"
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        payload = body if body is not None and method in _BODY_METHODS else None
        logger.debug(
            f"→ {method} {endpoint} body={'yes' if payload is not None else 'no'} "
            f"auth={token[:6] + '…' if token else 'none'}"
        )

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.request(method, url, headers=headers, json=payload)
        except httpx.TransportError as e:
            logger.warning(f"🌐 {method} {endpoint} — network error: {e}")
            raise NetworkError("Network error. Please check your connection.", 0) from e

        logger.debug(f"← {method} {endpoint} → {response.status_code}")
        return _decode(response)


def _decode(response: httpx.Response) -> Any:
    status = response.status_code
    text = response.text
    content_type = response.headers.get("content-type", "")

    if looks_like_html(text, content_type):
        logger.error(f"HTML instead of JSON (HTTP {status}): {text[:200]!r}")
        raise ApiError(
            "Server returned an HTML page instead of JSON. This usually means the "
            f"endpoint doesn't exist or there's a server error. Status: {status}",
            status,
        )

    data = safe_parse_json(text)
    ok = response.is_success

    if data is None:
        if ok and not text.strip():
            return {}
        if not ok:
            if is_json_content(content_type):
                raise http_error_for(status, f"HTTP error! status: {status}")
            raise http_error_for(
                status,
                f"Server returned {status} {response.reason_phrase}. "
                f"Expected JSON but received {content_type or 'unknown content type'}.",
            )
        logger.error(f"Unparseable response body (HTTP {status}): {text[:200]!r}")
        raise MalformedResponseError("Invalid response from server. Please check the API endpoint.", 0)

    if not ok:
        message = None
        if isinstance(data, dict):
            message = data.get("message") or data.get("error")
        raise http_error_for(status, message or f"HTTP error! status: {status}")

    return data


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_payload(data: Any, key: str, model: Type[ModelT]) -> ModelT:
    """Pull `data[key]` out of a response envelope and validate it."""
    payload = data.get(key) if isinstance(data, dict) else None
    if not isinstance(payload, dict):
        raise MalformedResponseError(f"Response is missing '{key}'", 0)
    try:
        return model.model_validate(payload)
    except SchemaError as e:
        logger.error(f"Malformed '{key}' in response: {e}")
        raise MalformedResponseError(f"Malformed '{key}' in response", 0) from e


def parse_list(data: Any, key: str, model: Type[ModelT]) -> list[ModelT]:
    """Same as parse_payload for list envelopes; a missing list reads as empty."""
    items = data.get(key) if isinstance(data, dict) else None
    if items is None:
        return []
    if not isinstance(items, list):
        raise MalformedResponseError(f"Response field '{key}' is not a list", 0)
    try:
        return [model.model_validate(item) for item in items]
    except SchemaError as e:
        logger.error(f"Malformed '{key}' in response: {e}")
        raise MalformedResponseError(f"Malformed '{key}' in response", 0) from e
