"""Async HTTP client for the admin and store APIs with history tracking."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx

from shopqa.errors import HttpError, ValidationError

if TYPE_CHECKING:
    from shopqa.config import HarnessConfig

logger = logging.getLogger(__name__)

ALLOWED_METHODS = frozenset({"GET", "POST", "PATCH", "DELETE"})
SENSITIVE_HEADERS = frozenset({"authorization", "sw-context-token", "sw-access-key"})
REDACTED = "***"


@dataclass
class RequestRecord:
    """One admin or store API round-trip as seen by the client."""

    method: str
    url: str
    request_body: Any | None
    response_status: int
    response_body: Any | None
    headers: dict[str, str]
    duration_ms: float
    timestamp: datetime = field(default_factory=datetime.now)
    error: str | None = None


def normalize_body(body: Any) -> Any:
    """Unwrap single-result API responses.

    A JSON object whose ``data`` is a list of at most one element becomes
    that element (None when empty); longer lists pass through unmodified.
    A non-list ``data`` value is returned as is, objects without ``data``
    and non-object bodies are returned unchanged.
    """
    if not isinstance(body, dict) or "data" not in body:
        return body

    data = body["data"]
    if isinstance(data, list):
        if len(data) <= 1:
            return data[0] if data else None
        return data
    return data


def parse_body(response: httpx.Response) -> Any:
    """JSON body when it parses, else the raw text; None when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _sanitize_headers(headers: dict[str, str]) -> dict[str, str]:
    return {k: REDACTED if k.lower() in SENSITIVE_HEADERS else v for k, v in headers.items()}


class ApiClient:
    """HTTP client bound to one API surface (admin API or store API).

    Adds the configured base path, default headers and default query
    parameters to every request, awaits the response, and raises
    ``HttpError`` for network failures and non-2xx responses. This layer
    never retries.

    Example:
        >>> client = ApiClient("http://localhost:8000", base_path="/api")
        >>> client.set_auth_token("abc")
        >>> tax = await client.post("/search/tax", json={"filter": [...]})
    """

    def __init__(
        self,
        base_url: str,
        base_path: str = "",
        default_headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        query_params: dict[str, str] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.base_path = "/" + base_path.strip("/") if base_path.strip("/") else ""
        self.default_headers = dict(default_headers or {})
        self.query_params = dict(query_params or {})
        self.timeout = timeout
        self.history: list[RequestRecord] = []
        self._headers: dict[str, str] = {}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def api_url(self) -> str:
        return f"{self.base_url}{self.base_path}"

    def connect(self) -> httpx.AsyncClient:
        """Initialize the underlying httpx client and return it."""
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            timeout=self.timeout,
            transport=self._transport,
        )
        logger.debug(f"API client connected to {self.api_url}")
        return self._client

    async def aclose(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ApiClient:
        if not self._client:
            self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def set_header(self, name: str, value: str | None) -> None:
        """Set a header sent with every request; None removes it."""
        if value is None:
            self._headers.pop(name, None)
        else:
            self._headers[name] = value

    def set_auth_token(self, token: str, scheme: str = "Bearer") -> None:
        """Send ``Authorization: <scheme> <token>`` on every later request."""
        self.set_header("Authorization", f"{scheme} {token}")

    def clear_auth(self) -> None:
        self.set_header("Authorization", None)

    @property
    def headers(self) -> dict[str, str]:
        """Headers currently sent with every request."""
        return {**self.default_headers, **self._headers}

    def build_path(self, path: str) -> str:
        """Path relative to the API base; ``**`` version wildcards are dropped."""
        segments = [s for s in path.split("/") if s and s != "**"]
        return "/".join(segments)

    def _merge_headers(self, overrides: dict[str, str] | None) -> dict[str, str]:
        merged = {**self.default_headers, **self._headers, **(overrides or {})}
        return {k: v for k, v in merged.items() if v}

    async def raw_request(
        self,
        method: str,
        path: str,
        json: Any = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Perform a request and return the httpx response.

        Raises:
            ValidationError: If the method is not GET/POST/PATCH/DELETE.
            HttpError: On network failure or a non-2xx status.
        """
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValidationError(
                f"Unsupported HTTP method: {method}", field="method", value=method
            )

        client = self._client or self.connect()

        relative = self.build_path(path)
        url = f"{self.api_url}/{relative}"
        request_headers = self._merge_headers(headers)
        request_params = {**self.query_params, **(params or {})}

        start_time = time.perf_counter()
        try:
            response = await client.request(
                method,
                relative,
                json=json,
                headers=request_headers,
                params=request_params or None,
            )
        except httpx.RequestError as e:
            self.history.append(
                RequestRecord(
                    method=method,
                    url=url,
                    request_body=json,
                    response_status=0,
                    response_body=None,
                    headers=request_headers,
                    duration_ms=(time.perf_counter() - start_time) * 1000,
                    error=str(e),
                )
            )
            logger.error(f"{method} {url} failed: {e}")
            raise HttpError(method=method, url=url, cause=e) from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        body = parse_body(response)
        self.history.append(
            RequestRecord(
                method=method,
                url=url,
                request_body=json,
                response_status=response.status_code,
                response_body=body,
                headers=request_headers,
                duration_ms=duration_ms,
            )
        )
        logger.debug(
            f"{method} {url} -> {response.status_code} ({duration_ms:.0f}ms)",
            extra={"http": {"method": method, "status": response.status_code}},
        )

        if not response.is_success:
            raise HttpError(
                status_code=response.status_code,
                body=body,
                method=method,
                url=url,
            )
        return response

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Perform a request and return the normalized response body."""
        response = await self.raw_request(method, path, json=json, headers=headers, params=params)
        return normalize_body(parse_body(response))

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    def get_history(self) -> list[RequestRecord]:
        """Copy of every recorded round-trip, oldest first."""
        return self.history.copy()

    def get_sanitized_history(self) -> list[dict[str, Any]]:
        """Get request history with credentials redacted."""
        return [
            {
                "method": record.method,
                "url": record.url,
                "response_status": record.response_status,
                "headers": _sanitize_headers(record.headers),
                "duration_ms": record.duration_ms,
                "timestamp": record.timestamp.isoformat(),
                "error": record.error,
            }
            for record in self.history
        ]

    def clear_history(self) -> None:
        self.history.clear()

    def last_request(self) -> RequestRecord | None:
        """The latest round-trip, or None before the first request."""
        return self.history[-1] if self.history else None


class StoreApiClient(ApiClient):
    """Store API client carrying the sales channel access key and context token."""

    ACCESS_KEY_HEADER = "sw-access-key"
    CONTEXT_TOKEN_HEADER = "sw-context-token"

    def set_access_key(self, access_key: str | None) -> None:
        self.set_header(self.ACCESS_KEY_HEADER, access_key)

    def set_context_token(self, token: str | None) -> None:
        self.set_header(self.CONTEXT_TOKEN_HEADER, token)

    @property
    def access_key(self) -> str | None:
        return self._headers.get(self.ACCESS_KEY_HEADER)

    @property
    def context_token(self) -> str | None:
        return self._headers.get(self.CONTEXT_TOKEN_HEADER)


def admin_client(
    config: HarnessConfig, transport: httpx.AsyncBaseTransport | None = None
) -> ApiClient:
    """Build the admin API client (JSON:API responses, ``_response=true``)."""
    return ApiClient(
        base_url=config.base_url,
        base_path=config.admin_api_path,
        default_headers={
            "Accept": "application/vnd.api+json",
            "Content-Type": "application/json",
        },
        timeout=config.timeout,
        transport=transport,
        query_params={"_response": "true"},
    )


def store_client(
    config: HarnessConfig, transport: httpx.AsyncBaseTransport | None = None
) -> StoreApiClient:
    """Build the store API client."""
    return StoreApiClient(
        base_url=config.base_url,
        base_path=config.store_api_path,
        default_headers={
            "Accept": "application/json",
            "Content-Type": "application/json",
        },
        timeout=config.timeout,
        transport=transport,
    )


__all__ = [
    "ApiClient",
    "RequestRecord",
    "StoreApiClient",
    "admin_client",
    "normalize_body",
    "parse_body",
    "store_client",
]
