"""Pytest fixtures for shopqa tests.

``FakeShopApi`` is an in-memory admin/store API served through
``httpx.MockTransport``, so every test runs without a real shop.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import AsyncIterator
from typing import Any

import httpx
import pytest
import pytest_asyncio

from shopqa.config import HarnessConfig
from shopqa.context import HarnessContext

pytest_plugins = ["pytester"]

BASE_URL = "http://shop.test"


class FakeShopApi:
    """In-memory shop answering admin API and store API requests.

    Attributes:
        entities: Stored entities per entity type, each ``{"id", **attributes}``.
        requests: Every request received, in order.
        failures: ``(method, path)`` -> status code to answer with instead.
        text_responses: ``(method, path)`` -> ``(status, text)`` plain-text answer.
        latency: Seconds each request waits before answering.
    """

    def __init__(self) -> None:
        self.entities: dict[str, list[dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []
        self.failures: dict[tuple[str, str], int] = {}
        self.text_responses: dict[tuple[str, str], tuple[int, str]] = {}
        self.latency = 0.0
        self.token_lifetime = 600
        self.issued_tokens: list[str] = []
        self.revoked_tokens: set[str] = set()
        self.synced: list[dict[str, Any]] = []
        self.context_token = "ctx-" + uuid.uuid4().hex[:8]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def seed(self, entity_type: str, **attributes: Any) -> str:
        entity_id = attributes.pop("id", None) or uuid.uuid4().hex
        self.entities.setdefault(entity_type, []).append({"id": entity_id, **attributes})
        return entity_id

    def seed_baseline(self) -> dict[str, str]:
        """Seed the entities fixtures resolve by name."""
        return {
            "tax": self.seed("tax", name="Standard rate", taxRate=19),
            "manufacturer": self.seed("product-manufacturer", name="shopware AG"),
            "sales_channel": self.seed(
                "sales-channel", name="Storefront", accessKey="SWSCSTOREFRONT"
            ),
            "headless": self.seed("sales-channel", name="Headless", accessKey="SWSCHEADLESS"),
            "category": self.seed("category", name="Home"),
            "country": self.seed("country", name="Germany", iso="DE"),
            "payment": self.seed("payment-method", name="Invoice"),
            "group": self.seed("customer-group", name="Standard customer group"),
            "salutation": self.seed("salutation", displayName="Mr."),
            "currency": self.seed("currency", name="Euro", factor=1.0),
            "state": self.seed("state-machine-state", technicalName="open"),
        }

    def find(self, entity_type: str, entity_id: str) -> dict[str, Any] | None:
        return next((e for e in self.entities.get(entity_type, []) if e["id"] == entity_id), None)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @property
    def token_requests(self) -> int:
        return len(self.calls("POST", "/api/oauth/token"))

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.latency:
            await asyncio.sleep(self.latency)
        else:
            await asyncio.sleep(0)

        status = self.failures.get((request.method, request.url.path))
        if status is not None:
            return httpx.Response(status, json={"errors": [{"status": str(status)}]})
        canned = self.text_responses.get((request.method, request.url.path))
        if canned is not None:
            return httpx.Response(canned[0], text=canned[1])

        path = request.url.path
        if path.startswith("/store-api/"):
            return self._store(request, path[len("/store-api/") :])
        if path.startswith("/api/"):
            return self._admin(request, path[len("/api/") :])
        return httpx.Response(404)

    def _body(self, request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None

    @staticmethod
    def _resource(entity_type: str, entity: dict[str, Any]) -> dict[str, Any]:
        attributes = {k: v for k, v in entity.items() if k != "id"}
        return {"id": entity["id"], "type": entity_type, "attributes": attributes}

    def _authorized(self, request: httpx.Request) -> bool:
        header = request.headers.get("Authorization", "")
        token = header.removeprefix("Bearer ")
        return token in self.issued_tokens and token not in self.revoked_tokens

    def _admin(self, request: httpx.Request, path: str) -> httpx.Response:
        if path == "oauth/token":
            token = f"token-{len(self.issued_tokens) + 1}"
            self.issued_tokens.append(token)
            return httpx.Response(
                200,
                json={
                    "token_type": "Bearer",
                    "expires_in": self.token_lifetime,
                    "access_token": token,
                    "refresh_token": f"refresh-{token}",
                },
            )

        if not self._authorized(request):
            return httpx.Response(401, json={"errors": [{"code": "9", "title": "Unauthorized"}]})

        if path == "_info/version":
            return httpx.Response(200, json={"version": "6.5.0.0"})
        if path == "_action/cache":
            return httpx.Response(204)
        if path == "_action/sync":
            self.synced.append(self._body(request))
            return httpx.Response(200, json={"success": True})

        segments = path.split("/")
        if segments[0] == "search" and request.method == "POST":
            return self._search(segments[1], self._body(request))
        if len(segments) == 1 and request.method == "POST":
            return self._create(segments[0], self._body(request))
        if len(segments) == 2:
            entity_type, entity_id = segments
            entity = self.find(entity_type, entity_id)
            if entity is None:
                return httpx.Response(404, json={"errors": [{"code": "ENTITY_NOT_FOUND"}]})
            if request.method == "GET":
                return httpx.Response(200, json={"data": self._resource(entity_type, entity)})
            if request.method == "PATCH":
                entity.update(self._body(request) or {})
                return httpx.Response(200, json={"data": self._resource(entity_type, entity)})
            if request.method == "DELETE":
                self.entities[entity_type].remove(entity)
                return httpx.Response(204)
        return httpx.Response(404)

    def _search(self, entity_type: str, criteria: dict[str, Any]) -> httpx.Response:
        condition = criteria["filter"][0]
        matches = [
            self._resource(entity_type, e)
            for e in self.entities.get(entity_type, [])
            if e.get(condition["field"]) == condition["value"]
        ]
        return httpx.Response(200, json={"total": len(matches), "data": matches})

    def _create(self, entity_type: str, payload: dict[str, Any]) -> httpx.Response:
        entity_id = self.seed(entity_type, **payload)
        entity = self.find(entity_type, entity_id)
        assert entity is not None
        return httpx.Response(200, json={"data": self._resource(entity_type, entity)})

    def _store(self, request: httpx.Request, path: str) -> httpx.Response:
        access_key = request.headers.get("sw-access-key")
        known_keys = [e.get("accessKey") for e in self.entities.get("sales-channel", [])]
        if access_key not in known_keys:
            return httpx.Response(401, json={"errors": [{"code": "API_INVALID_ACCESS_KEY"}]})

        body = self._body(request)
        token_header = {"sw-context-token": self.context_token}
        if path == "account/login":
            customers = self.entities.get("customer", [])
            if not any(
                c.get("email") == body["email"] and c.get("password") == body["password"]
                for c in customers
            ):
                return httpx.Response(401, json={"errors": [{"code": "BAD_CREDENTIALS"}]})
            return httpx.Response(
                200, headers=token_header, json={"contextToken": self.context_token}
            )
        if path == "account/register":
            self.seed("customer", **body)
            return httpx.Response(200, headers=token_header, json={"email": body["email"]})
        if path == "context":
            return httpx.Response(200, json={"token": request.headers.get("sw-context-token")})
        if path == "checkout/cart/line-item":
            return httpx.Response(200, json={"lineItems": body["items"]})
        if path == "checkout/order":
            order_id = self.seed("order", contextToken=request.headers.get("sw-context-token"))
            return httpx.Response(200, json={"id": order_id, "orderNumber": "10000"})
        if path == "newsletter/subscribe":
            return httpx.Response(204)
        return httpx.Response(404)


@pytest.fixture
def fake_api() -> FakeShopApi:
    return FakeShopApi()


@pytest.fixture
def config() -> HarnessConfig:
    return HarnessConfig(base_url=BASE_URL)


@pytest_asyncio.fixture
async def harness(fake_api: FakeShopApi, config: HarnessConfig) -> AsyncIterator[HarnessContext]:
    context = HarnessContext(config, transport=fake_api.transport)
    try:
        yield context
    finally:
        await context.aclose()


@pytest.fixture
def baseline(fake_api: FakeShopApi) -> dict[str, str]:
    return fake_api.seed_baseline()
