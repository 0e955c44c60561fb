"""Fixtures that go through the store API as a shop customer.

Store API calls need the sales channel's access key (looked up through
the admin API) and a context token identifying the customer session.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from shopqa.client import parse_body
from shopqa.errors import AuthError
from shopqa.fixtures.merge import deep_merge

if TYPE_CHECKING:
    from shopqa.client import StoreApiClient
    from shopqa.fixtures.service import FixtureService

logger = logging.getLogger(__name__)


class StorefrontFixtures:
    """Customer-side fixtures: login, registration, cart and orders."""

    def __init__(self, service: FixtureService, store: StoreApiClient) -> None:
        self.service = service
        self.store = store

    async def prepare(self, sales_channel_name: str | None = None) -> str:
        """Look up and install the sales channel access key."""
        access_key = await self.service.get_access_key(sales_channel_name)
        self.store.set_access_key(access_key)
        return access_key

    async def _ensure_access_key(self) -> None:
        if not self.store.access_key:
            await self.prepare()

    async def login(self, username: str, password: str) -> str:
        """Log a customer in and keep the returned context token.

        Raises:
            AuthError: If the response carries no context token.
        """
        await self._ensure_access_key()
        response = await self.store.raw_request(
            "POST", "/account/login", json={"email": username, "password": password}
        )
        token = response.headers.get(self.store.CONTEXT_TOKEN_HEADER)
        if not token:
            body = parse_body(response)
            if isinstance(body, dict):
                token = body.get("contextToken") or body.get(self.store.CONTEXT_TOKEN_HEADER)
        if not token:
            raise AuthError(f"Store API login for '{username}' returned no context token")

        self.store.set_context_token(token)
        logger.info(f"Customer '{username}' logged in to the store API")
        return token

    async def context(self) -> Any:
        """Current sales channel context of the customer session."""
        await self._ensure_access_key()
        return await self.store.get("/context")

    async def register(self, data: Mapping[str, Any] | None = None) -> Any:
        """Register a customer (or guest) from the storefront-customer dataset."""
        await self._ensure_access_key()
        customer = deep_merge(self.service.loader.load_or_empty("storefront-customer"), data)
        ids = await self.service.resolve_ids(
            salutationId=("salutation", "Mr.", "displayName"),
            countryId=("country", "DE", "iso"),
        )
        payload = deep_merge(
            customer,
            {
                "salutationId": ids["salutationId"],
                "billingAddress": {
                    "salutationId": ids["salutationId"],
                    "countryId": ids["countryId"],
                },
            },
        )
        response = await self.store.raw_request("POST", "/account/register", json=payload)
        token = response.headers.get(self.store.CONTEXT_TOKEN_HEADER)
        if token:
            self.store.set_context_token(token)
        return response.json() if response.content else None

    async def add_line_item(self, product_id: str, quantity: int = 1) -> Any:
        return await self.store.post(
            "/checkout/cart/line-item",
            json={
                "items": [
                    {
                        "type": "product",
                        "id": product_id,
                        "referencedId": product_id,
                        "quantity": quantity,
                        "stackable": True,
                    }
                ]
            },
        )

    async def place_order(self) -> Any:
        return await self.store.post("/checkout/order")

    async def create_order(self, product_id: str, customer: Mapping[str, Any]) -> Any:
        """Order one product as an existing, logged-in customer."""
        username = customer.get("username") or customer.get("email")
        await self.login(username, customer["password"])
        await self.add_line_item(product_id)
        return await self.place_order()

    async def create_guest_order(
        self, product_id: str, data: Mapping[str, Any] | None = None
    ) -> Any:
        """Order one product as a guest in a fresh customer session."""
        await self._ensure_access_key()
        self.store.set_context_token(self.service.create_uuid())
        await self.register(deep_merge({"guest": True}, data))
        await self.add_line_item(product_id)
        return await self.place_order()

    async def create_promotion_fixture(self, data: Mapping[str, Any] | None = None) -> Any:
        """Create a promotion and attach the default discount to it."""
        promotion = await self.service.create("promotion", data)
        discount = self.service.loader.load_or_empty("discount")
        for operation in discount.values():
            for item in operation.get("payload", []):
                item["promotionId"] = promotion.id
        await self.service.sync(discount)
        return promotion

    async def create_newsletter_recipient_fixture(self, customer: Mapping[str, Any]) -> Any:
        """Subscribe a customer to the newsletter from their own session."""
        recipient = deep_merge(self.service.loader.load_or_empty("customer"), customer)
        username = recipient.get("username") or recipient["email"]
        await self.login(username, recipient["password"])
        return await self.store.post(
            "/newsletter/subscribe",
            json={
                "email": recipient["email"],
                "option": "direct",
                "storefrontUrl": self.service.config.base_url,
            },
        )
