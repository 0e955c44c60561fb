"""Tests for the fixture service against the in-memory shop."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from shopqa.context import HarnessContext
from shopqa.errors import AuthError, HttpError, NotFoundError, ValidationError
from shopqa.fixtures.models import ResolvedEntity, SearchFilter, to_entities

if TYPE_CHECKING:
    from tests.conftest import FakeShopApi


class TestModels:
    def test_search_filter_coerce(self) -> None:
        assert SearchFilter.coerce("Standard rate") == SearchFilter(value="Standard rate")
        assert SearchFilter.coerce({"field": "iso", "value": "DE"}) == SearchFilter(
            value="DE", field="iso"
        )
        criterion = SearchFilter(value="open", field="technicalName")
        assert SearchFilter.coerce(criterion) is criterion

    def test_search_filter_payload(self) -> None:
        payload = SearchFilter(value="DE", field="iso").to_payload()
        assert payload == {"filter": [{"field": "iso", "type": "equals", "value": "DE"}]}

    def test_entity_from_json_api_resource(self) -> None:
        entity = ResolvedEntity.from_resource(
            {"id": "t1", "type": "tax", "attributes": {"name": "Standard rate", "taxRate": 19}}
        )

        assert entity.id == "t1"
        assert entity.type == "tax"
        assert entity["name"] == "Standard rate"
        assert entity["id"] == "t1"
        assert entity.get("missing", 0) == 0

    def test_entity_from_flat_object(self) -> None:
        entity = ResolvedEntity.from_resource({"id": "o1", "orderNumber": "10000"})
        assert entity.attributes == {"orderNumber": "10000"}

    def test_to_entities(self) -> None:
        assert to_entities(None) is None
        assert to_entities({"success": True}) is None
        assert isinstance(to_entities({"id": "a"}), ResolvedEntity)
        assert [e.id for e in to_entities([{"id": "a"}, {"id": "b"}])] == ["a", "b"]


class TestSearch:
    """Tests for search and find."""

    @pytest.mark.asyncio
    async def test_single_match_returns_entity(
        self, harness: HarnessContext, fake_api: FakeShopApi
    ) -> None:
        tax_id = fake_api.seed("tax", name="Standard rate", taxRate=19)

        result = await harness.fixtures.search("tax", {"value": "Standard rate"})

        assert isinstance(result, ResolvedEntity)
        assert result.id == tax_id
        assert result["taxRate"] == 19

    @pytest.mark.asyncio
    async def test_no_match_returns_none(self, harness: HarnessContext) -> None:
        assert await harness.fixtures.search("tax", "Missing") is None

    @pytest.mark.asyncio
    async def test_several_matches_return_list(
        self, harness: HarnessContext, fake_api: FakeShopApi
    ) -> None:
        fake_api.seed("state-machine-state", technicalName="open")
        fake_api.seed("state-machine-state", technicalName="open")

        result = await harness.fixtures.search(
            "state-machine-state", SearchFilter(value="open", field="technicalName")
        )

        assert isinstance(result, list)
        assert len(result) == 2

    @pytest.mark.asyncio
    async def test_search_sends_filter_and_authenticates(
        self, harness: HarnessContext, fake_api: FakeShopApi
    ) -> None:
        await harness.fixtures.search("country", {"field": "iso", "value": "DE"})

        request = fake_api.calls("POST", "/api/search/country")[0]
        assert json.loads(request.content) == {
            "filter": [{"field": "iso", "type": "equals", "value": "DE"}]
        }
        assert request.headers["Authorization"] == "Bearer token-1"

    @pytest.mark.asyncio
    async def test_find_raises_not_found(self, harness: HarnessContext) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await harness.fixtures.find("tax", "Reduced rate")

        assert exc_info.value.entity == "tax"
        assert "Reduced rate" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_find_takes_first_of_many(
        self, harness: HarnessContext, fake_api: FakeShopApi
    ) -> None:
        first = fake_api.seed("currency", name="Euro")
        fake_api.seed("currency", name="Euro")

        assert (await harness.fixtures.find("currency", "Euro")).id == first

    @pytest.mark.asyncio
    async def test_resolve_ids(
        self, harness: HarnessContext, fake_api: FakeShopApi, baseline: dict[str, str]
    ) -> None:
        ids = await harness.fixtures.resolve_ids(
            taxId=("tax", "Standard rate"),
            countryId=("country", "DE", "iso"),
        )

        assert ids == {"taxId": baseline["tax"], "countryId": baseline["country"]}

    @pytest.mark.asyncio
    async def test_search_failure_propagates(
        self, harness: HarnessContext, fake_api: FakeShopApi
    ) -> None:
        fake_api.failures[("POST", "/api/search/tax")] = 500

        with pytest.raises(HttpError) as exc_info:
            await harness.fixtures.search("tax", "Standard rate")

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_requests_fail_with_auth_error_when_token_is_refused(
        self, harness: HarnessContext, fake_api: FakeShopApi
    ) -> None:
        fake_api.failures[("POST", "/api/oauth/token")] = 400

        with pytest.raises(AuthError):
            await harness.fixtures.search("tax", "Standard rate")


class TestCreateUpdateDelete:
    """Tests for writes."""

    @pytest.mark.asyncio
    async def test_create_merges_overrides_over_dataset(
        self, harness: HarnessContext, fake_api: FakeShopApi
    ) -> None:
        entity = await harness.fixtures.create("product", {"name": "Shirt", "stock": 5})

        stored = fake_api.find("product", entity.id)
        assert stored["name"] == "Shirt"
        assert stored["stock"] == 5
        assert stored["productNumber"] == "RS-333"

    @pytest.mark.asyncio
    async def test_create_without_dataset_uses_data_only(
        self, harness: HarnessContext, fake_api: FakeShopApi
    ) -> None:
        entity = await harness.fixtures.create("product-manufacturer", {"name": "ACME"})

        assert entity["name"] == "ACME"
        assert fake_api.find("product-manufacturer", entity.id) == {"id": entity.id, "name": "ACME"}

    @pytest.mark.asyncio
    async def test_create_with_json_path(
        self, harness: HarnessContext, fake_api: FakeShopApi
    ) -> None:
        entity = await harness.fixtures.create("category", {"active": True}, json_path="tax")

        assert fake_api.find("category", entity.id)["taxRate"] == 99

    @pytest.mark.asyncio
    async def test_create_resolves_refs_before_post(
        self, harness: HarnessContext, fake_api: FakeShopApi, baseline: dict[str, str]
    ) -> None:
        entity = await harness.fixtures.create(
            "shipping-method",
            {"name": "Express"},
            refs={
                "taxId": ("tax", "Standard rate"),
                "countryId": ("country", "DE", "iso"),
            },
        )

        stored = fake_api.find("shipping-method", entity.id)
        assert stored["taxId"] == baseline["tax"]
        assert stored["countryId"] == baseline["country"]
        assert stored["name"] == "Express"

    @pytest.mark.asyncio
    async def test_create_data_wins_over_refs(
        self, harness: HarnessContext, fake_api: FakeShopApi, baseline: dict[str, str]
    ) -> None:
        entity = await harness.fixtures.create(
            "product-manufacturer",
            {"name": "ACME", "taxId": "explicit"},
            refs={"taxId": ("tax", "Standard rate")},
        )

        assert fake_api.find("product-manufacturer", entity.id)["taxId"] == "explicit"

    @pytest.mark.asyncio
    async def test_create_with_missing_ref_raises_before_post(
        self, harness: HarnessContext, fake_api: FakeShopApi, baseline: dict[str, str]
    ) -> None:
        with pytest.raises(NotFoundError):
            await harness.fixtures.create(
                "product-manufacturer",
                {"name": "ACME"},
                refs={"countryId": ("country", "XX", "iso")},
            )

        assert fake_api.calls("POST", "/api/product-manufacturer") == []
        assert fake_api.entities.get("product-manufacturer", []) == []

    @pytest.mark.asyncio
    async def test_update_patches_partial_fields(
        self, harness: HarnessContext, fake_api: FakeShopApi
    ) -> None:
        category_id = fake_api.seed("category", name="Shoes", active=True)

        await harness.fixtures.update("category", category_id, {"active": False})

        assert fake_api.find("category", category_id) == {
            "id": category_id,
            "name": "Shoes",
            "active": False,
        }

    @pytest.mark.asyncio
    async def test_update_requires_id(self, harness: HarnessContext, fake_api: FakeShopApi) -> None:
        with pytest.raises(ValidationError, match="must always contain an id"):
            await harness.fixtures.update("category", "", {"active": False})

        assert fake_api.requests == []

    @pytest.mark.asyncio
    async def test_get_entity(self, harness: HarnessContext, fake_api: FakeShopApi) -> None:
        category_id = fake_api.seed("category", name="Shoes")

        entity = await harness.fixtures.get("category", category_id)

        assert entity.id == category_id
        assert entity["name"] == "Shoes"

    @pytest.mark.asyncio
    async def test_delete_looks_up_then_deletes(
        self, harness: HarnessContext, fake_api: FakeShopApi
    ) -> None:
        category_id = fake_api.seed("category", name="Shoes")

        await harness.fixtures.delete("category", "Shoes")

        assert fake_api.find("category", category_id) is None
        assert len(fake_api.calls("POST", "/api/search/category")) == 1
        assert len(fake_api.calls("DELETE", f"/api/category/{category_id}")) == 1

    @pytest.mark.asyncio
    async def test_delete_unknown_name_raises_without_deleting(
        self, harness: HarnessContext, fake_api: FakeShopApi
    ) -> None:
        with pytest.raises(NotFoundError):
            await harness.fixtures.delete("category", "Missing")

        assert not [r for r in fake_api.requests if r.method == "DELETE"]

    @pytest.mark.asyncio
    async def test_sync(self, harness: HarnessContext, fake_api: FakeShopApi) -> None:
        payload = {"op": {"entity": "tax", "action": "upsert", "payload": [{"name": "X"}]}}

        await harness.fixtures.sync(payload)

        assert fake_api.synced == [payload]


class TestMaintenance:
    @pytest.mark.asyncio
    async def test_clear_cache(self, harness: HarnessContext, fake_api: FakeShopApi) -> None:
        assert await harness.fixtures.clear_cache() is True
        assert len(fake_api.calls("DELETE", "/api/_action/cache")) == 1

    @pytest.mark.asyncio
    async def test_clear_cache_failure_is_swallowed(
        self, harness: HarnessContext, fake_api: FakeShopApi
    ) -> None:
        fake_api.failures[("DELETE", "/api/_action/cache")] = 500

        assert await harness.fixtures.clear_cache() is False

    @pytest.mark.asyncio
    async def test_get_access_key(
        self, harness: HarnessContext, baseline: dict[str, str]
    ) -> None:
        assert await harness.fixtures.get_access_key() == "SWSCSTOREFRONT"
        assert await harness.fixtures.get_access_key("Headless") == "SWSCHEADLESS"

    def test_create_uuid(self, harness: HarnessContext) -> None:
        value = harness.fixtures.create_uuid()

        assert len(value) == 32
        assert value != harness.fixtures.create_uuid()
