"""Admin API fixture service: create, search, update and delete entities.

Entity-specific fixtures in ``shopqa.fixtures.admin`` and
``shopqa.fixtures.storefront`` are free functions built on this service.

Example:
    >>> service = FixtureService(admin, session)
    >>> tax = await service.find("tax", "Standard rate")
    >>> category = await service.create("category", {"name": "Shoes"})
    >>> await service.update("category", category.id, {"active": False})
    >>> await service.delete("category", "Shoes")
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from shopqa.errors import AuthError, HttpError, NotFoundError, ValidationError
from shopqa.fixtures.loaders import FixtureLoader
from shopqa.fixtures.merge import deep_merge
from shopqa.fixtures.models import ResolvedEntity, SearchFilter, to_entities
from shopqa.observability.logging import log_context

if TYPE_CHECKING:
    from shopqa.client import ApiClient
    from shopqa.config import HarnessConfig
    from shopqa.session import SessionManager

logger = logging.getLogger(__name__)

Lookup = tuple[str, Any] | tuple[str, Any, str]


class FixtureService:
    """Creates and looks up admin API entities for test setup."""

    def __init__(
        self,
        client: ApiClient,
        session: SessionManager,
        loader: FixtureLoader | None = None,
        config: HarnessConfig | None = None,
    ) -> None:
        self.client = client
        self.session = session
        self.config = config or session.config
        self.loader = loader or FixtureLoader(self.config.fixtures_path)

    async def request(self, method: str, path: str, data: Any = None) -> Any:
        """Authenticated admin API request returning the normalized body."""
        await self.session.authenticate()
        return await self.client.request(method, path, json=data)

    async def create(
        self,
        endpoint: str,
        data: Mapping[str, Any] | None = None,
        json_path: str | None = None,
        refs: Mapping[str, Lookup] | None = None,
    ) -> Any:
        """Merge ``data`` over the default dataset and create the entity.

        The dataset is looked up by ``json_path`` (defaults to the endpoint
        name); endpoints without a dataset start from an empty payload.
        ``refs`` maps payload fields to ``resolve_ids`` lookups; they are all
        resolved before the POST and explicit values in ``data`` win.

        Example:
            >>> await service.create(
            ...     "shipping-method",
            ...     {"name": "Express"},
            ...     refs={"deliveryTimeId": ("delivery-time", "1-3 days")},
            ... )
        """
        base = self.loader.load_or_empty(json_path or endpoint)
        payload = deep_merge(base, data)
        if refs:
            payload = deep_merge(await self.resolve_ids(**refs), payload)
        return await self.create_raw(endpoint, payload)

    async def create_raw(self, endpoint: str, payload: Mapping[str, Any]) -> Any:
        """Create an entity from a fully resolved payload."""
        with log_context(fixture=endpoint):
            logger.info(f"Creating {endpoint} fixture")
            body = await self.request("POST", f"/{endpoint}", dict(payload))
        entity = to_entities(body)
        return entity if isinstance(entity, ResolvedEntity) else body

    async def search(
        self,
        entity_type: str,
        criteria: SearchFilter | Mapping[str, Any] | Any,
    ) -> ResolvedEntity | list[ResolvedEntity] | None:
        """Search by one criterion.

        Returns the entity for a single match, a list for several matches
        and None when nothing matches.
        """
        search_filter = SearchFilter.coerce(criteria)
        body = await self.request("POST", f"/search/{entity_type}", search_filter.to_payload())
        return to_entities(body)

    async def find(self, entity_type: str, value: Any, field: str = "name") -> ResolvedEntity:
        """Search for an entity that must exist.

        Raises:
            NotFoundError: If nothing matches.
        """
        result = await self.search(entity_type, SearchFilter(value=value, field=field))
        if isinstance(result, list):
            result = result[0] if result else None
        if result is None:
            raise NotFoundError(entity=entity_type, field=field, value=value, operation="find")
        return result

    async def resolve_ids(self, **lookups: Lookup) -> dict[str, str]:
        """Resolve independent lookups concurrently.

        Each keyword maps a result name to ``(entity_type, value)`` or
        ``(entity_type, value, field)``.

        Example:
            >>> ids = await service.resolve_ids(
            ...     taxId=("tax", "Standard rate"),
            ...     countryId=("country", "DE", "iso"),
            ... )
        """
        names = list(lookups)
        entities = await asyncio.gather(*(self.find(*lookups[name]) for name in names))
        return {name: entity.id for name, entity in zip(names, entities)}

    async def get(self, entity_type: str, entity_id: str) -> Any:
        if not entity_id:
            raise ValidationError("Fetching an entity requires an id", field="id", value=entity_id)
        body = await self.request("GET", f"/{entity_type}/{entity_id}")
        entity = to_entities(body)
        return entity if isinstance(entity, ResolvedEntity) else body

    async def update(self, entity_type: str, entity_id: str, data: Mapping[str, Any]) -> Any:
        """PATCH partial fields of an existing entity.

        Raises:
            ValidationError: If ``entity_id`` is empty.
        """
        if not entity_id:
            raise ValidationError(
                "Update fixtures must always contain an id", field="id", value=entity_id
            )
        return await self.request("PATCH", f"/{entity_type}/{entity_id}", dict(data))

    async def delete(self, endpoint: str, name: str, field: str = "name") -> Any:
        """Look up an entity by name and delete it by id.

        Two round-trips, not atomic.

        Raises:
            NotFoundError: If the name does not resolve.
        """
        entity = await self.find(endpoint, name, field=field)
        return await self.delete_by_id(endpoint, entity.id)

    async def delete_by_id(self, endpoint: str, entity_id: str) -> Any:
        if not entity_id:
            raise ValidationError("Delete requires an id", field="id", value=entity_id)
        logger.info(f"Deleting {endpoint} {entity_id}")
        return await self.request("DELETE", f"/{endpoint}/{entity_id}")

    async def sync(self, payload: Mapping[str, Any]) -> Any:
        """Send a batch of write operations to the sync endpoint."""
        return await self.request("POST", "/_action/sync", dict(payload))

    async def clear_cache(self) -> bool:
        """Clear the application cache; failures are logged, never raised."""
        try:
            await self.request("DELETE", "/_action/cache")
        except (AuthError, HttpError) as e:
            logger.warning(f"Cache could not be cleared: {e}")
            return False
        return True

    async def get_access_key(self, sales_channel_name: str | None = None) -> str:
        """Access key of a sales channel, needed for store API calls."""
        name = sales_channel_name or self.config.sales_channel_name
        sales_channel = await self.find("sales-channel", name)
        access_key = sales_channel.get("accessKey")
        if not access_key:
            raise NotFoundError(f"Sales channel '{name}' has no access key", entity="sales-channel")
        return access_key

    @staticmethod
    def create_uuid() -> str:
        """A uuid4 in the API's 32-character hex form."""
        return uuid.uuid4().hex

    merge_fixture_with_data = staticmethod(deep_merge)
