"""Value types exchanged by fixture calls."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class SearchFilter:
    """One ``{field, type, value}`` criterion of an admin API search."""

    value: Any
    field: str = "name"
    type: str = "equals"

    @classmethod
    def coerce(cls, criteria: SearchFilter | Mapping[str, Any] | Any) -> SearchFilter:
        """Accept a SearchFilter, a mapping with field/value/type, or a bare value."""
        if isinstance(criteria, SearchFilter):
            return criteria
        if isinstance(criteria, Mapping):
            return cls(
                value=criteria.get("value"),
                field=criteria.get("field") or "name",
                type=criteria.get("type") or "equals",
            )
        return cls(value=criteria)

    def to_payload(self) -> dict[str, Any]:
        return {"filter": [{"field": self.field, "type": self.type, "value": self.value}]}


@dataclass
class ResolvedEntity:
    """An entity returned by search or create.

    Built from a JSON:API resource (``{"id", "type", "attributes"}``) or
    from a plain JSON object, in which case the object itself is the
    attribute set.
    """

    id: str
    type: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    relationships: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_resource(cls, resource: Mapping[str, Any]) -> ResolvedEntity:
        if isinstance(resource.get("attributes"), Mapping):
            attributes = dict(resource["attributes"])
        else:
            attributes = {k: v for k, v in resource.items() if k not in ("id", "type")}
        return cls(
            id=str(resource.get("id") or ""),
            type=resource.get("type"),
            attributes=attributes,
            relationships=dict(resource.get("relationships") or {}),
            raw=dict(resource),
        )

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def __getitem__(self, key: str) -> Any:
        if key == "id":
            return self.id
        return self.attributes[key]


def to_entities(body: Any) -> ResolvedEntity | list[ResolvedEntity] | None:
    """Convert a normalized response body into entities."""
    if body is None:
        return None
    if isinstance(body, list):
        return [ResolvedEntity.from_resource(item) for item in body if isinstance(item, Mapping)]
    if isinstance(body, Mapping) and "id" in body:
        return ResolvedEntity.from_resource(body)
    return None
