"""Graph entity descriptors.

Domain types declare their properties as pydantic fields. The query builder
asks an entity for its label, its ordered property list and the property-map
fragment used inside a node or relationship pattern.
"""

import re
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any, ClassVar, NamedTuple, Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from neoquery.core.base import QueryBuilderErrorDetails
from neoquery.core.errors import ParamCollisionError


class EntityKind(str, Enum):
    """Kinds of values an alias can be bound to."""

    NODE = "node"
    RELATION = "relation"
    UNWIND = "unwind"


class Prop(NamedTuple):
    """One property as it is bound into a query."""

    key: str
    value: Any


PropLike = str | Prop


def _to_query_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, list | tuple):
        return [_to_query_value(item) for item in value]
    return value


class GraphEntity(BaseModel):
    """Base class for every node and relationship type.

    Fields declared with ``Field(exclude=True)`` are not query properties.
    Set ``graph_label`` to override the label derived from the class name.
    """

    entity_kind: ClassVar[EntityKind]
    graph_label: ClassVar[str | None] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def label(cls) -> str:
        if cls.graph_label:
            return cls.graph_label
        return cls.__name__

    def query_params(self) -> list[Prop]:
        """Return the query properties in declaration order."""
        return [Prop(key, _to_query_value(value)) for key, value in self.model_dump().items()]

    def prop(self, key: str) -> Prop:
        """Return the query property ``key`` with its current value.

        Raises:
            ValueError: If ``key`` is not a query property of this entity
        """
        for candidate in self.query_params():
            if candidate.key == key:
                return candidate
        raise ValueError(f"{type(self).__name__} has no query property '{key}'")

    def resolve_props(self, props: Iterable[PropLike]) -> list[Prop]:
        """Turn property names into ``Prop`` pairs using this entity's values."""
        return [p if isinstance(p, Prop) else self.prop(p) for p in props]

    def entity_by(self, alias: str, props: Iterable[PropLike]) -> tuple[str, dict[str, Any]]:
        """Serialize a property filter into a pattern property map.

        Every key is namespaced with the alias, so ``Page`` aliased ``page1``
        filtered on ``id`` yields ``{id: $page1_id}`` and ``{"page1_id": ...}``.

        Args:
            alias: Alias the pattern is bound to
            props: Property names or explicit ``Prop`` pairs

        Returns:
            Tuple of (fragment, params); an empty filter gives ``("", {})``
        """
        fragments: list[str] = []
        params: dict[str, Any] = {}
        for prop in self.resolve_props(props):
            key = f"{alias}_{prop.key}"
            if key in params:
                raise ParamCollisionError(
                    f"Property '{prop.key}' given twice for alias '{alias}'",
                    QueryBuilderErrorDetails(source=type(self).__name__, operation="entity_by", alias=alias, key=key),
                )
            params[key] = prop.value
            fragments.append(f"{prop.key}: ${key}")

        if not fragments:
            return "", {}
        return "{" + ", ".join(fragments) + "}", params

    def create_fragment(self, alias: str) -> tuple[str, dict[str, Any]]:
        """Serialize every query property, as CREATE needs."""
        return self.entity_by(alias, self.query_params())

    @classmethod
    def from_graph(cls, value: Any) -> Self:
        """Hydrate an instance from a driver Node, Relationship or plain mapping."""
        if isinstance(value, Mapping):
            return cls.model_validate(dict(value))
        return cls.model_validate(dict(value.items()))


class NodeEntity(GraphEntity):
    """A node type; its label defaults to the class name."""

    entity_kind: ClassVar[EntityKind] = EntityKind.NODE


class RelationEntity(GraphEntity):
    """A relationship type; its label defaults to the class name in SHOUTY_SNAKE case."""

    entity_kind: ClassVar[EntityKind] = EntityKind.RELATION

    @classmethod
    def label(cls) -> str:
        if cls.graph_label:
            return cls.graph_label
        return re.sub(r"(?<!^)(?=[A-Z])", "_", cls.__name__).upper()
