"""Typed, state-checked Cypher query builder for Neo4j."""

from neoquery.domain.entity import NodeEntity, Prop, RelationEntity
from neoquery.query_builder import (
    CompareJoiner,
    CompareOperator,
    Direction,
    Order,
    QueryBuilder,
    Unwinder,
    Where,
)

__all__ = [
    "CompareJoiner",
    "CompareOperator",
    "Direction",
    "NodeEntity",
    "Order",
    "Prop",
    "QueryBuilder",
    "RelationEntity",
    "Unwinder",
    "Where",
]
