"""Seams between the builder and its helpers.

The pagination mixin only needs to append tail parts, advance the clause
state and bind a parameter; the condition tree only needs to resolve aliases.
"""

from abc import ABC, abstractmethod
from typing import Any, LiteralString, Protocol

from neoquery.domain.entity import GraphEntity
from neoquery.query_builder.state import ClauseType


class AliasResolver(Protocol):
    """Turns condition targets into in-scope aliases."""

    def resolve(self, target: Any, operation: str = "resolve") -> str: ...

    def entity_of(self, alias: str) -> GraphEntity | None: ...


class QueryBuilderInterface(ABC):
    """What the mixins require from a concrete builder."""

    @abstractmethod
    def append_query_part(self, part: LiteralString) -> None:
        """Append a clause rendered before RETURN."""

    @abstractmethod
    def append_tail_part(self, part: LiteralString) -> None:
        """Append a clause rendered after RETURN and ORDER BY (SKIP, LIMIT)."""

    @abstractmethod
    def add_clause(self, clause_type: ClauseType, operation: str) -> None:
        """Advance the clause state.

        Raises:
            StateError: If ``clause_type`` cannot follow the current clause
        """

    @abstractmethod
    def add_parameter(self, scope: str, value: Any) -> str:
        """Bind ``value`` under the next key of ``scope`` and return the key."""

    @abstractmethod
    def build(self, returns: Any = None) -> tuple[LiteralString, dict[str, Any]]:
        """Return ``(query, params)``."""
