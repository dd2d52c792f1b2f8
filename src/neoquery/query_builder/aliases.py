"""Alias assignment and scope tracking.

Aliases are kept in a side table keyed by object identity instead of being
written onto the caller's entities. A CALL subquery gets a child registry
that shares the table and counters but has its own visible set.
"""

from dataclasses import dataclass
from typing import Any

from neoquery.core.base import QueryBuilderErrorDetails
from neoquery.core.errors import StateError, UnknownAliasError
from neoquery.domain.entity import EntityKind, GraphEntity
from neoquery.query_builder.unwind import Unwinder

Target = str | GraphEntity | Unwinder


@dataclass(frozen=True)
class ReturnRef:
    """One item of the RETURN list."""

    alias: str
    kind: EntityKind
    # Snapshot taken when the item was added; None for unwound values
    entity: GraphEntity | None = None


@dataclass
class _Binding:
    alias: str
    kind: EntityKind
    obj: Any


class AliasRegistry:
    """Maps aliases to the entities they were assigned to, per query."""

    def __init__(self) -> None:
        self._counters: dict[EntityKind, int] = {}
        self._by_alias: dict[str, _Binding] = {}
        # id() -> binding; the binding holds the object so the id stays unique
        self._by_identity: dict[int, _Binding] = {}
        self._visible: set[str] = set()

    def child(self, imports: list[str]) -> "AliasRegistry":
        """Registry for a subquery that only sees ``imports``."""
        child = AliasRegistry.__new__(AliasRegistry)
        child._counters = self._counters
        child._by_alias = self._by_alias
        child._by_identity = self._by_identity
        child._visible = set(imports)
        return child

    @property
    def visible(self) -> frozenset[str]:
        return frozenset(self._visible)

    def next_alias(self, label: str, kind: EntityKind) -> str:
        """Return ``{lowercased label}{n}``, with one counter per entity kind.

        Numbers whose alias is already taken by another kind are skipped.
        """
        n = self._counters.get(kind, 0)
        while True:
            n += 1
            alias = f"{label.lower()}{n}"
            if alias not in self._by_alias:
                break
        self._counters[kind] = n
        return alias

    def register(self, alias: str, kind: EntityKind, obj: Any = None) -> str:
        """Record ``alias`` and make it visible.

        Raises:
            StateError: If the alias is already taken in this query
        """
        if alias in self._by_alias:
            raise StateError(
                f"Alias '{alias}' is already assigned in this query",
                QueryBuilderErrorDetails(source="AliasRegistry", operation="register", alias=alias),
            )
        binding = _Binding(alias, kind, obj)
        self._by_alias[alias] = binding
        if obj is not None:
            self._by_identity[id(obj)] = binding
        self._visible.add(alias)
        return alias

    def assign(self, obj: GraphEntity | Unwinder) -> str:
        """Give ``obj`` a fresh alias and register it."""
        return self.register(self.next_alias(obj.label(), obj.entity_kind), obj.entity_kind, obj)

    def alias_of(self, obj: Any) -> str | None:
        binding = self._by_identity.get(id(obj))
        if binding is None or binding.obj is not obj:
            return None
        return binding.alias

    def resolve(self, target: Target, operation: str = "resolve") -> str:
        """Return the visible alias for an alias string, entity or unwinder.

        Raises:
            UnknownAliasError: If the alias was never registered or is out of scope
        """
        alias = target if isinstance(target, str) else self.alias_of(target)
        if alias is None:
            raise UnknownAliasError(
                f"{type(target).__name__} has not been given an alias in this query",
                QueryBuilderErrorDetails(source="AliasRegistry", operation=operation),
            )
        if alias not in self._by_alias:
            raise UnknownAliasError(
                f"Unknown alias '{alias}'",
                QueryBuilderErrorDetails(source="AliasRegistry", operation=operation, alias=alias),
            )
        if alias not in self._visible:
            raise UnknownAliasError(
                f"Alias '{alias}' is not in scope, visible aliases are: {', '.join(sorted(self._visible))}",
                QueryBuilderErrorDetails(
                    source="AliasRegistry",
                    operation=operation,
                    alias=alias,
                    valid_next=sorted(self._visible),
                ),
            )
        return alias

    def kind_of(self, alias: str) -> EntityKind:
        return self._by_alias[alias].kind

    def entity_of(self, alias: str) -> GraphEntity | None:
        obj = self._by_alias[alias].obj
        return obj if isinstance(obj, GraphEntity) else None

    def return_ref(self, target: Target, operation: str = "return") -> ReturnRef:
        alias = self.resolve(target, operation)
        entity = self.entity_of(alias)
        return ReturnRef(alias, self.kind_of(alias), entity.model_copy() if entity is not None else None)

    def restrict(self, aliases: list[str]) -> None:
        """Narrow visibility to ``aliases``, as a WITH projection does."""
        self._visible = set(aliases)

    def expose(self, aliases: list[str]) -> None:
        self._visible.update(aliases)
