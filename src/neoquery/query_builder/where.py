"""Boolean condition trees for WHERE clauses.

A tree is a strict alternation of leaves and joiners::

    Where().condition(page, "id", CompareOperator.EQ)
           .join(CompareJoiner.AND)
           .nest(Where().condition(c1, "id", CompareOperator.NE)
                        .join(CompareJoiner.AND)
                        .condition(c2, "id", CompareOperator.NE))

Leaves are only turned into text at ``build()`` time. The caller passes the
query's alias resolver and parameter namespacer so that every WHERE clause
of a query continues one running ``where`` counter.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, NoReturn, Self

from neoquery.core.base import QueryBuilderErrorDetails
from neoquery.core.errors import ConditionSyntaxError, UnknownAliasError
from neoquery.domain.entity import GraphEntity, Prop, PropLike
from neoquery.query_builder.interfaces import AliasResolver
from neoquery.query_builder.params import ParameterMap, ParamNamespacer

WHERE_SCOPE = "where"


class CompareOperator(Enum):
    """Comparison operators for condition leaves."""

    EQ = auto()
    GT = auto()
    GE = auto()
    LT = auto()
    LE = auto()
    NE = auto()
    IN = auto()
    # Binds the ``values`` list given to the condition instead of the property value
    IN_VEC = auto()

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]


_SYMBOLS: dict[CompareOperator, str] = {
    CompareOperator.EQ: "=",
    CompareOperator.GT: ">",
    CompareOperator.GE: ">=",
    CompareOperator.LT: "<",
    CompareOperator.LE: "<=",
    CompareOperator.NE: "<>",
    CompareOperator.IN: "IN",
    CompareOperator.IN_VEC: "IN",
}


class CompareJoiner(Enum):
    """Joiners between two leaves."""

    AND = " AND "
    OR = " OR "
    NOT = " AND NOT "


class _TreeState(Enum):
    EMPTY = auto()
    LEAF = auto()
    JOINED = auto()
    NEGATED = auto()


class _StandaloneResolver:
    """Resolver for trees built outside a query: only alias strings are known."""

    def resolve(self, target: Any, operation: str = "resolve") -> str:
        if isinstance(target, str):
            return target
        raise UnknownAliasError(
            f"{type(target).__name__} has no alias outside a query; pass the alias string",
            QueryBuilderErrorDetails(source="Where", operation=operation),
        )

    def entity_of(self, alias: str) -> GraphEntity | None:
        return None


@dataclass
class _RenderContext:
    resolver: AliasResolver
    namespacer: ParamNamespacer
    params: ParameterMap

    def prop_for(self, target: Any, alias: str, prop: PropLike) -> Prop:
        if isinstance(prop, Prop):
            return prop
        entity = target if isinstance(target, GraphEntity) else self.resolver.entity_of(alias)
        if entity is None:
            raise ConditionSyntaxError(
                f"Condition on '{alias}.{prop}' needs a value; pass a Prop",
                QueryBuilderErrorDetails(source="Where", operation="condition", alias=alias, key=prop),
            )
        return entity.prop(prop)

    def bind(self, key: str, value: Any) -> str:
        return self.params.add(self.namespacer.key(WHERE_SCOPE, key), value)


@dataclass
class _Condition:
    target: Any
    prop: PropLike
    operator: CompareOperator
    values: list[Any] | None

    def render(self, ctx: _RenderContext) -> str:
        alias = ctx.resolver.resolve(self.target, "condition")
        if self.operator is CompareOperator.IN_VEC:
            key = self.prop.key if isinstance(self.prop, Prop) else self.prop
            value = self.values
        else:
            key, value = ctx.prop_for(self.target, alias, self.prop)
        return f"{alias}.{key} {self.operator.symbol} ${ctx.bind(key, value)}"


@dataclass
class _ConditionRef:
    target: Any
    key: str
    operator: CompareOperator
    other: Any
    other_key: str

    def render(self, ctx: _RenderContext) -> str:
        alias = ctx.resolver.resolve(self.target, "condition_ref")
        other = ctx.resolver.resolve(self.other, "condition_ref")
        return f"{alias}.{self.key} {self.operator.symbol} {other}.{self.other_key}"


@dataclass
class _Coalesce:
    target: Any
    prop: PropLike

    def render(self, ctx: _RenderContext) -> str:
        alias = ctx.resolver.resolve(self.target, "coalesce")
        key, value = ctx.prop_for(self.target, alias, self.prop)
        return f"{alias}.{key} = coalesce(${ctx.bind(key, value)}, {alias}.{key})"


@dataclass
class _NullCheck:
    target: Any
    key: str | None
    negate: bool

    def render(self, ctx: _RenderContext) -> str:
        alias = ctx.resolver.resolve(self.target, "is_not_null" if self.negate else "is_null")
        subject = alias if self.key is None else f"{alias}.{self.key}"
        return f"{subject} IS NOT NULL" if self.negate else f"{subject} IS NULL"


@dataclass
class _Nested:
    entries: tuple["_Entry", ...]

    def render(self, ctx: _RenderContext) -> str:
        return f"({_render_entries(self.entries, ctx)})"


_Entry = _Condition | _ConditionRef | _Coalesce | _NullCheck | _Nested | str


def _render_entries(entries: Iterable[_Entry], ctx: _RenderContext) -> str:
    return "".join(entry if isinstance(entry, str) else entry.render(ctx) for entry in entries)


class Where:
    """A boolean condition tree."""

    def __init__(self) -> None:
        self._entries: list[_Entry] = []
        self._state = _TreeState.EMPTY

    @property
    def is_complete(self) -> bool:
        """True when the tree ends on a leaf or nested tree."""
        return self._state is _TreeState.LEAF

    def _fail(self, message: str, operation: str, valid_next: list[str]) -> NoReturn:
        raise ConditionSyntaxError(
            f"{message}, valid options are: {', '.join(valid_next) or 'none'}",
            QueryBuilderErrorDetails(
                source="Where",
                operation=operation,
                state=self._state.name,
                valid_next=valid_next,
            ),
        )

    def _valid_next(self) -> list[str]:
        if self._state is _TreeState.LEAF:
            return ["join", "build"]
        if self._state is _TreeState.NEGATED:
            return ["condition", "nest"]
        return ["condition", "nest", "not_"]

    def _add_leaf(self, entry: _Entry, operation: str) -> Self:
        if self._state is _TreeState.LEAF:
            self._fail(f"Cannot {operation} directly after another condition", operation, self._valid_next())
        self._entries.append(entry)
        self._state = _TreeState.LEAF
        return self

    def condition(
        self,
        target: Any,
        prop: PropLike,
        operator: CompareOperator = CompareOperator.EQ,
        values: list[Any] | None = None,
    ) -> Self:
        """Compare ``alias.key`` against a bound value.

        Args:
            target: Alias string, entity or unwinder
            prop: Property name (value taken from the entity) or explicit ``Prop``
            operator: Comparison operator
            values: Values bound for ``IN_VEC``

        Returns:
            Self for method chaining
        """
        if operator is CompareOperator.IN_VEC and values is None:
            self._fail("IN_VEC needs a list of values", "condition", self._valid_next())
        return self._add_leaf(_Condition(target, prop, operator, values), "condition")

    def condition_ref(
        self,
        target: Any,
        key: str,
        operator: CompareOperator,
        other: Any,
        other_key: str | None = None,
    ) -> Self:
        """Compare a property against another alias's property, with no parameter."""
        return self._add_leaf(_ConditionRef(target, key, operator, other, other_key or key), "condition_ref")

    def coalesce(self, target: Any, prop: PropLike) -> Self:
        """Match when the property equals the bound value, or the value is null."""
        return self._add_leaf(_Coalesce(target, prop), "coalesce")

    def is_null(self, target: Any, key: str | None = None) -> Self:
        return self._add_leaf(_NullCheck(target, key, negate=False), "is_null")

    def is_not_null(self, target: Any, key: str | None = None) -> Self:
        return self._add_leaf(_NullCheck(target, key, negate=True), "is_not_null")

    def not_(self) -> Self:
        """Negate the next leaf or nested tree."""
        if self._state in (_TreeState.LEAF, _TreeState.NEGATED):
            self._fail("Cannot negate here", "not_", self._valid_next())
        self._entries.append("NOT ")
        self._state = _TreeState.NEGATED
        return self

    def join(self, joiner: CompareJoiner) -> Self:
        if self._state is not _TreeState.LEAF:
            self._fail("A joiner must follow a condition", "join", self._valid_next())
        self._entries.append(joiner.value)
        self._state = _TreeState.JOINED
        return self

    def nest(self, subtree: "Where") -> Self:
        """Add a complete subtree, rendered in parentheses.

        The subtree is copied as it stands; later calls on it do not change this tree.
        """
        if subtree is self:
            self._fail("A tree cannot be nested in itself", "nest", self._valid_next())
        if not subtree.is_complete:
            raise ConditionSyntaxError(
                "Only a complete condition tree can be nested",
                QueryBuilderErrorDetails(source="Where", operation="nest", state=subtree._state.name),
            )
        return self._add_leaf(_Nested(tuple(subtree._entries)), "nest")

    def _render(self, ctx: _RenderContext) -> str:
        if not self.is_complete:
            if self._state is _TreeState.EMPTY:
                self._fail("Cannot build an empty condition tree", "build", self._valid_next())
            self._fail("Cannot build a condition tree ending in a joiner or NOT", "build", self._valid_next())
        return _render_entries(self._entries, ctx)

    def build(
        self,
        resolver: AliasResolver | None = None,
        namespacer: ParamNamespacer | None = None,
    ) -> tuple[str, dict[str, Any]]:
        """Render the tree.

        Args:
            resolver: Alias resolver of the enclosing query; standalone trees take alias strings only
            namespacer: Namespacer of the enclosing query; a fresh one when omitted

        Returns:
            Tuple of (text, params)

        Raises:
            ConditionSyntaxError: If the tree is empty or ends on a joiner or NOT
        """
        ctx = _RenderContext(resolver or _StandaloneResolver(), namespacer or ParamNamespacer(), ParameterMap())
        text = self._render(ctx)
        return text, ctx.params.as_dict()
