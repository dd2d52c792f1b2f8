"""Main query builder implementation.

``QueryBuilder`` sequences statements, projections and subqueries, tracks
the RETURN list and assembles the final ``(text, params)`` pair::

    qb = QueryBuilder()
    query, params = (
        qb.match()
        .node(page, ["id"]).add_to_return()
        .relation(has_component).add_to_return()
        .node(component, ["id"]).add_to_return()
        .end_statement()
        .build()
    )
"""

from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any, LiteralString, TypeVar, cast

from neo4j import AsyncDriver
from structlog.typing import FilteringBoundLogger

from neoquery.core.base import QueryBuilderErrorDetails
from neoquery.core.errors import StateError
from neoquery.core.logging import debug, get_logger, scoped_log_context
from neoquery.domain.entity import PropLike
from neoquery.infrastructure.neo4j.driver import Neo4jQuery
from neoquery.query_builder.aliases import AliasRegistry, ReturnRef, Target
from neoquery.query_builder.pagination import PaginationMixin
from neoquery.query_builder.params import ParameterMap, ParamNamespacer
from neoquery.query_builder.state import ClauseType, QueryState
from neoquery.query_builder.statements import (
    ClauseStatement,
    CreateStatement,
    MatchStatement,
    MergeStatement,
    OptionalMatchStatement,
    set_assignments,
)
from neoquery.query_builder.unwind import Unwinder
from neoquery.query_builder.where import Where

logger: FilteringBoundLogger = get_logger(name=__name__)

S = TypeVar("S", bound=ClauseStatement)

Unpack = Callable[[ReturnRef, Any], Any]


class Order(Enum):
    ASC = "ASC"
    DESC = "DESC"


def create_literal_str(prefix: str, clause: str) -> LiteralString:
    """Create a LiteralString by concatenating strings.

    Every value that reaches this point has been bound as a parameter, so the
    text only contains keywords, labels, aliases and parameter names.

    Args:
        prefix: String prefix to add
        clause: Main clause string

    Returns:
        A LiteralString that can be passed to the driver
    """
    return cast("LiteralString", prefix + clause)


def default_unpack(ref: ReturnRef, value: Any) -> Any:
    """Hydrate a returned value into the entity type it was emitted as."""
    if value is None or ref.entity is None:
        return value
    return type(ref.entity).from_graph(value)


class QueryBuilder(PaginationMixin):
    """Builder for one parameterized Cypher query.

    Illegal calls raise ``StateError`` immediately. While a statement is open
    the builder refuses every call until ``end_statement()`` hands control
    back; once built, it refuses every call.
    """

    def __init__(self) -> None:
        """Initialize a new query builder."""
        self._query_parts: list[LiteralString] = []
        self._order_parts: list[str] = []
        self._tail_parts: list[LiteralString] = []
        self._parameters = ParameterMap()
        self._registry = AliasRegistry()
        self._namespacer = ParamNamespacer()
        self._state_machine = QueryState()
        self._returns: list[ReturnRef] = []
        self._previous: str | None = None
        self._active: ClauseStatement | None = None
        self._built = False
        self._nested = False

    @classmethod
    def _subquery(cls, parent: "QueryBuilder", imports: list[str]) -> "QueryBuilder":
        child = cls()
        child._registry = parent._registry.child(imports)
        child._namespacer = parent._namespacer
        child._nested = True
        return child

    @property
    def registry(self) -> AliasRegistry:
        return self._registry

    @property
    def namespacer(self) -> ParamNamespacer:
        return self._namespacer

    @property
    def returns(self) -> list[ReturnRef]:
        return list(self._returns)

    @property
    def previous(self) -> str | None:
        """Alias of the entity emitted last by a finished statement."""
        return self._previous

    def _ensure_ready(self, operation: str) -> None:
        if self._built:
            raise StateError(
                f"Cannot {operation}: this query has already been built",
                QueryBuilderErrorDetails(source="QueryBuilder", operation=operation, state="BUILT"),
            )
        if self._active is not None:
            clause = self._active.clause.name
            raise StateError(
                f"Cannot {operation} while a {clause} statement is open, call end_statement() first",
                QueryBuilderErrorDetails(
                    source="QueryBuilder",
                    operation=operation,
                    state=clause,
                    valid_next=["end_statement"],
                ),
            )

    # QueryBuilderInterface

    def append_query_part(self, part: LiteralString) -> None:
        self._query_parts.append(part)

    def append_tail_part(self, part: LiteralString) -> None:
        self._tail_parts.append(part)

    def add_clause(self, clause_type: ClauseType, operation: str) -> None:
        self._ensure_ready(operation)
        self._state_machine.add_clause(clause_type, operation)

    def add_parameter(self, scope: str, value: Any) -> str:
        return self._parameters.add(self._namespacer.key(scope, "count"), value)

    # Statements

    def _begin(self, statement_cls: type[S], operation: str) -> S:
        self._ensure_ready(operation)
        self._state_machine.validate_can_add(statement_cls.clause, operation)
        statement = statement_cls(self)
        self._active = statement
        logger.debug("Statement started", extra={"clause": statement_cls.clause.name})
        return statement

    def create(self) -> CreateStatement:
        return self._begin(CreateStatement, "create")

    def merge(self) -> MergeStatement:
        return self._begin(MergeStatement, "merge")

    def match(self) -> MatchStatement:
        return self._begin(MatchStatement, "match")

    def optional_match(self) -> OptionalMatchStatement:
        return self._begin(OptionalMatchStatement, "optional_match")

    def close_statement(
        self,
        statement: ClauseStatement,
        text: LiteralString,
        params: ParameterMap,
        previous: str | None,
    ) -> "QueryBuilder":
        """Take back control from the open statement; called by ``ClauseStatement.end_statement``."""
        if self._active is not statement:
            raise StateError(
                f"This {statement.clause.name} statement is not the one open on the builder",
                QueryBuilderErrorDetails(source="QueryBuilder", operation="end_statement", state=statement.clause.name),
            )
        self._active = None
        self._parameters.merge(params)
        self.append_query_part(text)
        self._state_machine.add_clause(statement.clause, "end_statement")
        if previous is not None:
            self._previous = previous
        return self

    def add_return(self, ref: ReturnRef) -> None:
        if all(existing.alias != ref.alias for existing in self._returns):
            self._returns.append(ref)

    # Composition

    def with_(self, *targets: Target) -> "QueryBuilder":
        """Project ``WITH a, b``; only the projected aliases stay in scope.

        Returns:
            Self for method chaining
        """
        self._ensure_ready("with_")
        if not targets:
            raise StateError(
                "with_ needs at least one alias",
                QueryBuilderErrorDetails(source="QueryBuilder", operation="with_"),
            )
        self._state_machine.validate_can_add(ClauseType.WITH, "with_")

        aliases: list[str] = []
        for target in targets:
            alias = self._registry.resolve(target, "with_")
            if alias not in aliases:
                aliases.append(alias)

        self.append_query_part(create_literal_str("WITH ", ", ".join(aliases)))
        self._registry.restrict(aliases)
        self._returns = [ref for ref in self._returns if ref.alias in aliases]
        if self._previous not in aliases:
            self._previous = None
        self.add_clause(ClauseType.WITH, "with_")
        return self

    def filter(self, where: Where) -> "QueryBuilder":
        """Add ``WHERE`` directly after a WITH projection."""
        self._ensure_ready("filter")
        self._state_machine.validate_can_add(ClauseType.WHERE, "filter")
        text, params = where.build(self._registry, self._namespacer)
        self._parameters.merge(params)
        self.append_query_part(create_literal_str("WHERE ", text))
        self.add_clause(ClauseType.WHERE, "filter")
        return self

    def set(self, target: Target | None = None, props: Iterable[PropLike] = ()) -> "QueryBuilder":
        """Add ``SET alias.key = $setN_key`` after a WITH projection.

        Args:
            target: Alias, entity or None for the entity emitted last
            props: Property names (current value) or explicit ``Prop`` pairs

        Returns:
            Self for method chaining
        """
        self._ensure_ready("set")
        self._state_machine.validate_can_add(ClauseType.SET, "set")
        if target is None:
            if self._previous is None:
                raise StateError(
                    "set needs a target: nothing in scope was emitted last",
                    QueryBuilderErrorDetails(source="QueryBuilder", operation="set"),
                )
            target = self._previous
        assignments = set_assignments(self._registry, self._namespacer, self._parameters, target, props)
        self.append_query_part(create_literal_str("SET ", ", ".join(assignments)))
        self.add_clause(ClauseType.SET, "set")
        return self

    def unwind(self, unwinder: Unwinder) -> "QueryBuilder":
        """Add ``UNWIND $unwindN AS unwindN``."""
        self._ensure_ready("unwind")
        self._state_machine.validate_can_add(ClauseType.UNWIND, "unwind")
        alias = self._registry.assign(unwinder)
        self._parameters.add(alias, unwinder.values)
        self.append_query_part(create_literal_str("UNWIND ", f"${alias} AS {alias}"))
        self.add_clause(ClauseType.UNWIND, "unwind")
        return self

    def call(self, targets: Iterable[Target], inner: Callable[["QueryBuilder"], Any]) -> "QueryBuilder":
        """Add a ``CALL (a, b) { ... }`` subquery.

        ``inner`` receives a child builder that continues this query's alias
        and parameter counters and only sees the imported aliases. Whatever
        the child returns becomes visible here and joins the RETURN list.

        Args:
            targets: Aliases imported into the subquery
            inner: Function that builds the subquery on the child builder

        Returns:
            Self for method chaining
        """
        self._ensure_ready("call")
        self._state_machine.validate_can_add(ClauseType.CALL, "call")
        imports = [self._registry.resolve(target, "call") for target in targets]

        child = QueryBuilder._subquery(self, imports)
        inner(child)
        child._ensure_ready("call")
        body, child_returns = child._render()

        self._parameters.merge(child._parameters)
        indented = "\n".join(f"  {line}" for line in body.split("\n"))
        self.append_query_part(create_literal_str(f"CALL ({', '.join(imports)}) {{\n", f"{indented}\n}}"))

        returned = [ref.alias for ref in child_returns]
        self._registry.expose(returned)
        for ref in child_returns:
            self.add_return(ref)
        logger.debug("Subquery composed", extra={"imports": imports, "returns": returned})
        self.add_clause(ClauseType.CALL, "call")
        return self

    # Tail

    def order_by(self, target: Target, key: str, order: Order = Order.ASC) -> "QueryBuilder":
        """Add an ``ORDER BY alias.key`` item; repeated calls add more sort keys."""
        self._ensure_ready("order_by")
        self._state_machine.validate_can_add(ClauseType.ORDER_BY, "order_by")
        alias = self._registry.resolve(target, "order_by")
        self._order_parts.append(f"{alias}.{key} {order.value}")
        self.add_clause(ClauseType.ORDER_BY, "order_by")
        return self

    def set_returns(self, *targets: Target) -> "QueryBuilder":
        """Replace the tracked RETURN list."""
        self._ensure_ready("set_returns")
        self._returns = [self._registry.return_ref(target, "set_returns") for target in targets]
        return self

    def _render(self) -> tuple[LiteralString, list[ReturnRef]]:
        self._state_machine.validate_can_build(bool(self._returns))

        parts: list[str] = list(self._query_parts)
        if self._returns:
            parts.append("RETURN " + ", ".join(ref.alias for ref in self._returns))
        if self._order_parts:
            parts.append("ORDER BY " + ", ".join(self._order_parts))
        parts.extend(self._tail_parts)

        self._built = True
        return create_literal_str("", "\n".join(parts)), list(self._returns)

    def build(self, returns: Iterable[Target] | None = None) -> tuple[LiteralString, dict[str, Any]]:
        """Build the final Cypher query and parameters.

        Args:
            returns: Explicit RETURN list replacing the tracked one

        Returns:
            Tuple of (query, params)

        Raises:
            StateError: If the query is not in a buildable state
        """
        self._ensure_ready("build")
        if self._nested:
            raise StateError(
                "A subquery is rendered by its enclosing call(), not built on its own",
                QueryBuilderErrorDetails(source="QueryBuilder", operation="build", state="SUBQUERY"),
            )
        if returns is not None:
            self.set_returns(*returns)

        query, _ = self._render()
        params = self._parameters.as_dict()
        debug(
            "Built Cypher query",
            extra={
                "clauses": [clause.name for clause in self._state_machine.clauses],
                "returns": [ref.alias for ref in self._returns],
                "param_count": len(params),
            },
            logger_name=__name__,
        )
        return query, params

    async def run(
        self,
        driver: AsyncDriver | Neo4jQuery[Any],
        unpack: Unpack | None = None,
        returns: Iterable[Target] | None = None,
    ) -> list[list[Any]]:
        """Build the query, execute it and hydrate the returned aliases.

        Driver errors reach the caller unchanged.

        Args:
            driver: Connected driver, or an existing query executor
            unpack: ``(ref, value) -> value`` hydration hook; defaults to ``default_unpack``
            returns: Explicit RETURN list replacing the tracked one

        Returns:
            One list per row, holding one hydrated value per RETURN item, in row order
        """
        query, params = self.build(returns)
        refs = list(self._returns)
        executor = driver if isinstance(driver, Neo4jQuery) else Neo4jQuery(driver)
        hydrate = unpack or default_unpack

        with scoped_log_context(query_returns=[ref.alias for ref in refs]):
            records = await executor.execute_list(query, params)
        return [[hydrate(ref, record[ref.alias]) for ref in refs] for record in records]
