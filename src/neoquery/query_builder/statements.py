"""MATCH, CREATE and MERGE statements.

A statement is entered from the builder (``QueryBuilder.match()`` and
friends), collects one pattern chain plus its WHERE / SET / DELETE / ON
CREATE / ON MATCH sections, and hands control back with
``end_statement()``. Every parameter it binds is namespaced before it is
merged into the query.
"""

from collections.abc import Iterable
from typing import TYPE_CHECKING, ClassVar, LiteralString, Self, cast

from structlog.typing import FilteringBoundLogger

from neoquery.core.base import QueryBuilderErrorDetails
from neoquery.core.errors import StateError
from neoquery.core.logging import get_logger
from neoquery.domain.entity import EntityKind, GraphEntity, NodeEntity, Prop, PropLike, RelationEntity
from neoquery.query_builder.aliases import AliasRegistry, Target
from neoquery.query_builder.params import ParameterMap, ParamNamespacer, param_key
from neoquery.query_builder.patterns import (
    Direction,
    NodePattern,
    PatternBuilder,
    RelationshipPattern,
    property_map,
)
from neoquery.query_builder.state import ClauseType, StatementOp, StatementState
from neoquery.query_builder.unwind import Unwinder
from neoquery.query_builder.where import Where

if TYPE_CHECKING:
    from neoquery.query_builder.builder import QueryBuilder

logger: FilteringBoundLogger = get_logger(name=__name__)

SET_SCOPE = "set"

_BRANCHES: dict[StatementOp, str] = {
    StatementOp.ON_CREATE: "ON CREATE",
    StatementOp.ON_MATCH: "ON MATCH",
}


def set_assignments(
    registry: AliasRegistry,
    namespacer: ParamNamespacer,
    params: ParameterMap,
    target: Target,
    props: Iterable[PropLike],
    operation: str = "set",
) -> list[str]:
    """Render ``alias.key = $setN_key`` for each property, binding the values.

    All assignments of one call share the sequence number ``N``.
    """
    alias = registry.resolve(target, operation)
    entity = target if isinstance(target, GraphEntity) else registry.entity_of(alias)

    sequence = namespacer.next(SET_SCOPE)
    assignments: list[str] = []
    for prop in props:
        if not isinstance(prop, Prop):
            if entity is None:
                raise StateError(
                    f"'{alias}' has no entity to read '{prop}' from; pass a Prop",
                    QueryBuilderErrorDetails(source="set_assignments", operation=operation, alias=alias),
                )
            prop = entity.prop(prop)
        key = params.add(param_key(SET_SCOPE, prop.key, sequence), prop.value)
        assignments.append(f"{alias}.{prop.key} = ${key}")

    if not assignments:
        raise StateError(
            f"{operation} needs at least one property",
            QueryBuilderErrorDetails(source="set_assignments", operation=operation, alias=alias),
        )
    return assignments


class ClauseStatement:
    """Pattern chain shared by every statement kind."""

    clause: ClassVar[ClauseType]
    keyword: ClassVar[str]

    def __init__(self, builder: "QueryBuilder") -> None:
        self._builder = builder
        self._registry = builder.registry
        self._namespacer = builder.namespacer
        self._state = StatementState(self.clause)
        self._pattern = PatternBuilder()
        self._params = ParameterMap()
        self._previous: str | None = None
        self._where: Where | None = None
        self._sets: list[str] = []
        self._branches: dict[str, list[str]] = {}
        self._branch: str | None = None
        self._deletes: list[str] = []
        self._detach = False

    def _fail(self, message: str, operation: str) -> StateError:
        return StateError(
            message,
            QueryBuilderErrorDetails(
                source=f"{self.clause.name} statement",
                operation=operation,
                state=self._state.pattern.name,
                valid_next=[op.name for op in self._state.valid_next()],
            ),
        )

    def _add_node(self, entity: NodeEntity, fragment: str, params: dict, alias: str, *, labelled: bool) -> None:
        self._params.merge(params)
        labels = [entity.label()] if labelled else []
        self._pattern.node(NodePattern(alias, labels, fragment))
        self._state.advance(StatementOp.NODE, "node")
        self._previous = alias
        logger.debug("Node emitted", extra={"clause": self.clause.name, "alias": alias})

    def node(self, entity: NodeEntity, filter_props: Iterable[PropLike] = ()) -> Self:
        """Emit a node pattern filtered on ``filter_props``.

        An empty filter renders as the bare ``(alias)``.

        Args:
            entity: Node to emit; it gets a fresh alias
            filter_props: Property names or explicit ``Prop`` pairs

        Returns:
            Self for method chaining
        """
        self._state.validate(StatementOp.NODE, "node")
        alias = self._registry.assign(entity)
        fragment, params = entity.entity_by(alias, filter_props)
        self._add_node(entity, fragment, params, alias, labelled=bool(fragment))
        return self

    def node_ref(self, target: Target) -> Self:
        """Reference a node emitted earlier in this query, as ``(alias)``."""
        self._state.validate(StatementOp.NODE, "node_ref")
        alias = self._registry.resolve(target, "node_ref")
        if self._registry.kind_of(alias) is EntityKind.RELATION:
            raise self._fail(f"Alias '{alias}' is bound to a relation, not a node", "node_ref")
        self._pattern.node(NodePattern(alias))
        self._state.advance(StatementOp.NODE, "node_ref")
        self._previous = alias
        return self

    def node_by_unwound(self, entity: NodeEntity, key: str, unwinder: Unwinder) -> Self:
        """Emit ``(alias:Label {key: unwindN})`` matching one unwound element per row."""
        self._state.validate(StatementOp.NODE, "node_by_unwound")
        unwound = self._registry.resolve(unwinder, "node_by_unwound")
        entity.prop(key)
        alias = self._registry.assign(entity)
        self._add_node(entity, property_map({key: unwound}), {}, alias, labelled=True)
        return self

    def _add_relation(self, pattern: RelationshipPattern, alias: str | None, operation: str) -> None:
        self._pattern.relationship(pattern)
        self._state.advance(StatementOp.RELATION, operation)
        self._previous = alias

    def relation(
        self,
        entity: RelationEntity,
        filter_props: Iterable[PropLike] = (),
        *,
        direction: Direction = Direction.OUTGOING,
        min_hops: int | None = None,
        max_hops: int | None = None,
    ) -> Self:
        """Emit a relationship pattern after the current node.

        The type is always rendered, so an empty filter gives ``-[alias:TYPE]->``.

        Args:
            entity: Relationship to emit; it gets a fresh alias
            filter_props: Property names or explicit ``Prop`` pairs
            direction: Arrow direction
            min_hops: Lower bound for a variable-length relationship
            max_hops: Upper bound for a variable-length relationship

        Returns:
            Self for method chaining
        """
        self._state.validate(StatementOp.RELATION, "relation")
        alias = self._registry.assign(entity)
        fragment, params = entity.entity_by(alias, filter_props)
        self._params.merge(params)
        pattern = RelationshipPattern(alias, [entity.label()], fragment, direction)
        if min_hops is not None or max_hops is not None:
            pattern.with_length(min_hops, max_hops)
        self._add_relation(pattern, alias, "relation")
        return self

    def relation_ref(self, target: Target, direction: Direction = Direction.OUTGOING) -> Self:
        """Reference a relationship emitted earlier in this query, as ``-[alias]->``."""
        self._state.validate(StatementOp.RELATION, "relation_ref")
        alias = self._registry.resolve(target, "relation_ref")
        if self._registry.kind_of(alias) is not EntityKind.RELATION:
            raise self._fail(f"Alias '{alias}' is not bound to a relation", "relation_ref")
        self._add_relation(RelationshipPattern(alias, direction=direction), alias, "relation_ref")
        return self

    def relation_undirected(self) -> Self:
        """Emit an anonymous, untyped ``--`` between two nodes."""
        self._state.validate(StatementOp.RELATION, "relation_undirected")
        self._add_relation(RelationshipPattern(direction=Direction.UNDIRECTED), None, "relation_undirected")
        return self

    def set_additional_labels(self, *labels: str) -> Self:
        """Add labels to the node emitted last."""
        self._state.validate(StatementOp.LABELS, "set_additional_labels")
        last = self._pattern.last
        if not isinstance(last, NodePattern):
            raise self._fail("Labels can only be added to a node", "set_additional_labels")
        last.add_labels(*labels)
        return self

    def add_to_return(self) -> Self:
        """Append the entity emitted last to the query's RETURN list."""
        self._state.validate(StatementOp.RETURN, "add_to_return")
        if self._previous is None:
            raise self._fail("Nothing with an alias has been emitted yet", "add_to_return")
        self._builder.add_return(self._registry.return_ref(self._previous, "add_to_return"))
        return self

    # Sections; the state table decides which statement kinds support them

    def filter(self, where: Where) -> Self:
        """Attach the statement's WHERE tree; only one per statement."""
        self._state.validate(StatementOp.FILTER, "filter")
        if self._where is not None:
            raise self._fail("A statement takes a single filter; combine conditions with join()", "filter")
        self._where = where
        self._state.advance(StatementOp.FILTER, "filter")
        return self

    def set(self, target: Target | None = None, props: Iterable[PropLike] = ()) -> Self:
        """Add ``SET alias.key = $setN_key`` assignments.

        Args:
            target: Alias, entity or None for the entity emitted last
            props: Property names (current value) or explicit ``Prop`` pairs

        Returns:
            Self for method chaining
        """
        self._state.validate(StatementOp.SET, "set")
        self._section_for_set().extend(self._assignments(target, props, "set"))
        self._state.advance(StatementOp.SET, "set")
        return self

    def delete(self, *targets: Target, detach: bool = False) -> Self:
        """Delete the given aliases, or the entity emitted last."""
        self._state.validate(StatementOp.DELETE, "delete")
        if targets:
            aliases = [self._registry.resolve(target, "delete") for target in targets]
        elif self._previous is not None:
            aliases = [self._previous]
        else:
            raise self._fail("Nothing to delete", "delete")
        self._deletes.extend(alias for alias in aliases if alias not in self._deletes)
        self._detach = self._detach or detach
        self._state.advance(StatementOp.DELETE, "delete")
        return self

    def _open_branch(self, op: StatementOp, operation: str) -> Self:
        self._state.validate(op, operation)
        branch = _BRANCHES[op]
        if branch in self._branches:
            raise self._fail(f"{branch} was already opened for this statement", operation)
        self._branches[branch] = []
        self._branch = branch
        self._state.advance(op, operation)
        return self

    def on_create(self) -> Self:
        """Send following ``set()`` calls to ON CREATE SET."""
        return self._open_branch(StatementOp.ON_CREATE, "on_create")

    def on_match(self) -> Self:
        """Send following ``set()`` calls to ON MATCH SET."""
        return self._open_branch(StatementOp.ON_MATCH, "on_match")

    def _section_for_set(self) -> list[str]:
        if self._branch is not None:
            return self._branches[self._branch]
        return self._sets

    def _assignments(self, target: Target | None, props: Iterable[PropLike], operation: str) -> list[str]:
        if target is None and self._previous is None:
            raise self._fail("Nothing with an alias has been emitted yet", operation)
        return set_assignments(
            self._registry,
            self._namespacer,
            self._params,
            target if target is not None else self._previous,
            props,
            operation,
        )

    def _render_sections(self) -> list[str]:
        lines: list[str] = []
        if self._where is not None:
            text, params = self._where.build(self._registry, self._namespacer)
            self._params.merge(params)
            lines.append(f"WHERE {text}")
        if self._sets:
            lines.append("SET " + ", ".join(self._sets))
        lines.extend(
            f"{branch} SET " + ", ".join(assignments) for branch, assignments in self._branches.items() if assignments
        )
        if self._deletes:
            keyword = "DETACH DELETE" if self._detach else "DELETE"
            lines.append(f"{keyword} " + ", ".join(self._deletes))
        return lines

    def end_statement(self) -> "QueryBuilder":
        """Finish the statement and hand control back to the builder.

        Raises:
            StateError: If the pattern ends on a relation or the statement already ended
        """
        self._state.validate(StatementOp.END, "end_statement")
        lines = [f"{self.keyword} {self._pattern.build()}", *self._render_sections()]
        self._state.advance(StatementOp.END, "end_statement")
        logger.debug("Statement ended", extra={"clause": self.clause.name, "previous": self._previous})
        return self._builder.close_statement(
            self,
            cast("LiteralString", "\n".join(lines)),
            self._params,
            self._previous,
        )


class MatchStatement(ClauseStatement):
    """``MATCH`` with optional WHERE, SET and DELETE sections."""

    clause = ClauseType.MATCH
    keyword = "MATCH"


class OptionalMatchStatement(MatchStatement):
    clause = ClauseType.OPTIONAL_MATCH
    keyword = "OPTIONAL MATCH"


class CreateStatement(ClauseStatement):
    """``CREATE``; every query property of each entity is written.

    WHERE, SET and DELETE are not available on CREATE.
    """

    clause = ClauseType.CREATE
    keyword = "CREATE"

    def node(self, entity: NodeEntity, filter_props: Iterable[PropLike] | None = None) -> Self:
        """Emit ``(alias:Label {all properties})``; ``filter_props`` narrows the written set."""
        self._state.validate(StatementOp.NODE, "node")
        alias = self._registry.assign(entity)
        if filter_props is None:
            fragment, params = entity.create_fragment(alias)
        else:
            fragment, params = entity.entity_by(alias, filter_props)
        self._add_node(entity, fragment, params, alias, labelled=True)
        return self

    def relation(
        self,
        entity: RelationEntity,
        filter_props: Iterable[PropLike] | None = None,
        *,
        direction: Direction = Direction.OUTGOING,
        min_hops: int | None = None,
        max_hops: int | None = None,
    ) -> Self:
        if min_hops is not None or max_hops is not None:
            raise self._fail("CREATE cannot write a variable-length relation", "relation")
        props = entity.query_params() if filter_props is None else filter_props
        return super().relation(entity, props, direction=direction)


class MergeStatement(ClauseStatement):
    """``MERGE`` with ON CREATE SET and ON MATCH SET branches."""

    clause = ClauseType.MERGE
    keyword = "MERGE"

    def set(self, target: Target | None = None, props: Iterable[PropLike] = ()) -> Self:
        """Add assignments to the open ON CREATE or ON MATCH branch.

        Raises:
            StateError: If neither branch has been opened
        """
        self._state.validate(StatementOp.SET, "set")
        if self._branch is None:
            raise self._fail("MERGE can only SET inside on_create() or on_match()", "set")
        return super().set(target, props)
