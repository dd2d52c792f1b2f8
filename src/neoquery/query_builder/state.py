"""State management for the query builder.

Two levels of state are tracked: the clause sequence of the whole query
(``QueryState``) and the pattern/operation state inside one MATCH, CREATE or
MERGE statement (``StatementState``). Both raise ``StateError`` naming the
operations that would have been legal instead.
"""

from enum import Enum, auto
from typing import ClassVar

from neoquery.core.base import QueryBuilderErrorDetails
from neoquery.core.errors import StateError


class ClauseType(Enum):
    """Enum for Cypher clause types."""

    # Statements
    MATCH = auto()
    OPTIONAL_MATCH = auto()
    CREATE = auto()
    MERGE = auto()

    # Projection and composition
    WITH = auto()
    WHERE = auto()
    SET = auto()
    UNWIND = auto()
    CALL = auto()

    # Tail
    ORDER_BY = auto()
    SKIP = auto()
    LIMIT = auto()
    RETURN = auto()


_STATEMENTS: set[ClauseType] = {
    ClauseType.MATCH,
    ClauseType.OPTIONAL_MATCH,
    ClauseType.CREATE,
    ClauseType.MERGE,
}
_TAIL: set[ClauseType] = {ClauseType.ORDER_BY, ClauseType.SKIP, ClauseType.LIMIT}
_COMPOSE: set[ClauseType] = {ClauseType.WITH, ClauseType.UNWIND, ClauseType.CALL}


class QueryState:
    """Clause sequence of one query.

    ``None`` stands for the empty query.
    """

    _VALID_AFTER: ClassVar[dict[ClauseType | None, set[ClauseType]]] = {
        None: _STATEMENTS | {ClauseType.UNWIND, ClauseType.CALL},
        **{statement: _STATEMENTS | _COMPOSE | _TAIL for statement in _STATEMENTS},
        ClauseType.WITH: _STATEMENTS | _COMPOSE | _TAIL | {ClauseType.WHERE, ClauseType.SET},
        ClauseType.WHERE: _STATEMENTS | _COMPOSE | _TAIL | {ClauseType.SET},
        ClauseType.SET: _STATEMENTS | _COMPOSE | _TAIL | {ClauseType.SET},
        ClauseType.UNWIND: _STATEMENTS | _COMPOSE | _TAIL,
        ClauseType.CALL: _STATEMENTS | _COMPOSE | _TAIL,
        ClauseType.ORDER_BY: _TAIL,
        ClauseType.SKIP: {ClauseType.LIMIT},
        ClauseType.LIMIT: set(),
    }

    # A query ending here only makes sense with something to return
    _NEEDS_RETURN: ClassVar[set[ClauseType]] = {ClauseType.WITH, ClauseType.WHERE, ClauseType.UNWIND}

    def __init__(self) -> None:
        self._clauses: list[ClauseType] = []

    @property
    def current_clause(self) -> ClauseType | None:
        if not self._clauses:
            return None
        return self._clauses[-1]

    @property
    def clauses(self) -> list[ClauseType]:
        return list(self._clauses)

    def valid_next(self) -> list[ClauseType]:
        return sorted(self._VALID_AFTER[self.current_clause], key=lambda clause: clause.value)

    def can_add(self, clause_type: ClauseType) -> bool:
        return clause_type in self._VALID_AFTER[self.current_clause]

    def validate_can_add(self, clause_type: ClauseType, operation: str) -> None:
        """Validate that a clause can be added.

        Raises:
            StateError: If the clause cannot follow the current one
        """
        if self.can_add(clause_type):
            return
        previous = self.current_clause.name if self.current_clause else "START"
        valid_next = [clause.name for clause in self.valid_next()]
        raise StateError(
            f"Cannot add {clause_type.name} after {previous}, valid options are: {', '.join(valid_next) or 'none'}",
            QueryBuilderErrorDetails(
                source="QueryState",
                operation=operation,
                state=previous,
                valid_next=valid_next,
            ),
        )

    def add_clause(self, clause_type: ClauseType, operation: str | None = None) -> None:
        self.validate_can_add(clause_type, operation or clause_type.name.lower())
        self._clauses.append(clause_type)

    def validate_can_build(self, has_returns: bool) -> None:
        """Validate that the query can be finalized.

        Raises:
            StateError: If the query is empty, or ends on a projection with nothing to return
        """
        current = self.current_clause
        if current is None:
            raise StateError(
                "Cannot build an empty query",
                QueryBuilderErrorDetails(source="QueryState", operation="build", state="START"),
            )
        uses_tail = any(clause in _TAIL for clause in self._clauses)
        if not has_returns and (current in self._NEEDS_RETURN or uses_tail):
            raise StateError(
                f"Cannot build after {current.name} without anything to return",
                QueryBuilderErrorDetails(source="QueryState", operation="build", state=current.name),
            )


class PatternState(Enum):
    """Where a statement's pattern currently ends."""

    EMPTY = auto()
    NODE = auto()
    RELATION = auto()
    # Pattern finished; only clause sections may follow
    CLOSED = auto()
    ENDED = auto()


class StatementOp(Enum):
    """Operations available on a statement."""

    NODE = auto()
    RELATION = auto()
    LABELS = auto()
    RETURN = auto()
    FILTER = auto()
    SET = auto()
    ON_CREATE = auto()
    ON_MATCH = auto()
    DELETE = auto()
    END = auto()


_PATTERN_OPS: set[StatementOp] = {StatementOp.NODE, StatementOp.RELATION, StatementOp.LABELS, StatementOp.RETURN}


class StatementState:
    """Operation sequencing inside one MATCH, CREATE or MERGE statement."""

    _SUPPORTED: ClassVar[dict[ClauseType, set[StatementOp]]] = {
        ClauseType.CREATE: _PATTERN_OPS | {StatementOp.END},
        ClauseType.MATCH: _PATTERN_OPS | {StatementOp.FILTER, StatementOp.SET, StatementOp.DELETE, StatementOp.END},
        ClauseType.OPTIONAL_MATCH: _PATTERN_OPS
        | {StatementOp.FILTER, StatementOp.SET, StatementOp.DELETE, StatementOp.END},
        ClauseType.MERGE: _PATTERN_OPS
        | {StatementOp.ON_CREATE, StatementOp.ON_MATCH, StatementOp.SET, StatementOp.END},
    }

    _SECTIONS: ClassVar[set[StatementOp]] = {
        StatementOp.FILTER,
        StatementOp.SET,
        StatementOp.ON_CREATE,
        StatementOp.ON_MATCH,
        StatementOp.DELETE,
    }

    _ALLOWED_IN: ClassVar[dict[PatternState, set[StatementOp]]] = {
        PatternState.EMPTY: {StatementOp.NODE},
        PatternState.NODE: {StatementOp.RELATION, StatementOp.LABELS, StatementOp.RETURN, StatementOp.END}
        | _SECTIONS,
        PatternState.RELATION: {StatementOp.NODE, StatementOp.RETURN},
        PatternState.CLOSED: {StatementOp.RETURN, StatementOp.END} | _SECTIONS,
        PatternState.ENDED: set(),
    }

    def __init__(self, clause: ClauseType) -> None:
        self.clause = clause
        self.pattern = PatternState.EMPTY

    def valid_next(self) -> list[StatementOp]:
        allowed = self._ALLOWED_IN[self.pattern] & self._SUPPORTED[self.clause]
        return sorted(allowed, key=lambda op: op.value)

    def validate(self, op: StatementOp, operation: str) -> None:
        """Validate that ``op`` is legal now.

        Raises:
            StateError: If the statement kind does not support ``op`` or the pattern state forbids it
        """
        if op not in self._SUPPORTED[self.clause]:
            reason = f"{self.clause.name} statements do not support {operation}"
        elif op not in self._ALLOWED_IN[self.pattern]:
            if self.pattern is PatternState.ENDED:
                reason = f"Cannot {operation} on a {self.clause.name} statement that has already ended"
            else:
                reason = f"Cannot {operation} while the {self.clause.name} pattern is {self.pattern.name}"
        else:
            return
        valid_next = [o.name for o in self.valid_next()]
        raise StateError(
            f"{reason}, valid options are: {', '.join(valid_next) or 'none'}",
            QueryBuilderErrorDetails(
                source=f"{self.clause.name} statement",
                operation=operation,
                state=self.pattern.name,
                valid_next=valid_next,
            ),
        )

    def advance(self, op: StatementOp, operation: str) -> None:
        self.validate(op, operation)
        if op is StatementOp.NODE:
            self.pattern = PatternState.NODE
        elif op is StatementOp.RELATION:
            self.pattern = PatternState.RELATION
        elif op is StatementOp.END:
            self.pattern = PatternState.ENDED
        elif op in self._SECTIONS:
            self.pattern = PatternState.CLOSED
