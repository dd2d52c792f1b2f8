"""Pattern builders for Cypher queries.

Node patterns render as ``(alias:Label {k: $p})`` and relationship patterns
as ``-[alias:TYPE*min..max {k: $p}]->``. Property maps arrive already
rendered (see ``GraphEntity.entity_by``), so no value is ever inlined.
"""

from enum import Enum
from typing import LiteralString, cast


class Direction(Enum):
    """Direction of a relationship pattern, read left to right."""

    OUTGOING = "->"
    INCOMING = "<-"
    UNDIRECTED = "-"


def property_map(expressions: dict[str, str]) -> str:
    """Render ``{key: expression, ...}`` from already-safe expressions."""
    if not expressions:
        return ""
    return "{" + ", ".join(f"{key}: {expression}" for key, expression in expressions.items()) + "}"


class NodePattern:
    """Builder for Cypher node patterns.

    This class represents a node pattern like (n:Label {prop: $param}).
    """

    def __init__(
        self,
        variable: str = "",
        labels: list[str] | None = None,
        properties: str = "",
    ) -> None:
        """Initialize a node pattern builder.

        Args:
            variable: Variable name for the node (can be empty)
            labels: Node labels
            properties: Rendered property map, e.g. ``{id: $page1_id}``
        """
        self.variable: str = variable
        self.labels: list[str] = labels or []
        self.properties: str = properties

    def add_labels(self, *labels: str) -> "NodePattern":
        for label in labels:
            if label not in self.labels:
                self.labels.append(label)
        return self

    def build(self) -> LiteralString:
        """Build the Cypher node pattern string.

        Returns:
            Cypher node pattern as a LiteralString
        """
        pattern_parts: list[str] = ["(", self.variable]

        if self.labels:
            pattern_parts.append(":" + ":".join(self.labels))

        if self.properties:
            pattern_parts.append(f" {self.properties}")

        pattern_parts.append(")")
        return cast("LiteralString", "".join(pattern_parts))


class RelationshipPattern:
    """Builder for Cypher relationship patterns, arrows included.

    An undirected pattern with no variable, type or length renders as ``--``.
    """

    def __init__(
        self,
        variable: str = "",
        types: list[str] | None = None,
        properties: str = "",
        direction: Direction = Direction.OUTGOING,
    ) -> None:
        """Initialize a relationship pattern builder.

        Args:
            variable: Variable name for the relationship (can be empty)
            types: Relationship types
            properties: Rendered property map
            direction: Direction of the relationship
        """
        self.variable: str = variable
        self.types: list[str] = types or []
        self.properties: str = properties
        self.direction: Direction = direction
        self.min_hops: int | None = None
        self.max_hops: int | None = None

    def with_length(self, min_hops: int | None = None, max_hops: int | None = None) -> "RelationshipPattern":
        """Set the length for variable-length relationships.

        Args:
            min_hops: Minimum number of hops (None for no minimum)
            max_hops: Maximum number of hops (None for no maximum)

        Returns:
            Self for method chaining
        """
        if min_hops is not None and max_hops is not None and min_hops > max_hops:
            raise ValueError(f"min_hops ({min_hops}) must not exceed max_hops ({max_hops})")
        self.min_hops = min_hops
        self.max_hops = max_hops
        return self

    @property
    def is_variable_length(self) -> bool:
        return self.min_hops is not None or self.max_hops is not None

    def _body(self) -> str:
        body_parts: list[str] = [self.variable]

        if self.types:
            body_parts.append(":" + "|".join(self.types))

        if self.is_variable_length:
            low = "" if self.min_hops is None else str(self.min_hops)
            high = "" if self.max_hops is None else str(self.max_hops)
            body_parts.append(f"*{low}..{high}")

        if self.properties:
            body_parts.append(f" {self.properties}")

        return "".join(body_parts)

    def build(self) -> LiteralString:
        """Build the Cypher relationship pattern string.

        Returns:
            Cypher relationship pattern as a LiteralString
        """
        body = self._body()
        if not body:
            inner = ""
        else:
            inner = f"[{body}]"

        if self.direction is Direction.OUTGOING:
            rendered = f"-{inner}->"
        elif self.direction is Direction.INCOMING:
            rendered = f"<-{inner}-"
        else:
            rendered = f"-{inner}-"
        return cast("LiteralString", rendered)


class PatternBuilder:
    """Ordered chain of node and relationship patterns.

    Patterns are rendered at ``build()`` time, so a node can still gain
    labels after it was appended.
    """

    def __init__(self) -> None:
        """Initialize a new pattern builder."""
        self._pattern_parts: list[NodePattern | RelationshipPattern] = []

    def node(self, pattern: NodePattern) -> "PatternBuilder":
        self._pattern_parts.append(pattern)
        return self

    def relationship(self, pattern: RelationshipPattern) -> "PatternBuilder":
        self._pattern_parts.append(pattern)
        return self

    @property
    def last(self) -> NodePattern | RelationshipPattern | None:
        return self._pattern_parts[-1] if self._pattern_parts else None

    def build(self) -> LiteralString:
        """Build the complete Cypher pattern string.

        Returns:
            Cypher pattern as a LiteralString
        """
        return cast("LiteralString", "".join(part.build() for part in self._pattern_parts))
