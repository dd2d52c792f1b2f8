"""Array-valued parameters expanded one row per element."""

from collections.abc import Iterable
from typing import Any, ClassVar

from neoquery.domain.entity import EntityKind, GraphEntity


class Unwinder:
    """A list bound as a parameter and iterated with ``UNWIND``.

    The builder assigns the alias (``unwind1``, ``unwind2``, ...) when the
    unwinder is passed to ``QueryBuilder.unwind``; the same alias names both
    the parameter and the per-row variable.
    """

    entity_kind: ClassVar[EntityKind] = EntityKind.UNWIND

    @classmethod
    def label(cls) -> str:
        return "unwind"

    def __init__(self, values: Iterable[Any]) -> None:
        self.values: list[Any] = list(values)

    @classmethod
    def from_entities(cls, entities: Iterable[GraphEntity], key: str) -> "Unwinder":
        """Collect the current value of property ``key`` from each entity."""
        return cls(entity.prop(key).value for entity in entities)

    def __len__(self) -> int:
        return len(self.values)

    def __repr__(self) -> str:
        return f"Unwinder({self.values!r})"
