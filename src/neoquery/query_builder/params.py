"""Parameter naming and the write-once parameter map.

Keys are ``{scope}{sequence}_{key}``, or ``{scope}_{key}`` without a
sequence. The scope is an entity alias (``page1_id``) or a clause kind
(``where3_id``, ``set2_path``), so two entities or two conditions can bind the
same property name in one query. The sequence digits always end at the first
underscore, so property names ending in a digit cannot produce a duplicate key.
"""

from collections.abc import Iterator, Mapping
from typing import Any

from neoquery.core.base import QueryBuilderErrorDetails
from neoquery.core.errors import ParamCollisionError


def param_key(scope: str, key: str, sequence: int | None = None) -> str:
    """Build a parameter name from its scope, property key and sequence number."""
    if sequence is None:
        return f"{scope}_{key}"
    return f"{scope}{sequence}_{key}"


class ParamNamespacer:
    """Per-scope running counters for one query.

    A CALL subquery shares its parent's namespacer, so numbering continues
    across the subquery boundary in both directions.
    """

    def __init__(self) -> None:
        self._counters: dict[str, int] = {}

    def next(self, scope: str) -> int:
        """Advance the counter for ``scope`` and return the new value."""
        self._counters[scope] = self._counters.get(scope, 0) + 1
        return self._counters[scope]

    def current(self, scope: str) -> int:
        return self._counters.get(scope, 0)

    def key(self, scope: str, key: str) -> str:
        """Return a fresh, numbered parameter name in ``scope``."""
        return param_key(scope, key, self.next(scope))


class ParameterMap(Mapping[str, Any]):
    """Parameter values keyed by name; a key can only be written once."""

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def add(self, key: str, value: Any) -> str:
        """Bind ``value`` under ``key``.

        Raises:
            ParamCollisionError: If ``key`` is already bound
        """
        if key in self._values:
            raise ParamCollisionError(
                f"Parameter '{key}' is already bound",
                QueryBuilderErrorDetails(source="ParameterMap", operation="add", key=key),
            )
        self._values[key] = value
        return key

    def merge(self, other: Mapping[str, Any]) -> None:
        for key, value in other.items():
            self.add(key, value)

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)
