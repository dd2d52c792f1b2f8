"""Cypher query builder.

This package assembles parameterized Cypher queries from graph entities,
enforcing legal clause sequences at every call.
"""

from .aliases import AliasRegistry, ReturnRef
from .builder import Order, QueryBuilder, create_literal_str, default_unpack
from .params import ParameterMap, ParamNamespacer, param_key
from .patterns import Direction, NodePattern, PatternBuilder, RelationshipPattern
from .state import ClauseType, QueryState, StatementState
from .statements import CreateStatement, MatchStatement, MergeStatement, OptionalMatchStatement
from .unwind import Unwinder
from .where import CompareJoiner, CompareOperator, Where

__all__ = [
    "AliasRegistry",
    "ClauseType",
    "CompareJoiner",
    "CompareOperator",
    "CreateStatement",
    "Direction",
    "MatchStatement",
    "MergeStatement",
    "NodePattern",
    "OptionalMatchStatement",
    "Order",
    "ParamNamespacer",
    "ParameterMap",
    "PatternBuilder",
    # Builder
    "QueryBuilder",
    "QueryState",
    "RelationshipPattern",
    "ReturnRef",
    "StatementState",
    "Unwinder",
    # Conditions
    "Where",
    "create_literal_str",
    "default_unpack",
    "param_key",
]
