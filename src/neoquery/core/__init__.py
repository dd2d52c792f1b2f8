from .base import (
    ApplicationError,
    ErrorCode,
    ErrorDetails,
    ErrorLevel,
    QueryBuilderErrorDetails,
)
from .errors import (
    ConditionSyntaxError,
    ParamCollisionError,
    QueryConstructionError,
    StateError,
    UnknownAliasError,
)
