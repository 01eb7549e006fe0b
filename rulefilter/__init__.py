"""
Rule Filter
Validates boolean filter expressions and compiles them to MongoDB queries.
"""

from .filters import (
    AtomRule,
    CombinedRule,
    Expression,
    ExprOption,
    FieldType,
    LogicOperator,
    MongoFilterBackend,
    OperatorType,
    RuleOption,
)
from .exceptions import FilterError, InvalidFilterError, FilterDecodeError, FilterCompileError
from .config import Config

__version__ = "1.0.0"

__all__ = [
    "AtomRule",
    "CombinedRule",
    "Expression",
    "ExprOption",
    "FieldType",
    "LogicOperator",
    "MongoFilterBackend",
    "OperatorType",
    "RuleOption",
    "FilterError",
    "InvalidFilterError",
    "FilterDecodeError",
    "FilterCompileError",
    "Config",
]
