"""
Rule filter expressions compiled to MongoDB query documents.

An expression is a tree of atom rules (`field operator value`) joined by
combined rules (`AND`/`OR`). Trees are decoded from JSON or BSON,
validated against a caller supplied policy and converted to the query
document consumed by the storage layer.

Example usage:
    from rulefilter.filters import ExprOption, FieldType, MongoFilterBackend

    backend = MongoFilterBackend(ExprOption.default({
        "age": FieldType.NUMERIC,
        "name": FieldType.STRING,
    }))
    query = backend.convert_json('''{
        "condition": "OR",
        "rules": [
            {"field": "age", "operator": "greater", "value": 18},
            {"field": "name", "operator": "equal", "value": "Al"}
        ]
    }''')
    # {"$or": [{"age": {"$gt": 18}}, {"name": {"$eq": "Al"}}]}
"""

from .base import (
    DEFAULT_MAX_DECODE_DEPTH,
    DEFAULT_MAX_IN_LIMIT,
    DEFAULT_MAX_NOT_IN_LIMIT,
    DEFAULT_MAX_RULES_LIMIT,
    FILTER_ARRAY_ELEMENT,
    ExprOption,
    FieldType,
    LogicOperator,
    RuleFactory,
    RuleOption,
    RuleType,
)
from .values import ValueKind, kind_of, validate_field_value
from .operators import CATALOG, Operator, OperatorType
from .rules import AtomRule, CombinedRule
from .codec import (
    RuleDecoder,
    dump_bson_rule,
    dump_json_rule,
    load_bson_document,
    load_json_document,
    parse_bson_rule,
    parse_json_rule,
)
from .expression import Expression
from .mongo_backend import FilterBackend, MongoFilterBackend

__all__ = [
    # Core types
    'RuleFactory',
    'RuleType',
    'AtomRule',
    'CombinedRule',
    'Expression',
    'ExprOption',
    'RuleOption',
    'FieldType',
    'LogicOperator',

    # Catalog
    'Operator',
    'OperatorType',
    'CATALOG',
    'ValueKind',
    'kind_of',
    'validate_field_value',

    # Codecs
    'RuleDecoder',
    'parse_json_rule',
    'parse_bson_rule',
    'dump_json_rule',
    'dump_bson_rule',
    'load_json_document',
    'load_bson_document',

    # Backends
    'FilterBackend',
    'MongoFilterBackend',

    # Defaults
    'DEFAULT_MAX_RULES_LIMIT',
    'DEFAULT_MAX_IN_LIMIT',
    'DEFAULT_MAX_NOT_IN_LIMIT',
    'DEFAULT_MAX_DECODE_DEPTH',
    'FILTER_ARRAY_ELEMENT',
]
