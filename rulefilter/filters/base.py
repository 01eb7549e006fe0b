#!/usr/bin/env python3
"""
Base types shared by the rule filter engine.
Defines the rule capability set, the field/column types, the logic
connectives and the option objects used while validating and compiling.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from ..exceptions import InvalidConditionError

# Default number of rules a combined rule may hold when no limit is given.
DEFAULT_MAX_RULES_LIMIT = 50
DEFAULT_MAX_IN_LIMIT = 500
DEFAULT_MAX_NOT_IN_LIMIT = 500

# Maximum nesting of rule documents accepted by the decoder.
DEFAULT_MAX_DECODE_DEPTH = 10

# Reserved field name used under an array parent, matches any element.
FILTER_ARRAY_ELEMENT = "element"

# Mongo logical connective keys
MONGO_AND = "$and"
MONGO_OR = "$or"

_INDEX_PATTERN = re.compile(r"[+-]?\d+")


class RuleType(str, Enum):
    """Kind of a rule node."""
    UNKNOWN = "Unknown"
    ATOM = "AtomRule"
    COMBINED = "CombinedRule"


class FieldType(str, Enum):
    """Declared semantic types of queryable fields."""
    STRING = "string"
    NUMERIC = "numeric"
    BOOLEAN = "bool"
    TIME = "time"
    OBJECT = "object"
    ARRAY = "array"

    @classmethod
    def from_string(cls, value: str) -> Optional['FieldType']:
        for typ in cls:
            if typ.value == value:
                return typ
        return None


class LogicOperator(str, Enum):
    """Logical connectives of a combined rule."""
    AND = "AND"
    OR = "OR"

    @classmethod
    def from_string(cls, value: Any) -> Optional['LogicOperator']:
        for op in cls:
            if op.value == value:
                return op
        return None

    @classmethod
    def validate(cls, value: Any) -> 'LogicOperator':
        """Return the connective for value or raise InvalidConditionError."""
        op = cls.from_string(value)
        if op is None:
            raise InvalidConditionError(value)
        return op

    @property
    def mongo_key(self) -> str:
        return MONGO_AND if self is LogicOperator.AND else MONGO_OR


def parse_array_index(value: str) -> Optional[int]:
    """Parse value as an array index, None when it is not an integer."""
    if not _INDEX_PATTERN.fullmatch(value):
        return None
    return int(value)


def is_array_index(value: str) -> bool:
    index = parse_array_index(value)
    return index is not None and index > 0


@dataclass(frozen=True)
class RuleOption:
    """
    Compile context of a rule nested inside an object or array field.

    Attributes:
        parent: Full path of the parent field
        parent_type: FieldType.OBJECT or FieldType.ARRAY
    """
    parent: str
    parent_type: FieldType


@dataclass(frozen=True)
class ExprOption:
    """
    Validation policy of an expression.
    Zero values mean the concern is unrestricted.

    Attributes:
        rule_fields: Queryable field paths and their declared types
        max_rules_limit: Max children of a combined rule
        max_rules_depth: Max nesting of combined rules
        max_in_limit: Max elements of an `in` value
        max_not_in_limit: Max elements of a `not_in` value
        array_scope: Whether the rule being validated sits under an array
            field, in which case positive integer paths address elements
    """
    rule_fields: Dict[str, FieldType] = field(default_factory=dict)
    max_rules_limit: int = 0
    max_rules_depth: int = 0
    max_in_limit: int = 0
    max_not_in_limit: int = 0
    array_scope: bool = False

    @classmethod
    def default(cls, rule_fields: Optional[Dict[str, FieldType]] = None) -> 'ExprOption':
        """Create an option with the default structural limits."""
        return cls(
            rule_fields=dict(rule_fields or {}),
            max_rules_limit=DEFAULT_MAX_RULES_LIMIT,
            max_in_limit=DEFAULT_MAX_IN_LIMIT,
            max_not_in_limit=DEFAULT_MAX_NOT_IN_LIMIT,
        )

    @classmethod
    def strict(cls, rule_fields: Dict[str, FieldType], max_rules_depth: int = 3) -> 'ExprOption':
        """Create an option restricted to rule_fields with bounded nesting."""
        return cls(
            rule_fields=dict(rule_fields),
            max_rules_limit=20,
            max_rules_depth=max_rules_depth,
            max_in_limit=100,
            max_not_in_limit=100,
        )

    @property
    def effective_max_rules(self) -> int:
        if self.max_rules_limit > 0:
            return self.max_rules_limit
        return DEFAULT_MAX_RULES_LIMIT

    def _resolve(self, path: str) -> str:
        # positive integer segments under an array field address its elements
        resolved: List[str] = []
        for idx, segment in enumerate(path.split(".")):
            if is_array_index(segment):
                if idx == 0:
                    in_array = self.array_scope
                else:
                    in_array = self.rule_fields.get(".".join(resolved)) == FieldType.ARRAY
                if in_array:
                    segment = FILTER_ARRAY_ELEMENT
            resolved.append(segment)
        return ".".join(resolved)

    def lookup(self, path: str) -> Optional[FieldType]:
        """
        Get the declared type of a field path.

        A positive integer segment following an array field resolves to
        the array's element declaration, e.g. `tags.2` -> `tags.element`.
        """
        if path in self.rule_fields:
            return self.rule_fields[path]
        return self.rule_fields.get(self._resolve(path))

    def scoped(self, prefix: str, parent_type: FieldType) -> 'ExprOption':
        """
        Option for validating a rule nested under the prefix field.
        The prefix resolves like lookup does, so under an array scope `1`
        selects the `element.` declarations.
        """
        heads = (prefix + ".", self._resolve(prefix) + ".")
        sub_fields: Dict[str, FieldType] = {}
        for name, typ in self.rule_fields.items():
            for head in heads:
                if name.startswith(head):
                    sub_fields[name[len(head):]] = typ
                    break
        return replace(self, rule_fields=sub_fields,
                       array_scope=parent_type == FieldType.ARRAY)

    def child(self) -> 'ExprOption':
        """Option for the children of a combined rule, one level deeper."""
        if self.max_rules_depth > 0:
            return replace(self, max_rules_depth=self.max_rules_depth - 1)
        return self


class RuleFactory(ABC):
    """
    The capability set every rule node provides.
    """

    @abstractmethod
    def kind(self) -> RuleType:
        """Get the rule's type."""
        pass

    @abstractmethod
    def validate(self, opt: Optional[ExprOption] = None) -> None:
        """
        Validate the rule.

        Args:
            opt: Validation policy, None means unrestricted

        Raises:
            InvalidFilterError: On the first invalid node found
        """
        pass

    @abstractmethod
    def fields(self) -> List[str]:
        """Get the field paths referenced by the rule, in traversal order."""
        pass

    @abstractmethod
    def to_mongo(self, opt: Optional[RuleOption] = None) -> Dict[str, Any]:
        """
        Convert the rule to a mongo query condition.

        Args:
            opt: Parent context when the rule filters an object/array field

        Raises:
            FilterCompileError: If the rule can not be converted
        """
        pass

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Get the wire document of the rule."""
        pass
