#!/usr/bin/env python3
"""
Operator catalog of atom rules.
Each operator validates the shape of its value and converts a
(field, value) pair to a mongo field condition.
"""

import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional

from .base import (
    DEFAULT_MAX_IN_LIMIT, DEFAULT_MAX_NOT_IN_LIMIT,
    ExprOption, FieldType, RuleOption
)
from .values import (
    SCALAR_KINDS, ValueKind, kind_of, mongo_value, normalize_datetime, parse_datetime
)
from ..exceptions import (
    FilterCompileError, InvalidFilterError, InvalidOperatorError,
    InvalidValueError, UndeclaredFieldError
)


class OperatorType(str, Enum):
    """Operator tags accepted in atom rules."""
    EQUAL = "equal"
    NOT_EQUAL = "not_equal"

    IN = "in"
    NOT_IN = "not_in"

    LESS = "less"
    LESS_OR_EQUAL = "less_or_equal"
    GREATER = "greater"
    GREATER_OR_EQUAL = "greater_or_equal"

    DATETIME_LESS = "datetime_less"
    DATETIME_LESS_OR_EQUAL = "datetime_less_or_equal"
    DATETIME_GREATER = "datetime_greater"
    DATETIME_GREATER_OR_EQUAL = "datetime_greater_or_equal"

    BEGINS_WITH = "begins_with"
    BEGINS_WITH_INSENSITIVE = "begins_with_insensitive"
    NOT_BEGINS_WITH = "not_begins_with"
    NOT_BEGINS_WITH_INSENSITIVE = "not_begins_with_insensitive"
    CONTAINS = "contains"
    CONTAINS_INSENSITIVE = "contains_insensitive"
    NOT_CONTAINS = "not_contains"
    NOT_CONTAINS_INSENSITIVE = "not_contains_insensitive"
    ENDS_WITH = "ends_with"
    ENDS_WITH_INSENSITIVE = "ends_with_insensitive"
    NOT_ENDS_WITH = "not_ends_with"
    NOT_ENDS_WITH_INSENSITIVE = "not_ends_with_insensitive"

    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    SIZE = "size"

    EXIST = "exist"
    NOT_EXIST = "not_exist"

    FILTER_OBJECT = "filter_object"
    FILTER_ARRAY = "filter_array"

    @classmethod
    def from_string(cls, value: Any) -> Optional['OperatorType']:
        """Convert a tag to an operator type, None if it is unknown."""
        for op in cls:
            if op.value == value:
                return op
        return None

    @classmethod
    def validate(cls, value: Any) -> 'OperatorType':
        """Return the operator type of value or raise InvalidOperatorError."""
        op = cls.from_string(value)
        if op is None:
            raise InvalidOperatorError(value)
        return op

    @property
    def operator(self) -> 'Operator':
        return CATALOG[self]

    @property
    def is_structural(self) -> bool:
        return self in (OperatorType.FILTER_OBJECT, OperatorType.FILTER_ARRAY)

    @property
    def is_set(self) -> bool:
        return self in (OperatorType.IN, OperatorType.NOT_IN)


class Operator(ABC):
    """
    A comparison operator.
    """

    def __init__(self, name: OperatorType):
        self.name = name

    @abstractmethod
    def validate_value(self, value: Any, opt: Optional[ExprOption] = None) -> None:
        """
        Check that value has the shape this operator requires.

        Raises:
            InvalidValueError: If the value is not acceptable
        """
        pass

    @abstractmethod
    def to_mongo(self, field: str, value: Any) -> Dict[str, Any]:
        """Build the mongo condition of field against value."""
        pass

    def scope_option(self, field: str, value: Any,
                     opt: Optional[ExprOption]) -> Optional[ExprOption]:
        """Option the value is validated with, the rule's own by default."""
        return opt

    def __repr__(self):
        return f"{self.__class__.__name__}({self.name.value})"


class ComparisonOperator(Operator):
    """equal/not_equal and the numeric range operators."""

    def __init__(self, name: OperatorType, mongo_op: str, numeric: bool = False):
        super().__init__(name)
        self.mongo_op = mongo_op
        self.numeric = numeric

    def validate_value(self, value, opt=None):
        kind = kind_of(value)
        if self.numeric:
            if kind != ValueKind.NUMERIC:
                raise InvalidValueError(f"{self.name.value} operator's value should be a numeric")
        elif kind not in SCALAR_KINDS:
            raise InvalidValueError(
                f"{self.name.value} operator's value should be a string, numeric, boolean or time"
            )

    def to_mongo(self, field, value):
        return {field: {self.mongo_op: mongo_value(value)}}


class DatetimeOperator(Operator):
    """Range operators on time values, values are converted to datetime."""

    def __init__(self, name: OperatorType, mongo_op: str):
        super().__init__(name)
        self.mongo_op = mongo_op

    def validate_value(self, value, opt=None):
        if parse_datetime(value) is None:
            raise InvalidValueError(f"{self.name.value} operator's value should be a datetime")

    def to_mongo(self, field, value):
        when = parse_datetime(value)
        if when is None:
            raise FilterCompileError(f"{self.name.value} operator's value should be a datetime")
        return {field: {self.mongo_op: normalize_datetime(when)}}


class SetOperator(Operator):
    """in/not_in, the value is a bounded list of scalars."""

    def __init__(self, name: OperatorType, mongo_op: str):
        super().__init__(name)
        self.mongo_op = mongo_op

    def _limit(self, opt: Optional[ExprOption]) -> int:
        if self.name == OperatorType.IN:
            if opt is not None and opt.max_in_limit > 0:
                return opt.max_in_limit
            return DEFAULT_MAX_IN_LIMIT

        if opt is not None and opt.max_not_in_limit > 0:
            return opt.max_not_in_limit
        return DEFAULT_MAX_NOT_IN_LIMIT

    def validate_value(self, value, opt=None):
        if kind_of(value) != ValueKind.SEQUENCE:
            raise InvalidValueError(f"{self.name.value} operator's value should be an array")

        if len(value) == 0:
            raise InvalidValueError(f"{self.name.value} operator's value can not be empty")

        limit = self._limit(opt)
        if len(value) > limit:
            raise InvalidValueError(
                f"{self.name.value} operator's value elements count exceeds maximum {limit}"
            )

        for idx, item in enumerate(value):
            if kind_of(item) not in SCALAR_KINDS:
                raise InvalidValueError(
                    f"{self.name.value} operator's value[{idx}] should be a basic type"
                )

    def to_mongo(self, field, value):
        return {field: {self.mongo_op: mongo_value(list(value))}}


class RegexOperator(Operator):
    """Prefix/substring/suffix matching on strings."""

    def __init__(self, name: OperatorType, prefix: str = "", suffix: str = "",
                 insensitive: bool = False, negated: bool = False):
        super().__init__(name)
        self.prefix = prefix
        self.suffix = suffix
        self.insensitive = insensitive
        self.negated = negated

    def validate_value(self, value, opt=None):
        if kind_of(value) != ValueKind.STRING:
            raise InvalidValueError(f"{self.name.value} operator's value should be a string")
        if not value:
            raise InvalidValueError(f"{self.name.value} operator's value can not be empty")

    def to_mongo(self, field, value):
        cond = {"$regex": f"{self.prefix}{re.escape(value)}{self.suffix}"}
        if self.insensitive:
            cond["$options"] = "i"
        if self.negated:
            cond = {"$not": cond}
        return {field: cond}


class EmptyOperator(Operator):
    """is_empty/is_not_empty on array fields, the value is ignored."""

    def __init__(self, name: OperatorType, empty: bool):
        super().__init__(name)
        self.empty = empty

    def validate_value(self, value, opt=None):
        pass

    def to_mongo(self, field, value):
        if self.empty:
            return {field: {"$size": 0}}
        return {field: {"$not": {"$size": 0}}}


class SizeOperator(Operator):

    def validate_value(self, value, opt=None):
        if kind_of(value) != ValueKind.NUMERIC or (isinstance(value, float) and not value.is_integer()):
            raise InvalidValueError("size operator's value should be an integer")
        if value < 0:
            raise InvalidValueError("size operator's value can not be negative")

    def to_mongo(self, field, value):
        return {field: {"$size": int(value)}}


class ExistOperator(Operator):

    def __init__(self, name: OperatorType, exists: bool):
        super().__init__(name)
        self.exists = exists

    def validate_value(self, value, opt=None):
        pass

    def to_mongo(self, field, value):
        return {field: {"$exists": self.exists}}


class StructuralOperator(Operator):
    """
    filter_object/filter_array, the value is a nested rule addressing the
    sub fields (object) or the elements (array) of the field.
    """

    def __init__(self, name: OperatorType, parent_type: FieldType):
        super().__init__(name)
        self.parent_type = parent_type

    def scope_option(self, field, value, opt):
        if opt is None:
            return None

        scoped = opt.scoped(field, self.parent_type)
        if opt.rule_fields and not scoped.rule_fields and kind_of(value) == ValueKind.RULE:
            sub_fields = value.fields()
            if sub_fields:
                raise UndeclaredFieldError(f"{field}.{sub_fields[0]}")
        return scoped

    def validate_value(self, value, opt=None):
        if kind_of(value) != ValueKind.RULE:
            raise InvalidValueError(f"{self.name.value} operator's value should be a rule")

        try:
            value.validate(opt)
        except InvalidFilterError as e:
            raise e.prepend("value")

    def to_mongo(self, field, value):
        if kind_of(value) != ValueKind.RULE:
            raise FilterCompileError(f"{self.name.value} operator's value should be a rule")
        return value.to_mongo(RuleOption(parent=field, parent_type=self.parent_type))


def _build_catalog() -> Dict[OperatorType, Operator]:
    ops = [
        ComparisonOperator(OperatorType.EQUAL, "$eq"),
        ComparisonOperator(OperatorType.NOT_EQUAL, "$ne"),
        SetOperator(OperatorType.IN, "$in"),
        SetOperator(OperatorType.NOT_IN, "$nin"),
        ComparisonOperator(OperatorType.LESS, "$lt", numeric=True),
        ComparisonOperator(OperatorType.LESS_OR_EQUAL, "$lte", numeric=True),
        ComparisonOperator(OperatorType.GREATER, "$gt", numeric=True),
        ComparisonOperator(OperatorType.GREATER_OR_EQUAL, "$gte", numeric=True),
        DatetimeOperator(OperatorType.DATETIME_LESS, "$lt"),
        DatetimeOperator(OperatorType.DATETIME_LESS_OR_EQUAL, "$lte"),
        DatetimeOperator(OperatorType.DATETIME_GREATER, "$gt"),
        DatetimeOperator(OperatorType.DATETIME_GREATER_OR_EQUAL, "$gte"),
        RegexOperator(OperatorType.BEGINS_WITH, prefix="^"),
        RegexOperator(OperatorType.BEGINS_WITH_INSENSITIVE, prefix="^", insensitive=True),
        RegexOperator(OperatorType.NOT_BEGINS_WITH, prefix="^", negated=True),
        RegexOperator(OperatorType.NOT_BEGINS_WITH_INSENSITIVE, prefix="^",
                      insensitive=True, negated=True),
        RegexOperator(OperatorType.CONTAINS),
        RegexOperator(OperatorType.CONTAINS_INSENSITIVE, insensitive=True),
        RegexOperator(OperatorType.NOT_CONTAINS, negated=True),
        RegexOperator(OperatorType.NOT_CONTAINS_INSENSITIVE, insensitive=True, negated=True),
        RegexOperator(OperatorType.ENDS_WITH, suffix="$"),
        RegexOperator(OperatorType.ENDS_WITH_INSENSITIVE, suffix="$", insensitive=True),
        RegexOperator(OperatorType.NOT_ENDS_WITH, suffix="$", negated=True),
        RegexOperator(OperatorType.NOT_ENDS_WITH_INSENSITIVE, suffix="$",
                      insensitive=True, negated=True),
        EmptyOperator(OperatorType.IS_EMPTY, empty=True),
        EmptyOperator(OperatorType.IS_NOT_EMPTY, empty=False),
        SizeOperator(OperatorType.SIZE),
        ExistOperator(OperatorType.EXIST, exists=True),
        ExistOperator(OperatorType.NOT_EXIST, exists=False),
        StructuralOperator(OperatorType.FILTER_OBJECT, FieldType.OBJECT),
        StructuralOperator(OperatorType.FILTER_ARRAY, FieldType.ARRAY),
    ]
    return {op.name: op for op in ops}


CATALOG: Dict[OperatorType, Operator] = _build_catalog()
