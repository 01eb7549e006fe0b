#!/usr/bin/env python3
"""
Rule nodes of a filter expression.
An AtomRule compares one field against a value, a CombinedRule joins
child rules with AND/OR. Both validate against an ExprOption and
convert to a mongo query condition.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .base import (
    DEFAULT_MAX_RULES_LIMIT, FILTER_ARRAY_ELEMENT,
    ExprOption, FieldType, LogicOperator, RuleFactory, RuleOption, RuleType,
    parse_array_index
)
from .operators import OperatorType, StructuralOperator
from .values import mongo_value, validate_field_value
from ..exceptions import (
    EmptyFieldError, EmptyRulesError, DepthExceededError, FilterCompileError,
    FilterError, InvalidArrayIndexError, InvalidFilterError,
    InvalidParentContextError, NilValueError, NoQueryableFieldError,
    TooManyRulesError, TypeMismatchError, UndeclaredFieldError,
    UnknownFieldInPolicyError, UnsupportedConditionError,
    UnsupportedParentTypeError
)

logger = logging.getLogger(__name__)


def _tag(value: Any) -> Any:
    return value.value if isinstance(value, (OperatorType, LogicOperator)) else value


@dataclass
class AtomRule(RuleFactory):
    """
    The basic query rule, `field operator value`.
    """
    field: str
    operator: Union[OperatorType, str]
    value: Any

    def kind(self) -> RuleType:
        return RuleType.ATOM

    def validate(self, opt: Optional[ExprOption] = None) -> None:
        if not self.field:
            raise EmptyFieldError()

        op_type = OperatorType.validate(self.operator)

        if self.value is None:
            raise NilValueError()

        operator = op_type.operator
        if opt is not None and opt.rule_fields:
            typ = opt.lookup(self.field)
            if typ is None:
                raise UndeclaredFieldError(self.field)

            if isinstance(operator, StructuralOperator):
                if typ != operator.parent_type:
                    raise TypeMismatchError(
                        self.field, operator.parent_type,
                        f"{op_type.value} operator requires a {operator.parent_type.value} field"
                    )
            elif typ not in (FieldType.OBJECT, FieldType.ARRAY):
                validate_field_value(self.field, self.value, typ)

        value_opt = operator.scope_option(self.field, self.value, opt)
        operator.validate_value(self.value, value_opt)

    def fields(self) -> List[str]:
        op_type = OperatorType.from_string(self.operator)
        if op_type is not None and op_type.is_structural:
            # sub rule fields are addressed through this rule's field
            if not isinstance(self.value, RuleFactory):
                logger.error(f"{op_type.value} operator's value({self.value!r}) is not a rule")
                return [self.field]
            return [f"{self.field}.{sub}" for sub in self.value.fields()]

        return [self.field]

    def to_mongo(self, opt: Optional[RuleOption] = None) -> Dict[str, Any]:
        op_type = OperatorType.from_string(self.operator)
        if op_type is None:
            raise FilterCompileError(f"unsupported operator: {self.operator}")
        operator = op_type.operator

        if opt is None:
            return operator.to_mongo(self.field, self.value)

        if not opt.parent:
            raise InvalidParentContextError()

        if opt.parent_type == FieldType.OBJECT:
            return operator.to_mongo(f"{opt.parent}.{self.field}", self.value)

        if opt.parent_type == FieldType.ARRAY:
            if self.field == FILTER_ARRAY_ELEMENT:
                # matches if any of the elements matches
                return operator.to_mongo(opt.parent, self.value)

            index = parse_array_index(self.field)
            if index is None or index <= 0:
                raise InvalidArrayIndexError(self.field)
            return operator.to_mongo(f"{opt.parent}.{index}", self.value)

        raise UnsupportedParentTypeError(opt.parent_type)

    def to_dict(self) -> Dict[str, Any]:
        value = self.value
        if isinstance(value, RuleFactory):
            value = value.to_dict()
        else:
            # time values are written at the precision mongo keeps
            value = mongo_value(value)

        return {"field": self.field, "operator": _tag(self.operator), "value": value}


@dataclass
class CombinedRule(RuleFactory):
    """
    A compound rule joining its children with a logical condition.
    """
    condition: Union[LogicOperator, str]
    rules: List[RuleFactory]

    def kind(self) -> RuleType:
        return RuleType.COMBINED

    def validate(self, opt: Optional[ExprOption] = None) -> None:
        LogicOperator.validate(self.condition)

        if not self.rules:
            raise EmptyRulesError()

        max_rules = opt.effective_max_rules if opt is not None else DEFAULT_MAX_RULES_LIMIT
        if len(self.rules) > max_rules:
            raise TooManyRulesError(max_rules)

        fields = list(dict.fromkeys(self.fields()))
        if not fields:
            raise NoQueryableFieldError()

        if opt is not None and opt.rule_fields:
            for path in fields:
                if opt.lookup(path) is None:
                    raise UnknownFieldInPolicyError(path)

        child_opt = opt
        if opt is not None and opt.max_rules_depth > 0:
            if opt.max_rules_depth == 1:
                raise DepthExceededError()
            child_opt = opt.child()

        for idx, rule in enumerate(self.rules):
            try:
                rule.validate(child_opt)
            except InvalidFilterError as e:
                raise e.prepend(idx)

    def fields(self) -> List[str]:
        fields: List[str] = []
        for rule in self.rules:
            fields.extend(rule.fields())
        return fields

    def to_mongo(self, opt: Optional[RuleOption] = None) -> Dict[str, Any]:
        condition = LogicOperator.from_string(self.condition)
        if condition is None:
            raise UnsupportedConditionError(self.condition)

        if not self.rules:
            raise FilterCompileError("combined rules shouldn't be empty")

        filters = []
        for idx, rule in enumerate(self.rules):
            try:
                filters.append(rule.to_mongo(opt))
            except FilterError as e:
                raise e.prepend(idx)

        return {condition.mongo_key: filters}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "condition": _tag(self.condition),
            "rules": [rule.to_dict() for rule in self.rules],
        }
