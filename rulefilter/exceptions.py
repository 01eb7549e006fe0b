"""
Exception classes for the rule filter engine.
"""

from typing import List, Optional, Union


class FilterError(Exception):
    """Base exception for all filter-related errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.location: List[Union[int, str]] = []

    def prepend(self, segment: Union[int, str]) -> 'FilterError':
        """Record the path segment the error was raised under and return self."""
        self.location.insert(0, segment)
        return self

    @property
    def path(self) -> str:
        parts = []
        for segment in self.location:
            if isinstance(segment, int):
                parts.append(f"rules[{segment}]")
            else:
                parts.append(segment)
        return ".".join(parts)

    def __str__(self):
        if self.location:
            return f"{self.path}: {self.message}"
        return self.message


# ============================================================================
# Validation
# ============================================================================

class InvalidFilterError(FilterError):
    """Raised when a rule tree does not pass validation."""
    pass


class EmptyFieldError(InvalidFilterError):
    def __init__(self):
        super().__init__("field is empty")


class InvalidOperatorError(InvalidFilterError):
    def __init__(self, operator):
        super().__init__(f"unsupported operator: {operator}")
        self.operator = operator


class InvalidConditionError(InvalidFilterError):
    def __init__(self, condition):
        super().__init__(f"unsupported condition: {condition}")
        self.condition = condition


class NilValueError(InvalidFilterError):
    def __init__(self):
        super().__init__("rule value can not be nil")


class UndeclaredFieldError(InvalidFilterError):
    def __init__(self, field: str):
        super().__init__(f"rule field: {field} is not exist in the expr option")
        self.field = field


class TypeMismatchError(InvalidFilterError):
    def __init__(self, field: str, expected_type, reason: Optional[str] = None):
        message = f"invalid {field}'s value, should be {expected_type}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.field = field
        self.expected_type = expected_type


class EmptyRulesError(InvalidFilterError):
    def __init__(self):
        super().__init__("combined rules shouldn't be empty")


class TooManyRulesError(InvalidFilterError):
    def __init__(self, limit: int):
        super().__init__(f"rules elements number is overhead, it at most have {limit} rules")
        self.limit = limit


class DepthExceededError(InvalidFilterError):
    def __init__(self):
        super().__init__("expression rules depth exceeds maximum")


class NoQueryableFieldError(InvalidFilterError):
    def __init__(self):
        super().__init__("invalid expression, no field is found to query")


class UnknownFieldInPolicyError(InvalidFilterError):
    def __init__(self, path: str):
        super().__init__(f"expression rules field({path}) is not supported")
        self.field = path


class InvalidValueError(InvalidFilterError):
    """Raised when an operator rejects the shape of its value."""
    pass


# ============================================================================
# Decoding
# ============================================================================

class FilterDecodeError(FilterError):
    """Raised when a wire document can not be turned into a rule tree."""
    pass


class DecodeSyntaxError(FilterDecodeError):
    pass


class UnknownOperatorValueShapeError(FilterDecodeError):
    def __init__(self, operator):
        super().__init__(f"unknown operator {operator!r}, can not decode its value")
        self.operator = operator


class DecodeDepthExceededError(FilterDecodeError):
    def __init__(self, max_depth: int):
        super().__init__(f"rule nesting exceeds maximum decode depth of {max_depth}")
        self.max_depth = max_depth


# ============================================================================
# Compilation
# ============================================================================

class FilterCompileError(FilterError):
    """Raised when a rule tree can not be converted to a mongo condition."""
    pass


class InvalidParentContextError(FilterCompileError):
    def __init__(self):
        super().__init__("parent is empty")


class InvalidArrayIndexError(FilterCompileError):
    def __init__(self, index: str):
        super().__init__(f"filter array index {index} is invalid")
        self.index = index


class UnsupportedParentTypeError(FilterCompileError):
    def __init__(self, parent_type):
        super().__init__(f"parent type {parent_type} is invalid")
        self.parent_type = parent_type


class UnsupportedConditionError(FilterCompileError):
    def __init__(self, condition):
        super().__init__(f"unexpected condition {condition}")
        self.condition = condition
