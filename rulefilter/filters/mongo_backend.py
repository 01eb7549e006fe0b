#!/usr/bin/env python3
"""
MongoDB backend for rule filters.
Runs the decode -> validate -> compile pipeline and produces the query
document handed to the storage layer.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional, Union

from .base import DEFAULT_MAX_DECODE_DEPTH, ExprOption, RuleFactory
from .codec import parse_bson_rule, parse_json_rule
from .operators import CATALOG, OperatorType
from .rules import AtomRule, CombinedRule
from ..exceptions import FilterError, InvalidOperatorError

logger = logging.getLogger(__name__)


class FilterBackend(ABC):
    """
    Abstract base class for filter backends.
    Each storage engine implements this to convert rule trees into its
    native query format.
    """

    @abstractmethod
    def convert(self, rule: RuleFactory) -> Any:
        """
        Convert a rule tree to the backend's native format.

        Args:
            rule: The rule tree

        Returns:
            Backend-specific query object
        """
        pass

    @abstractmethod
    def supports_operator(self, operator: OperatorType) -> bool:
        """Check if this backend supports a specific operator."""
        pass

    def validate_expression(self, rule: RuleFactory) -> None:
        """
        Validate that all operators in the rule tree are supported.

        Raises:
            InvalidOperatorError: If an unsupported operator is found
        """
        self._validate_recursive(rule)

    def _validate_recursive(self, rule: RuleFactory) -> None:
        """Recursively validate all operators."""
        if isinstance(rule, AtomRule):
            op = OperatorType.from_string(rule.operator)
            if op is None or not self.supports_operator(op):
                raise InvalidOperatorError(rule.operator)
            if isinstance(rule.value, RuleFactory):
                self._validate_recursive(rule.value)
        elif isinstance(rule, CombinedRule):
            for child in rule.rules:
                self._validate_recursive(child)


class MongoFilterBackend(FilterBackend):
    """
    Converts rule trees to MongoDB query documents.
    """

    def __init__(self,
                 option: Optional[ExprOption] = None,
                 disabled_operators: Optional[Iterable[OperatorType]] = None,
                 max_decode_depth: int = DEFAULT_MAX_DECODE_DEPTH):
        """
        Initialize MongoDB backend.

        Args:
            option: Validation policy applied before every conversion
            disabled_operators: Operators callers are not allowed to use
            max_decode_depth: Maximum nesting of decoded rule documents
        """
        self.option = option
        self.disabled_operators = set(disabled_operators or ())
        self.max_decode_depth = max_decode_depth

    def supports_operator(self, operator: OperatorType) -> bool:
        return operator in CATALOG and operator not in self.disabled_operators

    def convert(self, rule: RuleFactory) -> Dict[str, Any]:
        """
        Validate a rule tree and convert it to a mongo query document.

        Raises:
            FilterError: On the first invalid node found
        """
        try:
            self.validate_expression(rule)
            rule.validate(self.option)
            query = rule.to_mongo()
        except FilterError as e:
            logger.error(f"Filter conversion failed: {e}")
            raise

        logger.debug(f"Converted {rule.kind().value} on fields {rule.fields()}")
        return query

    def convert_json(self, raw: Union[str, bytes]) -> Dict[str, Any]:
        """Decode a JSON rule and convert it."""
        try:
            rule = parse_json_rule(raw, self.max_decode_depth)
        except FilterError as e:
            logger.error(f"Failed to parse json filter: {e}")
            raise
        return self.convert(rule)

    def convert_bson(self, raw: bytes) -> Dict[str, Any]:
        """Decode a BSON rule and convert it."""
        try:
            rule = parse_bson_rule(raw, self.max_decode_depth)
        except FilterError as e:
            logger.error(f"Failed to parse bson filter: {e}")
            raise
        return self.convert(rule)
