#!/usr/bin/env python3
"""
Top level filter expression wrapping a single rule tree.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .base import DEFAULT_MAX_DECODE_DEPTH, ExprOption, RuleFactory
from .codec import (
    RuleDecoder, dump_bson_rule, dump_json_rule, load_bson_document, load_json_document
)
from ..exceptions import InvalidFilterError


@dataclass
class Expression:
    """
    A filter expression as received from an API caller.
    An expression without a rule matches everything once compiled but
    never passes validation.
    """
    rule: Optional[RuleFactory] = None

    def validate(self, opt: Optional[ExprOption] = None) -> None:
        if self.rule is None:
            raise InvalidFilterError("expression should not be empty")
        self.rule.validate(opt)

    def fields(self) -> List[str]:
        if self.rule is None:
            return []
        return self.rule.fields()

    def to_mongo(self) -> Dict[str, Any]:
        if self.rule is None:
            return {}
        return self.rule.to_mongo()

    @classmethod
    def from_document(cls, doc: Any,
                      max_depth: int = DEFAULT_MAX_DECODE_DEPTH) -> 'Expression':
        """Build an expression from a decoded document, null or {} is the empty one."""
        if doc is None or (isinstance(doc, Mapping) and not doc):
            return cls()
        return cls(RuleDecoder(max_depth).decode(doc))

    @classmethod
    def from_json(cls, raw: Union[str, bytes],
                  max_depth: int = DEFAULT_MAX_DECODE_DEPTH) -> 'Expression':
        return cls.from_document(load_json_document(raw, max_depth), max_depth)

    @classmethod
    def from_bson(cls, raw: bytes, max_depth: int = DEFAULT_MAX_DECODE_DEPTH) -> 'Expression':
        return cls.from_document(load_bson_document(raw, max_depth), max_depth)

    def to_json(self) -> str:
        return dump_json_rule(self.rule)

    def to_bson(self) -> bytes:
        return dump_bson_rule(self.rule)
