#!/usr/bin/env python3
"""
Wire codecs of rule trees.

Both encodings share one shape:
    {"field": ..., "operator": ..., "value": ...}     -> AtomRule
    {"condition": "AND"|"OR", "rules": [...]}         -> CombinedRule

A document holding both `condition` and `rules` is a combined rule,
anything else is read as an atom rule. `in`/`not_in` values are lists,
`filter_object`/`filter_array` values are nested rule documents.
JSON values follow MongoDB Extended JSON (relaxed mode), so datetimes
survive the round trip.
"""

import logging
from collections.abc import Mapping
from datetime import timezone
from typing import Any, Optional, Union

import bson
from bson import json_util
from bson.codec_options import CodecOptions
from bson.errors import BSONError
from bson.json_util import JSONMode, JSONOptions

from .base import DEFAULT_MAX_DECODE_DEPTH, LogicOperator, RuleFactory
from .operators import OperatorType
from .rules import AtomRule, CombinedRule
from ..exceptions import (
    DecodeDepthExceededError, DecodeSyntaxError, FilterDecodeError,
    UnknownOperatorValueShapeError
)

logger = logging.getLogger(__name__)

# Decoded datetimes are aware UTC values, the form rule values compile to.
BSON_OPTIONS = CodecOptions(tz_aware=True, tzinfo=timezone.utc)
JSON_OPTIONS = JSONOptions(json_mode=JSONMode.RELAXED, tz_aware=True, tzinfo=timezone.utc)


class RuleDecoder:
    """
    Rebuilds rule trees from decoded wire documents.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DECODE_DEPTH):
        """
        Initialize the decoder.

        Args:
            max_depth: Maximum nesting of rule documents, guards against
                adversarial payloads before any validation runs
        """
        self.max_depth = max_depth

    def decode(self, doc: Any) -> RuleFactory:
        """
        Build the rule tree of a wire document.

        Args:
            doc: A mapping decoded from JSON or BSON

        Raises:
            FilterDecodeError: If the document is not a valid rule
        """
        return self._decode(doc, 1)

    def _decode(self, doc: Any, depth: int) -> RuleFactory:
        if depth > self.max_depth:
            raise DecodeDepthExceededError(self.max_depth)

        if not isinstance(doc, Mapping):
            raise DecodeSyntaxError(f"rule should be an object, got {type(doc).__name__}")

        if "condition" in doc and "rules" in doc:
            return self._decode_combined(doc, depth)
        return self._decode_atom(doc, depth)

    def _decode_combined(self, doc: Mapping, depth: int) -> CombinedRule:
        condition = doc["condition"]
        if not isinstance(condition, str):
            raise DecodeSyntaxError(
                f"condition should be a string, got {type(condition).__name__}"
            )

        raw_rules = doc["rules"]
        if not isinstance(raw_rules, (list, tuple)):
            raise DecodeSyntaxError(f"rules should be an array, got {type(raw_rules).__name__}")

        rules = []
        for idx, raw in enumerate(raw_rules):
            try:
                rules.append(self._decode(raw, depth + 1))
            except FilterDecodeError as e:
                raise e.prepend(idx)

        logger.debug(f"Decoded combined rule {condition} with {len(rules)} rules")
        return CombinedRule(condition=LogicOperator.from_string(condition) or condition,
                            rules=rules)

    def _decode_atom(self, doc: Mapping, depth: int) -> AtomRule:
        field = doc.get("field", "")
        if not isinstance(field, str):
            raise DecodeSyntaxError(f"field should be a string, got {type(field).__name__}")

        tag = doc.get("operator")
        op_type = OperatorType.from_string(tag)
        if op_type is None:
            raise UnknownOperatorValueShapeError(tag)

        value = doc.get("value")
        if op_type.is_set:
            if not isinstance(value, (list, tuple)):
                raise DecodeSyntaxError(f"{op_type.value} operator's value should be an array")
            value = list(value)

        try:
            if op_type.is_structural:
                value = self._decode(value, depth + 1)
            else:
                self._check_value(value, depth + 1)
        except FilterDecodeError as e:
            raise e.prepend("value")

        return AtomRule(field=field, operator=op_type, value=value)

    def _check_value(self, value: Any, depth: int) -> None:
        # arrays and objects inside a value count against the ceiling too
        if isinstance(value, Mapping):
            items = list(value.values())
        elif isinstance(value, (list, tuple)):
            items = value
        else:
            return

        if depth > self.max_depth:
            raise DecodeDepthExceededError(self.max_depth)
        for item in items:
            self._check_value(item, depth + 1)


def load_json_document(raw: Union[str, bytes],
                       max_depth: int = DEFAULT_MAX_DECODE_DEPTH) -> Any:
    """
    Decode the JSON document of a rule, without building the rule.
    Values use MongoDB Extended JSON, so datetimes travel as `{"$date": ...}`.

    Raises:
        DecodeSyntaxError: If raw is not valid JSON
        DecodeDepthExceededError: If raw nests deeper than the parser can follow
    """
    try:
        return json_util.loads(raw, json_options=JSON_OPTIONS)
    except RecursionError:
        raise DecodeDepthExceededError(max_depth)
    except (ValueError, TypeError, KeyError, BSONError) as e:
        raise DecodeSyntaxError(f"invalid json rule: {e}")


def load_bson_document(raw: bytes, max_depth: int = DEFAULT_MAX_DECODE_DEPTH) -> Any:
    """
    Decode the BSON document of a rule, without building the rule.

    Raises:
        DecodeSyntaxError: If raw is not a valid BSON document
        DecodeDepthExceededError: If raw nests deeper than the parser can follow
    """
    try:
        return bson.decode(raw, codec_options=BSON_OPTIONS)
    except RecursionError:
        raise DecodeDepthExceededError(max_depth)
    except BSONError as e:
        raise DecodeSyntaxError(f"invalid bson rule: {e}")


def parse_json_rule(raw: Union[str, bytes],
                    max_depth: int = DEFAULT_MAX_DECODE_DEPTH) -> RuleFactory:
    """
    Decode a rule tree from its JSON encoding.

    Raises:
        DecodeSyntaxError: If raw is not valid JSON
        FilterDecodeError: If the document is not a valid rule
    """
    return RuleDecoder(max_depth).decode(load_json_document(raw, max_depth))


def dump_json_rule(rule: Optional[RuleFactory]) -> str:
    """Encode a rule tree as JSON, None is encoded as null."""
    if rule is None:
        return json_util.dumps(None)
    return json_util.dumps(rule.to_dict(), json_options=JSON_OPTIONS)


def parse_bson_rule(raw: bytes, max_depth: int = DEFAULT_MAX_DECODE_DEPTH) -> RuleFactory:
    """
    Decode a rule tree from its BSON encoding.

    Raises:
        DecodeSyntaxError: If raw is not a valid BSON document
        FilterDecodeError: If the document is not a valid rule
    """
    return RuleDecoder(max_depth).decode(load_bson_document(raw, max_depth))


def dump_bson_rule(rule: Optional[RuleFactory]) -> bytes:
    """Encode a rule tree as a BSON document, None is encoded as an empty document."""
    if rule is None:
        return bson.encode({})
    return bson.encode(rule.to_dict())
