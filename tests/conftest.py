"""
Shared pytest fixtures for rulefilter tests.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from rulefilter.filters import (
    AtomRule, CombinedRule, ExprOption, FieldType, LogicOperator, OperatorType
)

logging.basicConfig(level=logging.CRITICAL)


@pytest.fixture
def person_fields():
    """Declared fields of a person document."""
    return {
        "name": FieldType.STRING,
        "age": FieldType.NUMERIC,
        "active": FieldType.BOOLEAN,
        "created_at": FieldType.TIME,
        "addr": FieldType.OBJECT,
        "addr.city": FieldType.STRING,
        "addr.zip": FieldType.STRING,
        "tags": FieldType.ARRAY,
        "tags.element": FieldType.STRING,
    }


@pytest.fixture
def person_option(person_fields):
    return ExprOption.default(person_fields)


@pytest.fixture
def or_rule():
    """`age > 18 OR name == "Al"`"""
    return CombinedRule(LogicOperator.OR, [
        AtomRule("age", OperatorType.GREATER, 18),
        AtomRule("name", OperatorType.EQUAL, "Al"),
    ])
