#!/usr/bin/env python3
"""
Tests for rule validation against expression options.
"""

import pytest

from rulefilter.filters import (
    AtomRule, CombinedRule, ExprOption, FieldType, LogicOperator, OperatorType,
    RuleType
)
from rulefilter.exceptions import (
    DepthExceededError, EmptyFieldError, EmptyRulesError, InvalidConditionError,
    InvalidFilterError, InvalidOperatorError, InvalidValueError, NilValueError,
    TooManyRulesError, TypeMismatchError, UndeclaredFieldError,
    UnknownFieldInPolicyError
)


def _and(*rules):
    return CombinedRule(LogicOperator.AND, list(rules))


def _age_over(n):
    return AtomRule("age", OperatorType.GREATER, n)


@pytest.fixture
def items_option():
    """Policy of an array of address objects."""
    return ExprOption.default({
        "items": FieldType.ARRAY,
        "items.element": FieldType.OBJECT,
        "items.element.city": FieldType.STRING,
    })


class TestRuleShape:
    """Test rule kinds and field enumeration."""

    def test_kinds(self, or_rule):
        """Test kind() of both node types."""
        assert or_rule.kind() == RuleType.COMBINED
        assert or_rule.rules[0].kind() == RuleType.ATOM

    def test_combined_fields_keep_order_and_duplicates(self):
        """Test fields() lists children in order without deduplication."""
        rule = _and(_age_over(1), AtomRule("name", OperatorType.EQUAL, "a"), _age_over(2))
        assert rule.fields() == ["age", "name", "age"]

    def test_filter_object_fields_are_prefixed(self):
        """Test sub fields of filter_object carry the parent field."""
        rule = AtomRule("addr", OperatorType.FILTER_OBJECT,
                        AtomRule("city", OperatorType.EQUAL, "SZ"))
        assert rule.fields() == ["addr.city"]

    def test_filter_array_fields_are_prefixed(self):
        """Test element and index fields of filter_array carry the parent field."""
        rule = AtomRule("tags", OperatorType.FILTER_ARRAY, CombinedRule(LogicOperator.OR, [
            AtomRule("element", OperatorType.EQUAL, "a"),
            AtomRule("1", OperatorType.EQUAL, "b"),
        ]))
        assert rule.fields() == ["tags.element", "tags.1"]

    def test_structural_value_not_a_rule(self):
        """Test a non rule structural value reports the field itself."""
        rule = AtomRule("addr", OperatorType.FILTER_OBJECT, {"city": "SZ"})
        assert rule.fields() == ["addr"]


class TestAtomRuleValidation:
    """Test atom rule validation."""

    @pytest.mark.parametrize("opt", [
        None,
        ExprOption(),
        ExprOption.strict({"age": FieldType.NUMERIC}),
    ])
    def test_empty_field(self, opt):
        """Test an empty field is rejected under any option."""
        with pytest.raises(EmptyFieldError):
            AtomRule("", OperatorType.EQUAL, 1).validate(opt)

    def test_unknown_operator(self):
        """Test an operator outside the catalog is rejected."""
        with pytest.raises(InvalidOperatorError):
            AtomRule("age", "between", [1, 2]).validate()

    def test_operator_given_as_string(self):
        """Test operator tags are accepted as plain strings."""
        AtomRule("age", "greater", 1).validate()

    def test_nil_value(self):
        """Test a None value is rejected."""
        with pytest.raises(NilValueError):
            AtomRule("age", OperatorType.EQUAL, None).validate()

    def test_undeclared_field(self, person_option):
        """Test fields outside the policy are rejected."""
        with pytest.raises(UndeclaredFieldError) as exc:
            AtomRule("salary", OperatorType.EQUAL, 1).validate(person_option)
        assert exc.value.field == "salary"

    def test_declared_types(self, person_option):
        """Test values matching their declared types pass."""
        AtomRule("name", OperatorType.EQUAL, "Al").validate(person_option)
        AtomRule("age", OperatorType.GREATER_OR_EQUAL, 18.5).validate(person_option)
        AtomRule("active", OperatorType.EQUAL, True).validate(person_option)
        AtomRule("created_at", OperatorType.DATETIME_LESS,
                 "2024-01-01T00:00:00Z").validate(person_option)

    @pytest.mark.parametrize("field,value", [
        ("name", 1),
        ("age", "18"),
        ("age", True),
        ("active", 1),
        ("created_at", "yesterday"),
    ])
    def test_type_mismatch(self, person_option, field, value):
        """Test values of the wrong type are rejected with their field."""
        with pytest.raises(TypeMismatchError) as exc:
            AtomRule(field, OperatorType.EQUAL, value).validate(person_option)
        assert exc.value.field == field

    def test_sequence_checked_element_wise(self, person_option):
        """Test every element of a set value is type checked."""
        AtomRule("name", OperatorType.IN, ["a", "b"]).validate(person_option)
        with pytest.raises(TypeMismatchError):
            AtomRule("name", OperatorType.IN, ["a", 1]).validate(person_option)

    def test_in_limit(self):
        """Test the in cardinality limit."""
        opt = ExprOption(max_in_limit=2)
        AtomRule("age", OperatorType.IN, [1, 2]).validate(opt)
        with pytest.raises(InvalidValueError):
            AtomRule("age", OperatorType.IN, [1, 2, 3]).validate(opt)

    def test_not_in_limit(self):
        """Test not_in has its own limit."""
        opt = ExprOption(max_in_limit=10, max_not_in_limit=1)
        AtomRule("age", OperatorType.IN, [1, 2]).validate(opt)
        with pytest.raises(InvalidValueError):
            AtomRule("age", OperatorType.NOT_IN, [1, 2]).validate(opt)

    def test_in_requires_sequence(self):
        """Test a scalar in value is rejected."""
        with pytest.raises(InvalidValueError):
            AtomRule("age", OperatorType.IN, 1).validate()

    def test_array_field_skips_scalar_type_check(self, person_option):
        """Test size on an array field is not checked as a string."""
        AtomRule("tags", OperatorType.SIZE, 2).validate(person_option)


class TestStructuralValidation:
    """Test validation of filter_object/filter_array rules."""

    def test_filter_object_declared(self, person_option):
        """Test a declared object sub field passes."""
        rule = AtomRule("addr", OperatorType.FILTER_OBJECT,
                        AtomRule("city", OperatorType.EQUAL, "SZ"))
        rule.validate(person_option)

    def test_filter_object_sub_field_type_checked(self, person_option):
        """Test sub fields are checked against their declared types."""
        rule = AtomRule("addr", OperatorType.FILTER_OBJECT,
                        AtomRule("city", OperatorType.EQUAL, 1))
        with pytest.raises(TypeMismatchError) as exc:
            rule.validate(person_option)
        assert exc.value.location == ["value"]

    def test_filter_object_without_sub_fields(self):
        """Test an object with no declared sub fields rejects nested rules."""
        opt = ExprOption(rule_fields={"addr": FieldType.OBJECT})
        rule = AtomRule("addr", OperatorType.FILTER_OBJECT,
                        AtomRule("city", OperatorType.EQUAL, "SZ"))
        with pytest.raises(UndeclaredFieldError) as exc:
            rule.validate(opt)
        assert exc.value.field == "addr.city"

    def test_filter_object_on_non_object_field(self, person_option):
        """Test filter_object needs an object field."""
        rule = AtomRule("name", OperatorType.FILTER_OBJECT,
                        AtomRule("first", OperatorType.EQUAL, "A"))
        with pytest.raises(TypeMismatchError):
            rule.validate(person_option)

    def test_filter_array_index_uses_element_type(self, person_option):
        """Test indexes and element share the element declaration."""
        AtomRule("tags", OperatorType.FILTER_ARRAY,
                 AtomRule("2", OperatorType.EQUAL, "x")).validate(person_option)

        with pytest.raises(TypeMismatchError):
            AtomRule("tags", OperatorType.FILTER_ARRAY,
                     AtomRule("element", OperatorType.EQUAL, 5)).validate(person_option)

    def test_filter_object_on_array_index(self, items_option):
        """Test filter_object on an indexed element uses the element declarations."""
        assert items_option.lookup("items.1.city") == FieldType.STRING

        rule = AtomRule("items", OperatorType.FILTER_ARRAY,
                        AtomRule("1", OperatorType.FILTER_OBJECT,
                                 AtomRule("city", OperatorType.EQUAL, "SZ")))
        rule.validate(items_option)
        assert rule.to_mongo() == {"items.1.city": {"$eq": "SZ"}}

    def test_filter_object_on_array_index_type_checked(self, items_option):
        """Test sub fields of an indexed element keep their declared types."""
        rule = AtomRule("items", OperatorType.FILTER_ARRAY,
                        AtomRule("1", OperatorType.FILTER_OBJECT,
                                 AtomRule("city", OperatorType.EQUAL, 5)))
        with pytest.raises(TypeMismatchError) as exc:
            rule.validate(items_option)
        assert exc.value.location == ["value", "value"]

    def test_nested_error_without_policy(self):
        """Test nested errors are located at value."""
        rule = AtomRule("tags", OperatorType.FILTER_ARRAY, AtomRule("", OperatorType.EQUAL, 1))
        with pytest.raises(EmptyFieldError) as exc:
            rule.validate()
        assert str(exc.value) == "value: field is empty"

    def test_structural_value_must_be_rule(self):
        """Test a plain mapping is not a valid structural value."""
        with pytest.raises(InvalidValueError):
            AtomRule("addr", OperatorType.FILTER_OBJECT, {"city": "SZ"}).validate()


class TestCombinedRuleValidation:
    """Test combined rule validation."""

    def test_valid(self, or_rule, person_option):
        """Test the OR example passes with and without a policy."""
        or_rule.validate()
        or_rule.validate(person_option)

    def test_invalid_condition(self):
        """Test an unknown condition is rejected."""
        with pytest.raises(InvalidConditionError):
            CombinedRule("XOR", [_age_over(1)]).validate()

    def test_empty_rules(self):
        """Test a combined rule needs children."""
        with pytest.raises(EmptyRulesError):
            CombinedRule(LogicOperator.AND, []).validate()

    def test_too_many_rules(self):
        """Test the configured rules limit."""
        rule = _and(_age_over(1), _age_over(2), _age_over(3))
        with pytest.raises(TooManyRulesError) as exc:
            rule.validate(ExprOption(max_rules_limit=2))
        assert exc.value.limit == 2

    def test_default_rules_limit(self):
        """Test the default limit of 50 children applies without an option."""
        rule = _and(*[_age_over(i) for i in range(51)])
        with pytest.raises(TooManyRulesError) as exc:
            rule.validate()
        assert exc.value.limit == 50

    def test_unknown_field_in_policy(self, person_option):
        """Test the field scan reports the first undeclared field."""
        rule = _and(_age_over(1), AtomRule("zip", OperatorType.EQUAL, "1"))
        with pytest.raises(UnknownFieldInPolicyError) as exc:
            rule.validate(person_option)
        assert exc.value.field == "zip"

    def test_depth_one_rejects_nesting(self):
        """Test a depth of one rejects any combined rule."""
        rule = _and(_and(_age_over(1)))
        with pytest.raises(DepthExceededError):
            rule.validate(ExprOption(max_rules_depth=1))

    def test_depth_two(self):
        """Test a depth of two admits atoms only under the root."""
        opt = ExprOption(max_rules_depth=2)
        _and(_age_over(1), _age_over(2)).validate(opt)

        with pytest.raises(DepthExceededError) as exc:
            _and(_age_over(1), _and(_age_over(2))).validate(opt)
        assert exc.value.location == [1]

    def test_depth_three_admits_one_nested_combined(self):
        """Test a depth of three admits one nested combined rule."""
        _and(_and(_age_over(1))).validate(ExprOption(max_rules_depth=3))

    def test_unset_depth_forwards_policy(self, person_option):
        """Test children keep the policy when no depth is set."""
        rule = _and(_and(AtomRule("age", OperatorType.EQUAL, "old")))
        with pytest.raises(TypeMismatchError) as exc:
            rule.validate(person_option)
        assert exc.value.location == [0, 0]
        assert str(exc.value).startswith("rules[0].rules[0]: ")

    def test_fail_fast_left_to_right(self):
        """Test the first failing child is reported."""
        rule = _and(AtomRule("", OperatorType.EQUAL, 1), AtomRule("a", OperatorType.EQUAL, None))
        with pytest.raises(EmptyFieldError):
            rule.validate()

    def test_errors_share_base(self):
        """Test validation errors derive from InvalidFilterError."""
        with pytest.raises(InvalidFilterError):
            CombinedRule(LogicOperator.OR, []).validate()


class TestExprOption:
    """Test policy lookups."""

    def test_lookup_array_index(self, person_option):
        """Test positive indexes resolve to the element declaration."""
        assert person_option.lookup("tags.3") == FieldType.STRING
        assert person_option.lookup("tags.0") is None
        assert person_option.lookup("tags.x") is None
        assert person_option.lookup("addr.city") == FieldType.STRING

    def test_scoped(self, person_option):
        """Test scoping re-keys the declarations under the prefix."""
        scoped = person_option.scoped("tags", FieldType.ARRAY)
        assert scoped.rule_fields == {"element": FieldType.STRING}
        assert scoped.lookup("4") == FieldType.STRING
        assert scoped.max_rules_limit == person_option.max_rules_limit

    def test_scoped_index_prefix(self, items_option):
        """Test an index prefix scopes like lookup resolves it."""
        in_array = items_option.scoped("items", FieldType.ARRAY)
        assert in_array.scoped("1", FieldType.OBJECT).rule_fields == {"city": FieldType.STRING}
        assert items_option.scoped("items.2", FieldType.OBJECT).rule_fields == {
            "city": FieldType.STRING
        }

    def test_child_decrements_depth(self):
        """Test child() decrements a set depth and keeps an unset one."""
        assert ExprOption(max_rules_depth=3).child().max_rules_depth == 2
        assert ExprOption().child().max_rules_depth == 0
