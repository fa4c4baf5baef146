"""
Tests for field and tree validation.

Focus Areas:
1. Rule order and the empty-value short circuit
2. Each built-in rule and its message
3. Custom script and JSON Logic rules, including failing open
4. Tree validation with visibility pruning and effective views
"""

import logging

import pytest

from formtree.validation import (
    ErrorKind,
    ValidationError,
    ValidationRule,
    is_empty_value,
    validate_field,
    validate_nodes,
)


def kinds(errors):
    return [error.type for error in errors]


def field(**validate):
    return {"type": "textfield", "key": "name", "label": "Name", "validate": validate}


class TestValidationRule:
    """Test parsing of the validate mapping."""

    def test_aliases_and_coercion(self):
        """camelCase keys map to fields and numeric strings are coerced."""
        rule = ValidationRule.from_node(field(minLength="2", customMessage="Bad"))
        assert rule.min_length == 2
        assert rule.custom_message == "Bad"

    def test_empty_values_are_ignored(self):
        """Blank rule values mean no rule."""
        rule = ValidationRule.from_node(field(minLength="", pattern=None))
        assert rule.min_length is None
        assert rule.pattern is None

    def test_invalid_rules_are_logged(self, caplog):
        """An unparseable entry is logged and dropped."""
        with caplog.at_level(logging.WARNING, logger="formtree.validation.rules"):
            rule = ValidationRule.from_node(field(minLength="many"))
        assert rule.min_length is None
        assert "Ignoring invalid validation rules" in caplog.text
        assert "minLength" in caplog.text

    def test_invalid_entry_keeps_other_rules(self, caplog):
        """Only the bad entries are dropped; the rest of the rule set applies."""
        with caplog.at_level(logging.WARNING, logger="formtree.validation.rules"):
            rule = ValidationRule.from_node(
                field(required=True, maxLength="ten", minLength=2.5, pattern="^a")
            )
        assert rule.required
        assert rule.pattern == "^a"
        assert rule.max_length is None
        assert rule.min_length is None

    def test_python_spelling_is_dropped_too(self):
        """Bad values given under the attribute name are dropped the same way."""
        rule = ValidationRule.from_node(field(required=True, max_length="ten"))
        assert rule.required
        assert rule.max_length is None

    def test_error_to_dict(self):
        """Errors serialize with the kind's wire name."""
        error = ValidationError(key="a", type=ErrorKind.MIN_LENGTH, message="m")
        assert error.to_dict() == {
            "key": "a",
            "type": "minLength",
            "message": "m",
            "level": "error",
        }


class TestRequired:
    """Test the required rule and the empty short circuit."""

    def test_required_then_min_length(self):
        """'' fails required, 'a' fails minLength, 'ab' passes."""
        node = field(required=True, minLength=2)
        assert kinds(validate_field(node, "")) == [ErrorKind.REQUIRED]
        assert kinds(validate_field(node, "a")) == [ErrorKind.MIN_LENGTH]
        assert validate_field(node, "ab") == []

    def test_required_survives_bad_sibling_rule(self):
        """A malformed maxLength does not switch required off."""
        node = field(required=True, maxLength="ten")
        assert kinds(validate_field(node, "")) == [ErrorKind.REQUIRED]
        assert validate_field(node, "a much longer value than ten") == []

    @pytest.mark.parametrize("value", [None, "", [], {}])
    def test_empty_values(self, value):
        """None, '', [] and {} are empty."""
        assert is_empty_value(value)
        assert kinds(validate_field(field(required=True), value)) == [ErrorKind.REQUIRED]

    def test_required_message_uses_label(self):
        """Messages name the field by label, falling back to key."""
        assert validate_field(field(required=True), "")[0].message == "Name is required"
        node = {"type": "textfield", "key": "city", "validate": {"required": True}}
        assert validate_field(node, "")[0].message == "city is required"

    def test_required_stops_further_rules(self):
        """A required failure is the only error reported."""
        node = field(required=True, minLength=2, pattern="^x")
        assert kinds(validate_field(node, None)) == [ErrorKind.REQUIRED]

    def test_empty_optional_value_skips_rules(self):
        """Rules do not run on an empty, optional field."""
        node = field(minLength=2, pattern="^x", custom="valid = false")
        assert validate_field(node, "") == []

    def test_checkbox_requires_true(self):
        """A required checkbox must be checked."""
        node = {"type": "checkbox", "key": "agree", "validate": {"required": True}}
        assert kinds(validate_field(node, False)) == [ErrorKind.REQUIRED]
        assert validate_field(node, True) == []

    def test_selectboxes_require_one_selection(self):
        """Required select boxes need at least one checked option."""
        node = {"type": "selectboxes", "key": "pets", "validate": {"required": True}}
        assert kinds(validate_field(node, {"cat": False, "dog": False})) == [ErrorKind.REQUIRED]
        assert validate_field(node, {"cat": True, "dog": False}) == []


class TestBuiltinRules:
    """Test the individual rules."""

    def test_email(self):
        """Email type and rule flag both check the address."""
        node = {"type": "email", "key": "mail", "label": "Mail"}
        assert kinds(validate_field(node, "not-an-address")) == [ErrorKind.EMAIL]
        assert validate_field(node, "ada@example.com") == []
        assert kinds(validate_field(field(email=True), "x@")) == [ErrorKind.EMAIL]

    def test_url(self):
        """URLs need an http(s) scheme and a host."""
        node = {"type": "url", "key": "site"}
        assert validate_field(node, "https://example.com/path?q=1") == []
        assert kinds(validate_field(node, "example")) == [ErrorKind.URL]

    def test_integer(self):
        """Whole numbers only."""
        node = {"type": "number", "key": "n", "validate": {"integer": True}}
        assert validate_field(node, 3) == []
        assert validate_field(node, 3.0) == []
        assert kinds(validate_field(node, 3.5)) == [ErrorKind.INTEGER]

    def test_lengths_apply_to_strings(self):
        """minLength and maxLength count characters of strings."""
        node = field(minLength=2, maxLength=4)
        assert kinds(validate_field(node, "abcde")) == [ErrorKind.MAX_LENGTH]
        assert validate_field(node, "abcd") == []
        assert validate_field({**node, "type": "number"}, 7) == []

    def test_words(self):
        """Word counts split on whitespace."""
        node = field(minWords=2, maxWords=3)
        assert kinds(validate_field(node, "one")) == [ErrorKind.MIN_WORDS]
        assert kinds(validate_field(node, "a b c d")) == [ErrorKind.MAX_WORDS]
        assert validate_field(node, "two  words") == []

    def test_min_max(self):
        """Numeric bounds with whole-number formatting in messages."""
        node = {"type": "number", "key": "age", "label": "Age", "validate": {"min": 18, "max": 99}}
        errors = validate_field(node, 17)
        assert kinds(errors) == [ErrorKind.MIN]
        assert errors[0].message == "Age must be at least 18"
        assert kinds(validate_field(node, 100)) == [ErrorKind.MAX]
        assert validate_field(node, 18) == []

    def test_min_max_ignore_booleans(self):
        """Booleans are not numbers."""
        node = {"type": "number", "key": "n", "validate": {"min": 5}}
        assert validate_field(node, True) == []

    def test_selected_counts(self):
        """Dicts count True entries, lists count truthy entries."""
        node = {
            "type": "selectboxes",
            "key": "pets",
            "validate": {"minSelectedCount": 2, "maxSelectedCount": 2},
        }
        assert kinds(validate_field(node, {"a": True, "b": False})) == [
            ErrorKind.MIN_SELECTED_COUNT
        ]
        assert validate_field(node, {"a": True, "b": True}) == []
        assert kinds(validate_field(node, ["a", "b", "c"])) == [ErrorKind.MAX_SELECTED_COUNT]

    def test_pattern(self):
        """Patterns search the stringified value."""
        node = field(pattern="^[A-Z]")
        assert validate_field(node, "Ada") == []
        assert kinds(validate_field(node, "ada")) == [ErrorKind.PATTERN]
        assert validate_field({**node, "validate": {"pattern": "^4"}}, 42) == []

    def test_invalid_pattern_is_skipped(self, caplog):
        """A broken regex is logged and does not fail the field."""
        with caplog.at_level(logging.WARNING, logger="formtree.validation.validator"):
            assert validate_field(field(pattern="("), "abc") == []
        assert "invalid pattern" in caplog.text

    def test_custom_message_replaces_format_messages(self):
        """customMessage applies to pattern, email, url and integer."""
        node = field(pattern="^x", customMessage="Must start with x")
        assert validate_field(node, "abc")[0].message == "Must start with x"

    def test_multiple_failures_in_order(self):
        """Independent rules all report, in rule order."""
        node = field(maxLength=3, pattern="^x")
        assert kinds(validate_field(node, "abcd")) == [ErrorKind.MAX_LENGTH, ErrorKind.PATTERN]


class TestCustomRules:
    """Test scripted and JSON Logic rules."""

    def test_custom_assigns_valid(self, sandbox):
        """valid = False fails with the generic message."""
        node = field(custom="valid = input.length > 3")
        errors = validate_field(node, "abc", sandbox=sandbox)
        assert kinds(errors) == [ErrorKind.CUSTOM]
        assert errors[0].message == "Name is invalid"
        assert validate_field(node, "abcd", sandbox=sandbox) == []

    def test_custom_string_result_is_message(self, sandbox):
        """A string result is the error message."""
        node = field(custom="valid = input === 'yes' || 'Say yes'")
        assert validate_field(node, "no", sandbox=sandbox)[0].message == "Say yes"
        assert validate_field(node, "yes", sandbox=sandbox) == []

    def test_custom_final_expression(self, sandbox):
        """Without assignment the final expression decides."""
        node = field(custom="data.other === value", customMessage="Must match")
        errors = validate_field(node, "a", {"other": "b"}, sandbox)
        assert errors[0].message == "Must match"
        assert validate_field(node, "a", {"other": "a"}, sandbox) == []

    def test_custom_errors_fail_open(self, sandbox, caplog):
        """Broken scripts are logged and the field passes."""
        node = field(custom="valid = undefinedThing > 1")
        with caplog.at_level(logging.WARNING, logger="formtree.validation.validator"):
            assert validate_field(node, "abc", sandbox=sandbox) == []
        assert "custom validation" in caplog.text
        assert "'name'" in caplog.text

    def test_custom_without_sandbox(self):
        """A default sandbox is used when none is passed."""
        assert kinds(validate_field(field(custom="valid = false"), "x")) == [ErrorKind.CUSTOM]

    def test_json_rule(self):
        """A falsy JSON Logic result fails with kind custom."""
        node = field(json={"==": [{"var": "value"}, {"var": "data.confirm"}]})
        assert kinds(validate_field(node, "a", {"confirm": "b"})) == [ErrorKind.CUSTOM]
        assert validate_field(node, "a", {"confirm": "a"}) == []

    def test_json_rule_errors_pass(self):
        """Unevaluable JSON Logic rules pass."""
        assert validate_field(field(json={"nope": [1]}), "a") == []


class TestValidateNodes:
    """Test validation across a tree."""

    def test_collects_failures_in_traversal_order(self, nested_components):
        """Only failing fields appear, keyed in traversal order."""
        nested_components[0]["validate"] = {"required": True}
        nested_components[5]["tree"][0]["children"][0]["components"][0]["validate"] = {
            "required": True
        }
        errors = validate_nodes(nested_components, {})
        assert list(errors) == ["root", "in_child_entry"]

    def test_invisible_subtrees_are_pruned(self):
        """Fields inside an invisible container are not validated."""
        nodes = [
            {
                "type": "panel",
                "key": "panel",
                "components": [
                    {"type": "textfield", "key": "inner", "validate": {"required": True}}
                ],
            }
        ]
        assert "inner" in validate_nodes(nodes, {})
        assert validate_nodes(nodes, {}, is_visible=lambda n: n["key"] != "panel") == {}

    def test_hidden_and_disabled_views_are_skipped(self):
        """The effective view decides hidden and disabled."""
        nodes = [
            {"type": "textfield", "key": "a", "validate": {"required": True}},
            {"type": "textfield", "key": "b", "validate": {"required": True}, "disabled": True},
        ]

        def effective(node):
            return {**node, "hidden": True} if node["key"] == "a" else node

        assert validate_nodes(nodes, {}, get_effective=effective) == {}

    def test_effective_view_rules_apply(self):
        """Overridden validate rules are the ones checked."""
        nodes = [{"type": "textfield", "key": "a"}]

        def effective(node):
            return {**node, "validate": {"required": True}}

        assert kinds(validate_nodes(nodes, {}, get_effective=effective)["a"]) == [
            ErrorKind.REQUIRED
        ]

    def test_non_inputs_are_skipped(self, registry):
        """Layout nodes are never validated."""
        nodes = [{"type": "panel", "key": "p", "validate": {"required": True}, "components": []}]
        assert validate_nodes(nodes, {}, registry=registry) == {}
