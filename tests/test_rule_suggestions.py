"""
Tests for rule suggestion and default-rule construction.
"""

from __future__ import annotations

import pytest

from stressbench.core.validation import (
    ValidationEngine,
    create_default_rule,
    generate_suggested_rules,
)
from stressbench.models import RuleType

SAMPLE = {"success": True, "data": {"id": 1}, "error": None, "items": [1, 2], "tags": []}
HEADERS = {"content-type": "application/json"}


class TestGenerateSuggestedRules:
    def test_suggestions_for_json_object(self) -> None:
        rules = generate_suggested_rules(SAMPLE, 200, HEADERS)
        names = [r.name for r in rules]
        assert names == [
            "Status Code Success",
            "Content-Type Header",
            "Response Success Flag",
            "Data Field Exists",
            "No Error Field",
            "items Array Not Empty",
            "tags Array Not Empty",
            "Response Time Under 2s",
        ]
        enabled = {r.name: r.enabled for r in rules}
        assert enabled["No Error Field"] is True
        assert enabled["items Array Not Empty"] is False
        assert enabled["Response Time Under 2s"] is False
        assert len({r.id for r in rules}) == len(rules)

    def test_error_rule_disabled_when_sample_has_error(self) -> None:
        rules = generate_suggested_rules({"error": "bad"}, 200, {})
        error_rule = next(r for r in rules if r.name == "No Error Field")
        assert error_rule.enabled is False

    def test_data_and_error_checks_look_at_fields(self) -> None:
        rules = [
            r.model_copy(update={"enabled": True})
            for r in generate_suggested_rules(SAMPLE, 200, HEADERS)
            if r.name in ("Data Field Exists", "No Error Field")
        ]
        broken = {"success": True, "data": None, "error": "boom"}
        verdict = ValidationEngine().validate_response(broken, 200, HEADERS, 50.0, 10, rules)
        assert [r.passed for r in verdict.results] == [False, False]

    def test_text_body_only_gets_generic_rules(self) -> None:
        rules = generate_suggested_rules("hello", 200, {})
        assert [r.type for r in rules] == ["status", "responseTime"]

    def test_enabled_suggestions_pass_on_their_sample(self) -> None:
        rules = generate_suggested_rules(SAMPLE, 200, HEADERS)
        verdict = ValidationEngine().validate_response(SAMPLE, 200, HEADERS, 50.0, 10, rules)
        assert verdict.passed

    def test_disabled_array_checks_evaluate(self) -> None:
        rules = [
            r.model_copy(update={"enabled": True})
            for r in generate_suggested_rules(SAMPLE, 200, HEADERS)
            if r.name.endswith("Array Not Empty")
        ]
        verdict = ValidationEngine().validate_response(SAMPLE, 200, HEADERS, 50.0, 10, rules)
        assert [r.passed for r in verdict.results] == [True, False]


class TestCreateDefaultRule:
    @pytest.mark.parametrize("rule_type", list(RuleType))
    def test_defaults_are_enabled(self, rule_type: RuleType) -> None:
        rule = create_default_rule(rule_type)
        assert rule.enabled
        assert rule.type == rule_type.value
        assert rule.id.startswith(rule_type.value)

    def test_status_default(self) -> None:
        rule = create_default_rule("status")
        assert rule.operator == "equals"
        assert rule.expected_value == 200

    def test_custom_default_passes(self) -> None:
        rule = create_default_rule(RuleType.CUSTOM)
        verdict = ValidationEngine().validate_response({}, 200, {}, 1.0, 0, [rule])
        assert verdict.passed
