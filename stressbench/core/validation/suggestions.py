"""
Rule suggestion and default-rule construction for rule editors.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping
from uuid import uuid4

from stressbench.models import RuleOperator, RuleType, ValidationRule


def _rule_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:8]}"


def generate_suggested_rules(
    response: Any, status: int, headers: Mapping[str, str]
) -> List[ValidationRule]:
    """
    Propose rules that a sample response already satisfies.

    Structural checks are only suggested for JSON object bodies. Array and
    latency checks are suggested disabled so they do not fail suites that
    legitimately return empty lists or run on slow environments.
    """
    rules: List[ValidationRule] = [
        ValidationRule(
            id=_rule_id("status"),
            name="Status Code Success",
            type=RuleType.STATUS,
            operator=RuleOperator.EQUALS,
            expected_value=status,
        )
    ]

    content_type = headers.get("content-type")
    if content_type:
        rules.append(
            ValidationRule(
                id=_rule_id("header-content-type"),
                name="Content-Type Header",
                type=RuleType.HEADER,
                operator=RuleOperator.EQUALS,
                target="content-type",
                expected_value=content_type,
            )
        )

    if isinstance(response, dict):
        if "success" in response:
            rules.append(
                ValidationRule(
                    id=_rule_id("body-success"),
                    name="Response Success Flag",
                    type=RuleType.BODY,
                    operator=RuleOperator.JSON_PATH,
                    target="success",
                    expected_value=response["success"],
                )
            )

        if "data" in response:
            rules.append(
                ValidationRule(
                    id=_rule_id("body-data-exists"),
                    name="Data Field Exists",
                    type=RuleType.BODY,
                    operator=RuleOperator.CUSTOM,
                    custom_code="response.get('data') is not None",
                )
            )

        if "error" in response:
            rules.append(
                ValidationRule(
                    id=_rule_id("body-no-error"),
                    name="No Error Field",
                    type=RuleType.BODY,
                    operator=RuleOperator.CUSTOM,
                    custom_code="response.get('error') is None",
                    enabled=response["error"] is None,
                )
            )

        for key, value in response.items():
            if isinstance(value, list):
                rules.append(
                    ValidationRule(
                        id=_rule_id(f"array-{key}"),
                        name=f"{key} Array Not Empty",
                        type=RuleType.BODY,
                        operator=RuleOperator.CUSTOM,
                        custom_code=f"len(response.get({key!r}) or []) > 0",
                        enabled=False,
                    )
                )

    rules.append(
        ValidationRule(
            id=_rule_id("response-time"),
            name="Response Time Under 2s",
            type=RuleType.RESPONSE_TIME,
            operator=RuleOperator.LESS_THAN,
            expected_value=2000,
            enabled=False,
        )
    )
    return rules


_DEFAULTS: Dict[str, Dict[str, Any]] = {
    RuleType.STATUS.value: {
        "name": "Status Code Check",
        "operator": RuleOperator.EQUALS,
        "expected_value": 200,
    },
    RuleType.HEADER.value: {
        "name": "Header Check",
        "operator": RuleOperator.EXISTS,
        "target": "content-type",
    },
    RuleType.BODY.value: {
        "name": "Body Field Check",
        "operator": RuleOperator.JSON_PATH,
        "target": "data",
    },
    RuleType.RESPONSE_TIME.value: {
        "name": "Response Time Check",
        "operator": RuleOperator.LESS_THAN,
        "expected_value": 1000,
    },
    RuleType.SIZE.value: {
        "name": "Response Size Check",
        "operator": RuleOperator.GREATER_THAN,
        "expected_value": 0,
    },
    RuleType.CUSTOM.value: {
        "name": "Custom Validation",
        "operator": RuleOperator.CUSTOM,
        "custom_code": "True",
    },
}


def create_default_rule(rule_type: RuleType | str) -> ValidationRule:
    """Build an enabled starter rule for ``rule_type``."""
    rule_type = RuleType(rule_type)
    return ValidationRule(
        id=_rule_id(rule_type.value),
        type=rule_type,
        enabled=True,
        **_DEFAULTS[rule_type.value],
    )
