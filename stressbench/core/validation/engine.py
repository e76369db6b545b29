"""
Response validation.

Evaluates a decoded HTTP response against a list of declarative
``ValidationRule``s. Every rule is isolated: an exception while evaluating one
rule becomes a failed ``ValidationResult`` for that rule and never aborts the
others.
"""

from __future__ import annotations

import logging
import time
from typing import Any, List, Mapping, Optional, Sequence

from stressbench.core.error_handling import ExpressionError, JsonPathError
from stressbench.core.validation.comparable import UNDEFINED, apply_operator
from stressbench.core.validation.expressions import evaluate, evaluate_predicate
from stressbench.core.validation.json_path import resolve_path
from stressbench.models import (
    RequestValidationResult,
    RuleOperator,
    RuleType,
    ValidationResult,
    ValidationRule,
)

logger = logging.getLogger(__name__)


def _plain(value: Any) -> Any:
    return None if value is UNDEFINED else value


class ValidationEngine:
    """Stateless evaluator for validation rules."""

    def validate_response(
        self,
        response: Any,
        status: int,
        headers: Mapping[str, str],
        response_time_ms: float,
        response_size_bytes: int,
        rules: Sequence[ValidationRule],
    ) -> RequestValidationResult:
        """
        Evaluate every enabled rule against one response.

        Args:
            response: Decoded body (JSON value or text)
            status: HTTP status code
            headers: Response headers
            response_time_ms: Elapsed request time (ms)
            response_size_bytes: Raw body size (bytes)
            rules: Rules to evaluate; disabled rules are skipped

        Returns:
            Aggregate verdict; passes vacuously when no rule is enabled
        """
        started = time.perf_counter()
        results: List[ValidationResult] = []

        for rule in rules:
            if not rule.enabled:
                continue
            try:
                result = self._validate_rule(
                    response,
                    status,
                    headers,
                    response_time_ms,
                    response_size_bytes,
                    rule,
                )
            except Exception as e:
                logger.debug("Rule %s raised: %s", rule.id, e)
                result = ValidationResult(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    passed=False,
                    expected_value=rule.expected_value,
                    error=str(e) or "Validation error",
                )
            results.append(result)

        return RequestValidationResult(
            passed=all(r.passed for r in results),
            results=results,
            execution_time_ms=(time.perf_counter() - started) * 1000,
        )

    def _validate_rule(
        self,
        response: Any,
        status: int,
        headers: Mapping[str, str],
        response_time_ms: float,
        response_size_bytes: int,
        rule: ValidationRule,
    ) -> ValidationResult:
        if rule.type == RuleType.CUSTOM or rule.operator == RuleOperator.CUSTOM:
            return self._run_custom(
                response,
                status,
                headers,
                response_time_ms,
                response_size_bytes,
                rule,
            )

        if rule.operator == RuleOperator.JSON_PATH:
            try:
                actual = resolve_path(response, rule.target or "")
            except JsonPathError as e:
                raise JsonPathError(f"JSONPath error: {e}") from e
            passed = apply_operator(RuleOperator.EQUALS, actual, rule.expected_value)
            return self._result(rule, passed, actual)

        actual = self._actual_value(
            response, status, headers, response_time_ms, response_size_bytes, rule
        )
        passed = apply_operator(rule.operator, actual, rule.expected_value)
        return self._result(rule, passed, actual)

    @staticmethod
    def _actual_value(
        response: Any,
        status: int,
        headers: Mapping[str, str],
        response_time_ms: float,
        response_size_bytes: int,
        rule: ValidationRule,
    ) -> Any:
        if rule.type == RuleType.STATUS:
            return status
        if rule.type == RuleType.HEADER:
            return headers.get(rule.target or "", UNDEFINED)
        if rule.type == RuleType.BODY:
            return response
        if rule.type == RuleType.RESPONSE_TIME:
            return response_time_ms
        if rule.type == RuleType.SIZE:
            return response_size_bytes
        raise ValueError(f"Unsupported rule type: {rule.type}")

    @staticmethod
    def _result(rule: ValidationRule, passed: bool, actual: Any) -> ValidationResult:
        return ValidationResult(
            rule_id=rule.id,
            rule_name=rule.name,
            passed=passed,
            actual_value=_plain(actual),
            expected_value=rule.expected_value,
        )

    @staticmethod
    def _run_custom(
        response: Any,
        status: int,
        headers: Mapping[str, str],
        response_time_ms: float,
        response_size_bytes: int,
        rule: ValidationRule,
    ) -> ValidationResult:
        names = {
            "response": response,
            "status": status,
            "headers": dict(headers),
            "responseTime": response_time_ms,
            "responseSize": response_size_bytes,
            "response_time": response_time_ms,
            "response_size": response_size_bytes,
        }
        try:
            outcome = evaluate(rule.custom_code or "", names)
        except ExpressionError as e:
            return ValidationResult(
                rule_id=rule.id,
                rule_name=rule.name,
                passed=False,
                error=str(e) or "Custom validation failed",
            )

        if isinstance(outcome, bool):
            return ValidationResult(rule_id=rule.id, rule_name=rule.name, passed=outcome)

        if isinstance(outcome, dict):
            actual = outcome.get("actualValue", outcome.get("actual_value"))
            error = outcome.get("error")
            return ValidationResult(
                rule_id=rule.id,
                rule_name=rule.name,
                passed=bool(outcome.get("passed", False)),
                actual_value=actual,
                error=str(error) if error is not None else None,
            )

        return ValidationResult(
            rule_id=rule.id, rule_name=rule.name, passed=bool(outcome)
        )


def evaluate_legacy_test(expression: Optional[str], response: Any) -> bool:
    """
    Evaluate a legacy boolean test expression against ``response``.

    A blank expression, a rejected expression or one that fails at runtime
    all count as a failed test.
    """
    if not expression or not expression.strip():
        return False
    try:
        return evaluate_predicate(expression, {"response": response})
    except ExpressionError as e:
        logger.debug("Legacy test expression failed: %s", e)
        return False
