"""
Response validation: comparable values, JSON paths, the expression sandbox,
the rule engine and rule suggestion.
"""

from stressbench.core.validation.comparable import (
    UNDEFINED,
    ComparableValue,
    ValueKind,
    apply_operator,
)
from stressbench.core.validation.engine import ValidationEngine, evaluate_legacy_test
from stressbench.core.validation.expressions import evaluate, evaluate_predicate
from stressbench.core.validation.json_path import parse_path, resolve_path
from stressbench.core.validation.suggestions import (
    create_default_rule,
    generate_suggested_rules,
)

__all__ = [
    "UNDEFINED",
    "ComparableValue",
    "ValueKind",
    "apply_operator",
    "ValidationEngine",
    "evaluate_legacy_test",
    "evaluate",
    "evaluate_predicate",
    "parse_path",
    "resolve_path",
    "create_default_rule",
    "generate_suggested_rules",
]
