"""
Data models for stressbench.

This package contains Pydantic models for:
- Request templates and validation rules
- Per-request results and test runs
- Aggregate run metrics
- Auth context used for token substitution
"""

from stressbench.models.request_spec import (
    HttpMethod,
    RuleType,
    RuleOperator,
    ValidationRule,
    RequestSpec,
)

from stressbench.models.validation import (
    ValidationResult,
    RequestValidationResult,
)

from stressbench.models.test_result import (
    TestStatus,
    TestRunType,
    RequestResult,
    TestRunConfig,
    TestRun,
)

from stressbench.models.metrics import TestMetrics

from stressbench.models.auth import AuthContext

__all__ = [
    # request_spec
    "HttpMethod",
    "RuleType",
    "RuleOperator",
    "ValidationRule",
    "RequestSpec",
    # validation
    "ValidationResult",
    "RequestValidationResult",
    # test_result
    "TestStatus",
    "TestRunType",
    "RequestResult",
    "TestRunConfig",
    "TestRun",
    # metrics
    "TestMetrics",
    # auth
    "AuthContext",
]
