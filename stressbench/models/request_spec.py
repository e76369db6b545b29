"""
Request Spec Models

Defines Pydantic models for request templates and their validation rules.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class HttpMethod(str, Enum):
    """Supported HTTP methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class RuleType(str, Enum):
    """Where a validation rule reads its actual value from."""

    STATUS = "status"
    HEADER = "header"
    BODY = "body"
    RESPONSE_TIME = "responseTime"
    SIZE = "size"
    CUSTOM = "custom"


class RuleOperator(str, Enum):
    """Comparison applied between the actual and expected value."""

    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    GREATER_THAN_OR_EQUAL = "greaterThanOrEqual"
    LESS_THAN_OR_EQUAL = "lessThanOrEqual"
    EXISTS = "exists"
    NOT_EXISTS = "notExists"
    REGEX = "regex"
    JSON_PATH = "jsonPath"
    CUSTOM = "custom"


class ValidationRule(BaseModel):
    """
    A declarative assertion evaluated against one HTTP response.

    Rules are independent of each other; evaluation order is insertion order
    but no rule depends on another's outcome.
    """

    id: str = Field(..., description="Rule identifier")
    name: str = Field(..., description="Display name")
    type: RuleType = Field(..., description="Source of the actual value")
    operator: RuleOperator = Field(..., description="Comparison operator")
    target: Optional[str] = Field(
        None, description="Header name or JSON path, depending on type/operator"
    )
    expected_value: Any = Field(None, description="Value to compare against")
    custom_code: Optional[str] = Field(
        None, description="Sandboxed expression for custom rules"
    )
    enabled: bool = Field(True, description="Disabled rules are skipped")

    model_config = ConfigDict(
        use_enum_values=True,
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class RequestSpec(BaseModel):
    """
    A named, reusable HTTP request template used as one test step.

    Immutable for the lifetime of a test run.
    """

    name: str = Field(..., description="Request name")
    method: HttpMethod = Field(HttpMethod.GET, description="HTTP method")
    path: str = Field(..., description="Request path (joined to the base URL)")
    headers: Dict[str, str] = Field(
        default_factory=dict, description="Per-request header overrides"
    )
    input_params: Any = Field(
        default_factory=dict, description="Body (or query payload for GET)"
    )
    legacy_test: str = Field(
        "",
        alias="test",
        description="Legacy boolean expression evaluated against `response`",
    )
    validation_rules: List[ValidationRule] = Field(
        default_factory=list, description="Declarative validation rules"
    )

    model_config = ConfigDict(
        use_enum_values=True,
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v):
        """Accept lower-case method names."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @property
    def has_enabled_rules(self) -> bool:
        """True when at least one validation rule is enabled."""
        return any(rule.enabled for rule in self.validation_rules)
