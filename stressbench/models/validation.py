"""
Validation Result Models
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ValidationResult(BaseModel):
    """Outcome of a single validation rule."""

    rule_id: str = Field(..., description="Rule identifier")
    rule_name: str = Field(..., description="Rule display name")
    passed: bool = Field(..., description="Whether the rule passed")
    actual_value: Any = Field(None, description="Value extracted from the response")
    expected_value: Any = Field(None, description="Value the rule expected")
    error: Optional[str] = Field(None, description="Rule-level error message")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RequestValidationResult(BaseModel):
    """Aggregate verdict of every enabled rule for one response."""

    passed: bool = Field(..., description="Logical AND over all rule results")
    results: List[ValidationResult] = Field(
        default_factory=list, description="Per-rule results"
    )
    execution_time_ms: float = Field(0.0, description="Time spent validating (ms)")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @property
    def failed_results(self) -> List[ValidationResult]:
        """Rules that did not pass."""
        return [r for r in self.results if not r.passed]
