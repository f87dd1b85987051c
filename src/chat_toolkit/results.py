"""
Tagged operation results and the error policy that produces them.

'OperationResult' replaces the "always succeed" contract of a swallow-all
backend with an explicit status: 'success', 'partial' (the operation finished
but some steps were skipped, see 'warnings') or 'failure' (with an
'error_code'). 'ErrorPolicy.SWALLOW' keeps the legacy behaviour available: a
failure is reported to the caller as an empty success while the error text
survives in 'warnings' for telemetry.
"""

from enum import StrEnum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ResultStatus(StrEnum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


class ErrorPolicy(StrEnum):
    """How the controller surfaces caught failures to the caller."""

    REPORT = "report"
    SWALLOW = "swallow"


class OperationResult(BaseModel, Generic[T]):
    status: ResultStatus = ResultStatus.SUCCESS
    value: T | None = None
    error_code: str | None = None
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status != ResultStatus.FAILURE

    @classmethod
    def success(cls, value: T | None = None, warnings: list[str] | None = None) -> "OperationResult[T]":
        """Build a success, downgraded to 'partial' when warnings are present."""
        if warnings:
            return cls(status=ResultStatus.PARTIAL, value=value, warnings=list(warnings))
        return cls(status=ResultStatus.SUCCESS, value=value)

    @classmethod
    def failure(cls, error_code: str, error: str) -> "OperationResult[T]":
        return cls(status=ResultStatus.FAILURE, error_code=error_code, error=error)

    def apply_policy(self, policy: ErrorPolicy) -> "OperationResult[T]":
        if policy == ErrorPolicy.SWALLOW and self.status == ResultStatus.FAILURE:
            return self.model_copy(
                update={
                    "status": ResultStatus.SUCCESS,
                    "value": None,
                    "error_code": None,
                    "error": None,
                    "warnings": [*self.warnings, f"{self.error_code}: {self.error}"],
                }
            )
        return self
