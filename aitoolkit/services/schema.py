"""
Pydantic models for operation results and action dispatch.

Every operation returns an envelope with a success flag instead of raising
for provider or parse failures, so calling code can branch on
result.success without exception handling.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OperationResult(BaseModel):
    """Fields shared by all operation envelopes."""

    model_config = ConfigDict(extra="forbid")

    success: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict without unset optional fields (error, validation, ...)."""
        return self.model_dump(exclude_none=True)


class ExtractResult(OperationResult):
    """
    Result of extract().

    data is None whenever the response could not be parsed. confidence is the
    share of schema fields that came back non-empty.
    """

    data: Any = None
    confidence: float = 0.0
    validation: Optional[Any] = None


class ValidateResult(OperationResult):
    score: float = 0.0
    reasoning: str = ""
    confidence: float = 0.0
    recommendation: Optional[str] = Field(
        None,
        description="pass | fail | conditional, as reported by the model",
    )


class SummarizeResult(OperationResult):
    summary: str = ""
    key_points: List[Any] = Field(default_factory=list)
    confidence: float = 0.0


class DecideResult(OperationResult):
    """
    Result of decide().

    Can be passed straight to ActionRegistry.execute(): it carries the
    action name and parameters a decision needs.
    """

    action: Optional[str] = None
    reasoning: str = ""
    confidence: float = 0.0
    parameters: Dict[str, Any] = Field(default_factory=dict)


class Decision(BaseModel):
    """Minimal decision shape accepted by the action registry."""

    action: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ExecutionResult(BaseModel):
    """
    Outcome of dispatching an action.

    Handler failures are reported here (success=False, error=<message>)
    rather than raised.
    """

    success: bool
    action: str
    result: Any = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success, "action": self.action}
        if self.success:
            data["result"] = self.result
        else:
            data["error"] = self.error
        return data
