"""
Outcome schemas for one orchestration run
"""

from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from contract_risk.schemas.contract_analysis import ContractAnalysis


class ErrorKind(str, Enum):
    """Why an analysis did not produce a result"""
    INVALID_REQUEST = "invalid_request"
    CONTENT_BLOCKED = "content_blocked"
    VALIDATION_FAILURE = "validation_failure"
    RATE_LIMITED = "rate_limited"
    PROVIDER_ERROR = "provider_error"
    COST_ESTIMATION_ERROR = "cost_estimation_error"
    REQUEST_TIMEOUT = "request_timeout"
    INTERNAL_ERROR = "internal_error"


class UsageMetrics(BaseModel):
    """Token counts, cost, latency and retries for one run"""
    input_tokens: int = Field(0, ge=0)
    output_tokens: int = Field(0, ge=0)
    total_tokens: int = Field(0, ge=0)
    estimated_cost_usd: float = Field(0.0, ge=0)
    latency_ms: int = Field(0, ge=0, description="Time spent waiting on the model, summed over attempts")
    retry_count: int = Field(0, ge=0, description="Attempts made beyond the first")


class AnalysisSuccess(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    status: Literal["success"] = "success"
    analysis: ContractAnalysis
    metrics: UsageMetrics
    model_id: str
    processing_time_ms: int = Field(0, ge=0)


class AnalysisFailure(BaseModel):
    status: Literal["failure"] = "failure"
    kind: ErrorKind
    message: str
    partial_metrics: Optional[UsageMetrics] = None
    processing_time_ms: int = Field(0, ge=0)


class AnalysisBlocked(BaseModel):
    """The guardrail rejected the input before any model call"""
    status: Literal["blocked"] = "blocked"
    kind: ErrorKind = ErrorKind.CONTENT_BLOCKED
    message: str
    reasons: List[str] = Field(default_factory=list)


AnalysisOutcome = Union[AnalysisSuccess, AnalysisFailure, AnalysisBlocked]
