"""
Result Envelope
Maps orchestration outcomes to the response body and HTTP status the UI expects.
"""

from typing import Any, Dict, Tuple

from contract_risk.schemas.outcome import (
    AnalysisBlocked,
    AnalysisOutcome,
    AnalysisSuccess,
    ErrorKind,
)


ERROR_STATUS_CODES = {
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.COST_ESTIMATION_ERROR: 400,
    ErrorKind.CONTENT_BLOCKED: 422,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.VALIDATION_FAILURE: 502,
    ErrorKind.PROVIDER_ERROR: 502,
    ErrorKind.REQUEST_TIMEOUT: 504,
    ErrorKind.INTERNAL_ERROR: 500,
}


def to_response(outcome: AnalysisOutcome) -> Tuple[int, Dict[str, Any]]:
    """
    Build the (status_code, body) pair for an outcome.

    Success:
        {analysis, tokensUsed: {input, output, total}, modelUsed,
         processingTime, estimatedCost, latencyMs, retryCount}
    Failure / Blocked:
        {error, kind, partialMetrics?} (Blocked also carries reasons)
    """
    if isinstance(outcome, AnalysisSuccess):
        metrics = outcome.metrics
        return 200, {
            "analysis": outcome.analysis.model_dump(mode="json"),
            "tokensUsed": {
                "input": metrics.input_tokens,
                "output": metrics.output_tokens,
                "total": metrics.total_tokens,
            },
            "modelUsed": outcome.model_id,
            "processingTime": outcome.processing_time_ms,
            "estimatedCost": metrics.estimated_cost_usd,
            "latencyMs": metrics.latency_ms,
            "retryCount": metrics.retry_count,
        }

    body: Dict[str, Any] = {
        "error": outcome.message,
        "kind": outcome.kind.value,
    }
    if isinstance(outcome, AnalysisBlocked):
        body["reasons"] = outcome.reasons
    elif outcome.partial_metrics is not None:
        metrics = outcome.partial_metrics
        body["partialMetrics"] = {
            "tokensUsed": {
                "input": metrics.input_tokens,
                "output": metrics.output_tokens,
                "total": metrics.total_tokens,
            },
            "estimatedCost": metrics.estimated_cost_usd,
            "latencyMs": metrics.latency_ms,
            "retryCount": metrics.retry_count,
            "processingTime": outcome.processing_time_ms,
        }
    return ERROR_STATUS_CODES[outcome.kind], body
