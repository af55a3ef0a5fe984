"""
Unit tests for the pipeline facade and the result envelope.
"""
import asyncio

import pytest

from contract_risk.schemas.contract_analysis import AnalysisRequest
from contract_risk.schemas.outcome import (
    AnalysisBlocked,
    AnalysisFailure,
    AnalysisSuccess,
    ErrorKind,
    UsageMetrics,
)
from contract_risk.services.contract_analysis_pipeline import ContractAnalysisPipeline
from contract_risk.services.guardrail import ContentGuardrail
from contract_risk.services.result_envelope import ERROR_STATUS_CODES, to_response
from conftest import TEST_PRICING, ScriptedModel, make_analysis


def make_pipeline(model, recording_sleep, guardrail=None):
    return ContractAnalysisPipeline(
        model=model,
        guardrail=guardrail or ContentGuardrail(enabled=True),
        max_retries=2,
        request_timeout=0,
        pricing=TEST_PRICING,
        sleep=recording_sleep,
    )


class TestContractAnalysisPipeline:
    """Tests for ContractAnalysisPipeline.analyze."""

    def test_sample_scenario_succeeds(self, sample_request_payload, recording_sleep):
        model = ScriptedModel(make_analysis(score=42))
        pipeline = make_pipeline(model, recording_sleep)

        outcome = asyncio.run(pipeline.analyze(sample_request_payload))

        assert isinstance(outcome, AnalysisSuccess)
        assert outcome.analysis.overall_risk_score == 42
        assert len(outcome.analysis.clauses) == 1

    def test_accepts_request_object(self, sample_request_payload, recording_sleep):
        model = ScriptedModel(make_analysis())
        pipeline = make_pipeline(model, recording_sleep)

        outcome = asyncio.run(pipeline.analyze(AnalysisRequest.model_validate(sample_request_payload)))

        assert isinstance(outcome, AnalysisSuccess)

    def test_empty_contract_text_is_invalid_request(self, sample_request_payload, recording_sleep):
        sample_request_payload["contractText"] = ""
        model = ScriptedModel(make_analysis())
        pipeline = make_pipeline(model, recording_sleep)

        outcome = asyncio.run(pipeline.analyze(sample_request_payload))

        assert isinstance(outcome, AnalysisFailure)
        assert outcome.kind == ErrorKind.INVALID_REQUEST
        assert outcome.message.startswith("contractText")
        assert model.calls == []
        assert outcome.partial_metrics.total_tokens == 0
        assert outcome.partial_metrics.estimated_cost_usd == 0

    def test_missing_contract_text_is_invalid_request(self, recording_sleep):
        model = ScriptedModel(make_analysis())
        pipeline = make_pipeline(model, recording_sleep)

        outcome = asyncio.run(pipeline.analyze({"contractType": "nda"}))

        assert outcome.kind == ErrorKind.INVALID_REQUEST
        assert model.calls == []

    def test_guardrail_hit_is_blocked(self, sample_request_payload, recording_sleep):
        sample_request_payload["contractText"] = "Employee SSN 123-45-6789 agrees to the terms."
        model = ScriptedModel(make_analysis())
        pipeline = make_pipeline(model, recording_sleep)

        outcome = asyncio.run(pipeline.analyze(sample_request_payload))

        assert isinstance(outcome, AnalysisBlocked)
        assert outcome.kind == ErrorKind.CONTENT_BLOCKED
        assert outcome.reasons
        assert model.calls == []


class TestToResponse:
    """Tests for the result envelope."""

    def test_success_body(self):
        outcome = AnalysisSuccess(
            analysis=make_analysis(score=42),
            metrics=UsageMetrics(
                input_tokens=100,
                output_tokens=40,
                total_tokens=140,
                estimated_cost_usd=0.00018,
                latency_ms=850,
                retry_count=1,
            ),
            model_id="gpt-x",
            processing_time_ms=1900,
        )

        status_code, body = to_response(outcome)

        assert status_code == 200
        assert set(body) == {
            "analysis", "tokensUsed", "modelUsed", "processingTime",
            "estimatedCost", "latencyMs", "retryCount",
        }
        assert body["analysis"]["overall_risk_score"] == 42
        assert body["analysis"]["clauses"][0]["risk_level"] == "medium"
        assert body["tokensUsed"] == {"input": 100, "output": 40, "total": 140}
        assert body["modelUsed"] == "gpt-x"
        assert body["processingTime"] == 1900
        assert body["estimatedCost"] == 0.00018
        assert body["retryCount"] == 1

    def test_failure_body_with_partial_metrics(self):
        outcome = AnalysisFailure(
            kind=ErrorKind.VALIDATION_FAILURE,
            message="Model output failed validation: $.clauses: too short",
            partial_metrics=UsageMetrics(latency_ms=3000, retry_count=2),
            processing_time_ms=7100,
        )

        status_code, body = to_response(outcome)

        assert status_code == 502
        assert body["error"] == outcome.message
        assert body["kind"] == "validation_failure"
        assert body["partialMetrics"]["retryCount"] == 2
        assert body["partialMetrics"]["latencyMs"] == 3000
        assert body["partialMetrics"]["processingTime"] == 7100

    def test_blocked_body(self):
        outcome = AnalysisBlocked(message="Content blocked by guardrail: x", reasons=["x"])

        status_code, body = to_response(outcome)

        assert status_code == 422
        assert body == {"error": outcome.message, "kind": "content_blocked", "reasons": ["x"]}

    @pytest.mark.parametrize("kind", list(ErrorKind))
    def test_every_error_kind_has_a_status(self, kind):
        assert 400 <= ERROR_STATUS_CODES[kind] < 600
