"""
Contract Analysis Pipeline
Request parsing -> Guardrail -> Extraction orchestrator.
"""

import logging
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from contract_risk.core.config import settings
from contract_risk.schemas.contract_analysis import AnalysisRequest
from contract_risk.schemas.outcome import (
    AnalysisBlocked,
    AnalysisFailure,
    AnalysisOutcome,
    ErrorKind,
    UsageMetrics,
)
from contract_risk.services.extraction_orchestrator import AnalysisModel, ExtractionOrchestrator
from contract_risk.services.guardrail import ContentGuardrail
from contract_risk.services.openai_service import OpenAIService

logger = logging.getLogger(__name__)


def _describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "body"
    return f"{location}: {first['msg']}"


class ContractAnalysisPipeline:
    """
    Entry point used by the HTTP layer.

    Steps:
    1. Parse and validate the inbound payload (InvalidRequest on failure)
    2. Run the content guardrail (Blocked on a hit, no model call)
    3. Run the extraction orchestrator
    """

    def __init__(
        self,
        model: Optional[AnalysisModel] = None,
        guardrail: Optional[ContentGuardrail] = None,
        orchestrator: Optional[ExtractionOrchestrator] = None,
        **orchestrator_options: Any
    ):
        """
        Initialize pipeline.

        Args:
            model: Model adapter (defaults to OpenAIService using settings)
            guardrail: Content guardrail (defaults to one honouring GUARDRAIL_ENABLED)
            orchestrator: Pre-built orchestrator; overrides model and orchestrator_options
            **orchestrator_options: Passed through to ExtractionOrchestrator
        """
        if orchestrator is None:
            if model is None:
                model = OpenAIService()
            orchestrator = ExtractionOrchestrator(model, **orchestrator_options)
        self.orchestrator = orchestrator
        self.guardrail = guardrail or ContentGuardrail(enabled=settings.GUARDRAIL_ENABLED)

    def parse_request(self, payload: Union[AnalysisRequest, Mapping[str, Any]]) -> AnalysisRequest:
        """Validate an inbound payload, raising pydantic's ValidationError on bad input"""
        if isinstance(payload, AnalysisRequest):
            return payload
        return AnalysisRequest.model_validate(payload)

    async def analyze(self, payload: Union[AnalysisRequest, Mapping[str, Any]]) -> AnalysisOutcome:
        """
        Analyze one contract.

        Args:
            payload: AnalysisRequest or the raw inbound JSON body

        Returns:
            AnalysisSuccess, AnalysisFailure or AnalysisBlocked
        """
        try:
            request = self.parse_request(payload)
        except ValidationError as e:
            message = _describe_validation_error(e)
            logger.info(f"Rejected invalid request: {message}")
            return AnalysisFailure(
                kind=ErrorKind.INVALID_REQUEST,
                message=message,
                partial_metrics=UsageMetrics()
            )

        verdict = self.guardrail.check(request.contract_text)
        if verdict.blocked:
            return AnalysisBlocked(
                message="Content blocked by guardrail: " + "; ".join(verdict.reasons),
                reasons=verdict.reasons
            )

        return await self.orchestrator.run(request)

    async def aclose(self) -> None:
        """Release the model adapter's client, if it holds one"""
        close = getattr(self.orchestrator.model, "aclose", None)
        if close is not None:
            await close()
