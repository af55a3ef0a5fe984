"""
Contract analysis endpoint
Runs the structured-extraction pipeline for one contract.
"""

import asyncio
import logging
from typing import Awaitable, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from contract_risk.core.config import settings
from contract_risk.schemas.outcome import AnalysisOutcome
from contract_risk.services.contract_analysis_pipeline import ContractAnalysisPipeline
from contract_risk.services.result_envelope import to_response

logger = logging.getLogger(__name__)
router = APIRouter()

# Non-standard status used when the client went away before we answered
CLIENT_CLOSED_REQUEST = 499


def get_pipeline(request: Request) -> ContractAnalysisPipeline:
    """Dependency to get the app-wide pipeline, built on first use"""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        try:
            pipeline = ContractAnalysisPipeline()
        except ValueError as e:
            logger.error(f"Analysis pipeline unavailable: {e}")
            raise HTTPException(status_code=503, detail=str(e))
        request.app.state.pipeline = pipeline
    return pipeline


async def run_until_disconnect(
    request: Request,
    analysis: Awaitable[AnalysisOutcome]
) -> Optional[AnalysisOutcome]:
    """
    Await the analysis, cancelling it if the client disconnects.

    Returns:
        The outcome, or None if the client went away first
    """
    task = asyncio.ensure_future(analysis)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=settings.DISCONNECT_POLL_INTERVAL)
            if task in done:
                return task.result()
            if await request.is_disconnected():
                logger.info("Client disconnected, cancelling analysis")
                return None
    finally:
        if not task.done():
            task.cancel()
            await asyncio.wait({task})


@router.post("/analyze")
async def analyze_contract(
    request: Request,
    payload: dict = Body(...),
    pipeline: ContractAnalysisPipeline = Depends(get_pipeline)
):
    """
    Analyze a contract and return a structured risk report.

    Expects:
    {
        "contractText": "...",
        "contractType": "employment_offer" | "tos" | "nda" | "lease" | "other",
        "jurisdiction": ["California", ...],
        "persona": "employee",
        "modelId": "gpt-4o-mini"
    }

    Returns:
        analysis, tokensUsed, modelUsed, processingTime and estimatedCost on success;
        error and kind (plus partialMetrics where available) otherwise
    """
    outcome = await run_until_disconnect(request, pipeline.analyze(payload))
    if outcome is None:
        return Response(status_code=CLIENT_CLOSED_REQUEST)

    status_code, body = to_response(outcome)
    return JSONResponse(status_code=status_code, content=body)
