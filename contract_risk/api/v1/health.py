"""
Health check endpoint
"""

from fastapi import APIRouter
from contract_risk.core.config import settings

router = APIRouter()


@router.get("")
async def health():
    """
    Health check endpoint.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "openai_configured": bool(settings.OPENAI_API_KEY),
        "default_model": settings.DEFAULT_MODEL,
        "guardrail_enabled": settings.GUARDRAIL_ENABLED
    }
