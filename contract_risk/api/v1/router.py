"""
API router
"""

from fastapi import APIRouter
from contract_risk.api.v1 import analyze
from contract_risk.api.v1 import models
from contract_risk.api.v1 import health

api_router = APIRouter()

api_router.include_router(analyze.router, prefix="/api/contract", tags=["analysis"])
api_router.include_router(models.router, prefix="/api/models", tags=["service"])
api_router.include_router(health.router, prefix="/health", tags=["service"])
