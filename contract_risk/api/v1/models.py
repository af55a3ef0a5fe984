"""
Models endpoint
Lists the models the service can price, and therefore analyze with.
"""

from fastapi import APIRouter

from contract_risk.core.config import settings
from contract_risk.services.usage_estimator import MODEL_PRICING

router = APIRouter()


@router.get("")
async def list_models():
    """
    Returns priced models with input/output prices in USD per million tokens.
    """
    return {
        "default_model": settings.DEFAULT_MODEL,
        "models": [
            {
                "id": model_id,
                "input_price_per_million": prices["input"],
                "output_price_per_million": prices["output"]
            }
            for model_id, prices in MODEL_PRICING.items()
        ]
    }
