"""
Token and cost estimation
Counts tokens from provider usage (or a local tokenizer when the provider
reports none) and prices them per model.
"""

import json
import logging
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional, Protocol

import tiktoken

from contract_risk.core.config import settings
from contract_risk.schemas.contract_analysis import ContractAnalysis
from contract_risk.schemas.openai import ProviderUsage
from contract_risk.schemas.outcome import UsageMetrics

logger = logging.getLogger(__name__)


# USD per one million tokens
MODEL_PRICING: Dict[str, Dict[str, float]] = {
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4.1": {"input": 2.00, "output": 8.00},
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
    "gpt-4.1-nano": {"input": 0.10, "output": 0.40},
    "o4-mini": {"input": 1.10, "output": 4.40},
    "gpt-5": {"input": 1.25, "output": 10.00},
    "gpt-5-mini": {"input": 0.25, "output": 2.00},
    "gpt-5-nano": {"input": 0.05, "output": 0.40},
}

TOKENS_PER_PRICE_UNIT = 1_000_000


class Tokenizer(Protocol):
    def encode(self, text: str) -> Any: ...


class CostEstimationError(Exception):
    """Raised when a model has no entry in the price table"""
    def __init__(self, model_id: str):
        self.model_id = model_id
        self.message = f"No pricing available for model '{model_id}'"
        super().__init__(self.message)


@lru_cache(maxsize=None)
def get_tokenizer(model_id: Optional[str] = None) -> Tokenizer:
    """
    Get the tiktoken encoding for a model, falling back to the configured
    default encoding for models tiktoken does not know.
    """
    if model_id:
        try:
            return tiktoken.encoding_for_model(model_id)
        except KeyError:
            logger.debug(f"No tiktoken mapping for {model_id}, using {settings.TOKENIZER_ENCODING}")
    return tiktoken.get_encoding(settings.TOKENIZER_ENCODING)


def _count_tokens(encoder: Tokenizer, text: str) -> int:
    # Special-token strings in the text are counted as ordinary text
    if isinstance(encoder, tiktoken.Encoding):
        return len(encoder.encode(text, disallowed_special=()))
    return len(encoder.encode(text))


def _approximate_tokens(text: str) -> int:
    """Rough token estimation (4 characters ≈ 1 token) for when no encoding can be loaded"""
    return len(text) // 4


def _serialize_output(output_object: Any) -> str:
    if isinstance(output_object, str):
        return output_object
    if isinstance(output_object, ContractAnalysis):
        output_object = output_object.model_dump(mode="json")
    return json.dumps(output_object, separators=(",", ":"), ensure_ascii=False)


def estimate_usage(
    provider_usage: Optional[ProviderUsage],
    input_text: str,
    output_object: Any,
    tokenizer: Optional[Tokenizer] = None,
    model_id: Optional[str] = None
) -> UsageMetrics:
    """
    Work out token counts for a completed call.

    Path A (provider_usage.total_tokens > 0): the provider numbers are
    returned unchanged.
    Path B (total missing or zero): input_text and the JSON-serialized
    output_object are encoded locally and total = input + output.
    Local counts are an approximation of what the provider billed.

    Args:
        provider_usage: Usage reported by the provider, if any
        input_text: Text sent to the model (the contract text)
        output_object: Object the model returned
        tokenizer: Anything with an encode(text) method (defaults to tiktoken)
        model_id: Used to pick the tiktoken encoding when no tokenizer is given

    Returns:
        UsageMetrics with only the token fields populated
    """
    if provider_usage is not None and (provider_usage.total_tokens or 0) > 0:
        return UsageMetrics(
            input_tokens=provider_usage.prompt_tokens or 0,
            output_tokens=provider_usage.completion_tokens or 0,
            total_tokens=provider_usage.total_tokens
        )

    output_text = _serialize_output(output_object)
    encoder = tokenizer
    if encoder is None:
        try:
            encoder = get_tokenizer(model_id)
        except Exception as e:
            logger.warning(f"Could not load tokenizer ({type(e).__name__}: {e}), approximating token counts")

    if encoder is None:
        input_tokens = _approximate_tokens(input_text)
        output_tokens = _approximate_tokens(output_text)
    else:
        input_tokens = _count_tokens(encoder, input_text)
        output_tokens = _count_tokens(encoder, output_text)
    logger.info(f"Provider reported no usage, counted locally: input={input_tokens}, output={output_tokens}")
    return UsageMetrics(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens
    )


def get_model_pricing(model_id: str, pricing: Optional[Mapping[str, Mapping[str, float]]] = None) -> Mapping[str, float]:
    """Look up input/output prices for a model, raising CostEstimationError if unknown"""
    table = MODEL_PRICING if pricing is None else pricing
    try:
        return table[model_id]
    except KeyError:
        raise CostEstimationError(model_id)


def estimate_cost(
    usage: UsageMetrics,
    model_id: str,
    pricing: Optional[Mapping[str, Mapping[str, float]]] = None
) -> float:
    """
    Estimate the USD cost of a call.

    Raises:
        CostEstimationError: If the model is not in the price table
    """
    prices = get_model_pricing(model_id, pricing)
    cost = (
        usage.input_tokens * prices["input"] / TOKENS_PER_PRICE_UNIT
        + usage.output_tokens * prices["output"] / TOKENS_PER_PRICE_UNIT
    )
    return round(cost, 6)
