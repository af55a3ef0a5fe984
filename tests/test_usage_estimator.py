"""
Unit tests for token counting and cost estimation.
"""
import json

import pytest

from contract_risk.schemas.contract_analysis import validate_analysis
from contract_risk.schemas.openai import ProviderUsage
from contract_risk.schemas.outcome import UsageMetrics
from contract_risk.services import usage_estimator
from contract_risk.services.usage_estimator import (
    MODEL_PRICING,
    CostEstimationError,
    estimate_cost,
    estimate_usage,
    get_model_pricing,
)
from conftest import make_analysis


class TestEstimateUsage:
    """Tests for estimate_usage."""

    def test_trusts_provider_usage_verbatim(self, tokenizer):
        usage = ProviderUsage(prompt_tokens=100, completion_tokens=50, total_tokens=175)

        metrics = estimate_usage(usage, "ignored text", {"a": 1}, tokenizer=tokenizer)

        # Provider totals are not recomputed, even when they disagree with the parts
        assert metrics.input_tokens == 100
        assert metrics.output_tokens == 50
        assert metrics.total_tokens == 175

    def test_zero_total_falls_back_to_tokenizer(self, tokenizer):
        usage = ProviderUsage(prompt_tokens=0, completion_tokens=0, total_tokens=0)
        output = {"title": "one two three"}

        metrics = estimate_usage(usage, "one two three four", output, tokenizer=tokenizer)

        assert metrics.input_tokens == 4
        assert metrics.output_tokens == len(json.dumps(output, separators=(",", ":")).split())
        assert metrics.total_tokens == metrics.input_tokens + metrics.output_tokens

    @pytest.mark.parametrize("usage", [None, ProviderUsage()])
    def test_missing_usage_falls_back_to_tokenizer(self, tokenizer, usage):
        metrics = estimate_usage(usage, "alpha beta", "gamma", tokenizer=tokenizer)

        assert (metrics.input_tokens, metrics.output_tokens, metrics.total_tokens) == (2, 1, 3)

    def test_fallback_counts_validated_analysis(self, tokenizer):
        analysis = validate_analysis(make_analysis())
        metrics = estimate_usage(None, "a b c", analysis, tokenizer=tokenizer)

        assert metrics.input_tokens == 3
        assert metrics.output_tokens > 0
        assert metrics.total_tokens == 3 + metrics.output_tokens

    def test_only_token_fields_are_populated(self, tokenizer):
        metrics = estimate_usage(None, "a", "b", tokenizer=tokenizer)

        assert metrics.estimated_cost_usd == 0
        assert metrics.latency_ms == 0
        assert metrics.retry_count == 0

    def test_special_token_text_is_counted_as_plain_text(self, byte_encoding):
        text = "Tenant shall pay rent <|endoftext|> monthly in advance."

        metrics = estimate_usage(ProviderUsage(), text, "gamma", tokenizer=byte_encoding)

        assert metrics.input_tokens == len(text.encode("utf-8"))
        assert metrics.output_tokens == 5
        assert metrics.total_tokens == metrics.input_tokens + 5

    def test_default_tokenizer_is_looked_up_by_model(self, monkeypatch, byte_encoding):
        requested = []

        def fake_get_tokenizer(model_id=None):
            requested.append(model_id)
            return byte_encoding

        monkeypatch.setattr(usage_estimator, "get_tokenizer", fake_get_tokenizer)

        metrics = estimate_usage(None, "<|endoftext|>", "ok", model_id="gpt-4o-mini")

        assert requested == ["gpt-4o-mini"]
        assert metrics.input_tokens == len("<|endoftext|>")
        assert metrics.output_tokens == 2

    def test_unloadable_tokenizer_falls_back_to_character_estimate(self, monkeypatch):
        def offline(model_id=None):
            raise OSError("encoding download failed")

        monkeypatch.setattr(usage_estimator, "get_tokenizer", offline)

        metrics = estimate_usage(None, "x" * 40, "y" * 8, model_id="gpt-4o-mini")

        assert (metrics.input_tokens, metrics.output_tokens, metrics.total_tokens) == (10, 2, 12)


class TestEstimateCost:
    """Tests for estimate_cost."""

    def test_uses_distinct_input_and_output_prices(self):
        usage = UsageMetrics(input_tokens=1_000_000, output_tokens=1_000_000, total_tokens=2_000_000)

        cost = estimate_cost(usage, "gpt-4o-mini")

        assert cost == pytest.approx(0.15 + 0.60)

    def test_small_counts(self):
        usage = UsageMetrics(input_tokens=1200, output_tokens=300, total_tokens=1500)

        cost = estimate_cost(usage, "gpt-4o")

        assert cost == pytest.approx(1200 * 2.50 / 1e6 + 300 * 10.00 / 1e6)

    def test_unknown_model_raises(self):
        usage = UsageMetrics(input_tokens=10, output_tokens=10, total_tokens=20)

        with pytest.raises(CostEstimationError) as exc_info:
            estimate_cost(usage, "gpt-unknown")

        assert exc_info.value.model_id == "gpt-unknown"

    def test_custom_price_table(self):
        usage = UsageMetrics(input_tokens=500_000, output_tokens=250_000, total_tokens=750_000)
        pricing = {"gpt-x": {"input": 1.0, "output": 2.0}}

        assert estimate_cost(usage, "gpt-x", pricing) == pytest.approx(1.0)
        with pytest.raises(CostEstimationError):
            estimate_cost(usage, "gpt-4o", pricing)

    def test_zero_tokens_cost_nothing(self):
        assert estimate_cost(UsageMetrics(), "gpt-4o-mini") == 0

    def test_price_table_entries_are_complete(self):
        for model_id in MODEL_PRICING:
            prices = get_model_pricing(model_id)
            assert prices["input"] > 0
            assert prices["output"] >= prices["input"]
