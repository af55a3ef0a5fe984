"""
Shared fixtures: scripted model stubs, a whitespace tokenizer and sample payloads.
"""
import asyncio
import copy

import pytest
import tiktoken

from contract_risk.schemas.openai import ModelResponse, ProviderUsage


SAMPLE_CONTRACT = "This Agreement may be terminated by either party with 30 days notice."

TEST_PRICING = {
    "gpt-x": {"input": 1.00, "output": 2.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
}


def make_analysis(score=42, clauses=None, **overrides):
    """Build a valid analysis payload as the model would return it."""
    payload = {
        "overall_risk_score": score,
        "clauses": clauses if clauses is not None else [
            {
                "title": "Termination on short notice",
                "risk_level": "medium",
                "evidence_quotes": [
                    {
                        "quote": "may be terminated by either party with 30 days notice",
                        "location": "Section 1"
                    }
                ],
                "plain_english": "Either side can end the job with a month's warning.",
                "negotiation_language": "Termination without cause requires 60 days written notice."
            }
        ],
        "missing_protections": ["Severance pay"],
    }
    payload.update(overrides)
    return payload


class WhitespaceTokenizer:
    """Counts whitespace-separated words; stands in for tiktoken offline."""

    def encode(self, text):
        return text.split()


class ScriptedModel:
    """
    Model stub returning scripted responses in order.

    Each script item is a dict (returned as the parsed object), a
    ModelResponse, or an exception instance (raised). The last item is
    repeated once the script runs out.
    """

    def __init__(self, *script, usage=None, delay=0.0):
        self.script = list(script)
        self.usage = usage or ProviderUsage(prompt_tokens=120, completion_tokens=80, total_tokens=200)
        self.delay = delay
        self.calls = []

    async def generate_object(self, *, system, prompt, schema, model, temperature):
        self.calls.append({
            "system": system,
            "prompt": prompt,
            "schema": schema,
            "model": model,
            "temperature": temperature,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        index = min(len(self.calls) - 1, len(self.script) - 1)
        item = self.script[index]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, ModelResponse):
            return item
        return ModelResponse(content=copy.deepcopy(item), usage=self.usage)


def make_byte_encoding():
    """Byte-level tiktoken encoding with one special token; built locally, no download."""
    return tiktoken.Encoding(
        name="test_bytes",
        pat_str=r"\S+|\s+",
        mergeable_ranks={bytes([i]): i for i in range(256)},
        special_tokens={"<|endoftext|>": 256},
    )


class RecordingSleep:
    """Backoff sleep replacement that records delays without waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def tokenizer():
    return WhitespaceTokenizer()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def sample_request_payload():
    return {
        "contractText": SAMPLE_CONTRACT,
        "contractType": "employment_offer",
        "jurisdiction": [],
        "persona": "employee",
        "modelId": "gpt-x",
    }


@pytest.fixture
def byte_encoding():
    return make_byte_encoding()
