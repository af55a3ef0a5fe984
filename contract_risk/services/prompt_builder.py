"""
Prompt Builder
Turns an analysis request into the system instruction and user prompt.
"""

from typing import NamedTuple

from contract_risk.schemas.contract_analysis import (
    AnalysisRequest,
    ContractType,
    MIN_QUOTE_LENGTH,
)


class Prompt(NamedTuple):
    system: str
    user_prompt: str


SYSTEM_MESSAGE = (
    "You are a contract risk analyzer. Your task is to read a contract and flag the provisions "
    "that create risk for the reviewer described by the user. "
    "\n\n"
    "For every flagged clause you MUST provide:\n"
    "1. A short title\n"
    "2. A risk level: low, medium or high\n"
    f"3. At least one evidence quote copied VERBATIM from the contract (at least {MIN_QUOTE_LENGTH} characters), "
    "with the section heading or position where it appears\n"
    "4. A plain-English explanation of what the clause means for the reviewer\n"
    "5. Suggested negotiation language the reviewer could propose instead\n"
    "\n"
    "Also list protections the reviewer would normally expect that are missing, and give an overall "
    "risk score from 0 (no meaningful risk) to 100 (severe risk). "
    "Never invent quotes: if you cannot quote it from the contract, do not flag it. "
    "Return ONLY a JSON object matching the required schema."
)

CONTRACT_TYPE_FOCUS = {
    ContractType.EMPLOYMENT_OFFER: "non-compete and non-solicitation terms, IP ownership, compensation, and termination clauses",
    ContractType.TOS: "data privacy and data sharing, liability limitations, arbitration, and unilateral changes to terms",
    ContractType.NDA: "the duration of obligations, exclusion criteria, and how broadly confidential information is defined",
    ContractType.LEASE: "predatory fees, deposits, repair obligations, renewal and early termination terms",
    ContractType.OTHER: "any one-sided, unusual or predatory terms",
}

CONTRACT_TYPE_LABELS = {
    ContractType.EMPLOYMENT_OFFER: "Employment offer",
    ContractType.TOS: "Terms of Service",
    ContractType.NDA: "Non-disclosure agreement",
    ContractType.LEASE: "Lease agreement",
    ContractType.OTHER: "Contract",
}


def build_prompt(request: AnalysisRequest) -> Prompt:
    """
    Build the prompt for one analysis request.

    Pure and deterministic: the same request always produces the same text.
    """
    contract_type = request.contract_type
    jurisdiction = ", ".join(request.jurisdiction) if request.jurisdiction else "Not specified"
    persona = request.persona.value.replace("_", " ")

    user_prompt = f"""Analyze the following contract.

Contract type: {CONTRACT_TYPE_LABELS[contract_type]} ({contract_type.value})
Jurisdiction(s): {jurisdiction}
Reviewing as: {persona}

Pay particular attention to {CONTRACT_TYPE_FOCUS[contract_type]}.
Assess every risk from the point of view of the {persona}. Where a jurisdiction is given, \
note provisions that are likely unenforceable or unusual there.

Contract text:
---
{request.contract_text}
---"""

    return Prompt(system=SYSTEM_MESSAGE, user_prompt=user_prompt)
