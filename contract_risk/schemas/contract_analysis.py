"""
Contract Analysis schemas for structured output

The same pydantic models describe the shape we ask the model to generate
(via ``analysis_json_schema``) and validate what comes back
(via ``validate_analysis``).
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


MIN_QUOTE_LENGTH = 15


class RiskLevel(str, Enum):
    """Risk level assigned to a flagged clause"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ContractType(str, Enum):
    """Kinds of contract the analyzer knows how to focus on"""
    EMPLOYMENT_OFFER = "employment_offer"
    TOS = "tos"
    NDA = "nda"
    LEASE = "lease"
    OTHER = "other"


class Persona(str, Enum):
    """Viewpoint of the person reviewing the contract"""
    EMPLOYEE = "employee"
    EMPLOYER = "employer"
    CONSUMER = "consumer"
    SERVICE_PROVIDER = "service_provider"
    DISCLOSING_PARTY = "disclosing_party"
    RECEIVING_PARTY = "receiving_party"
    TENANT = "tenant"
    LANDLORD = "landlord"
    NEUTRAL = "neutral"


class EvidenceQuote(BaseModel):
    """A verbatim excerpt from the contract backing up a flagged clause"""
    quote: str = Field(
        ...,
        min_length=MIN_QUOTE_LENGTH,
        description="Exact text copied word-for-word from the contract"
    )
    location: str = Field(..., description="Section heading or position where the quote appears")


class Clause(BaseModel):
    """A single flagged contract provision"""
    title: str = Field(..., description="Short descriptive title for the clause")
    risk_level: RiskLevel = Field(..., description="Assessed risk for the reviewer")
    evidence_quotes: List[EvidenceQuote] = Field(
        ...,
        min_length=1,
        description="At least one verbatim quote from the contract"
    )
    plain_english: str = Field(..., description="Plain-English explanation of what the clause means")
    negotiation_language: str = Field(..., description="Suggested replacement wording to negotiate for")


class ContractAnalysis(BaseModel):
    """Structured response schema for a full contract risk analysis"""
    overall_risk_score: float = Field(..., ge=0, le=100, description="Overall risk from 0 (safe) to 100 (severe)")
    clauses: List[Clause] = Field(..., min_length=1, description="Flagged clauses, most important first")
    missing_protections: List[str] = Field(
        default_factory=list,
        description="Protections a reviewer in this position would normally expect but which are absent"
    )

    @field_validator("missing_protections", mode="before")
    @classmethod
    def default_missing_protections(cls, v):
        # An explicit null is treated the same as an absent field
        return [] if v is None else v


class AnalysisRequest(BaseModel):
    """Inbound analysis request (wire names are camelCase)"""
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    contract_text: str = Field(..., alias="contractText")
    contract_type: ContractType = Field(ContractType.OTHER, alias="contractType")
    jurisdiction: List[str] = Field(default_factory=list, alias="jurisdiction")
    persona: Persona = Field(Persona.NEUTRAL, alias="persona")
    model_id: Optional[str] = Field(None, alias="modelId")

    @field_validator("contract_text")
    @classmethod
    def validate_contract_text(cls, v):
        if not v or not v.strip():
            raise ValueError("contractText must not be empty")
        return v

    @field_validator("jurisdiction", mode="before")
    @classmethod
    def normalize_jurisdiction(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        # A set of region identifiers: drop blanks and duplicates, keep first-seen order
        seen = []
        for region in v:
            if not isinstance(region, str):
                raise ValueError("jurisdiction entries must be strings")
            region = region.strip()
            if region and region not in seen:
                seen.append(region)
        return seen


class SchemaViolation(BaseModel):
    """One failed check, located by a dotted path into the candidate"""
    path: str
    message: str


class SchemaValidationError(Exception):
    """Raised when a model response does not satisfy the analysis schema"""
    def __init__(self, violations: List[SchemaViolation]):
        self.violations = violations
        first = violations[0] if violations else SchemaViolation(path="$", message="invalid")
        self.message = f"{first.path}: {first.message}"
        if len(violations) > 1:
            self.message += f" (and {len(violations) - 1} more violation(s))"
        super().__init__(self.message)


def _format_path(loc) -> str:
    path = "$"
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}"
    return path


def validate_analysis(candidate: Any) -> ContractAnalysis:
    """
    Validate a model response against the analysis schema.

    Defaults (missing_protections) are filled before bound and length
    checks run, so an otherwise valid object missing them is accepted.

    Args:
        candidate: Parsed JSON object from the model (or raw text if parsing failed)

    Returns:
        Validated ContractAnalysis

    Raises:
        SchemaValidationError: With every violation found
    """
    if isinstance(candidate, ContractAnalysis):
        candidate = candidate.model_dump(mode="json")
    if not isinstance(candidate, dict):
        raise SchemaValidationError([
            SchemaViolation(path="$", message=f"expected a JSON object, got {type(candidate).__name__}")
        ])

    try:
        return ContractAnalysis.model_validate(candidate)
    except ValidationError as e:
        raise SchemaValidationError([
            SchemaViolation(path=_format_path(err["loc"]), message=err["msg"])
            for err in e.errors()
        ])


def analysis_json_schema() -> Dict[str, Any]:
    """JSON schema handed to the model for schema-guided generation"""
    return ContractAnalysis.model_json_schema()

