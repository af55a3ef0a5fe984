"""
OpenAI-related Pydantic schemas and types
"""

from typing import Any, Optional
from enum import Enum
from pydantic import BaseModel, Field


class OpenAIErrorType(str, Enum):
    """Types of OpenAI API errors"""
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    NETWORK = "network"
    SERVER_ERROR = "server_error"
    AUTHENTICATION = "authentication"
    PERMISSION = "permission"
    INVALID_REQUEST = "invalid_request"
    MALFORMED_RESPONSE = "malformed_response"
    UNKNOWN = "unknown"


# Errors where another attempt cannot help
NON_RETRYABLE_ERROR_TYPES = frozenset({
    OpenAIErrorType.AUTHENTICATION,
    OpenAIErrorType.PERMISSION,
    OpenAIErrorType.INVALID_REQUEST,
})


class OpenAIError(Exception):
    """Custom OpenAI service error"""
    def __init__(self, message: str, error_type: OpenAIErrorType, retry_after: Optional[float] = None):
        self.message = message
        self.error_type = error_type
        self.retry_after = retry_after
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return self.error_type not in NON_RETRYABLE_ERROR_TYPES


class ProviderUsage(BaseModel):
    """Token usage as reported by the provider (any field may be missing)"""
    prompt_tokens: Optional[int] = Field(None, ge=0)
    completion_tokens: Optional[int] = Field(None, ge=0)
    total_tokens: Optional[int] = Field(None, ge=0)


class ModelResponse(BaseModel):
    """Result of one schema-guided generation call"""
    content: Any = Field(..., description="Parsed JSON object, or the raw text if it was not valid JSON")
    usage: ProviderUsage = Field(default_factory=ProviderUsage)
