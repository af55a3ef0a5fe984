"""
OpenAI Service
Schema-guided chat completions with provider error normalization.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx
from openai import AsyncOpenAI
from openai import APIConnectionError, APIError, APIStatusError, APITimeoutError, RateLimitError

from contract_risk.core.config import settings
from contract_risk.schemas.openai import (
    ModelResponse,
    OpenAIError,
    OpenAIErrorType,
    ProviderUsage,
)

logger = logging.getLogger(__name__)


def _retry_after_from(error: Exception) -> Optional[float]:
    """Read the Retry-After header from an SDK error, if one is exposed"""
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    retry_after_header = headers.get("retry-after") or headers.get("Retry-After")
    if retry_after_header is None:
        return None
    try:
        return float(retry_after_header)
    except (ValueError, TypeError):
        logger.debug(f"Ignoring unparseable Retry-After header: {retry_after_header!r}")
        return None


def _strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


class OpenAIService:
    """
    OpenAI service for schema-guided generation.

    Transport-level retries are left to the SDK (OPENAI_TRANSPORT_RETRIES);
    semantic retries on invalid output belong to the extraction orchestrator.
    """

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        """
        Initialize OpenAI service.

        Args:
            api_key: OpenAI API key (defaults to OPENAI_API_KEY from settings)
            client: Pre-built AsyncOpenAI client (mainly for tests)
        """
        if client is not None:
            self.api_key = api_key or settings.OPENAI_API_KEY
            self.client = client
            return

        self.api_key = api_key or settings.OPENAI_API_KEY
        if not self.api_key:
            raise ValueError("OpenAI API key is required. Set OPENAI_API_KEY in environment variables.")

        self.client = AsyncOpenAI(
            api_key=self.api_key,
            timeout=settings.OPENAI_TIMEOUT,
            max_retries=settings.OPENAI_TRANSPORT_RETRIES
        )

    def _parse_error(self, error: Exception) -> OpenAIError:
        """
        Parse OpenAI API error and return appropriate OpenAIError.

        Args:
            error: Exception from OpenAI API

        Returns:
            OpenAIError with appropriate error type
        """
        if isinstance(error, OpenAIError):
            return error

        if isinstance(error, RateLimitError):
            return OpenAIError(
                f"Rate limit exceeded: {str(error)}",
                OpenAIErrorType.RATE_LIMIT,
                retry_after=_retry_after_from(error)
            )

        if isinstance(error, (APITimeoutError, httpx.TimeoutException)):
            return OpenAIError(f"Request timed out: {str(error)}", OpenAIErrorType.TIMEOUT)

        if isinstance(error, (APIConnectionError, httpx.NetworkError, ConnectionError)):
            return OpenAIError(f"Network error: {str(error)}", OpenAIErrorType.NETWORK)

        if isinstance(error, APIStatusError):
            status = error.status_code
            if status == 429:
                return OpenAIError(
                    f"Rate limit exceeded: {str(error)}",
                    OpenAIErrorType.RATE_LIMIT,
                    retry_after=_retry_after_from(error)
                )
            if status == 401:
                return OpenAIError(f"Authentication failed: {str(error)}", OpenAIErrorType.AUTHENTICATION)
            if status == 403:
                return OpenAIError(f"Permission denied: {str(error)}", OpenAIErrorType.PERMISSION)
            if status in (400, 404, 422):
                return OpenAIError(f"Invalid request: {str(error)}", OpenAIErrorType.INVALID_REQUEST)
            if status >= 500:
                return OpenAIError(f"OpenAI server error: {str(error)}", OpenAIErrorType.SERVER_ERROR)

        if isinstance(error, APIError):
            return OpenAIError(f"OpenAI API error: {str(error)}", OpenAIErrorType.UNKNOWN)

        return OpenAIError(f"Unknown error: {str(error)}", OpenAIErrorType.UNKNOWN)

    async def generate_object(
        self,
        *,
        system: str,
        prompt: str,
        schema: Dict[str, Any],
        model: str,
        temperature: float = 0.5,
        schema_name: str = "contract_analysis"
    ) -> ModelResponse:
        """
        Ask the model for a JSON object shaped by ``schema``.

        Args:
            system: System instruction
            prompt: User prompt
            schema: JSON schema the output should follow
            model: Chat model to use
            temperature: Sampling temperature
            schema_name: Name reported to the API for the schema

        Returns:
            ModelResponse with the parsed object (or raw text if it was not JSON) and usage

        Raises:
            OpenAIError: If the call fails or the response envelope is malformed
        """
        try:
            completion = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt}
                ],
                temperature=temperature,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": schema_name,
                        "schema": schema,
                        "strict": False
                    }
                }
            )
        except Exception as e:
            parsed_error = self._parse_error(e)
            logger.error(f"Chat completion failed ({parsed_error.error_type.value}): {parsed_error.message[:200]}")
            raise parsed_error

        choices = getattr(completion, "choices", None)
        if not choices or choices[0].message is None or choices[0].message.content is None:
            raise OpenAIError("Response contained no message content", OpenAIErrorType.MALFORMED_RESPONSE)

        response_text = _strip_code_fences(choices[0].message.content)
        try:
            content = json.loads(response_text)
        except json.JSONDecodeError as e:
            logger.warning(f"Model returned non-JSON content: {e}")
            content = response_text

        usage = ProviderUsage()
        if getattr(completion, "usage", None):
            usage = ProviderUsage(
                prompt_tokens=completion.usage.prompt_tokens,
                completion_tokens=completion.usage.completion_tokens,
                total_tokens=completion.usage.total_tokens
            )

        logger.info(f"Chat completion created successfully (model: {model}, tokens: {usage.total_tokens})")
        return ModelResponse(content=content, usage=usage)

    async def aclose(self) -> None:
        """Close the underlying HTTP client"""
        await self.client.close()

    def is_configured(self) -> bool:
        """Check if OpenAI service is properly configured"""
        return bool(self.api_key)
