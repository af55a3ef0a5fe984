"""
Extraction Orchestrator
Bounded-retry state machine around one schema-guided model call:

    IDLE -> INVOKING -> VALIDATING -> SUCCESS
                |            |
                +--> RETRY_WAIT <--+ -> INVOKING ...
                |            |
                +--> FAILED <+

Every run owns its own _RunState; nothing is shared between requests except
the read-only price table and tokenizer.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol

from contract_risk.core.config import settings
from contract_risk.schemas.contract_analysis import (
    AnalysisRequest,
    SchemaValidationError,
    analysis_json_schema,
    validate_analysis,
)
from contract_risk.schemas.openai import ModelResponse, OpenAIError, OpenAIErrorType
from contract_risk.schemas.outcome import (
    AnalysisFailure,
    AnalysisOutcome,
    AnalysisSuccess,
    ErrorKind,
    UsageMetrics,
)
from contract_risk.services.prompt_builder import build_prompt
from contract_risk.services.usage_estimator import (
    CostEstimationError,
    Tokenizer,
    estimate_cost,
    estimate_usage,
    get_model_pricing,
)

logger = logging.getLogger(__name__)


class AnalysisModel(Protocol):
    """Anything that can produce a schema-guided object (OpenAIService or a test stub)"""
    async def generate_object(
        self,
        *,
        system: str,
        prompt: str,
        schema: Dict[str, Any],
        model: str,
        temperature: float
    ) -> ModelResponse: ...


class ExtractionState(str, Enum):
    IDLE = "idle"
    INVOKING = "invoking"
    VALIDATING = "validating"
    RETRY_WAIT = "retry_wait"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class _RunState:
    state: ExtractionState = ExtractionState.IDLE
    attempts: int = 0
    latency_seconds: float = 0.0
    attempt_started: Optional[float] = None
    last_error_kind: Optional[ErrorKind] = None
    last_error_message: str = ""
    transitions: List[ExtractionState] = field(default_factory=lambda: [ExtractionState.IDLE])

    @property
    def retry_count(self) -> int:
        return max(self.attempts - 1, 0)

    def move_to(self, state: ExtractionState) -> None:
        logger.debug(f"Extraction state {self.state.value} -> {state.value} (attempt {self.attempts})")
        self.state = state
        self.transitions.append(state)

    def finish_attempt(self, now: float) -> None:
        """Add the in-flight model call, if any, to the accumulated latency"""
        if self.attempt_started is not None:
            self.latency_seconds += now - self.attempt_started
            self.attempt_started = None

    def partial_metrics(self) -> UsageMetrics:
        return UsageMetrics(
            latency_ms=int(round(self.latency_seconds * 1000)),
            retry_count=self.retry_count
        )


class ExtractionOrchestrator:
    """
    Runs one analysis request to a terminal outcome.

    Retries on schema validation failures, rate limits and transient provider
    errors, with exponential backoff, up to ``max_retries`` extra attempts.
    ``run`` never raises for those; only task cancellation propagates.
    """

    def __init__(
        self,
        model: AnalysisModel,
        max_retries: Optional[int] = None,
        initial_retry_delay: Optional[float] = None,
        backoff_multiplier: Optional[float] = None,
        max_retry_delay: Optional[float] = None,
        request_timeout: Optional[float] = None,
        temperature: Optional[float] = None,
        default_model: Optional[str] = None,
        pricing: Optional[Mapping[str, Mapping[str, float]]] = None,
        tokenizer: Optional[Tokenizer] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.perf_counter
    ):
        """
        Initialize orchestrator.

        Args:
            model: Model adapter exposing generate_object()
            max_retries: Extra attempts after the first (defaults to MAX_RETRIES)
            initial_retry_delay: First backoff delay in seconds
            backoff_multiplier: Growth factor applied per retry
            max_retry_delay: Upper bound for any single delay
            request_timeout: Deadline for the whole run in seconds (None or 0 disables it)
            temperature: Sampling temperature
            default_model: Model used when the request does not name one
            pricing: Price table override (defaults to MODEL_PRICING)
            tokenizer: Fallback tokenizer override (defaults to tiktoken)
            sleep: Backoff sleep coroutine
            clock: Monotonic clock in seconds
        """
        self.model = model
        self.max_retries = settings.MAX_RETRIES if max_retries is None else max_retries
        self.initial_retry_delay = settings.INITIAL_RETRY_DELAY if initial_retry_delay is None else initial_retry_delay
        self.backoff_multiplier = settings.BACKOFF_MULTIPLIER if backoff_multiplier is None else backoff_multiplier
        self.max_retry_delay = settings.MAX_RETRY_DELAY if max_retry_delay is None else max_retry_delay
        self.request_timeout = settings.REQUEST_TIMEOUT if request_timeout is None else request_timeout
        self.temperature = settings.TEMPERATURE if temperature is None else temperature
        self.default_model = default_model or settings.DEFAULT_MODEL
        self.pricing = pricing
        self.tokenizer = tokenizer
        self._sleep = sleep
        self._clock = clock

        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    def backoff_delay(self, retry_number: int, retry_after: Optional[float] = None) -> float:
        """Delay before retry ``retry_number`` (0-based), honouring a provider Retry-After hint"""
        if retry_after:
            return min(retry_after, self.max_retry_delay)
        return min(self.initial_retry_delay * (self.backoff_multiplier ** retry_number), self.max_retry_delay)

    async def run(self, request: AnalysisRequest) -> AnalysisOutcome:
        """
        Run the extraction for one request.

        Args:
            request: Validated analysis request

        Returns:
            AnalysisSuccess or AnalysisFailure
        """
        started = self._clock()
        model_id = request.model_id or self.default_model

        if not request.contract_text or not request.contract_text.strip():
            return AnalysisFailure(
                kind=ErrorKind.INVALID_REQUEST,
                message="contractText must not be empty",
                partial_metrics=UsageMetrics()
            )

        # Price lookup happens before any model call so unpriced models never cost anything
        try:
            get_model_pricing(model_id, self.pricing)
        except CostEstimationError as e:
            logger.error(e.message)
            return AnalysisFailure(
                kind=ErrorKind.COST_ESTIMATION_ERROR,
                message=e.message,
                partial_metrics=UsageMetrics()
            )

        run_state = _RunState()
        logger.info(
            f"Starting extraction: model={model_id}, type={request.contract_type.value}, "
            f"chars={len(request.contract_text)}, max_retries={self.max_retries}"
        )

        try:
            if self.request_timeout:
                outcome = await asyncio.wait_for(
                    self._run_attempts(request, model_id, run_state),
                    timeout=self.request_timeout
                )
            else:
                outcome = await self._run_attempts(request, model_id, run_state)
        except asyncio.TimeoutError:
            run_state.finish_attempt(self._clock())
            run_state.move_to(ExtractionState.FAILED)
            logger.error(f"Extraction timed out after {self.request_timeout}s ({run_state.attempts} attempt(s))")
            outcome = AnalysisFailure(
                kind=ErrorKind.REQUEST_TIMEOUT,
                message=f"Analysis did not finish within {self.request_timeout:g} seconds",
                partial_metrics=run_state.partial_metrics()
            )
        except Exception as e:
            run_state.finish_attempt(self._clock())
            run_state.move_to(ExtractionState.FAILED)
            logger.exception(f"Unexpected error during extraction: {e}")
            outcome = AnalysisFailure(
                kind=ErrorKind.INTERNAL_ERROR,
                message=f"Unexpected error during analysis: {type(e).__name__}",
                partial_metrics=run_state.partial_metrics()
            )

        outcome.processing_time_ms = int(round((self._clock() - started) * 1000))
        if isinstance(outcome, AnalysisSuccess):
            logger.info(
                f"Extraction succeeded: clauses={len(outcome.analysis.clauses)}, "
                f"tokens={outcome.metrics.total_tokens}, retries={outcome.metrics.retry_count}, "
                f"time={outcome.processing_time_ms}ms"
            )
        else:
            logger.warning(f"Extraction failed ({outcome.kind.value}): {outcome.message}")
        return outcome

    async def _run_attempts(
        self,
        request: AnalysisRequest,
        model_id: str,
        run_state: _RunState
    ) -> AnalysisOutcome:
        prompt = build_prompt(request)
        schema = analysis_json_schema()

        while True:
            run_state.attempts += 1
            run_state.move_to(ExtractionState.INVOKING)
            retry_after = None

            run_state.attempt_started = self._clock()
            try:
                response = await self.model.generate_object(
                    system=prompt.system,
                    prompt=prompt.user_prompt,
                    schema=schema,
                    model=model_id,
                    temperature=self.temperature
                )
            except OpenAIError as e:
                run_state.finish_attempt(self._clock())
                run_state.last_error_kind = (
                    ErrorKind.RATE_LIMITED if e.error_type == OpenAIErrorType.RATE_LIMIT
                    else ErrorKind.PROVIDER_ERROR
                )
                run_state.last_error_message = e.message
                retry_after = e.retry_after
                if not e.retryable:
                    run_state.move_to(ExtractionState.FAILED)
                    return self._failure(run_state)
            else:
                run_state.finish_attempt(self._clock())
                run_state.move_to(ExtractionState.VALIDATING)
                try:
                    analysis = validate_analysis(response.content)
                except SchemaValidationError as e:
                    run_state.last_error_kind = ErrorKind.VALIDATION_FAILURE
                    run_state.last_error_message = f"Model output failed validation: {e.message}"
                    logger.warning(f"Attempt {run_state.attempts} returned invalid output: {e.message}")
                else:
                    run_state.move_to(ExtractionState.SUCCESS)
                    usage = estimate_usage(
                        response.usage,
                        request.contract_text,
                        analysis,
                        tokenizer=self.tokenizer,
                        model_id=model_id
                    )
                    metrics = usage.model_copy(update={
                        "estimated_cost_usd": estimate_cost(usage, model_id, self.pricing),
                        "latency_ms": int(round(run_state.latency_seconds * 1000)),
                        "retry_count": run_state.retry_count,
                    })
                    return AnalysisSuccess(analysis=analysis, metrics=metrics, model_id=model_id)

            if run_state.retry_count >= self.max_retries:
                run_state.move_to(ExtractionState.FAILED)
                return self._failure(run_state)

            run_state.move_to(ExtractionState.RETRY_WAIT)
            delay = self.backoff_delay(run_state.retry_count, retry_after)
            logger.info(
                f"Attempt {run_state.attempts}/{self.max_retries + 1} failed "
                f"({run_state.last_error_kind.value}). Retrying in {delay:.2f}s..."
            )
            await self._sleep(delay)

    def _failure(self, run_state: _RunState) -> AnalysisFailure:
        # Only the last attempt's error is reported
        return AnalysisFailure(
            kind=run_state.last_error_kind or ErrorKind.INTERNAL_ERROR,
            message=run_state.last_error_message or "Analysis failed",
            partial_metrics=run_state.partial_metrics()
        )
