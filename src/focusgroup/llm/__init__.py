"""Generation layer: service contract, throttling, retries and parsing."""

from focusgroup.llm.exceptions import (
    EmptyResponseError,
    FatalRequestError,
    GenerationServiceError,
    LLMError,
    PhaseExhaustedError,
    RequestTimeoutError,
    ResponseParseError,
    ResponseValidationError,
    RetryableTransientError,
)
from focusgroup.llm.invoker import RetryingInvoker, classify_error
from focusgroup.llm.parsing import parse_structured_response
from focusgroup.llm.queue import ConcurrencyQueue, get_request_queue, init_request_queue
from focusgroup.llm.rate_limit import RateLimiter, get_rate_limiter, init_rate_limiter
from focusgroup.llm.service import (
    ContentPart,
    GeminiGenerationService,
    GenerationRequest,
    GenerationResponse,
    GenerationService,
    UsageMetadata,
    create_generation_service,
)
from focusgroup.llm.usage import ModelTier, TokenUsage

__all__ = [
    "ConcurrencyQueue",
    "ContentPart",
    "EmptyResponseError",
    "FatalRequestError",
    "GeminiGenerationService",
    "GenerationRequest",
    "GenerationResponse",
    "GenerationService",
    "GenerationServiceError",
    "LLMError",
    "ModelTier",
    "PhaseExhaustedError",
    "RateLimiter",
    "RequestTimeoutError",
    "ResponseParseError",
    "ResponseValidationError",
    "RetryableTransientError",
    "RetryingInvoker",
    "TokenUsage",
    "UsageMetadata",
    "classify_error",
    "create_generation_service",
    "get_rate_limiter",
    "get_request_queue",
    "init_rate_limiter",
    "init_request_queue",
    "parse_structured_response",
]
