"""Resilient invocation of a single generation call.

Each attempt is scheduled through the rate limiter, raced against a timeout and
checked for a usable text payload. Attempts resolve to an internal outcome:

- ``Success``: the response passed every check
- ``Retryable``: any transient problem, retried with exponential backoff
- ``Fatal``: a bad-request signal, returned after the first attempt

Only ``RetryingInvoker.invoke`` turns outcomes into exceptions.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt

from focusgroup.config.settings import RetrySettings
from focusgroup.llm.exceptions import (
    EmptyResponseError,
    FatalRequestError,
    PhaseExhaustedError,
    RequestTimeoutError,
    ResponseValidationError,
)

if TYPE_CHECKING:
    from focusgroup.llm.rate_limit import RateLimiter
    from focusgroup.llm.service import GenerationRequest, GenerationResponse, GenerationService

logger = logging.getLogger(__name__)

Validator = Callable[[str], bool | Awaitable[bool]]

_PRESSURE_STATUSES = frozenset({429, 503})
_PRESSURE_RE = re.compile(r"\b(?:429|503)\b|resource_exhausted|unavailable")
_BAD_REQUEST_RE = re.compile(r"\b400\b|invalid_argument")


@dataclass(frozen=True, slots=True)
class Success:
    response: GenerationResponse


@dataclass(frozen=True, slots=True)
class Retryable:
    cause: BaseException
    pressure: bool = False


@dataclass(frozen=True, slots=True)
class Fatal:
    cause: BaseException


Outcome = Success | Retryable | Fatal


def classify_error(exc: BaseException) -> Retryable | Fatal:
    """Sort a failed attempt into fatal (bad request) or retryable.

    A structured ``status`` decides on its own; the message is only scanned when
    the error carries none. Rate-limit and unavailable signals are retryable
    with ``pressure`` set so the backoff adds its penalty.
    """
    status = getattr(exc, "status", None)
    if status is not None:
        if status == 400:
            return Fatal(exc)
        return Retryable(exc, pressure=status in _PRESSURE_STATUSES)

    message = str(exc).lower()
    if _BAD_REQUEST_RE.search(message):
        return Fatal(exc)
    return Retryable(exc, pressure=_PRESSURE_RE.search(message) is not None)


class RetryingInvoker:
    """Wraps generation calls with timeout, validation and backoff."""

    def __init__(
        self,
        limiter: RateLimiter,
        policy: RetrySettings | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.limiter = limiter
        self.policy = policy or RetrySettings()
        self._sleep = sleep

    def backoff(self, retry_state: RetryCallState) -> float:
        """Delay before the next attempt: ``base_delay * 2**n`` plus the pressure penalty."""
        delay = self.policy.base_delay * 2 ** (retry_state.attempt_number - 1)
        outcome = retry_state.outcome.result() if retry_state.outcome else None
        if isinstance(outcome, Retryable) and outcome.pressure:
            delay += self.policy.pressure_penalty
        return delay

    async def invoke(
        self,
        service: GenerationService,
        request: GenerationRequest,
        context: str,
        *,
        validator: Validator | None = None,
        timeout: float | None = None,
    ) -> GenerationResponse:
        """Run ``request`` until it succeeds, fails fatally or the budget is spent.

        Raises:
            FatalRequestError: on a bad-request signal, after exactly one attempt
            PhaseExhaustedError: when every attempt failed with a retryable error

        """
        max_attempts = self.policy.max_retries
        call_timeout = timeout if timeout is not None else self.policy.timeout

        def _log_retry(retry_state: RetryCallState) -> None:
            outcome = retry_state.outcome.result() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            logger.warning(
                "[%s] Attempt %d/%d failed: %s. Retrying in %.1fs",
                context,
                retry_state.attempt_number,
                max_attempts,
                outcome.cause if isinstance(outcome, Retryable) else outcome,
                delay,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=self.backoff,
            retry=retry_if_result(lambda outcome: isinstance(outcome, Retryable)),
            before_sleep=_log_retry,
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
            sleep=self._sleep,
        )
        outcome: Outcome = await retrying(self._attempt, service, request, validator, call_timeout)

        match outcome:
            case Success(response=response):
                return response
            case Fatal(cause=cause):
                logger.error("[%s] Fatal request error, not retrying: %s", context, cause)
                raise FatalRequestError(context, cause) from cause
            case Retryable(cause=cause):
                logger.error("[%s] Giving up after %d attempts: %s", context, max_attempts, cause)
                raise PhaseExhaustedError(context, max_attempts, cause) from cause

    async def _attempt(
        self,
        service: GenerationService,
        request: GenerationRequest,
        validator: Validator | None,
        timeout: float,
    ) -> Outcome:
        try:
            response = await asyncio.wait_for(
                self.limiter.schedule(lambda: service.generate(request)),
                timeout=timeout,
            )
        except TimeoutError:
            return Retryable(RequestTimeoutError(timeout))
        except Exception as exc:  # noqa: BLE001
            return classify_error(exc)

        if not response.text:
            return Retryable(EmptyResponseError())

        if validator is not None:
            try:
                verdict = validator(response.text)
                if inspect.isawaitable(verdict):
                    verdict = await verdict
            except Exception as exc:  # noqa: BLE001
                return Retryable(exc)
            if not verdict:
                return Retryable(ResponseValidationError("Response failed custom validation check"))

        return Success(response)
