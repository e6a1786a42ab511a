import asyncio

import pytest

from focusgroup.config.settings import RetrySettings
from focusgroup.llm.exceptions import (
    EmptyResponseError,
    FatalRequestError,
    GenerationServiceError,
    PhaseExhaustedError,
    RequestTimeoutError,
    ResponseValidationError,
)
from focusgroup.llm.invoker import Fatal, Retryable, RetryingInvoker, classify_error
from focusgroup.llm.rate_limit import RateLimiter
from focusgroup.llm.service import ContentPart, GenerationRequest, GenerationResponse

REQUEST = GenerationRequest(model="gemini-test", contents=(ContentPart.from_text("hi"),))


class SequenceService:
    """Plays back one scripted outcome per call."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def generate(self, request):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return GenerationResponse(text=outcome)


def make_invoker(sleep_recorder, **policy):
    return RetryingInvoker(RateLimiter(min_interval=0.0), RetrySettings(**policy), sleep=sleep_recorder)


@pytest.mark.asyncio
async def test_bad_request_fails_after_one_attempt(sleep_recorder):
    service = SequenceService(GenerationServiceError("schema rejected", status=400), "never")
    invoker = make_invoker(sleep_recorder, max_retries=5)

    with pytest.raises(FatalRequestError) as exc_info:
        await invoker.invoke(service, REQUEST, "CastingAgent")

    assert service.calls == 1
    assert sleep_recorder.delays == []
    assert exc_info.value.context == "CastingAgent"
    assert "400" in str(exc_info.value)


@pytest.mark.asyncio
async def test_rate_limit_signal_retries_with_penalty(sleep_recorder):
    service = SequenceService(
        GenerationServiceError("quota", status=429),
        GenerationServiceError("quota", status=429),
        '{"ok": true}',
    )
    invoker = make_invoker(sleep_recorder, max_retries=5, base_delay=1.0, pressure_penalty=5.0)

    response = await invoker.invoke(service, REQUEST, "SalesAgent")

    assert response.text == '{"ok": true}'
    assert service.calls == 3
    assert sleep_recorder.delays == [6.0, 7.0]


@pytest.mark.asyncio
async def test_plain_failures_back_off_exponentially(sleep_recorder):
    service = SequenceService(RuntimeError("socket closed"), RuntimeError("socket closed"), "fine")
    invoker = make_invoker(sleep_recorder, max_retries=3, base_delay=2.0)

    await invoker.invoke(service, REQUEST, "ctx")

    assert sleep_recorder.delays == [2.0, 4.0]


@pytest.mark.asyncio
async def test_exhaustion_reports_attempts_and_last_error(sleep_recorder):
    service = SequenceService(
        GenerationServiceError("busy", status=503),
        GenerationServiceError("still busy", status=503),
    )
    invoker = make_invoker(sleep_recorder, max_retries=2, base_delay=0.0)

    with pytest.raises(PhaseExhaustedError) as exc_info:
        await invoker.invoke(service, REQUEST, "DiscussionAgent")

    error = exc_info.value
    assert error.attempts == 2
    assert error.context == "DiscussionAgent"
    assert "still busy" in str(error.last_error)
    assert service.calls == 2


@pytest.mark.asyncio
async def test_empty_text_is_retried(sleep_recorder):
    service = SequenceService("", "")
    invoker = make_invoker(sleep_recorder, max_retries=2, base_delay=0.0)

    with pytest.raises(PhaseExhaustedError) as exc_info:
        await invoker.invoke(service, REQUEST, "ctx")

    assert isinstance(exc_info.value.last_error, EmptyResponseError)


@pytest.mark.asyncio
async def test_timeout_counts_as_retryable(sleep_recorder):
    class SlowService:
        calls = 0

        async def generate(self, request):
            self.calls += 1
            await asyncio.sleep(1)
            return GenerationResponse(text="late")

    service = SlowService()
    invoker = make_invoker(sleep_recorder, max_retries=2, base_delay=0.0)

    with pytest.raises(PhaseExhaustedError) as exc_info:
        await invoker.invoke(service, REQUEST, "ctx", timeout=0.05)

    assert service.calls == 2
    assert isinstance(exc_info.value.last_error, RequestTimeoutError)


@pytest.mark.asyncio
async def test_validator_rejection_then_success(sleep_recorder):
    service = SequenceService("short", "long enough answer")
    invoker = make_invoker(sleep_recorder, max_retries=3, base_delay=0.0)

    response = await invoker.invoke(service, REQUEST, "ctx", validator=lambda text: len(text) > 10)

    assert response.text == "long enough answer"
    assert service.calls == 2


@pytest.mark.asyncio
async def test_async_validator_and_raising_validator(sleep_recorder):
    async def never_valid(text: str) -> bool:
        return False

    invoker = make_invoker(sleep_recorder, max_retries=2, base_delay=0.0)
    with pytest.raises(PhaseExhaustedError) as exc_info:
        await invoker.invoke(SequenceService("a", "b"), REQUEST, "ctx", validator=never_valid)
    assert isinstance(exc_info.value.last_error, ResponseValidationError)

    def explode(text: str) -> bool:
        raise ValueError("unparseable")

    with pytest.raises(PhaseExhaustedError) as exc_info:
        await invoker.invoke(SequenceService("a", "b"), REQUEST, "ctx", validator=explode)
    assert isinstance(exc_info.value.last_error, ValueError)


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (GenerationServiceError("nope", status=400), Fatal),
        (RuntimeError("400 INVALID_ARGUMENT: bad schema"), Fatal),
        (GenerationServiceError("slow down", status=429), Retryable),
        (RuntimeError("RESOURCE_EXHAUSTED"), Retryable),
        (RuntimeError("connection reset"), Retryable),
        (GenerationServiceError("Quota exceeded: limit 4000 requests per minute", status=429), Retryable),
        (GenerationServiceError("retry after 1400ms", status=503), Retryable),
        (GenerationServiceError("invalid_argument in field 400", status=500), Retryable),
        (RuntimeError("upstream took 14000ms"), Retryable),
    ],
)
def test_classify_error(error, expected):
    assert isinstance(classify_error(error), expected)


def test_pressure_flag_only_for_rate_limit_signals():
    assert classify_error(GenerationServiceError("x", status=503)).pressure is True
    assert classify_error(RuntimeError("503 UNAVAILABLE")).pressure is True
    assert classify_error(RuntimeError("connection reset")).pressure is False


@pytest.mark.asyncio
async def test_rate_limit_mentioning_large_numbers_is_retried(sleep_recorder):
    invoker = make_invoker(sleep_recorder)
    service = SequenceService(
        GenerationServiceError("Quota exceeded: limit 4000 requests per minute", status=429),
        "ok",
    )

    response = await invoker.invoke(service, REQUEST, "ctx")

    assert response.text == "ok"
    assert service.calls == 2
