from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from focusgroup.agents.base import AgentDeps
from focusgroup.config.settings import FocusGroupConfig, PacingSettings, RetrySettings, ThrottleSettings
from focusgroup.llm.invoker import RetryingInvoker
from focusgroup.llm.queue import ConcurrencyQueue
from focusgroup.llm.rate_limit import RateLimiter
from focusgroup.llm.service import GenerationRequest, GenerationResponse, UsageMetadata
from focusgroup.models import ProductInput, Source
from focusgroup.orchestration.simulation import SimulationOrchestrator

RESEARCH = "research"
DISCUSSION_CONTEXT = "Most of the room felt the price was steep but the idea was solid."

_PERSONA_ID_RE = re.compile(r'"id": "(persona_\d+)"')

Handler = Callable[[GenerationRequest], "str | GenerationResponse | BaseException"]


def persona_id_in(request: GenerationRequest) -> str | None:
    """The persona a per-persona prompt was rendered for."""
    match = _PERSONA_ID_RE.search(request.prompt_text)
    return match.group(1) if match else None


@dataclass
class ScriptedService:
    """Generation service that answers by response schema name.

    Web-search requests are routed to the ``research`` handler. A handler may
    return text, a full response, or an exception to raise.
    """

    handlers: dict[str, Handler]
    usage: UsageMetadata | None = field(default_factory=lambda: UsageMetadata(100, 20, 120))
    requests: list[GenerationRequest] = field(default_factory=list)

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        if request.web_search:
            key = RESEARCH
        else:
            assert request.response_schema is not None
            key = request.response_schema.__name__
        result = self.handlers[key](request)
        if isinstance(result, BaseException):
            raise result
        if isinstance(result, GenerationResponse):
            return result
        return GenerationResponse(text=result, usage=self.usage)

    def calls(self, key: str) -> list[GenerationRequest]:
        if key == RESEARCH:
            return [r for r in self.requests if r.web_search]
        return [
            r for r in self.requests if r.response_schema is not None and r.response_schema.__name__ == key
        ]


PERSONA_AGES = (24, 35, 41, 58, 29, 63, 38, 47, 52, 33, 26, 44)


def persona_drafts(count: int) -> list[dict[str, Any]]:
    return [
        {
            "name": f"Person {index}",
            "age": PERSONA_AGES[index % len(PERSONA_AGES)],
            "gender": "female" if index % 2 else "male",
            "occupation": "office worker",
            "income_level": "middle",
            "family_structure": "single",
            "tech_literacy": "average",
            "info_sources": ["Instagram"],
            "hobbies": ["running"],
            "traits": ["cautious"],
            "current_pain_points": "sleeps badly",
            "values": "price-first",
        }
        for index in range(count)
    ]


def default_handlers(persona_count: int = 5, buyers: frozenset[str] = frozenset({"persona_0"})) -> dict[str, Handler]:
    """Happy-path answers for every agent; ``buyers`` decide to buy, everyone else passes."""

    def decision(request: GenerationRequest) -> str:
        bought = persona_id_in(request) in buyers
        return json.dumps(
            {
                "inner_voice": "Hmm, let me think.",
                "decision": "buy" if bought else "pass",
                "reason": "Fits my routine" if bought else "Too expensive",
                "willingness_to_pay": 5000 if bought else 1000,
                "target_price_condition": None if bought else "Under 2,000 yen",
                "score_appeal": 4,
                "score_novelty": 3,
                "score_clarity": 4,
                "score_relevance": 3,
                "score_value": 2,
                "key_insight": "Price matters most",
            }
        )

    return {
        "CastingResponse": lambda _: json.dumps({"personas": persona_drafts(persona_count)}),
        "PitchResponse": lambda _: json.dumps(
            {"catch_copy": "Sleep deeper tonight", "description": "A smart pillow.", "key_benefits": ["quiet"]}
        ),
        RESEARCH: lambda _: GenerationResponse(
            text="Competitor A sells a similar pillow for 3,000 yen.",
            usage=UsageMetadata(50, 30, 80),
            sources=(Source(title="A", uri="https://a.example"), Source(title="B", uri="https://b.example")),
        ),
        "ReactionResponse": lambda _: json.dumps(
            {"inner_voice": "Looks nice.", "interest_level": 60, "question": "How long does it last?"}
        ),
        "AnswerResponse": lambda _: json.dumps({"answer": "About three years."}),
        "DiscussionSummary": lambda _: json.dumps(
            {
                "summary": "Everyone talked about price.",
                "dominant_opinion": "Cautiously positive",
                "key_phrases": ["too pricey"],
                "discussion_context": DISCUSSION_CONTEXT,
            }
        ),
        "DecisionResponse": decision,
        "ReviewResponse": lambda _: json.dumps({"rating": 4, "title": "Pretty good", "body": "Works.", "nps": 7}),
        "ReportResponse": lambda _: json.dumps(
            {"markdown": "# Report", "top_rejection_reasons": ["price"], "killer_phrases": ["sleep deeper"]}
        ),
        "InterviewResponse": lambda _: json.dumps({"response": "I still think it is too expensive."}),
        "PlanResponse": lambda _: json.dumps(
            {
                "title": "SleepWell Lite",
                "catch_copy": "Better sleep for less",
                "executive_summary": "Cut the price.",
                "problem_solution": "Busy workers sleep badly.",
                "service_and_pricing": "1,980 yen",
                "dynamic_sections": [{"title": "Channels", "content": "Drugstores"}],
                "simulation": "Adoption grows.",
                "conclusion": "Go.",
            }
        ),
    }


class SleepRecorder:
    """Async stand-in for ``asyncio.sleep`` that records delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingObserver:
    def __init__(self) -> None:
        self.events: list[tuple[str, tuple[Any, ...]]] = []

    def __getattr__(self, name: str) -> Callable[..., None]:
        if not name.startswith("on_"):
            raise AttributeError(name)
        return lambda *args: self.events.append((name, args))

    def of(self, name: str) -> list[tuple[Any, ...]]:
        return [args for event, args in self.events if event == name]


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fast_config() -> FocusGroupConfig:
    return FocusGroupConfig(
        throttle=ThrottleSettings(min_interval=0.0, concurrency=3),
        retry=RetrySettings(max_retries=3, base_delay=0.0, timeout=5.0, research_timeout=5.0),
        pacing=PacingSettings(after_reaction=0, before_answer=0, discussion_listen=0, before_review=0),
    )


@pytest.fixture
def product() -> ProductInput:
    return ProductInput(
        name="SleepWell Pillow",
        description="A pillow that adjusts its height while you sleep.",
        price="¥4,980",
        target_hypothesis="Office workers in their 30s",
        persona_count=5,
        initial_interest=50,
    )


@pytest.fixture
def make_service() -> Callable[..., ScriptedService]:
    def _make(persona_count: int = 5, **overrides: Handler) -> ScriptedService:
        handlers = default_handlers(persona_count)
        handlers.update(overrides)
        return ScriptedService(handlers)

    return _make


@pytest.fixture
def make_deps(sleep_recorder: SleepRecorder) -> Callable[..., AgentDeps]:
    def _make(service: ScriptedService, *, max_retries: int = 2) -> AgentDeps:
        invoker = RetryingInvoker(
            RateLimiter(min_interval=0.0),
            RetrySettings(max_retries=max_retries, base_delay=0.0),
            sleep=sleep_recorder,
        )
        return AgentDeps(service=service, invoker=invoker)

    return _make


@pytest.fixture
def make_orchestrator(
    fast_config: FocusGroupConfig, sleep_recorder: SleepRecorder
) -> Callable[..., SimulationOrchestrator]:
    def _make(service: ScriptedService, observer: Any = None) -> SimulationOrchestrator:
        return SimulationOrchestrator(
            service,
            config=fast_config,
            limiter=RateLimiter(min_interval=0.0),
            queue=ConcurrencyQueue(concurrency=fast_config.throttle.concurrency),
            observer=observer,
            sleep=sleep_recorder,
        )

    return _make
