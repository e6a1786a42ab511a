"""Phased market simulation.

Phase order for one run::

    casting + pitch + research (concurrent)
      -> reaction fan-out
      -> optional group discussion
      -> decision fan-out (each with a review)
      -> analysis

Casting, pitch and analysis failures end the run. Research and discussion
failures degrade to defaults. A persona whose step fails is dropped from the
rest of the run while its siblings continue.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine, Mapping, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any, TypeVar

from focusgroup.agents.analyst import analyze
from focusgroup.agents.base import AgentDeps, UsageCallback
from focusgroup.agents.casting import cast_personas
from focusgroup.agents.consumer import interview
from focusgroup.agents.discussion import DiscussionParticipant, moderate_discussion
from focusgroup.agents.pivot import plan_improvement, results_from_states
from focusgroup.agents.research import fallback_competitor_data, research_competitors
from focusgroup.agents.sales import generate_pitch
from focusgroup.config.settings import FocusGroupConfig
from focusgroup.llm.invoker import RetryingInvoker
from focusgroup.llm.queue import get_request_queue, init_request_queue
from focusgroup.llm.rate_limit import get_rate_limiter, init_rate_limiter
from focusgroup.llm.service import create_generation_service
from focusgroup.llm.usage import ModelTier, TokenUsage
from focusgroup.models import (
    Actor,
    ConsumerStatus,
    InteractionType,
    LogPhase,
    LogType,
    SimulationLog,
    SimulationResult,
    SimulationStatus,
)
from focusgroup.orchestration.exceptions import NoSurvivingPersonasError, RunFatalError
from focusgroup.orchestration.observer import NullObserver, SimulationObserver, notify
from focusgroup.orchestration.personas import PersonaPipeline, ReactionOutcome
from focusgroup.orchestration.state import ConsumerStateStore
from focusgroup.prompt_templates import create_prompt_environment

if TYPE_CHECKING:
    from jinja2 import Environment

    from focusgroup.llm.queue import ConcurrencyQueue
    from focusgroup.llm.rate_limit import RateLimiter
    from focusgroup.llm.service import GenerationService, UsageMetadata
    from focusgroup.models import (
        CompetitorData,
        ConsumerState,
        ImprovementPlan,
        InteractionItem,
        PersonaProfile,
        ProductInput,
        SalesPitch,
    )

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Sleep = Callable[[float], Awaitable[None]]

PROGRESS_START = 0
PROGRESS_PREPARED = 30
PROGRESS_REACTED = 60
PROGRESS_DECIDED = 80
PROGRESS_DONE = 100


@dataclass
class _RunContext:
    """Mutable bookkeeping for a single run: logs, usage, states and progress."""

    product: ProductInput
    observer: SimulationObserver
    usage: TokenUsage = field(default_factory=TokenUsage)
    logs: list[SimulationLog] = field(default_factory=list)
    progress: int = PROGRESS_START
    store: ConsumerStateStore = field(init=False)

    def __post_init__(self) -> None:
        self.store = ConsumerStateStore(
            on_update=lambda persona_id, changes: notify(
                self.observer, "on_consumer_update", persona_id, changes
            )
        )

    def log(self, actor: str, log_type: LogType, content: str, phase: LogPhase) -> SimulationLog:
        entry = SimulationLog(actor=actor, phase=phase, type=log_type, content=content)
        self.logs.append(entry)
        notify(self.observer, "on_log", entry)
        return entry

    def set_status(self, status: SimulationStatus) -> None:
        logger.info("Simulation status: %s", status)
        notify(self.observer, "on_status_change", status)

    def set_progress(self, percent: int) -> None:
        self.progress = max(self.progress, percent)
        notify(self.observer, "on_progress", self.progress)

    def record_usage(self, metadata: UsageMetadata | None, tier: ModelTier) -> None:
        self.usage.record(metadata, tier)
        notify(self.observer, "on_token_usage", self.usage.snapshot())


async def _gather_or_cancel(*coros: Coroutine[Any, Any, Any]) -> list[Any]:
    """Fail-fast gather that cancels the remaining tasks on the first error."""
    tasks = [asyncio.ensure_future(coro) for coro in coros]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class SimulationOrchestrator:
    """Sequences the phase agents for a product and reports progress to an observer.

    The rate limiter and queue default to the process-wide instances; tests
    inject their own along with a no-op ``sleep``.
    """

    def __init__(
        self,
        service: GenerationService,
        *,
        config: FocusGroupConfig | None = None,
        limiter: RateLimiter | None = None,
        queue: ConcurrencyQueue | None = None,
        observer: SimulationObserver | None = None,
        sleep: Sleep = asyncio.sleep,
        prompts: Environment | None = None,
    ) -> None:
        self.service = service
        self.config = config or FocusGroupConfig()
        self.limiter = limiter or get_rate_limiter()
        self.queue = queue or get_request_queue()
        self.observer: SimulationObserver = observer or NullObserver()
        self.invoker = RetryingInvoker(self.limiter, self.config.retry, sleep=sleep)
        self.prompts = prompts or create_prompt_environment(self.config.prompts_dir)
        self._sleep = sleep
        self.last_usage: TokenUsage | None = None

    def _deps(self, on_usage: UsageCallback) -> AgentDeps:
        return AgentDeps(
            service=self.service,
            invoker=self.invoker,
            models=self.config.models,
            prompts=self.prompts,
            on_usage=on_usage,
        )

    # ------------------------------------------------------------------
    # Full simulation
    # ------------------------------------------------------------------

    async def run_simulation(self, product: ProductInput) -> SimulationResult:
        """Run every phase for ``product``.

        Raises:
            RunFatalError: when the run cannot produce a result; carries the
                logs and consumer states gathered so far

        """
        ctx = _RunContext(product=product, observer=self.observer)
        self.last_usage = ctx.usage
        deps = self._deps(ctx.record_usage)
        try:
            return await self._run_phases(ctx, deps)
        except Exception as exc:
            logger.error("Simulation failed: %s", exc)
            ctx.set_status(SimulationStatus.ERROR)
            ctx.log(Actor.SYSTEM, LogType.INFO, f"Error: {exc}", LogPhase.ERROR)
            raise RunFatalError(
                str(exc),
                logs=list(ctx.logs),
                consumer_states=ctx.store.snapshot(),
            ) from exc

    async def _run_phases(self, ctx: _RunContext, deps: AgentDeps) -> SimulationResult:
        product = ctx.product
        ctx.set_progress(PROGRESS_START)
        notify(self.observer, "on_token_usage", ctx.usage.snapshot())

        ctx.set_status(SimulationStatus.CASTING)
        ctx.log(
            Actor.SYSTEM,
            LogType.INFO,
            "Organizer Agent: starting the project. Casting personas, preparing the sales pitch "
            "and researching competitors in parallel...",
            LogPhase.CASTING,
        )
        personas, pitch, competitor_data = await _gather_or_cancel(
            self._cast(ctx, deps),
            self._pitch(ctx, deps),
            self._research(ctx, deps),
        )
        ctx.set_progress(PROGRESS_PREPARED)

        ctx.set_status(SimulationStatus.SIMULATION_RUNNING)
        ctx.log(
            Actor.SYSTEM,
            LogType.INFO,
            "Simulation: presenting the product to each persona.",
            LogPhase.INTERACTION,
        )
        for persona in personas:
            ctx.store.initialize(persona, product.initial_interest)

        pipeline = PersonaPipeline(
            deps,
            ctx.store,
            lambda actor, log_type, content: ctx.log(actor, log_type, content, LogPhase.INTERACTION),
            product=product,
            pitch=pitch,
            competitor_data=competitor_data,
            pacing=self.config.pacing,
            question_threshold=self.config.question_interest_threshold,
            sleep=self._sleep,
        )

        reactions, dropped = await self._fan_out(
            ctx,
            personas,
            lambda persona: persona,
            pipeline.run_reaction,
            "reaction",
        )
        if not reactions:
            raise NoSurvivingPersonasError("reaction")
        ctx.set_progress(PROGRESS_REACTED)

        discussion_context: str | None = None
        if product.enable_group_discussion and len(reactions) > 1:
            discussion_context = await self._discuss(ctx, deps, reactions)
            ctx.set_status(SimulationStatus.SIMULATION_RUNNING)
            ctx.log(
                Actor.SYSTEM,
                LogType.INFO,
                "Simulation: entering the final decision phase.",
                LogPhase.INTERACTION,
            )

        results, decision_dropped = await self._fan_out(
            ctx,
            reactions,
            lambda outcome: outcome.persona,
            lambda outcome: pipeline.run_decision(outcome, discussion_context),
            "decision",
        )
        if not results:
            raise NoSurvivingPersonasError("decision")

        dropped.extend(decision_dropped)
        if dropped:
            ctx.log(
                Actor.SYSTEM,
                LogType.INFO,
                f"Note: {len(dropped)} persona(s) dropped out because of errors; continuing the analysis.",
                LogPhase.INTERACTION,
            )
        ctx.set_progress(PROGRESS_DECIDED)

        ctx.set_status(SimulationStatus.ANALYZING)
        ctx.log(
            Actor.ANALYST,
            LogType.INFO,
            "Analyst Agent: collecting every log and writing the insight report...",
            LogPhase.ANALYSIS,
        )
        report = await analyze(deps, product, personas, results, pitch, competitor_data)
        ctx.log(Actor.ANALYST, LogType.INFO, "The report is complete.", LogPhase.ANALYSIS)

        ctx.set_progress(PROGRESS_DONE)
        ctx.set_status(SimulationStatus.COMPLETED)
        logger.info(
            "Simulation complete: %d/%d personas, %d calls, %s",
            len(results),
            len(personas),
            ctx.usage.api_calls,
            ctx.usage.format_cost(),
        )
        return SimulationResult(
            product=product,
            personas=personas,
            logs=list(ctx.logs),
            reviews=[result.review for result in results if result.review is not None],
            report=report,
            pitch=pitch,
            competitor_research=competitor_data,
            consumer_states=ctx.store.snapshot(),
            dropped_persona_ids=dropped,
        )

    async def _cast(self, ctx: _RunContext, deps: AgentDeps) -> list[PersonaProfile]:
        personas = await cast_personas(deps, ctx.product)
        ctx.log(Actor.SYSTEM, LogType.INFO, f"Selected {len(personas)} persona candidates.", LogPhase.CASTING)
        for persona in personas:
            ctx.log(
                persona.id,
                LogType.INFO,
                f"Persona created: {persona.name} ({persona.age}, {persona.occupation})",
                LogPhase.CASTING,
            )
        notify(self.observer, "on_personas_ready", list(personas))
        return personas

    async def _pitch(self, ctx: _RunContext, deps: AgentDeps) -> SalesPitch:
        pitch = await generate_pitch(deps, ctx.product)
        ctx.log(
            Actor.SALES,
            LogType.INFO,
            "Sales Agent: product analysis and presentation are ready.",
            LogPhase.PRESENTATION,
        )
        notify(self.observer, "on_pitch_ready", pitch)
        return pitch

    async def _research(self, ctx: _RunContext, deps: AgentDeps) -> CompetitorData:
        try:
            data = await research_competitors(deps, ctx.product, timeout=self.config.retry.research_timeout)
        except Exception as exc:
            logger.warning("Competitor research failed, continuing without it: %s", exc)
            ctx.log(
                Actor.RESEARCHER,
                LogType.INFO,
                "Competitor research failed, but the simulation continues.",
                LogPhase.PRESENTATION,
            )
            return fallback_competitor_data()

        if data.sources:
            message = (
                f"Found {len(data.sources)} competitor and related sources on the web. "
                "Sharing them with the personas."
            )
        else:
            message = "No direct competitor information was found."
        ctx.log(Actor.RESEARCHER, LogType.INFO, message, LogPhase.PRESENTATION)
        return data

    async def _fan_out(
        self,
        ctx: _RunContext,
        items: Sequence[T],
        persona_of: Callable[[T], PersonaProfile],
        step: Callable[[T], Awaitable[R]],
        phase: str,
    ) -> tuple[list[R], list[str]]:
        """Run ``step`` for every item through the queue; failures drop that persona only."""
        outcomes = await asyncio.gather(
            *(self.queue.add(partial(step, item)) for item in items),
            return_exceptions=True,
        )
        survivors: list[R] = []
        dropped: list[str] = []
        for item, outcome in zip(items, outcomes, strict=True):
            persona = persona_of(item)
            if isinstance(outcome, Exception):
                logger.warning("Persona %s failed at %s: %s", persona.id, phase, outcome)
                ctx.log(
                    persona.id,
                    LogType.INFO,
                    f"Dropped out of the simulation ({phase} error): {outcome}",
                    LogPhase.INTERACTION,
                )
                dropped.append(persona.id)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                survivors.append(outcome)
        return survivors, dropped

    async def _discuss(
        self,
        ctx: _RunContext,
        deps: AgentDeps,
        reactions: Sequence[ReactionOutcome],
    ) -> str | None:
        ctx.set_status(SimulationStatus.DISCUSSION)
        ctx.log(Actor.SYSTEM, LogType.INFO, "Simulation: moving to the group discussion phase.", LogPhase.DISCUSSION)
        for outcome in reactions:
            ctx.store.update(outcome.persona_id, status=ConsumerStatus.DISCUSSING)
        ctx.log(
            Actor.MODERATOR,
            LogType.INFO,
            "The moderator entered the room. Starting the group discussion.",
            LogPhase.DISCUSSION,
        )

        participants = [
            DiscussionParticipant(
                persona=outcome.persona,
                inner_voice=outcome.reaction.inner_voice,
                interest_level=outcome.reaction.interest_level,
                question=outcome.reaction.question,
            )
            for outcome in reactions
        ]
        try:
            summary = await moderate_discussion(deps, participants)
        except Exception as exc:
            logger.warning("Group discussion failed, personas decide individually: %s", exc)
            ctx.log(
                Actor.SYSTEM,
                LogType.INFO,
                "The group discussion could not be generated. Each persona decides individually.",
                LogPhase.DISCUSSION,
            )
            return None

        ctx.log(Actor.MODERATOR, LogType.DIALOGUE, f"Discussion summary: {summary.summary}", LogPhase.DISCUSSION)
        ctx.log(Actor.MODERATOR, LogType.DIALOGUE, f"Dominant opinion: {summary.dominant_opinion}", LogPhase.DISCUSSION)
        for outcome in reactions:
            ctx.store.append_history(
                outcome.persona_id,
                InteractionType.DISCUSSION,
                summary.dominant_opinion,
                outcome.reaction.interest_level,
            )
        return summary.discussion_context

    # ------------------------------------------------------------------
    # Post-run entry points
    # ------------------------------------------------------------------

    def _single_call_usage(self) -> tuple[TokenUsage, UsageCallback]:
        usage = TokenUsage()

        def _record(metadata: UsageMetadata | None, tier: ModelTier) -> None:
            usage.record(metadata, tier)
            notify(self.observer, "on_token_usage", usage.snapshot())

        self.last_usage = usage
        return usage, _record

    async def run_direct_interview(
        self,
        persona: PersonaProfile,
        product: ProductInput,
        history: Sequence[InteractionItem],
        question: str,
    ) -> str:
        """Ask an already-simulated persona one more question."""
        _, record = self._single_call_usage()
        return await interview(self._deps(record), persona, product, history, question)

    async def generate_improvement_plan(
        self,
        product: ProductInput,
        personas: Sequence[PersonaProfile],
        states: Mapping[str, ConsumerState],
        pitch: SalesPitch,
        competitor_data: CompetitorData | None,
    ) -> ImprovementPlan:
        """Pivot recommendation built from the stored consumer states."""
        _, record = self._single_call_usage()
        results = results_from_states(personas, states)
        return await plan_improvement(self._deps(record), product, personas, results, pitch, competitor_data)


def create_orchestrator(
    config: FocusGroupConfig | None = None,
    *,
    observer: SimulationObserver | None = None,
    api_key: str | None = None,
) -> SimulationOrchestrator:
    """Build an orchestrator backed by Gemini and the process-wide throttles.

    Raises:
        ApiKeyNotFoundError: when no API key is passed or set in the environment

    """
    config = config or FocusGroupConfig()
    service = create_generation_service(api_key)
    return SimulationOrchestrator(
        service,
        config=config,
        limiter=init_rate_limiter(config.throttle.min_interval),
        queue=init_request_queue(config.throttle.concurrency),
        observer=observer,
    )
