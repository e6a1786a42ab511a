"""The per-persona steps of a run: reaction (with Q&A) and decision (with review).

Within one persona the steps run strictly in order; the orchestrator runs
many personas side by side through the concurrency queue.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from focusgroup.agents.consumer import ReactionResponse, decide, react, write_review
from focusgroup.agents.sales import answer_question
from focusgroup.models import (
    Actor,
    ConsumerResult,
    ConsumerStatus,
    InteractionType,
    LogType,
    QAPair,
)

if TYPE_CHECKING:
    from focusgroup.agents.base import AgentDeps
    from focusgroup.config.settings import PacingSettings
    from focusgroup.models import CompetitorData, PersonaProfile, ProductInput, SalesPitch
    from focusgroup.orchestration.state import ConsumerStateStore

logger = logging.getLogger(__name__)

LogAction = Callable[[str, LogType, str], None]
Sleep = Callable[[float], Awaitable[None]]

BUY_INTEREST_FLOOR = 90
PASS_INTEREST_CEILING = 40
LISTENING_NOTE = "(listening to the other participants...)"


@dataclass(frozen=True, slots=True)
class ReactionOutcome:
    """What a persona carries from the reaction step into the decision step."""

    persona: PersonaProfile
    reaction: ReactionResponse
    qa_history: tuple[QAPair, ...] = ()
    logs: tuple[str, ...] = ()

    @property
    def persona_id(self) -> str:
        return self.persona.id


class PersonaPipeline:
    """Runs the reaction and decision steps for one persona at a time."""

    def __init__(
        self,
        deps: AgentDeps,
        store: ConsumerStateStore,
        log_action: LogAction,
        *,
        product: ProductInput,
        pitch: SalesPitch,
        competitor_data: CompetitorData | None,
        pacing: PacingSettings,
        question_threshold: int,
        sleep: Sleep,
    ) -> None:
        self.deps = deps
        self.store = store
        self.log_action = log_action
        self.product = product
        self.pitch = pitch
        self.competitor_data = competitor_data
        self.pacing = pacing
        self.question_threshold = question_threshold
        self._sleep = sleep

    async def run_reaction(self, persona: PersonaProfile) -> ReactionOutcome:
        """First impression, then one question to sales when interested enough."""
        logs: list[str] = []
        qa_history: list[QAPair] = []

        self.store.update(persona.id, status=ConsumerStatus.THINKING)
        reaction = await react(self.deps, persona, self.product, self.pitch, self.competitor_data)

        interest = reaction.interest_level
        self.store.update(persona.id, inner_voice=reaction.inner_voice, interest_level=interest)
        self.store.append_history(persona.id, InteractionType.THOUGHT, reaction.inner_voice, interest)
        self.log_action(persona.id, LogType.THOUGHT, reaction.inner_voice)
        logs.append(f"Thought: {reaction.inner_voice}")

        await self._sleep(self.pacing.after_reaction)

        question = (reaction.question or "").strip()
        if interest > self.question_threshold and question:
            self.store.update(persona.id, status=ConsumerStatus.ASKING, questions_asked=1)
            self.log_action(persona.id, LogType.DIALOGUE, f"Question: {question}")
            logs.append(f"Question: {question}")
            self.store.append_history(persona.id, InteractionType.QUESTION, question, interest)

            await self._sleep(self.pacing.before_answer)

            answer = await answer_question(self.deps, question, self.product)
            self.log_action(Actor.SALES, LogType.DIALOGUE, f"Answer: {answer}")
            logs.append(f"Answer: {answer}")
            self.store.append_history(persona.id, InteractionType.ANSWER, answer, interest)
            qa_history.append(QAPair(question=question, answer=answer))

        return ReactionOutcome(
            persona=persona,
            reaction=reaction,
            qa_history=tuple(qa_history),
            logs=tuple(logs),
        )

    async def run_decision(self, outcome: ReactionOutcome, discussion_context: str | None) -> ConsumerResult:
        """Final decision followed by a review (buy) or feedback (pass)."""
        persona = outcome.persona
        logs = list(outcome.logs)
        interest = outcome.reaction.interest_level

        if discussion_context:
            self.store.append_history(persona.id, InteractionType.DISCUSSION, LISTENING_NOTE, interest)
            await self._sleep(self.pacing.discussion_listen)

        self.store.update(persona.id, status=ConsumerStatus.THINKING)
        decision = await decide(
            self.deps,
            persona,
            self.product,
            self.pitch,
            outcome.reaction,
            outcome.qa_history,
            discussion_context,
            self.competitor_data,
        )

        bought = decision.decision == "buy"
        interest = max(interest, BUY_INTEREST_FLOOR) if bought else min(interest, PASS_INTEREST_CEILING)
        score = decision.detailed_score
        self.store.update(
            persona.id,
            status=ConsumerStatus.DECIDED,
            inner_voice=decision.inner_voice,
            decision=decision.decision,
            decision_reason=decision.reason,
            willingness_to_pay=decision.willingness_to_pay,
            target_price_condition=decision.target_price_condition,
            detailed_score=score,
            key_insight=decision.key_insight,
            attribute_reasoning=decision.attribute_reasoning,
            reverse_question=decision.reverse_question,
            interest_level=interest,
        )
        self.store.append_history(persona.id, InteractionType.THOUGHT, decision.inner_voice, interest)
        self.store.append_history(
            persona.id,
            InteractionType.DECISION,
            "Decided to buy" if bought else "Decided to pass",
            interest,
        )

        self.log_action(persona.id, LogType.THOUGHT, decision.inner_voice)
        valuation = f"valued at ¥{decision.willingness_to_pay:,}"
        self.log_action(
            persona.id,
            LogType.ACTION,
            f"🎉 Buying ({valuation})" if bought else f"👋 Passing ({valuation})",
        )
        logs.append(
            f"Decision: {decision.decision.upper()} - {decision.reason} (WTP: {decision.willingness_to_pay})"
        )

        await self._sleep(self.pacing.before_review)

        self.store.update(persona.id, status=ConsumerStatus.REVIEWING)
        review = await write_review(self.deps, persona, self.product, decision.decision)
        label = "Review posted" if bought else "Feedback sent"
        self.log_action(persona.id, LogType.INFO, f'{label}: {"★" * review.rating} "{review.title}"')
        self.store.update(persona.id, status=ConsumerStatus.DECIDED)

        return ConsumerResult(
            persona_id=persona.id,
            final_decision=decision.decision,
            decision_reason=decision.reason,
            willingness_to_pay=decision.willingness_to_pay,
            target_price_condition=decision.target_price_condition,
            detailed_score=score,
            key_insight=decision.key_insight,
            review=review,
            logs=logs,
            qa_history=list(outcome.qa_history),
            attribute_reasoning=decision.attribute_reasoning,
            reverse_question=decision.reverse_question,
        )
