"""Consumer persona agents: reaction, decision, review and interview."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from pydantic import BaseModel, BeforeValidator, Field

from focusgroup.agents.base import AgentDeps, run_structured
from focusgroup.llm.usage import ModelTier
from focusgroup.models import Decision, DetailedScore, InteractionType, ReviewData

if TYPE_CHECKING:
    from collections.abc import Sequence

    from focusgroup.models import (
        CompetitorData,
        InteractionItem,
        PersonaProfile,
        ProductInput,
        QAPair,
        SalesPitch,
    )

NO_MARKET_CONTEXT = "none"

HISTORY_LABELS: dict[InteractionType, str] = {
    InteractionType.THOUGHT: "Your Inner Thought",
    InteractionType.QUESTION: "You Asked",
    InteractionType.ANSWER: "Sales Agent Answered",
    InteractionType.DECISION: "Your Decision",
    InteractionType.USER_QUESTION: "Interviewer Asked",
    InteractionType.PERSONA_ANSWER: "You Answered",
    InteractionType.DISCUSSION: "Group Discussion Summary",
}


def _clamp(low: int, high: int) -> BeforeValidator:
    def _apply(value: object) -> object:
        if isinstance(value, int | float) and not isinstance(value, bool):
            return min(max(int(round(value)), low), high)
        return value

    return BeforeValidator(_apply)


Percent = Annotated[int, _clamp(0, 100)]
AxisScore = Annotated[int, _clamp(1, 5)]
Rating = Annotated[int, _clamp(1, 5)]
Nps = Annotated[int, _clamp(0, 10)]


class ReactionResponse(BaseModel):
    inner_voice: str = Field(min_length=1, description="Honest inner voice, casual tone")
    interest_level: Percent = Field(description="Interest from 0 to 100")
    question: str | None = Field(default=None, description="A question for the salesperson, or null")


class DecisionResponse(BaseModel):
    inner_voice: str = Field(description="Inner voice right before the final decision")
    decision: Decision
    reason: str = Field(min_length=1, description="The decisive reason")
    willingness_to_pay: int = Field(ge=0, description="Most you would honestly pay, in yen")
    target_price_condition: str | None = Field(
        default=None,
        description="What would justify the asking price when willingness to pay is below it",
    )
    score_appeal: AxisScore
    score_novelty: AxisScore
    score_clarity: AxisScore
    score_relevance: AxisScore
    score_value: AxisScore
    key_insight: str = ""
    attribute_reasoning: str | None = None
    reverse_question: str | None = None

    @property
    def detailed_score(self) -> DetailedScore:
        return DetailedScore(
            appeal=self.score_appeal,
            novelty=self.score_novelty,
            clarity=self.score_clarity,
            relevance=self.score_relevance,
            value=self.score_value,
        )


class ReviewResponse(BaseModel):
    rating: Rating
    title: str = Field(min_length=1)
    body: str
    nps: Nps


class InterviewResponse(BaseModel):
    response: str = Field(min_length=1)


def market_context(competitor_data: CompetitorData | None) -> str:
    return competitor_data.summary if competitor_data else NO_MARKET_CONTEXT


async def react(
    deps: AgentDeps,
    persona: PersonaProfile,
    product: ProductInput,
    pitch: SalesPitch,
    competitor_data: CompetitorData | None,
) -> ReactionResponse:
    prompt = deps.render(
        "reaction.jinja",
        persona=persona,
        pitch=pitch,
        product=product.safe_context(),
        market_context=market_context(competitor_data),
        has_image=product.has_image,
    )
    return await run_structured(
        deps,
        tier=ModelTier.FLASH,
        prompt=prompt,
        schema=ReactionResponse,
        context=f"Consumer_{persona.name}_Reaction",
        product=product,
    )


async def decide(
    deps: AgentDeps,
    persona: PersonaProfile,
    product: ProductInput,
    pitch: SalesPitch,
    reaction: ReactionResponse,
    qa_history: Sequence[QAPair],
    discussion_context: str | None,
    competitor_data: CompetitorData | None,
) -> DecisionResponse:
    prompt = deps.render(
        "decision.jinja",
        persona=persona,
        product=product.safe_context(),
        pitch=pitch,
        inner_voice=reaction.inner_voice,
        interest_level=reaction.interest_level,
        qa_history=list(qa_history),
        discussion_context=discussion_context,
        market_context=market_context(competitor_data),
    )
    return await run_structured(
        deps,
        tier=ModelTier.FLASH,
        prompt=prompt,
        schema=DecisionResponse,
        context=f"Consumer_{persona.name}_Decision",
        product=product,
    )


async def write_review(
    deps: AgentDeps,
    persona: PersonaProfile,
    product: ProductInput,
    decision: Decision,
) -> ReviewData:
    """A user review after a buy, improvement feedback after a pass."""
    prompt = deps.render(
        "review.jinja",
        persona=persona,
        product=product.safe_context(),
        decision=decision,
    )
    response = await run_structured(
        deps,
        tier=ModelTier.FLASH,
        prompt=prompt,
        schema=ReviewResponse,
        context=f"Consumer_{persona.name}_Review",
    )
    return ReviewData(persona_id=persona.id, persona_name=persona.name, **response.model_dump())


def format_history(history: Sequence[InteractionItem]) -> list[str]:
    return [f"{HISTORY_LABELS.get(item.type, 'Unknown')}: {item.content}" for item in history]


async def interview(
    deps: AgentDeps,
    persona: PersonaProfile,
    product: ProductInput,
    history: Sequence[InteractionItem],
    question: str,
) -> str:
    """Answer an interviewer's question in character, consistent with ``history``."""
    prompt = deps.render(
        "interview.jinja",
        persona=persona,
        product=product.safe_context(),
        conversation=format_history(history),
        question=question,
    )
    response = await run_structured(
        deps,
        tier=ModelTier.FLASH,
        prompt=prompt,
        schema=InterviewResponse,
        context=f"PersonaInterview_{persona.id}",
    )
    return response.response
