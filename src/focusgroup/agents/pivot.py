"""Pivot planner: an improvement plan derived from a finished run."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from focusgroup.agents.base import AgentDeps, run_structured
from focusgroup.llm.usage import ModelTier
from focusgroup.models import ConsumerResult, DetailedScore, ImprovementPlan, PlanSection

if TYPE_CHECKING:
    from focusgroup.models import CompetitorData, ConsumerState, PersonaProfile, ProductInput, SalesPitch


class PlanResponse(BaseModel):
    title: str = Field(min_length=1, description="The redefined product or service name")
    catch_copy: str = Field(description="One line tying the customer's pain to the solution")
    executive_summary: str
    problem_solution: str = Field(description="Whose problem, how severe, and why this solution fits")
    service_and_pricing: str = Field(description="Feature set and pricing based on willingness to pay")
    dynamic_sections: list[PlanSection] = Field(default_factory=list)
    simulation: str = Field(description="Adoption scenario once the product fits its market")
    conclusion: str


def results_from_states(
    personas: Sequence[PersonaProfile],
    states: Mapping[str, ConsumerState],
) -> list[ConsumerResult]:
    """Rebuild consumer results from stored states.

    A missing decision counts as a pass and a missing score as all zeros.
    Personas without a stored state are skipped.
    """
    results: list[ConsumerResult] = []
    for persona in personas:
        state = states.get(persona.id)
        if state is None:
            continue
        results.append(
            ConsumerResult(
                persona_id=persona.id,
                final_decision=state.decision or "pass",
                decision_reason=state.decision_reason or "",
                willingness_to_pay=state.willingness_to_pay or 0,
                target_price_condition=state.target_price_condition,
                detailed_score=state.detailed_score or DetailedScore(),
                key_insight=state.key_insight or "",
                attribute_reasoning=state.attribute_reasoning,
                reverse_question=state.reverse_question,
            )
        )
    return results


async def plan_improvement(
    deps: AgentDeps,
    product: ProductInput,
    personas: Sequence[PersonaProfile],
    results: Sequence[ConsumerResult],
    pitch: SalesPitch,
    competitor_data: CompetitorData | None,
) -> ImprovementPlan:
    by_id = {persona.id: persona for persona in personas}
    feedback = [
        {
            "name": by_id[result.persona_id].name if result.persona_id in by_id else result.persona_id,
            "age": by_id[result.persona_id].age if result.persona_id in by_id else "?",
            "occupation": by_id[result.persona_id].occupation if result.persona_id in by_id else "?",
            "decision": result.final_decision,
            "willingness_to_pay": result.willingness_to_pay,
            "reason": result.decision_reason,
            "target_price_condition": result.target_price_condition,
            "key_insight": result.key_insight,
        }
        for result in results
    ]
    prompt = deps.render(
        "pivot.jinja",
        feedback=feedback,
        original_idea={
            "name": product.name,
            "description": product.description,
            "price": product.price,
            "target": product.target_hypothesis,
            "pitch": pitch.catch_copy,
        },
        competitor_info=competitor_data.summary if competitor_data else "none",
    )
    response = await run_structured(
        deps,
        tier=ModelTier.PRO,
        prompt=prompt,
        schema=PlanResponse,
        context="PivotPlanner",
    )
    return ImprovementPlan(**response.model_dump())
