"""Analyst agent: the aggregate market acceptance report."""

from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from focusgroup.agents.base import AgentDeps, run_structured
from focusgroup.llm.usage import ModelTier
from focusgroup.models import AnalysisReport, PersonaBreakdown, PositioningMap

if TYPE_CHECKING:
    from collections.abc import Sequence

    from focusgroup.models import CompetitorData, ConsumerResult, PersonaProfile, ProductInput, SalesPitch

logger = logging.getLogger(__name__)

NO_COMPETITOR_INFO = "(no competitor data)"


class ReportResponse(BaseModel):
    markdown: str = Field(min_length=1, description="Full Markdown report")
    top_rejection_reasons: list[str] = Field(default_factory=list)
    killer_phrases: list[str] = Field(default_factory=list, description="Phrases that resonated")
    positioning_map: PositioningMap | None = None


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def acceptance_rate(results: Sequence[ConsumerResult]) -> int:
    """Percentage of buy decisions, rounded half up. Zero results give 0."""
    if not results:
        return 0
    buys = sum(1 for result in results if result.final_decision == "buy")
    return round_half_up(100 * buys / len(results))


def average_willingness_to_pay(results: Sequence[ConsumerResult]) -> int:
    if not results:
        return 0
    return round_half_up(sum(result.willingness_to_pay for result in results) / len(results))


def _structured_results(
    personas: Sequence[PersonaProfile],
    results: Sequence[ConsumerResult],
) -> list[dict[str, object]]:
    by_id = {persona.id: persona for persona in personas}
    rows: list[dict[str, object]] = []
    for result in results:
        persona = by_id.get(result.persona_id)
        rows.append(
            {
                "persona_id": result.persona_id,
                "persona_profile": persona.model_dump(
                    include={"name", "age", "gender", "occupation", "traits", "values"}
                )
                if persona
                else None,
                "outcome": {
                    "decision": result.final_decision,
                    "reason": result.decision_reason,
                    "willingness_to_pay": result.willingness_to_pay,
                    "detailed_score": result.detailed_score.model_dump(),
                    "key_insight": result.key_insight,
                    "attribute_reasoning": result.attribute_reasoning,
                },
                "reverse_question": result.reverse_question,
                "qa_history": [qa.model_dump() for qa in result.qa_history],
                "review": result.review.model_dump(include={"rating", "title", "body", "nps"})
                if result.review
                else None,
            }
        )
    return rows


async def analyze(
    deps: AgentDeps,
    product: ProductInput,
    personas: Sequence[PersonaProfile],
    results: Sequence[ConsumerResult],
    pitch: SalesPitch,
    competitor_data: CompetitorData | None,
    *,
    report_date: date | None = None,
) -> AnalysisReport:
    """Build the report; the acceptance rate and breakdown are computed locally."""
    prompt = deps.render(
        "analysis.jinja",
        product=product.safe_context(),
        pitch=pitch,
        competitor_info=competitor_data.summary if competitor_data else NO_COMPETITOR_INFO,
        results=_structured_results(personas, results),
        average_wtp=average_willingness_to_pay(results),
        report_date=(report_date or date.today()).isoformat(),
    )
    response = await run_structured(
        deps,
        tier=ModelTier.PRO,
        prompt=prompt,
        schema=ReportResponse,
        context="AnalystAgent",
    )
    rate = acceptance_rate(results)
    logger.info("Analysis complete: %d%% acceptance over %d personas", rate, len(results))
    return AnalysisReport(
        markdown=response.markdown,
        acceptance_rate=rate,
        top_rejection_reasons=response.top_rejection_reasons,
        killer_phrases=response.killer_phrases,
        persona_breakdown=[
            PersonaBreakdown(id=result.persona_id, decision=result.final_decision) for result in results
        ],
        positioning_map=response.positioning_map,
    )
