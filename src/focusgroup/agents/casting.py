"""Casting agent: builds the persona panel for a run."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from focusgroup.agents.base import AgentDeps, run_structured
from focusgroup.llm.usage import ModelTier
from focusgroup.models import AVATAR_COLORS, PersonaProfile

if TYPE_CHECKING:
    from focusgroup.models import ProductInput

logger = logging.getLogger(__name__)

CRITICAL_STANCE_BELOW = 30
ENTHUSIASTIC_STANCE_ABOVE = 70


class PersonaDraft(BaseModel):
    name: str
    age: int
    gender: str
    occupation: str
    income_level: str
    family_structure: str = Field(description="e.g. married without children, single living alone")
    tech_literacy: str = Field(description="e.g. high, average, low")
    info_sources: list[str] = Field(description="Where they get information, e.g. Instagram, newspapers, friends")
    hobbies: list[str]
    traits: list[str] = Field(description="Personality traits, e.g. cautious, trend-sensitive")
    current_pain_points: str = Field(description="Current frustrations related to this product category")
    values: str = Field(description="Buying values, e.g. price-first, brand-first")


class CastingResponse(BaseModel):
    personas: list[PersonaDraft] = Field(min_length=1)


def stance_instruction(initial_interest: int) -> str:
    """Panel composition instruction for the initial interest dial."""
    if initial_interest < CRITICAL_STANCE_BELOW:
        return (
            "IMPORTANT: this simulation takes a very strict, critical view. Pick mostly cautious, "
            "conservative personas with a high bar to buy: satisfied with the status quo, skeptical "
            "of new things, tight with money."
        )
    if initial_interest > ENTHUSIASTIC_STANCE_ABOVE:
        return (
            "IMPORTANT: this simulation takes a favorable, fan-like view. Pick mostly innovators and "
            "early adopters with strong purchase intent: acutely aware of the problem, eager for new "
            "things, willing to invest."
        )
    return (
        "IMPORTANT: no lenient evaluations. Mix supporters, opponents, skeptics and indifferent "
        "people in a balanced way to reproduce a diverse, demanding market."
    )


async def cast_personas(deps: AgentDeps, product: ProductInput) -> list[PersonaProfile]:
    """Generate the persona roster; ids are ``persona_<index>`` and colors cycle the palette."""
    custom = (product.custom_persona_prompt or "").strip()
    prompt = deps.render(
        "casting.jinja",
        product=product.safe_context(),
        persona_count=product.persona_count,
        custom_persona_prompt=custom,
        stance_instruction=stance_instruction(product.initial_interest),
        has_image=product.has_image,
    )
    response = await run_structured(
        deps,
        tier=ModelTier.PRO,
        prompt=prompt,
        schema=CastingResponse,
        context="CastingAgent",
        product=product,
    )
    personas = [
        PersonaProfile(
            id=f"persona_{index}",
            avatar_color=AVATAR_COLORS[index % len(AVATAR_COLORS)],
            **draft.model_dump(),
        )
        for index, draft in enumerate(response.personas)
    ]
    logger.info("Cast %d personas", len(personas))
    return personas
