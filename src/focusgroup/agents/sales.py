"""Sales agent: the product pitch and answers to persona questions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from focusgroup.agents.base import AgentDeps, run_structured
from focusgroup.llm.usage import ModelTier
from focusgroup.models import SalesPitch

if TYPE_CHECKING:
    from focusgroup.models import ProductInput


class PitchResponse(BaseModel):
    catch_copy: str = Field(min_length=1)
    description: str = Field(min_length=1, description="Around 150 characters of sales pitch")
    key_benefits: list[str]


class AnswerResponse(BaseModel):
    answer: str = Field(min_length=1)


async def generate_pitch(deps: AgentDeps, product: ProductInput) -> SalesPitch:
    prompt = deps.render("pitch.jinja", product=product.safe_context(), has_image=product.has_image)
    response = await run_structured(
        deps,
        tier=ModelTier.PRO,
        prompt=prompt,
        schema=PitchResponse,
        context="SalesAgent",
        product=product,
    )
    return SalesPitch(**response.model_dump())


async def answer_question(deps: AgentDeps, question: str, product: ProductInput) -> str:
    """Answer a persona's question using only what the product context states."""
    prompt = deps.render("sales_answer.jinja", question=question, product=product.safe_context())
    response = await run_structured(
        deps,
        tier=ModelTier.FLASH,
        prompt=prompt,
        schema=AnswerResponse,
        context="SalesAnswer",
    )
    return response.answer
