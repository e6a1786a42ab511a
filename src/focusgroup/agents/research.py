"""Competitor research agent, grounded with web search."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from focusgroup.agents.base import AgentDeps, build_contents
from focusgroup.llm.service import GenerationRequest
from focusgroup.llm.usage import ModelTier
from focusgroup.models import CompetitorData

if TYPE_CHECKING:
    from focusgroup.models import ProductInput

logger = logging.getLogger(__name__)

NO_COMPETITOR_DATA = "(no competitor data)"
MIN_SUMMARY_LENGTH = 10


def fallback_competitor_data() -> CompetitorData:
    return CompetitorData(summary=NO_COMPETITOR_DATA, sources=[])


async def research_competitors(
    deps: AgentDeps,
    product: ProductInput,
    *,
    timeout: float | None = None,
) -> CompetitorData:
    """Summarize real competitors found through web search.

    Search grounding rules out a response schema, so the summary is free text.
    """
    prompt = deps.render("research.jinja", product=product.safe_context())
    request = GenerationRequest(
        model=deps.model_for(ModelTier.PRO),
        contents=build_contents(prompt),
        web_search=True,
    )
    response = await deps.invoker.invoke(
        deps.service,
        request,
        "CompetitorResearcher",
        validator=lambda text: len(text) > MIN_SUMMARY_LENGTH,
        timeout=timeout,
    )
    deps.report_usage(response, ModelTier.PRO)
    logger.info("Competitor research returned %d sources", len(response.sources))
    return CompetitorData(summary=response.text or NO_COMPETITOR_DATA, sources=list(response.sources))
