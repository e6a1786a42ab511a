"""Moderated group discussion over the surviving reactions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from focusgroup.agents.base import AgentDeps, run_structured
from focusgroup.llm.usage import ModelTier

if TYPE_CHECKING:
    from collections.abc import Sequence

    from focusgroup.models import PersonaProfile


@dataclass(frozen=True, slots=True)
class DiscussionParticipant:
    persona: PersonaProfile
    inner_voice: str
    interest_level: int
    question: str | None = None


class DiscussionSummary(BaseModel):
    summary: str = Field(description="Summary of who said what")
    dominant_opinion: str = Field(description="The prevailing opinion or mood of the room")
    key_phrases: list[str] = Field(default_factory=list, description="The most influential remarks")
    discussion_context: str = Field(
        min_length=1,
        description="Meeting wrap-up shown to each persona before the final decision",
    )


async def moderate_discussion(
    deps: AgentDeps,
    participants: Sequence[DiscussionParticipant],
) -> DiscussionSummary:
    """One aggregate call; participant order does not matter."""
    prompt = deps.render("discussion.jinja", participants=list(participants))
    return await run_structured(
        deps,
        tier=ModelTier.FLASH,
        prompt=prompt,
        schema=DiscussionSummary,
        context="DiscussionAgent",
    )
