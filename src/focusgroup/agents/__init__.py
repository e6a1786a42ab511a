"""Phase agents. Each turns one domain task into a single generation call."""

from focusgroup.agents.analyst import acceptance_rate, analyze
from focusgroup.agents.base import AgentDeps
from focusgroup.agents.casting import cast_personas
from focusgroup.agents.consumer import decide, interview, react, write_review
from focusgroup.agents.discussion import DiscussionParticipant, moderate_discussion
from focusgroup.agents.pivot import plan_improvement, results_from_states
from focusgroup.agents.research import fallback_competitor_data, research_competitors
from focusgroup.agents.sales import answer_question, generate_pitch

__all__ = [
    "AgentDeps",
    "DiscussionParticipant",
    "acceptance_rate",
    "analyze",
    "answer_question",
    "cast_personas",
    "decide",
    "fallback_competitor_data",
    "generate_pitch",
    "interview",
    "moderate_discussion",
    "plan_improvement",
    "react",
    "research_competitors",
    "results_from_states",
    "write_review",
]
