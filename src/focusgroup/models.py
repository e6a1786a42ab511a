"""Domain models for a market simulation run.

Profiles, logs and results are frozen once created; ``ConsumerState`` is the
only mutable record and is owned by the orchestration state store.
"""

from __future__ import annotations

import time
import uuid
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


class SimulationStatus(StrEnum):
    IDLE = "idle"
    CASTING = "casting"
    PRESENTATION = "presentation"
    SIMULATION_RUNNING = "simulation_running"
    DISCUSSION = "discussion"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    ERROR = "error"


class ConsumerStatus(StrEnum):
    WAITING = "waiting"
    LISTENING = "listening"
    THINKING = "thinking"
    ASKING = "asking"
    DISCUSSING = "discussing"
    DECIDED = "decided"
    REVIEWING = "reviewing"


class InteractionType(StrEnum):
    THOUGHT = "thought"
    QUESTION = "question"
    ANSWER = "answer"
    DISCUSSION = "discussion"
    DECISION = "decision"
    USER_QUESTION = "user-question"
    PERSONA_ANSWER = "persona-answer"


class LogPhase(StrEnum):
    CASTING = "casting"
    PRESENTATION = "presentation"
    INTERACTION = "interaction"
    DISCUSSION = "discussion"
    REVIEW = "review"
    ANALYSIS = "analysis"
    ERROR = "error"


class LogType(StrEnum):
    THOUGHT = "thought"
    ACTION = "action"
    DIALOGUE = "dialogue"
    INFO = "info"


class Actor(StrEnum):
    """Non-persona actors that appear in the simulation log."""

    SYSTEM = "SYSTEM"
    SALES = "SALES"
    ANALYST = "ANALYST"
    MODERATOR = "MODERATOR"
    RESEARCHER = "RESEARCHER"


Decision = Literal["buy", "pass"]

AVATAR_COLORS = (
    "#ef4444",
    "#f97316",
    "#f59e0b",
    "#84cc16",
    "#10b981",
    "#06b6d4",
    "#3b82f6",
    "#8b5cf6",
    "#d946ef",
    "#f43f5e",
)


def _now() -> float:
    return time.time()


class ProductInput(BaseModel):
    """The product pitch under test and the knobs of the run."""

    name: str
    description: str
    price: str | None = None
    target_hypothesis: str = ""
    persona_count: int = Field(default=5, ge=1, le=20)
    initial_interest: int = Field(default=50, ge=0, le=100)
    custom_persona_prompt: str | None = None
    product_image: bytes | None = Field(default=None, exclude=True, repr=False)
    image_mime_type: str | None = None
    enable_group_discussion: bool = False

    def safe_context(self) -> dict[str, object]:
        """Return the product fields that are safe to embed in a text prompt."""
        return self.model_dump(exclude={"product_image", "image_mime_type"})

    @property
    def has_image(self) -> bool:
        return bool(self.product_image and self.image_mime_type)


class PersonaProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    age: int
    gender: str = ""
    occupation: str = ""
    income_level: str = ""
    traits: list[str] = Field(default_factory=list)
    current_pain_points: str = ""
    values: str = ""
    family_structure: str = ""
    tech_literacy: str = ""
    info_sources: list[str] = Field(default_factory=list)
    hobbies: list[str] = Field(default_factory=list)
    avatar_color: str | None = None


class InteractionItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: InteractionType
    content: str
    timestamp: float = Field(default_factory=_now)
    interest_level: int | None = None


class DetailedScore(BaseModel):
    """Five-axis evaluation, each axis on a 1-5 scale (0 means not scored)."""

    model_config = ConfigDict(frozen=True)

    appeal: int = Field(default=0, ge=0, le=5)
    novelty: int = Field(default=0, ge=0, le=5)
    clarity: int = Field(default=0, ge=0, le=5)
    relevance: int = Field(default=0, ge=0, le=5)
    value: int = Field(default=0, ge=0, le=5)


class ConsumerState(BaseModel):
    """Per-persona mutable state, updated phase by phase."""

    model_config = ConfigDict(validate_assignment=True)

    profile: PersonaProfile
    status: ConsumerStatus = ConsumerStatus.WAITING
    inner_voice: str | None = None
    decision: Decision | None = None
    decision_reason: str | None = None
    willingness_to_pay: int | None = None
    target_price_condition: str | None = None
    detailed_score: DetailedScore | None = None
    key_insight: str | None = None
    attribute_reasoning: str | None = None
    reverse_question: str | None = None
    interest_level: int = Field(default=50, ge=0, le=100)
    questions_asked: int = 0
    interaction_history: list[InteractionItem] = Field(default_factory=list)

    @property
    def id(self) -> str:
        return self.profile.id


class ReviewData(BaseModel):
    model_config = ConfigDict(frozen=True)

    persona_id: str
    persona_name: str
    rating: int = Field(ge=1, le=5)
    title: str
    body: str
    nps: int = Field(ge=0, le=10)


class QAPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str
    answer: str


class ConsumerResult(BaseModel):
    """Final outcome of one persona's run, used as input to analysis."""

    model_config = ConfigDict(frozen=True)

    persona_id: str
    final_decision: Decision
    decision_reason: str
    willingness_to_pay: int = 0
    target_price_condition: str | None = None
    detailed_score: DetailedScore = Field(default_factory=DetailedScore)
    key_insight: str = ""
    review: ReviewData | None = None
    logs: list[str] = Field(default_factory=list)
    qa_history: list[QAPair] = Field(default_factory=list)
    attribute_reasoning: str | None = None
    reverse_question: str | None = None


class SalesPitch(BaseModel):
    model_config = ConfigDict(frozen=True)

    catch_copy: str
    description: str
    key_benefits: list[str] = Field(default_factory=list)


class Source(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    uri: str


class CompetitorData(BaseModel):
    model_config = ConfigDict(frozen=True)

    summary: str
    sources: list[Source] = Field(default_factory=list)


MAP_LIMIT = 10.0


def _clamp_to_map(value: object) -> object:
    if isinstance(value, int | float) and not isinstance(value, bool):
        return min(max(float(value), -MAP_LIMIT), MAP_LIMIT)
    return value


Coordinate = Annotated[float, BeforeValidator(_clamp_to_map)]


class PositioningPoint(BaseModel):
    """A product on the positioning map; coordinates are clamped to [-10, 10]."""

    model_config = ConfigDict(frozen=True)

    name: str
    x: Coordinate
    y: Coordinate
    is_ours: bool = False
    description: str | None = None


class PositioningMap(BaseModel):
    model_config = ConfigDict(frozen=True)

    axis_x: str
    axis_y: str
    points: list[PositioningPoint] = Field(default_factory=list)


class PersonaBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    decision: Decision


class AnalysisReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    markdown: str
    acceptance_rate: int
    top_rejection_reasons: list[str] = Field(default_factory=list)
    killer_phrases: list[str] = Field(default_factory=list)
    persona_breakdown: list[PersonaBreakdown] = Field(default_factory=list)
    positioning_map: PositioningMap | None = None


class PlanSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    content: str


class ImprovementPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    catch_copy: str
    executive_summary: str
    problem_solution: str
    service_and_pricing: str
    dynamic_sections: list[PlanSection] = Field(default_factory=list)
    simulation: str
    conclusion: str


class SimulationLog(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    actor: str
    phase: LogPhase
    type: LogType
    content: str
    timestamp: float = Field(default_factory=_now)


class SimulationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    product: ProductInput
    personas: list[PersonaProfile]
    logs: list[SimulationLog]
    reviews: list[ReviewData]
    report: AnalysisReport
    pitch: SalesPitch
    competitor_research: CompetitorData | None = None
    consumer_states: dict[str, ConsumerState] = Field(default_factory=dict)
    dropped_persona_ids: list[str] = Field(default_factory=list)
