"""Aggregations over a finished simulation, ready for charts or tables."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from focusgroup.models import Decision, SimulationResult

AGE_BRACKETS = ("20s", "30s", "40s", "50s+")
SCORE_AXES = ("appeal", "novelty", "clarity", "relevance", "value")
DEFAULT_INTEREST = 50

_FIRST_INTEGER_RE = re.compile(r"\d+")


@dataclass(frozen=True, slots=True)
class AgeBracketCount:
    bracket: str
    buy: int = 0
    passed: int = 0


@dataclass(frozen=True, slots=True)
class PricePoint:
    name: str
    willingness_to_pay: int
    decision: Decision | None


@dataclass(frozen=True, slots=True)
class PriceSensitivity:
    asking_price: int
    points: list[PricePoint] = field(default_factory=list)


def age_bracket(age: int) -> str:
    """Anyone under 30 falls in the 20s bracket."""
    if age < 30:
        return "20s"
    if age < 40:
        return "30s"
    if age < 50:
        return "40s"
    return "50s+"


def demographics(result: SimulationResult) -> list[AgeBracketCount]:
    """Buy/pass counts per age bracket, skipping empty brackets.

    Personas missing from the report breakdown count as a pass.
    """
    decisions = {entry.id: entry.decision for entry in result.report.persona_breakdown}
    counts = {bracket: [0, 0] for bracket in AGE_BRACKETS}
    for persona in result.personas:
        bucket = counts[age_bracket(persona.age)]
        if decisions.get(persona.id) == "buy":
            bucket[0] += 1
        else:
            bucket[1] += 1
    return [
        AgeBracketCount(bracket=bracket, buy=buy, passed=passed)
        for bracket, (buy, passed) in counts.items()
        if buy + passed > 0
    ]


def parse_asking_price(price: str | None) -> int:
    """First integer in the price text with thousands separators removed, else 0."""
    match = _FIRST_INTEGER_RE.search((price or "").replace(",", ""))
    return int(match.group()) if match else 0


def price_sensitivity(result: SimulationResult) -> PriceSensitivity:
    points = []
    for persona in result.personas:
        state = result.consumer_states.get(persona.id)
        points.append(
            PricePoint(
                name=persona.name,
                willingness_to_pay=(state.willingness_to_pay or 0) if state else 0,
                decision=state.decision if state else None,
            )
        )
    return PriceSensitivity(asking_price=parse_asking_price(result.product.price), points=points)


def average_scores(result: SimulationResult) -> dict[str, float]:
    """Mean of each score axis over the personas that were scored, one decimal."""
    scores = [
        state.detailed_score
        for persona in result.personas
        if (state := result.consumer_states.get(persona.id)) is not None and state.detailed_score is not None
    ]
    if not scores:
        return {}
    return {axis: round(sum(getattr(score, axis) for score in scores) / len(scores), 1) for axis in SCORE_AXES}


def sentiment_trend(result: SimulationResult) -> list[dict[str, object]]:
    """Interest per persona at each history turn, framed by the initial and final levels.

    A persona with fewer turns carries its previous level forward.
    """
    initial = result.product.initial_interest
    steps: list[dict[str, object]] = [{"name": "initial"} | {p.name: initial for p in result.personas}]

    histories = {
        persona.id: state.interaction_history
        for persona in result.personas
        if (state := result.consumer_states.get(persona.id)) is not None
    }
    max_turns = max((len(history) for history in histories.values()), default=0)

    for turn in range(max_turns):
        previous = steps[-1]
        step: dict[str, object] = {"name": f"Turn {turn + 1}"}
        for persona in result.personas:
            history = histories.get(persona.id, [])
            level = history[turn].interest_level if turn < len(history) else None
            step[persona.name] = level if level is not None else previous[persona.name]
        steps.append(step)

    final: dict[str, object] = {"name": "final"}
    for persona in result.personas:
        state = result.consumer_states.get(persona.id)
        final[persona.name] = state.interest_level if state else DEFAULT_INTEREST
    steps.append(final)
    return steps
