import json
from datetime import date

import pytest

from focusgroup.agents.analyst import acceptance_rate, analyze, average_willingness_to_pay, round_half_up
from focusgroup.agents.pivot import plan_improvement, results_from_states
from focusgroup.models import (
    CompetitorData,
    ConsumerResult,
    ConsumerState,
    DetailedScore,
    PersonaProfile,
    SalesPitch,
)

PERSONAS = [
    PersonaProfile(id="persona_0", name="Aiko", age=34, occupation="nurse"),
    PersonaProfile(id="persona_1", name="Kenji", age=41, occupation="teacher"),
]
PITCH = SalesPitch(catch_copy="Sleep deeper", description="A smart pillow.")


def result(persona_id: str, decision: str, wtp: int = 0) -> ConsumerResult:
    return ConsumerResult(
        persona_id=persona_id,
        final_decision=decision,
        decision_reason="because",
        willingness_to_pay=wtp,
    )


@pytest.mark.parametrize(
    ("decisions", "expected"),
    [
        ([], 0),
        (["buy"], 100),
        (["buy", "pass"], 50),
        (["buy"] + ["pass"] * 7, 13),
        (["buy", "pass", "pass"], 33),
        (["buy", "buy", "pass"], 67),
    ],
)
def test_acceptance_rate_rounds_half_up(decisions, expected):
    results = [result(f"persona_{i}", d) for i, d in enumerate(decisions)]
    assert acceptance_rate(results) == expected


def test_round_half_up_and_average_wtp():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert average_willingness_to_pay([result("a", "buy", 1000), result("b", "pass", 1001)]) == 1001
    assert average_willingness_to_pay([]) == 0


@pytest.mark.asyncio
async def test_analyze_computes_rate_and_breakdown_locally(make_service, make_deps, product):
    service = make_service()
    results = [result("persona_0", "buy", 5000), result("persona_1", "pass", 500)]

    report = await analyze(
        make_deps(service),
        product,
        PERSONAS,
        results,
        PITCH,
        CompetitorData(summary="Rival A"),
        report_date=date(2025, 1, 31),
    )

    assert report.acceptance_rate == 50
    assert [(b.id, b.decision) for b in report.persona_breakdown] == [("persona_0", "buy"), ("persona_1", "pass")]
    assert report.markdown == "# Report"
    prompt = service.requests[0].prompt_text
    assert "2025-01-31" in prompt
    assert "Rival A" in prompt
    assert service.requests[0].model == make_deps(service).models.pro


@pytest.mark.asyncio
async def test_analyze_clamps_out_of_range_positioning_points(make_service, make_deps, product):
    positioning = {
        "axis_x": "Price",
        "axis_y": "Comfort",
        "points": [
            {"name": "Us", "x": 10.5, "y": -12, "is_ours": True},
            {"name": "Rival A", "x": -3, "y": 4},
        ],
    }
    service = make_service(
        ReportResponse=lambda _: json.dumps({"markdown": "# Report", "positioning_map": positioning})
    )

    report = await analyze(make_deps(service), product, PERSONAS, [result("persona_0", "buy")], PITCH, None)

    assert len(service.requests) == 1
    ours, rival = report.positioning_map.points
    assert (ours.x, ours.y) == (10.0, -10.0)
    assert (rival.x, rival.y) == (-3.0, 4.0)


def test_results_from_states_fills_defaults():
    states = {
        "persona_0": ConsumerState(
            profile=PERSONAS[0],
            decision="buy",
            decision_reason="love it",
            willingness_to_pay=3000,
            detailed_score=DetailedScore(appeal=5, novelty=4, clarity=4, relevance=5, value=3),
        ),
        "persona_1": ConsumerState(profile=PERSONAS[1]),
    }
    extra = PersonaProfile(id="persona_9", name="Ghost", age=50)

    results = results_from_states([*PERSONAS, extra], states)

    assert [r.persona_id for r in results] == ["persona_0", "persona_1"]
    assert results[0].final_decision == "buy"
    assert results[0].detailed_score.appeal == 5
    assert results[1].final_decision == "pass"
    assert results[1].willingness_to_pay == 0
    assert results[1].detailed_score == DetailedScore()


@pytest.mark.asyncio
async def test_plan_improvement_returns_plan(make_service, make_deps, product):
    service = make_service()

    plan = await plan_improvement(
        make_deps(service),
        product,
        PERSONAS,
        [result("persona_0", "pass", 1500)],
        PITCH,
        None,
    )

    assert plan.title == "SleepWell Lite"
    assert plan.dynamic_sections[0].title == "Channels"
    prompt = service.requests[0].prompt_text
    assert "Aiko" in prompt
    assert "¥1,500" in prompt
