"""Main Typer application for focusgroup."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from focusgroup import analytics
from focusgroup.cli.errorhandler import handle_cli_errors
from focusgroup.config.settings import load_config
from focusgroup.logging_setup import configure_logging, console
from focusgroup.models import InteractionItem, InteractionType, ProductInput, SimulationResult
from focusgroup.orchestration.simulation import create_orchestrator

if TYPE_CHECKING:
    from focusgroup.llm.usage import TokenUsage
    from focusgroup.models import PersonaProfile, SalesPitch, SimulationLog, SimulationStatus

app = typer.Typer(
    name="focusgroup",
    help="Simulate how a panel of AI consumer personas reacts to a product pitch",
    add_completion=False,
)

logger = logging.getLogger(__name__)

_LOG_STYLES = {
    "thought": "italic cyan",
    "action": "bold green",
    "dialogue": "yellow",
    "info": "dim",
}


class ConsoleObserver:
    """Streams simulation events to the Rich console."""

    def __init__(self) -> None:
        self.usage: TokenUsage | None = None

    def on_status_change(self, status: SimulationStatus) -> None:
        console.rule(f"[bold]{status.value}[/bold]")

    def on_log(self, entry: SimulationLog) -> None:
        style = _LOG_STYLES.get(entry.type.value, "default")
        content = escape(entry.content)
        console.print(f"[bold]{escape(entry.actor)}[/bold] [{style}]{content}[/{style}]")

    def on_personas_ready(self, personas: list[PersonaProfile]) -> None:
        logger.debug("Personas ready: %s", ", ".join(p.name for p in personas))

    def on_consumer_update(self, persona_id: str, changes: dict[str, Any]) -> None:
        pass

    def on_progress(self, percent: int) -> None:
        console.print(f"[magenta]Progress: {percent}%[/magenta]")

    def on_pitch_ready(self, pitch: SalesPitch) -> None:
        console.print(Panel(escape(pitch.description), title=escape(pitch.catch_copy), border_style="green"))

    def on_token_usage(self, usage: TokenUsage) -> None:
        self.usage = usage


def _load_result(path: Path) -> SimulationResult:
    return SimulationResult.model_validate_json(path.read_text(encoding="utf-8"))


def _print_usage(usage: TokenUsage | None) -> None:
    if usage is None:
        return
    console.print(
        f"[dim]Tokens: {usage.total_tokens:,} ({usage.input_tokens:,} in / {usage.output_tokens:,} out), "
        f"{usage.api_calls} calls, estimated cost {usage.format_cost()}[/dim]"
    )


def _summary_table(result: SimulationResult) -> Table:
    table = Table(title=f"Market acceptance: {result.report.acceptance_rate}%")
    table.add_column("Persona", style="cyan")
    table.add_column("Age", justify="right")
    table.add_column("Occupation")
    table.add_column("Decision")
    table.add_column("WTP", justify="right")
    table.add_column("Rating", justify="right")

    reviews = {review.persona_id: review for review in result.reviews}
    for persona in result.personas:
        state = result.consumer_states.get(persona.id)
        review = reviews.get(persona.id)
        if persona.id in result.dropped_persona_ids or state is None or state.decision is None:
            decision = "[dim]dropped[/dim]"
        elif state.decision == "buy":
            decision = "[green]buy[/green]"
        else:
            decision = "[red]pass[/red]"
        table.add_row(
            escape(persona.name),
            str(persona.age),
            escape(persona.occupation),
            decision,
            f"¥{state.willingness_to_pay:,}" if state and state.willingness_to_pay is not None else "-",
            "★" * review.rating if review else "-",
        )
    return table


@app.callback()
def main() -> None:
    """Initialize CLI logging."""
    configure_logging()


@app.command()
def run(
    name: Annotated[str, typer.Option("--name", "-n", help="Product name")],
    description: Annotated[str, typer.Option("--description", "-d", help="What the product is and does")],
    price: Annotated[str | None, typer.Option(help="Asking price, free text (e.g. '¥1,980/month')")] = None,
    target: Annotated[str, typer.Option(help="Target customer hypothesis")] = "",
    personas: Annotated[int, typer.Option(min=1, max=20, help="Number of personas")] = 5,
    interest: Annotated[int, typer.Option(min=0, max=100, help="Initial interest dial (0-100)")] = 50,
    persona_prompt: Annotated[str | None, typer.Option(help="Custom instruction for persona casting")] = None,
    image: Annotated[
        Path | None,
        typer.Option(exists=True, dir_okay=False, readable=True, help="Product image to show the personas"),
    ] = None,
    discussion: Annotated[bool, typer.Option("--discussion/--no-discussion", help="Run a group discussion")] = False,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Write the result as JSON")] = None,
    debug: Annotated[bool, typer.Option(help="Show full tracebacks")] = False,
) -> None:
    """Run a full market simulation for a product."""
    with handle_cli_errors(debug=debug):
        image_bytes: bytes | None = None
        mime_type: str | None = None
        if image is not None:
            image_bytes = image.read_bytes()
            mime_type = mimetypes.guess_type(image.name)[0] or "image/png"

        product = ProductInput(
            name=name,
            description=description,
            price=price,
            target_hypothesis=target,
            persona_count=personas,
            initial_interest=interest,
            custom_persona_prompt=persona_prompt,
            product_image=image_bytes,
            image_mime_type=mime_type,
            enable_group_discussion=discussion,
        )
        observer = ConsoleObserver()
        orchestrator = create_orchestrator(load_config(), observer=observer)
        result = asyncio.run(orchestrator.run_simulation(product))

        console.print(_summary_table(result))
        if result.dropped_persona_ids:
            console.print(f"[yellow]{len(result.dropped_persona_ids)} persona(s) dropped out.[/yellow]")
        _print_usage(observer.usage)

        if output is not None:
            output.write_text(result.model_dump_json(indent=2), encoding="utf-8")
            console.print(f"[green]Result written to {output}[/green]")


@app.command()
def interview(
    result_path: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="Result JSON from 'run'")],
    persona_id: Annotated[str, typer.Argument(help="Persona id, e.g. persona_0")],
    question: Annotated[str, typer.Argument(help="Question for the persona")],
    save: Annotated[bool, typer.Option(help="Append the exchange to the persona's history in the file")] = False,
    debug: Annotated[bool, typer.Option(help="Show full tracebacks")] = False,
) -> None:
    """Ask a persona from a finished simulation a follow-up question."""
    with handle_cli_errors(debug=debug):
        result = _load_result(result_path)
        persona = next((p for p in result.personas if p.id == persona_id), None)
        if persona is None:
            known = ", ".join(p.id for p in result.personas)
            console.print(f"[bold red]Unknown persona:[/bold red] {persona_id} (known: {known})")
            raise typer.Exit(1)

        state = result.consumer_states.get(persona_id)
        history = list(state.interaction_history) if state else []

        observer = ConsoleObserver()
        orchestrator = create_orchestrator(load_config(), observer=observer)
        answer = asyncio.run(orchestrator.run_direct_interview(persona, result.product, history, question))
        console.print(Panel(escape(answer), title=f"{persona.name} ({persona.age}, {persona.occupation})"))
        _print_usage(observer.usage)

        if save and state is not None:
            interest = state.interest_level
            state.interaction_history = [
                *history,
                InteractionItem(type=InteractionType.USER_QUESTION, content=question, interest_level=interest),
                InteractionItem(type=InteractionType.PERSONA_ANSWER, content=answer, interest_level=interest),
            ]
            result_path.write_text(result.model_dump_json(indent=2), encoding="utf-8")
            console.print(f"[green]Interview saved to {result_path}[/green]")


@app.command()
def improve(
    result_path: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="Result JSON from 'run'")],
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Write the plan as JSON")] = None,
    debug: Annotated[bool, typer.Option(help="Show full tracebacks")] = False,
) -> None:
    """Generate an improvement plan from a finished simulation."""
    with handle_cli_errors(debug=debug):
        result = _load_result(result_path)
        observer = ConsoleObserver()
        orchestrator = create_orchestrator(load_config(), observer=observer)
        plan = asyncio.run(
            orchestrator.generate_improvement_plan(
                result.product,
                result.personas,
                result.consumer_states,
                result.pitch,
                result.competitor_research,
            )
        )

        console.print(
            Panel(
                escape(plan.executive_summary),
                title=escape(f"{plan.title}: {plan.catch_copy}"),
                border_style="green",
            )
        )
        sections = [
            ("Problem & solution", plan.problem_solution),
            ("Service & pricing", plan.service_and_pricing),
            *((section.title, section.content) for section in plan.dynamic_sections),
            ("Adoption scenario", plan.simulation),
            ("Conclusion", plan.conclusion),
        ]
        for title, content in sections:
            console.print(Panel(escape(content), title=escape(title)))
        _print_usage(observer.usage)

        if output is not None:
            output.write_text(plan.model_dump_json(indent=2), encoding="utf-8")
            console.print(f"[green]Plan written to {output}[/green]")


@app.command()
def stats(
    result_path: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="Result JSON from 'run'")],
    debug: Annotated[bool, typer.Option(help="Show full tracebacks")] = False,
) -> None:
    """Print demographic, price and score breakdowns for a finished simulation."""
    with handle_cli_errors(debug=debug):
        result = _load_result(result_path)

        ages = Table(title="Decisions by age")
        ages.add_column("Bracket")
        ages.add_column("Buy", justify="right", style="green")
        ages.add_column("Pass", justify="right", style="red")
        for row in analytics.demographics(result):
            ages.add_row(row.bracket, str(row.buy), str(row.passed))
        console.print(ages)

        sensitivity = analytics.price_sensitivity(result)
        prices = Table(title=f"Willingness to pay (asking ¥{sensitivity.asking_price:,})")
        prices.add_column("Persona", style="cyan")
        prices.add_column("WTP", justify="right")
        prices.add_column("Decision")
        for point in sensitivity.points:
            prices.add_row(escape(point.name), f"¥{point.willingness_to_pay:,}", point.decision or "-")
        console.print(prices)

        scores = analytics.average_scores(result)
        if scores:
            console.print(
                "Average scores: " + ", ".join(f"{axis} {value}" for axis, value in scores.items())
            )
