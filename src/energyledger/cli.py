"""Command-line interface for EnergyLedger reports."""

import sys
from pathlib import Path

import structlog
import typer
from pydantic import BaseModel
from rich.console import Console
from rich.table import Table

from energyledger.analytics import CostAnalyzer, DemandAnalyzer, SustainabilityAnalyzer
from energyledger.errors import InvalidInputError
from energyledger.ingestion import load_readings
from energyledger.models import QualityStatus, ReadingBatch
from energyledger.quality import ReadingQualityChecker

# Configure structured logging
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
)

app = typer.Typer(
    name="energyledger",
    help="Cost, demand and sustainability analytics for utility readings",
    no_args_is_help=True,
)
console = Console()

FILE_ARG = typer.Argument(..., help="JSON or CSV file with timestamp,value readings")
JSON_OPT = typer.Option(False, "--json", help="Print the report as JSON")

STATUS_STYLE = {
    "pass": "[green]PASS[/green]",
    "warn": "[yellow]WARN[/yellow]",
    "fail": "[red]FAIL[/red]",
}


def _load(path: Path) -> ReadingBatch:
    try:
        return load_readings(path)
    except InvalidInputError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e


def _print_json(model: BaseModel) -> None:
    console.print_json(model.model_dump_json(by_alias=True))


@app.command()
def costs(file: Path = FILE_ARG, as_json: bool = JSON_OPT) -> None:
    """Cost breakdown, metrics and saving opportunities."""
    batch = _load(file)
    report = CostAnalyzer().analyze_costs(batch)

    if as_json:
        _print_json(report)
        return

    b = report.breakdown
    table = Table(title="Cost Breakdown")
    table.add_column("Component", style="cyan")
    table.add_column("Amount", justify="right", style="bold")
    for name, value in [
        ("Peak energy", b.peak_cost),
        ("Off-peak energy", b.off_peak_cost),
        ("Demand charges", b.demand_charges),
        ("Fixed charges", b.fixed_charges),
        ("Taxes", b.taxes),
        ("Total", b.total),
    ]:
        table.add_row(name, f"${value:,.2f}")
    console.print(table)

    m = report.metrics
    console.print(f"Average cost: ${m.average_cost_per_kwh:.4f}/kWh")
    console.print(f"Demand cost:  ${m.demand_cost_per_kw:.2f}/kW")

    if report.saving_opportunities:
        opp_table = Table(title="Saving Opportunities")
        opp_table.add_column("Category", style="cyan")
        opp_table.add_column("Description")
        opp_table.add_column("Savings", justify="right", style="bold")
        opp_table.add_column("Priority")
        for opp in report.saving_opportunities:
            opp_table.add_row(
                opp.category.value,
                opp.description,
                f"${opp.potential_savings:,.2f}",
                opp.priority.value,
            )
        console.print(opp_table)

    if report.rejected_readings:
        console.print(f"[yellow]{report.rejected_readings} malformed records skipped[/yellow]")


@app.command()
def demand(file: Path = FILE_ARG, as_json: bool = JSON_OPT) -> None:
    """Demand profile with next-peak prediction and recommendations."""
    batch = _load(file)
    profile = DemandAnalyzer().analyze_demand(batch)

    if as_json:
        _print_json(profile)
        return

    console.print(f"Current demand:  [bold]{profile.current_demand:,.2f}[/bold] kW")
    console.print(f"Peak demand:     [bold]{profile.peak_demand:,.2f}[/bold] kW")
    console.print(f"Predicted peak:  [bold]{profile.predicted_peak:,.2f}[/bold] kW")
    console.print(f"Trend:           {profile.demand_trend.value}")
    console.print(f"Load factor:     {profile.real_time_metrics.load_factor:.2%}")

    for alert in profile.real_time_metrics.alerts:
        console.print(f"[red]{alert.type.value.upper()}[/red]: {alert.message}")

    if profile.recommendations:
        table = Table(title="Recommendations")
        table.add_column("Type", style="cyan")
        table.add_column("Action")
        table.add_column("Impact (kW)", justify="right", style="bold")
        table.add_column("Priority")
        for rec in profile.recommendations:
            table.add_row(rec.type.value, rec.action, f"{rec.impact:,.2f}", rec.priority.value)
        console.print(table)


@app.command()
def sustainability(file: Path = FILE_ARG, as_json: bool = JSON_OPT) -> None:
    """Carbon footprint, renewable share and sustainability score."""
    batch = _load(file)
    metrics = SustainabilityAnalyzer().analyze_sustainability(batch)

    if as_json:
        _print_json(metrics)
        return

    score = metrics.sustainability_score
    table = Table(title=f"Sustainability Score: {score.overall}/100")
    table.add_column("Component", style="cyan")
    table.add_column("Score", justify="right", style="bold")
    c = score.components
    table.add_row("Carbon", f"{c.carbon_score:.1f}")
    table.add_row("Renewable", f"{c.renewable_score:.1f}")
    table.add_row("Efficiency", f"{c.efficiency_score:.1f}")
    table.add_row("Waste", f"{c.waste_score:.1f}")
    console.print(table)

    console.print(f"Emissions:     {metrics.carbon_footprint.total_emissions:,.2f} kg CO2")
    console.print(f"Renewable use: {metrics.renewable_energy.percentage:.1f}%")

    for rec in score.recommendations:
        console.print(f"  [{rec.priority.value}] {rec.title}: {rec.description}")


@app.command()
def forecast(
    file: Path = FILE_ARG,
    daily: bool = typer.Option(False, help="30-day forecast instead of the next 24 hours"),
    as_json: bool = JSON_OPT,
) -> None:
    """Cost forecast with confidence intervals."""
    batch = _load(file)
    analyzer = CostAnalyzer()
    if daily:
        points = analyzer.generate_daily_forecast(batch.readings)
    else:
        points = analyzer.generate_forecast(batch.readings)

    if as_json:
        console.print_json(data=[p.model_dump(mode="json", by_alias=True) for p in points])
        return

    table = Table(title="Cost Forecast")
    table.add_column("Date", style="cyan")
    table.add_column("Predicted", justify="right", style="bold")
    table.add_column("Lower", justify="right")
    table.add_column("Upper", justify="right")
    date_format = "%Y-%m-%d" if daily else "%Y-%m-%d %H:%M"
    for p in points:
        table.add_row(
            p.date.strftime(date_format),
            f"${p.predicted_cost:,.2f}",
            f"${p.confidence_interval.lower:,.2f}",
            f"${p.confidence_interval.upper:,.2f}",
        )
    console.print(table)


@app.command()
def quality(file: Path = FILE_ARG, as_json: bool = JSON_OPT) -> None:
    """Run data quality checks on a readings file."""
    batch = _load(file)
    results = ReadingQualityChecker().check(batch)

    if as_json:
        console.print_json(data=[r.model_dump(mode="json") for r in results])
        return

    table = Table(title="Quality Check Results")
    table.add_column("Check", style="cyan")
    table.add_column("Status", style="bold")
    table.add_column("Message")
    for result in results:
        table.add_row(
            result.check_name,
            STATUS_STYLE.get(result.status.value, result.status.value),
            result.message,
        )
    console.print(table)

    passed = sum(1 for r in results if r.status == QualityStatus.PASS)
    console.print(f"\n[bold]{passed}/{len(results)} checks passed[/bold]")


@app.command()
def report(file: Path = FILE_ARG, as_json: bool = JSON_OPT) -> None:
    """Run quality checks and all three analyses."""
    if as_json:
        batch = _load(file)
        reports: dict[str, BaseModel] = {
            "costs": CostAnalyzer().analyze_costs(batch),
            "demand": DemandAnalyzer().analyze_demand(batch),
            "sustainability": SustainabilityAnalyzer().analyze_sustainability(batch),
        }
        data: dict[str, object] = {
            "quality": [r.model_dump(mode="json") for r in ReadingQualityChecker().check(batch)],
        }
        data.update({k: v.model_dump(mode="json", by_alias=True) for k, v in reports.items()})
        console.print_json(data=data)
        return

    console.print("[bold magenta]EnergyLedger report[/bold magenta]\n")

    console.rule("[bold]Step 1: Quality Checks[/bold]")
    quality(file=file, as_json=False)
    console.print()

    console.rule("[bold]Step 2: Costs[/bold]")
    costs(file=file, as_json=False)
    console.print()

    console.rule("[bold]Step 3: Demand[/bold]")
    demand(file=file, as_json=False)
    console.print()

    console.rule("[bold]Step 4: Sustainability[/bold]")
    sustainability(file=file, as_json=False)


if __name__ == "__main__":
    app()
