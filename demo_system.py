"""
Console walkthrough of the full monitoring pipeline.

This script exercises:
1. Configuration loading and validation
2. Background-style ticking of the simulated sources
3. Alert aggregation for every facility
4. Stall cleaning and feedback posting

Run with: uv run python demo_system.py
"""

import asyncio

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from core.config import get_config, print_config_summary, validate_config
from core.domain.models import AlertSeverity, FeedbackSubmission, FeedbackType, StallStatus
from core.services.alerts import sorted_by_severity
from core.services.engine import MonitoringEngine

console = Console()


def show_configuration() -> bool:
    console.print(Panel("Configuration", style="blue"))
    try:
        validate_config()
        print_config_summary()
        return True
    except Exception as e:
        console.print(f"Configuration failed: {e}", style="red")
        return False


async def run_ticks(engine: MonitoringEngine, ticks: int) -> bool:
    console.print(Panel(f"Running {ticks} ticks", style="blue"))

    async with engine.ticker.ticking_session():
        async for report in engine.ticker.run_continuously():
            style = "green" if report.ok else "yellow"
            console.print(
                f"tick #{report.tick}: {report.advanced} advanced, "
                f"{len(report.failures)} failed in {report.duration_seconds:.4f}s",
                style=style,
            )
            if report.tick >= ticks:
                break
    return True


def show_facilities(engine: MonitoringEngine) -> bool:
    for summary in engine.list_facilities():
        console.print(Panel(f"{summary.name} ({summary.id}) - {summary.location}", style="cyan"))

        env = engine.current_environment(summary.id)
        env_table = Table(title="Environment")
        env_table.add_column("Metric", style="cyan")
        env_table.add_column("Value", style="white")
        env_table.add_row("Temperature", f"{env.temperature} °C")
        env_table.add_row("Humidity", f"{env.humidity} %")
        env_table.add_row("PM2.5", f"{env.pm25} µg/m³")
        env_table.add_row("Ammonia", f"{env.ammonia} ppm" + (" !" if env.is_ammonia_alert else ""))
        env_table.add_row("H2S", f"{env.h2s} ppm" + (" !" if env.is_h2s_alert else ""))
        console.print(env_table)

        supplies = engine.current_supplies(summary.id)
        supply_table = Table(title="Supplies")
        supply_table.add_column("Dispenser", style="cyan")
        supply_table.add_column("Level", style="white")
        for name, level in {**supplies.paper, **supplies.soap}.items():
            supply_table.add_row(name, f"{level:.1f} %")
        supply_table.add_row("water today", f"{supplies.water_usage} L")
        supply_table.add_row("power today", f"{supplies.power_usage} kWh")
        console.print(supply_table)

        show_alerts(engine, summary.id)
    return True


def show_alerts(engine: MonitoringEngine, facility_id: str) -> None:
    alerts = sorted_by_severity(engine.alerts_for(facility_id))
    alert_table = Table(title=f"Alerts for {facility_id}")
    alert_table.add_column("Severity", style="white")
    alert_table.add_column("Source", style="cyan")
    alert_table.add_column("Message", style="white")
    for alert in alerts:
        color = "red" if alert.severity is AlertSeverity.CRITICAL else "yellow"
        severity = f"[{color}]{alert.severity.value}[/{color}]"
        alert_table.add_row(severity, alert.source.value, alert.message)
    console.print(alert_table)


def exercise_mutations(engine: MonitoringEngine) -> bool:
    console.print(Panel("Cleaning and feedback", style="blue"))

    facility_id = engine.resolve_facility_id(None)
    roster = engine.toilet_status(facility_id)
    dirty = [
        stall.id for stall in roster.all_stalls() if stall.status is StallStatus.NEEDS_CLEANING
    ]
    for stall_id in dirty:
        engine.mark_cleaned(facility_id, stall_id)
        console.print(f"Cleaned {stall_id}", style="green")

    engine.submit_feedback(
        FeedbackSubmission(
            type=FeedbackType.REPORT, content="Soap dispenser is empty", facility_id=facility_id
        )
    )
    console.print("Posted a public report", style="green")
    show_alerts(engine, facility_id)
    return True


async def run_demo() -> None:
    console.print(Panel("Smart Restroom Monitor - System Walkthrough", style="bold blue"))

    config = get_config()
    engine = MonitoringEngine(config)

    steps = [
        ("Configuration", lambda: show_configuration()),
        ("Ticking", lambda: run_ticks(engine, 5)),
        ("Facilities", lambda: show_facilities(engine)),
        ("Mutations", lambda: exercise_mutations(engine)),
    ]

    results = []
    for step_name, step in steps:
        console.print(f"\n{'=' * 60}")
        try:
            outcome = step()
            if asyncio.iscoroutine(outcome):
                outcome = await outcome
            results.append((step_name, outcome))
        except Exception as e:
            console.print(f"{step_name} failed with exception: {e}", style="red")
            results.append((step_name, False))

    summary_table = Table(title="Walkthrough Summary")
    summary_table.add_column("Step", style="cyan")
    summary_table.add_column("Result", style="white")
    for step_name, ok in results:
        summary_table.add_row(step_name, "PASSED" if ok else "FAILED")
    console.print(summary_table)


if __name__ == "__main__":
    try:
        asyncio.run(run_demo())
    except KeyboardInterrupt:
        console.print("\nStopped by user", style="yellow")
