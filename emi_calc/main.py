"""Command-line interface for the EMI calculator.

This module uses the ``click`` library to implement a multi-command
interface. Users can compute full amortization schedules with lump-sum
payments and rate changes, view summaries or compare two loan scenarios.
Results can be printed to the terminal or exported to JSON, CSV, Excel or PDF
files.

The CLI is also the input-collection layer: every value is validated here
before the engine is invoked, since the engine itself never re-validates.
"""

from __future__ import annotations

import logging
import math
import shlex
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from .data_models import LoanInput, ScheduleEvent
from .engine import generate_schedule, summarize_schedule
from .export import ExportError, export_schedule
from .formatter import print_comparison, print_schedule, print_summary
from .utils import parse_amount, parse_iso_date, parse_percent

MAX_PREVIEW_ROWS = 120


def _split_event(item: str, kind: str) -> Tuple[str, str]:
    parts = item.split(":")
    if len(parts) != 2:
        raise click.BadParameter(f"{kind} must be in YYYY-MM-DD:VALUE format; got {item}")
    return parts[0], parts[1]


def parse_payment_strings(values: Tuple[str, ...]) -> List[ScheduleEvent]:
    """Parse ``YYYY-MM-DD:AMOUNT`` lump-sum payments."""
    events: List[ScheduleEvent] = []
    for item in values:
        day, amount_str = _split_event(item, "Payment")
        try:
            event_date = parse_iso_date(day)
            amount = parse_amount(amount_str)
        except ValueError as exc:
            raise click.BadParameter(str(exc))
        if amount <= 0:
            raise click.BadParameter(f"Payment amount must be positive; got {amount_str}")
        events.append(ScheduleEvent(date=event_date, amount=amount))
    return events


def parse_rate_change_strings(values: Tuple[str, ...]) -> List[ScheduleEvent]:
    """Parse ``YYYY-MM-DD:RATE`` interest rate changes."""
    events: List[ScheduleEvent] = []
    for item in values:
        day, rate_str = _split_event(item, "Rate change")
        try:
            event_date = parse_iso_date(day)
            new_rate = parse_percent(rate_str)
        except ValueError as exc:
            raise click.BadParameter(str(exc))
        if new_rate < 0:
            raise click.BadParameter(f"Rate must not be negative; got {rate_str}")
        events.append(ScheduleEvent(date=event_date, new_rate=new_rate))
    return events


def build_input_from_options(
    principal: str,
    rate: float,
    years: float,
    start_date: str,
    payment: Tuple[str, ...] = (),
    rate_change: Tuple[str, ...] = (),
) -> Tuple[LoanInput, List[ScheduleEvent]]:
    """Validate raw option values and build the engine inputs."""
    try:
        principal_value = parse_amount(principal)
        start_dt = parse_iso_date(start_date)
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    if principal_value <= 0:
        raise click.BadParameter("Principal must be positive")
    if rate is None or not math.isfinite(rate):
        raise click.BadParameter("Interest rate must be a finite number")
    if rate < 0:
        raise click.BadParameter("Interest rate must not be negative")
    if years is None or not math.isfinite(years):
        raise click.BadParameter("Duration must be a finite number")
    if years <= 0:
        raise click.BadParameter("Duration must be positive")
    loan = LoanInput(principal=principal_value, annual_rate=float(rate), years=float(years), start_date=start_dt)
    if loan.total_months < 1:
        raise click.BadParameter("Duration must be at least one month")
    events = parse_payment_strings(payment) + parse_rate_change_strings(rate_change)
    return loan, events


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log engine decisions to stderr")
def cli(verbose: bool) -> None:
    """An EMI loan calculator supporting lump-sum payments and rate changes."""
    _configure_logging(verbose)


def loan_options(func):
    """Options shared by every command that builds a loan."""
    options = [
        click.option("--principal", "-p", "principal", required=True, help="Loan amount (e.g. 250000 or 250k)"),
        click.option("--rate", "-r", "rate", required=True, type=float, help="Annual interest rate (percent)"),
        click.option("--years", "-y", "years", required=True, type=float, help="Loan duration in years"),
        click.option("--start-date", "-s", "start_date", required=True, help="Loan start date (YYYY-MM-DD)"),
        click.option("--payment", "payment", multiple=True, help="Lump-sum payment in YYYY-MM-DD:AMOUNT format"),
        click.option("--rate-change", "rate_change", multiple=True, help="Rate change in YYYY-MM-DD:RATE format"),
        click.option("--currency", "-c", "currency", default="USD", show_default=True, help="Currency code"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@cli.command()
@loan_options
@click.option("--output", "-o", "output", type=str, help="Output file path (.json, .csv, .xlsx or .pdf)")
@click.option("--full", "full", is_flag=True, help="Print every row instead of the first 120")
@click.option("--no-chart", "no_chart", is_flag=True, help="Leave the chart out of PDF reports")
def schedule(
    principal: str,
    rate: float,
    years: float,
    start_date: str,
    payment: Tuple[str, ...],
    rate_change: Tuple[str, ...],
    currency: str,
    output: Optional[str],
    full: bool,
    no_chart: bool,
) -> None:
    """Compute and print the full amortization schedule."""
    loan, events = build_input_from_options(principal, rate, years, start_date, payment, rate_change)
    rows = generate_schedule(loan, events)
    if output:
        path = Path(output)
        try:
            export_schedule(path, rows, loan, currency, include_chart=not no_chart)
        except ExportError as exc:
            raise click.ClickException(str(exc))
        click.echo(f"Schedule exported to {path}")
        return
    print_summary(summarize_schedule(rows), currency)
    if not full and len(rows) > MAX_PREVIEW_ROWS:
        click.echo(f"Schedule has {len(rows)} rows; showing first {MAX_PREVIEW_ROWS} rows.")
        rows = rows[:MAX_PREVIEW_ROWS]
    print_schedule(rows, currency)


@cli.command()
@loan_options
@click.option("--output", "-o", "output", type=str, help="Output file path (.json)")
def summary(
    principal: str,
    rate: float,
    years: float,
    start_date: str,
    payment: Tuple[str, ...],
    rate_change: Tuple[str, ...],
    currency: str,
    output: Optional[str],
) -> None:
    """Compute and print only the summary metrics for a loan."""
    loan, events = build_input_from_options(principal, rate, years, start_date, payment, rate_change)
    rows = generate_schedule(loan, events)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension")
        try:
            export_schedule(path, rows, loan, currency)
        except ExportError as exc:
            raise click.ClickException(str(exc))
        click.echo(f"Summary exported to {path}")
    else:
        print_summary(summarize_schedule(rows), currency)


def parse_scenario_opts(opts: str) -> Dict[str, Any]:
    """Map a quoted option string onto ``build_input_from_options`` arguments."""
    tokens = shlex.split(opts)
    params: Dict[str, Any] = {
        "principal": None,
        "rate": None,
        "years": None,
        "start_date": None,
        "payment": [],
        "rate_change": [],
    }
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if i + 1 >= len(tokens):
            raise click.BadParameter(f"Option {token} in scenario is missing a value")
        value = tokens[i + 1]
        try:
            if token in ("-p", "--principal"):
                params["principal"] = value
            elif token in ("-r", "--rate"):
                params["rate"] = float(value)
            elif token in ("-y", "--years"):
                params["years"] = float(value)
            elif token in ("-s", "--start-date"):
                params["start_date"] = value
            elif token == "--payment":
                params["payment"].append(value)
            elif token == "--rate-change":
                params["rate_change"].append(value)
            else:
                raise click.BadParameter(f"Unknown option in scenario: {token}")
        except ValueError:
            raise click.BadParameter(f"Invalid value for {token} in scenario: {value}")
        i += 2
    for required in ("principal", "rate", "years", "start_date"):
        if params[required] is None:
            raise click.BadParameter(f"Scenario missing required option {required}")
    params["payment"] = tuple(params["payment"])
    params["rate_change"] = tuple(params["rate_change"])
    return params


@cli.command()
@click.option("--scenario1", "scenario1", required=True, help="First scenario options quoted string")
@click.option("--scenario2", "scenario2", required=True, help="Second scenario options quoted string")
@click.option("--currency", "-c", "currency", default="USD", show_default=True, help="Currency code")
def compare(scenario1: str, scenario2: str, currency: str) -> None:
    """Compare two loan scenarios.

    Scenarios are provided as quoted option strings, for example:

        emi-calc compare --scenario1 "-p 300k -r 8 -y 20 -s 2024-01-01"
        --scenario2 "-p 300k -r 8 -y 20 -s 2024-01-01 --payment 2026-01-01:50000"
    """
    summaries = []
    for opts in (scenario1, scenario2):
        loan, events = build_input_from_options(**parse_scenario_opts(opts))
        result = summarize_schedule(generate_schedule(loan, events))
        if result is None:
            raise click.ClickException(f"Scenario produces no payments: {opts}")
        summaries.append(result)
    print_comparison(summaries[0], summaries[1], currency)


if __name__ == "__main__":
    cli()
