"""Output helpers for the EMI calculator.

This module provides the currency formatter shared by the terminal output,
the web front end and the exporters, together with simple functions that
render schedules and summaries in a tabular text format using ``click``.
Formatting is deterministic: amounts are always shown in the en-US style
(comma thousands separator, dot decimal separator, two fraction digits)
regardless of the process locale.
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

import click

from .data_models import PeriodRow, ScheduleSummary

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "INR": "₹",
    "JPY": "¥",
    "CNY": "CN¥",
    "CAD": "CA$",
    "AUD": "A$",
}


def format_currency(amount: float, currency_code: str) -> str:
    """Format ``amount`` as money in ``currency_code`` with two fraction digits.

    Known codes use their symbol (``$1,234.50``); any other code is shown as
    a prefix followed by a space (``PLN 1,234.50``).
    """
    code = currency_code.upper()
    quantized = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if quantized < 0 else ""
    digits = f"{abs(quantized):,.2f}"
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{sign}{code} {digits}"
    return f"{sign}{symbol}{digits}"


def format_rate(rate: float) -> str:
    return f"{rate:.2f}%"


def format_period_label(dt: date) -> str:
    """Short month label used in tables and charts, e.g. ``Jan 2024``."""
    return dt.strftime("%b %Y")


def print_summary(summary: Optional[ScheduleSummary], currency: str) -> None:
    """Print the summary of a schedule in a human-readable format."""
    if summary is None:
        click.echo("No payments scheduled.")
        return
    click.echo("Summary")
    click.echo("-" * 72)
    click.echo(f"Monthly EMI        : {format_currency(summary.first_installment, currency)}")
    click.echo(f"Total interest     : {format_currency(summary.total_interest, currency)}")
    if summary.total_lump_sum:
        click.echo(f"Total lump sums    : {format_currency(summary.total_lump_sum, currency)}")
    click.echo(f"Total payment      : {format_currency(summary.total_payment, currency)}")
    click.echo(f"Payoff date        : {format_period_label(summary.payoff_date)}")
    click.echo(f"Payments made      : {summary.payments_made}")
    click.echo("-" * 72)


def print_schedule(schedule: Iterable[PeriodRow], currency: str) -> None:
    """Print the amortization schedule as a simple tab separated table."""
    headers = ["Month", "Date", "EMI", "Principal", "Rate", "Interest", "Bulk", "Balance"]
    click.echo("\t".join(headers))
    for row in schedule:
        cells = [
            str(row.month),
            format_period_label(row.date),
            format_currency(row.installment, currency),
            format_currency(row.principal_component, currency),
            format_rate(row.annual_rate),
            format_currency(row.interest_component, currency),
            format_currency(row.lump_sum, currency) if row.lump_sum > 0 else "-",
            format_currency(row.balance, currency),
        ]
        click.echo("\t".join(cells))


def print_comparison(s1: ScheduleSummary, s2: ScheduleSummary, currency: str) -> None:
    """Print a comparison of two loan summaries side by side.

    The difference column is scenario2 - scenario1, so a negative value means
    the second scenario is cheaper or shorter.
    """
    click.echo("Comparison")
    click.echo("=" * 72)
    click.echo(f"{'Metric':20s} {'Scenario1':>16s} {'Scenario2':>16s} {'Difference':>16s}")
    for label, key in (
        ("First EMI", "first_installment"),
        ("Total interest", "total_interest"),
        ("Total payment", "total_payment"),
    ):
        v1 = getattr(s1, key)
        v2 = getattr(s2, key)
        click.echo(
            f"{label:20s} {format_currency(v1, currency):>16s} "
            f"{format_currency(v2, currency):>16s} {format_currency(v2 - v1, currency):>16s}"
        )
    diff = s2.payments_made - s1.payments_made
    click.echo(f"{'Payments made':20s} {s1.payments_made:>16d} {s2.payments_made:>16d} {diff:>16d}")
    click.echo("=" * 72)
