"""Core calculation engine for the EMI calculator.

This module implements the financial logic required to build an amortization
schedule for a fixed-installment loan with a reducing balance. The schedule is
walked month by month; dated events (lump-sum principal payments and interest
rate changes) are attributed to the period whose window contains them and the
installment is re-amortized whenever one of them changes the loan.

Results are returned as a list of ``PeriodRow`` objects. Summary statistics
and chart series are derived from that list by ``summarize_schedule`` and
``chart_series``.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .data_models import LoanInput, PeriodRow, ScheduleEvent, ScheduleSummary
from .utils import add_months, parse_iso_date

logger = logging.getLogger(__name__)

# Balances at or below this amount are treated as paid off.
PAYOFF_TOLERANCE = 0.01

# Above this many rows, chart series are aggregated per calendar year.
CHART_AGGREGATION_THRESHOLD = 60


def calculate_installment(balance: float, monthly_rate: float, remaining_months: int) -> float:
    """Return the fixed monthly installment (EMI) that amortizes ``balance``.

    The formula is:

        installment = B * r * (1 + r)^n / ((1 + r)^n - 1)

    where ``B`` is the balance, ``r`` is the monthly interest rate and ``n`` is
    the number of remaining payments. When the interest rate is zero, the
    payment simplifies to ``B / n``. With no remaining months the whole
    balance is due at once.
    """
    if remaining_months <= 0:
        return balance
    if monthly_rate == 0:
        return balance / remaining_months
    factor = (1 + monthly_rate) ** remaining_months
    return balance * monthly_rate * factor / (factor - 1)


def _monthly_rate(annual_rate: float) -> float:
    return annual_rate / 12 / 100


def generate_schedule(loan: LoanInput, events: Iterable[ScheduleEvent] = ()) -> List[PeriodRow]:
    """Compute the amortization schedule for a loan.

    Parameters
    ----------
    loan: LoanInput
        Validated loan parameters.
    events: Iterable[ScheduleEvent]
        Lump-sum payments and rate changes in any order. The sequence is
        copied; neither it nor its items are modified.

    Returns
    -------
    List[PeriodRow]
        One row per month until the balance is paid off or the nominal
        duration is exhausted, whichever comes first.

    Notes
    -----
    Within one period the lump sums are summed and the last rate change wins.
    The lump sum reduces the balance before the period's interest accrues. A
    rate change re-amortizes the balance over the remaining months including
    the current one, so it takes effect immediately. A lump sum on its own
    re-amortizes over the months after the current one, so the lower
    installment starts with the next period. Events dated on or before the
    start date, or after the last period, are never applied. Period dates
    clamp to the end of a shorter month (a Jan 31 start gives Feb 29) rather
    than rolling over into the following month.
    """
    balance = float(loan.principal)
    annual_rate = float(loan.annual_rate)
    monthly_rate = _monthly_rate(annual_rate)
    total_months = loan.total_months
    start_date = loan.start_date

    pending = sorted(events, key=lambda e: e.date)
    processed = [False] * len(pending)

    current_installment = calculate_installment(balance, monthly_rate, total_months)
    schedule: List[PeriodRow] = []

    for month in range(1, total_months + 1):
        if balance <= PAYOFF_TOLERANCE:
            break

        current_date = add_months(start_date, month)
        previous_date = add_months(start_date, month - 1)

        lump_sum = 0.0
        rate_changed = False
        for index, event in enumerate(pending):
            if processed[index] or not previous_date < event.date <= current_date:
                continue
            if event.is_lump_sum:
                lump_sum += event.amount
            if event.is_rate_change:
                annual_rate = event.new_rate
                monthly_rate = _monthly_rate(annual_rate)
                rate_changed = True
            processed[index] = True

        if lump_sum > 0:
            lump_sum = min(lump_sum, balance)
            balance -= lump_sum
            logger.debug("Month %d: lump sum %.2f applied, balance %.2f", month, lump_sum, balance)

        interest = balance * monthly_rate

        if rate_changed and balance > PAYOFF_TOLERANCE:
            current_installment = calculate_installment(balance, monthly_rate, total_months - month + 1)
            logger.debug(
                "Month %d: rate changed to %s%%, installment now %.2f", month, annual_rate, current_installment
            )

        installment = current_installment
        if balance + interest < current_installment:
            installment = balance + interest

        principal_component = installment - interest
        balance -= principal_component
        if balance < 0:
            balance = 0.0

        schedule.append(
            PeriodRow(
                month=month,
                date=current_date,
                installment=installment,
                principal_component=principal_component,
                interest_component=interest,
                lump_sum=lump_sum,
                balance=balance,
                annual_rate=annual_rate,
            )
        )

        # A rate change already re-amortized the lump-reduced balance above.
        if lump_sum > 0 and not rate_changed and balance > PAYOFF_TOLERANCE:
            remaining_months = total_months - month
            if remaining_months > 0:
                current_installment = calculate_installment(balance, monthly_rate, remaining_months)
                logger.debug("Month %d: installment re-amortized to %.2f", month, current_installment)

    return schedule


def _event_from_mapping(raw: Mapping[str, object]) -> ScheduleEvent:
    new_rate = raw.get("newRate", raw.get("new_rate"))
    amount = raw.get("amount")
    return ScheduleEvent(
        date=parse_iso_date(str(raw["date"])),
        amount=float(amount) if amount is not None else None,
        new_rate=float(new_rate) if new_rate is not None else None,
    )


def generate_schedule_from_strings(
    principal: float,
    annual_rate: float,
    years: float,
    start_date: str,
    events: Iterable[Mapping[str, object]] = (),
) -> List[PeriodRow]:
    """Generate a schedule from plain values and ISO-8601 date strings.

    ``events`` are mappings such as ``{"date": "2024-06-01", "amount": 20000}``
    or ``{"date": "2025-01-01", "newRate": 8.5}``. The snake_case key
    ``new_rate`` is accepted as well.
    """
    loan = LoanInput(
        principal=float(principal),
        annual_rate=float(annual_rate),
        years=float(years),
        start_date=parse_iso_date(start_date),
    )
    return generate_schedule(loan, [_event_from_mapping(raw) for raw in events])


def summarize_schedule(schedule: List[PeriodRow]) -> Optional[ScheduleSummary]:
    """Return aggregate metrics for a schedule, or ``None`` when it is empty."""
    if not schedule:
        return None
    total_interest = sum(row.interest_component for row in schedule)
    total_lump_sum = sum(row.lump_sum for row in schedule)
    total_principal = sum(row.principal_component for row in schedule) + total_lump_sum
    return ScheduleSummary(
        first_installment=schedule[0].installment,
        total_interest=total_interest,
        total_principal=total_principal,
        total_payment=total_principal + total_interest,
        total_lump_sum=total_lump_sum,
        payoff_date=schedule[-1].date,
        payments_made=len(schedule),
    )


def yearly_totals(schedule: Iterable[PeriodRow]) -> Dict[int, Dict[str, float]]:
    """Group principal (including lump sums) and interest paid by calendar year."""
    years: Dict[int, Dict[str, float]] = {}
    for row in schedule:
        totals = years.setdefault(row.date.year, {"principal": 0.0, "interest": 0.0})
        totals["principal"] += row.principal_component + row.lump_sum
        totals["interest"] += row.interest_component
    return years


def chart_series(
    schedule: List[PeriodRow], threshold: int = CHART_AGGREGATION_THRESHOLD
) -> Tuple[List[str], List[float], List[float]]:
    """Return ``(labels, principal, interest)`` series for a stacked bar chart.

    Long schedules are aggregated per calendar year to keep the chart legible;
    shorter ones are charted per period.
    """
    if len(schedule) > threshold:
        totals = yearly_totals(schedule)
        labels = [str(year) for year in totals]
        principal = [t["principal"] for t in totals.values()]
        interest = [t["interest"] for t in totals.values()]
        return labels, principal, interest
    labels = [row.date.strftime("%b %Y") for row in schedule]
    principal = [row.principal_component + row.lump_sum for row in schedule]
    interest = [row.interest_component for row in schedule]
    return labels, principal, interest
