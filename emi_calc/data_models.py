"""Data models for the EMI calculator.

This module defines dataclasses representing the entities used by the
calculator: the loan input, dated schedule events (lump-sum payments and rate
changes), individual schedule rows and the aggregate summary shown to users.
Inputs and rows are frozen so a schedule can be handed to renderers and
exporters without anyone changing it underneath them.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class LoanInput:
    """Configuration of a loan for one engine invocation.

    Attributes
    ----------
    principal: float
        The amount borrowed. Must be positive.
    annual_rate: float
        Nominal annual interest rate in percent (``7.5`` means 7.5 %).
    years: float
        Loan duration in years. Fractional values are allowed and are rounded
        to whole months.
    start_date: date
        The date the loan starts. The first installment falls one calendar
        month after this date.
    """

    principal: float
    annual_rate: float
    years: float
    start_date: date

    @property
    def total_months(self) -> int:
        return round(self.years * 12)


@dataclass(frozen=True)
class ScheduleEvent:
    """A dated, out-of-cycle change to the loan.

    Attributes
    ----------
    date: date
        The day the event takes effect. It is attributed to the period whose
        window ``(previous period date, period date]`` contains it.
    amount: Optional[float]
        A lump-sum principal payment, or ``None``.
    new_rate: Optional[float]
        A new annual rate in percent replacing the effective rate, or ``None``.
    """

    date: date
    amount: Optional[float] = None
    new_rate: Optional[float] = None

    @property
    def is_lump_sum(self) -> bool:
        return bool(self.amount)

    @property
    def is_rate_change(self) -> bool:
        return self.new_rate is not None


@dataclass(frozen=True)
class PeriodRow:
    """An entry in the amortization schedule, one per elapsed month."""

    month: int
    date: date
    installment: float
    principal_component: float
    interest_component: float
    lump_sum: float
    balance: float
    annual_rate: float  # rate in effect during the period, in percent

    @property
    def total_payment(self) -> float:
        """Cash paid in the period: the installment plus any lump sum."""
        return self.installment + self.lump_sum


@dataclass
class ScheduleSummary:
    """Aggregate metrics for a generated schedule."""

    first_installment: float
    total_interest: float
    total_principal: float  # principal components plus lump sums
    total_payment: float
    total_lump_sum: float
    payoff_date: date
    payments_made: int
