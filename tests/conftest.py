"""Shared fixtures for the EMI calculator tests.

Canonical loan: 100,000 at 10 % for one year, starting 2024-01-01, which
amortizes with a monthly EMI of 8,791.59.
"""

from datetime import date

import pytest

from emi_calc.data_models import LoanInput


@pytest.fixture
def one_year_loan() -> LoanInput:
    return LoanInput(principal=100000.0, annual_rate=10.0, years=1, start_date=date(2024, 1, 1))


@pytest.fixture
def two_year_loan() -> LoanInput:
    return LoanInput(principal=100000.0, annual_rate=10.0, years=2, start_date=date(2024, 1, 1))


@pytest.fixture
def thirty_year_loan() -> LoanInput:
    return LoanInput(principal=300000.0, annual_rate=7.0, years=30, start_date=date(2024, 1, 1))
