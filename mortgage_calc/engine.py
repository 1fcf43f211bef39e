"""Core amortization engine for the mortgage calculators.

This module builds month-by-month and year-by-year repayment schedules for a
fully disbursed loan whose annual rate may change from one loan year to the
next (new purchase and refinancing calculators). Results are returned as an
``AmortizationResult`` holding the monthly rows, the yearly aggregates and the
totals.

The instalment for a month is the annuity payment of the *original* principal
over the *original* tenor at that month's rate. It is recomputed whenever the
rate changes but never re-amortizes the outstanding balance, so a rate rise
can leave a residual balance at the end of the tenor.
"""

from __future__ import annotations

import logging
from decimal import Decimal, getcontext
from typing import List, Optional

from .constants import BALANCE_EPSILON, THEREAFTER
from .data_models import (
    AmortizationMonth,
    AmortizationResult,
    AmortizationYear,
    FlatRate,
    RateSchedule,
    RefinancingResult,
    ScheduledRates,
)

getcontext().prec = 28  # increase precision for financial calculations

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def calculate_annuity_payment(principal: Decimal, annual_rate: Decimal, term: int) -> Decimal:
    """Return the annuity (equal instalment) monthly payment for a loan.

    The formula is:

        payment = P * (r * (1 + r)^n) / ((1 + r)^n - 1)

    where ``P`` is the principal, ``r`` is the monthly rate (annual percent
    divided by 1200) and ``n`` is the number of payments. When the rate is
    zero, the payment simplifies to ``P / n``.
    """
    if term <= 0:
        raise ValueError("Term must be positive")
    rate_per_month = annual_rate / Decimal(100) / Decimal(12)
    if rate_per_month == 0:
        return principal / Decimal(term)
    factor = (1 + rate_per_month) ** term
    return principal * (rate_per_month * factor) / (factor - 1)


def resolve_rate(rates: RateSchedule, year_index: int) -> Decimal:
    """Return the annual rate for a 0-based loan year.

    A flat schedule always yields its rate. For a year-indexed schedule the
    first entry drives year 0 whatever its label; later years look for their
    own entry, then fall back to ``"thereafter"`` from year index 5 onwards,
    and finally to 0.
    """
    if isinstance(rates, FlatRate):
        return rates.rate
    if isinstance(rates, ScheduledRates):
        if year_index == 0:
            if not rates.entries or rates.entries[0].rate is None:
                return ZERO
            return rates.entries[0].rate
        entry = rates.find(year_index + 1)
        if entry is not None and entry.rate is not None:
            return entry.rate
        if year_index >= 5:
            thereafter = rates.find(THEREAFTER)
            if thereafter is not None and thereafter.rate is not None:
                return thereafter.rate
        return ZERO
    raise TypeError(f"Unsupported rate schedule: {rates!r}")


def _aggregate_years(months: List[AmortizationMonth]) -> List[AmortizationYear]:
    years: List[AmortizationYear] = []
    current: Optional[AmortizationYear] = None
    for month in months:
        if current is None or month.year != current.year:
            current = AmortizationYear(
                year=month.year,
                rate=month.rate,
                beginning_principal=month.beginning_balance,
                ending_principal=month.ending_balance,
                monthly_instalment=month.payment,
            )
            years.append(current)
        current.interest_paid += month.interest
        current.principal_paid += month.principal
        current.ending_principal = month.ending_balance
        current.rate = month.rate
        current.months.append(month)
    return years


def compute_schedule(principal: Decimal, rates: RateSchedule, years: int, months: int = 0) -> AmortizationResult:
    """Compute the amortization schedule for a fully disbursed loan.

    Parameters
    ----------
    principal: Decimal
        Loan amount disbursed at month 0.
    rates: RateSchedule
        ``FlatRate`` or ``ScheduledRates``; see :func:`resolve_rate`.
    years, months: int
        Tenor. Callers are expected to reject a non-positive principal or a
        zero tenor before calling.

    Returns
    -------
    AmortizationResult
        Monthly rows (stopping early once the balance is at most 0.01),
        yearly aggregates and totals.
    """
    total_months = years * 12 + months
    balance = principal
    schedule: List[AmortizationMonth] = []

    payment_cache = {}
    for month_index in range(total_months):
        if balance <= BALANCE_EPSILON:
            break
        year_index = month_index // 12
        rate = resolve_rate(rates, year_index)
        if rate not in payment_cache:
            payment_cache[rate] = calculate_annuity_payment(principal, rate, total_months)
        payment = payment_cache[rate]

        interest = balance * (rate / Decimal(100) / Decimal(12))
        principal_payment = min(payment - interest, balance)
        ending_balance = max(ZERO, balance - principal_payment)
        schedule.append(
            AmortizationMonth(
                month=month_index + 1,
                year=year_index + 1,
                rate=rate,
                beginning_balance=balance,
                payment=payment,
                interest=interest,
                principal=principal_payment,
                ending_balance=ending_balance,
            )
        )
        balance = ending_balance

    total_interest = sum((m.interest for m in schedule), ZERO)
    total_principal = sum((m.principal for m in schedule), ZERO)
    logger.debug(
        "Amortized %s over %d months in %d rows (residual %s)",
        principal, total_months, len(schedule), balance,
    )
    return AmortizationResult(
        months=schedule,
        years=_aggregate_years(schedule),
        total_interest=total_interest,
        total_principal=total_principal,
        total_payable=total_interest + total_principal,
        first_month_payment=schedule[0].payment if schedule else ZERO,
    )


def compute_refinancing(
    outstanding: Decimal,
    current_rate: Decimal,
    remaining_years: int,
    remaining_months: int,
    new_rates: RateSchedule,
    new_years: int,
    new_months: int = 0,
) -> RefinancingResult:
    """Compare the existing loan against a new package on the same balance.

    The existing loan runs at a single rate over its remaining tenor; the new
    package may have year-indexed rates. Savings are positive when the new
    package is cheaper.
    """
    current = compute_schedule(outstanding, FlatRate(current_rate), remaining_years, remaining_months)
    new = compute_schedule(outstanding, new_rates, new_years, new_months)
    monthly_savings = current.first_month_payment - new.first_month_payment
    return RefinancingResult(
        current=current,
        new=new,
        monthly_savings=monthly_savings,
        first_year_savings=monthly_savings * 12,
        total_interest_savings=current.total_interest - new.total_interest,
    )
