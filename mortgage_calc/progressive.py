"""Progressive payment engine for building-under-construction (BUC) loans.

A BUC purchase is paid in stages. The buyer's own cash/CPF covers the early
stages up to ``purchase price - loan amount``; from then on each stage is
drawn from the bank loan. Drawdowns are placed on a relative loan-month
calendar and the outstanding balance is re-amortized over the months left in
the tenure every month, so each drawdown raises the instalment.
"""

from __future__ import annotations

import logging
from decimal import Decimal, getcontext
from typing import Dict, List, Optional

from .constants import BALANCE_EPSILON, CSC_MONTHS_AFTER_TOP
from .data_models import (
    ConstructionMilestone,
    DrawdownEntry,
    MilestoneAllocation,
    ProgressiveConfig,
    ProgressiveMonth,
    ProgressiveResult,
    RateSchedule,
)
from .engine import calculate_annuity_payment, resolve_rate
from .timeline import build_milestones, derive_timeline
from .utils import add_months

getcontext().prec = 28

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def allocate_milestones(
    milestones: List[ConstructionMilestone], purchase_price: Decimal, loan_amount: Decimal
) -> List[MilestoneAllocation]:
    """Split every stage between bank loan and cash/CPF.

    For a stage that may be loan-funded:

    * if it and every later loan-eligible stage fit within the loan, the whole
      stage is drawn from the loan;
    * otherwise, once the cumulative cost up to this stage exceeds the cash/CPF
      budget, the excess (capped at the stage amount) is drawn from the loan;
    * otherwise the stage is paid from cash/CPF.
    """
    cash_cpf_budget = purchase_price - loan_amount
    allocations: List[MilestoneAllocation] = []
    cumulative = ZERO
    for index, milestone in enumerate(milestones):
        cumulative += milestone.stage_amount
        if milestone.is_cash_only:
            bank_loan = ZERO
        else:
            remaining_stages = sum(
                (m.stage_amount for m in milestones[index:] if not m.is_cash_only), ZERO
            )
            if remaining_stages <= loan_amount:
                bank_loan = milestone.stage_amount
            elif cumulative > cash_cpf_budget:
                bank_loan = min(max(cumulative - cash_cpf_budget, ZERO), milestone.stage_amount)
            else:
                bank_loan = ZERO
            if bank_loan < BALANCE_EPSILON:
                bank_loan = ZERO
        allocations.append(
            MilestoneAllocation(
                milestone=milestone,
                bank_loan_amount=bank_loan,
                cash_cpf_amount=milestone.stage_amount - bank_loan,
            )
        )
    return allocations


def assign_drawdown_months(allocations: List[MilestoneAllocation]) -> List[DrawdownEntry]:
    """Set ``bank_loan_month`` on every allocation that draws on the loan.

    The first drawdown is loan month 1. Each later one follows the nearest
    earlier drawdown by that milestone's duration, except CSC which always
    comes twelve months after TOP. Stages without a loan amount keep ``None``
    and are skipped when chaining.
    """
    drawdowns: List[DrawdownEntry] = []
    previous: Optional[MilestoneAllocation] = None
    top_month: Optional[int] = None
    for allocation in allocations:
        milestone = allocation.milestone
        if milestone.is_cash_only:
            continue
        if allocation.bank_loan_amount <= 0:
            allocation.bank_loan_month = None
            continue
        if milestone.is_csc and top_month is not None:
            month = top_month + CSC_MONTHS_AFTER_TOP
        elif previous is None:
            month = 1
        else:
            month = previous.bank_loan_month + previous.milestone.estimated_time
        allocation.bank_loan_month = month
        if milestone.is_top:
            top_month = month
        previous = allocation
        drawdowns.append(
            DrawdownEntry(
                milestone_label=milestone.label,
                bank_loan_month=month,
                bank_loan_amount=allocation.bank_loan_amount,
                project_month=milestone.month_offset,
            )
        )
    return drawdowns


def _monthly_schedule(drawdowns: List[DrawdownEntry], rates: RateSchedule, tenure_years: int) -> List[ProgressiveMonth]:
    if not drawdowns:
        return []

    by_month: Dict[int, Decimal] = {}
    labels: Dict[int, str] = {}
    for entry in drawdowns:
        by_month[entry.bank_loan_month] = by_month.get(entry.bank_loan_month, ZERO) + entry.bank_loan_amount
        labels.setdefault(entry.bank_loan_month, entry.milestone_label)
    total_drawdown = sum(by_month.values(), ZERO)
    first_month = min(by_month)
    total_months = tenure_years * 12
    # Drawdowns scheduled past the tenure still have to be serviced.
    horizon = max(total_months, max(by_month))

    schedule: List[ProgressiveMonth] = []
    balance = ZERO
    disbursed = ZERO
    for month in range(1, horizon + 1):
        rate = resolve_rate(rates, (month - 1) // 12)
        opening_balance = balance
        drawdown = by_month.get(month, ZERO)
        balance += drawdown
        disbursed += drawdown

        payment = interest = principal = ZERO
        if balance > 0 and month >= first_month:
            remaining_months = max(1, total_months - month + 1)
            payment = calculate_annuity_payment(balance, rate, remaining_months)
            interest = balance * (rate / Decimal(100) / Decimal(12))
            principal = min(payment - interest, balance)
            balance = max(ZERO, balance - principal)

        schedule.append(
            ProgressiveMonth(
                month=month,
                year=(month - 1) // 12 + 1,
                rate=rate,
                opening_balance=opening_balance,
                drawdown=drawdown,
                payment=payment,
                interest=interest,
                principal=principal,
                ending_balance=balance,
                milestone_label=labels.get(month),
            )
        )
        if balance <= BALANCE_EPSILON and disbursed >= total_drawdown:
            break
    return schedule


def compute_progressive_schedule(config: ProgressiveConfig) -> ProgressiveResult:
    """Compute the milestone split, drawdown calendar and monthly servicing.

    Parameters
    ----------
    config: ProgressiveConfig
        Purchase price, loan amount, tenure, rates and optional OTP/TOP dates.

    Returns
    -------
    ProgressiveResult
        Allocations for every stage, the drawdowns that hit the loan, the
        monthly schedule (empty when nothing is drawn) and totals.
    """
    if config.purchase_price <= 0:
        raise ValueError("Purchase price must be positive")
    if config.tenure_years <= 0:
        raise ValueError("Loan tenure must be positive")
    if config.loan_amount < 0:
        raise ValueError("Loan amount cannot be negative")

    timeline = derive_timeline(config.otp_date, config.top_date)
    milestones = build_milestones(config.purchase_price, timeline)
    allocations = allocate_milestones(milestones, config.purchase_price, config.loan_amount)
    drawdowns = assign_drawdown_months(allocations)
    if config.otp_date is not None:
        for allocation in allocations:
            allocation.estimated_date = add_months(config.otp_date, allocation.milestone.month_offset - 1)

    monthly = _monthly_schedule(drawdowns, config.rates, config.tenure_years)

    total_bank_loan = sum((a.bank_loan_amount for a in allocations), ZERO)
    total_cash_cpf = sum((a.cash_cpf_amount for a in allocations), ZERO)
    total_interest = sum((m.interest for m in monthly), ZERO)
    total_principal = sum((m.principal for m in monthly), ZERO)
    logger.debug(
        "Progressive schedule: %d drawdowns, bank loan %s, cash/CPF %s, %d months",
        len(drawdowns), total_bank_loan, total_cash_cpf, len(monthly),
    )
    return ProgressiveResult(
        allocations=allocations,
        drawdowns=drawdowns,
        monthly=monthly,
        purchase_price=config.purchase_price,
        loan_amount=config.loan_amount,
        total_bank_loan=total_bank_loan,
        total_cash_cpf=total_cash_cpf,
        total_interest=total_interest,
        total_principal=total_principal,
        total_payable=total_interest + total_principal + total_cash_cpf,
        loan_to_value=config.loan_amount / config.purchase_price * Decimal(100),
        first_drawdown_month=drawdowns[0].bank_loan_month if drawdowns else None,
        construction_months=timeline.construction_months,
        timeline_calculated=timeline.timeline_calculated,
    )
