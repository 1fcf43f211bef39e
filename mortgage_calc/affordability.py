"""TDSR / MSR affordability assessment.

The instalment is stress-tested at a notional rate over the full tenor and
compared with the applicants' combined monthly income, together with their
other monthly debt obligations.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from .constants import (
    COMMERCIAL_MAX_TENOR,
    COMMERCIAL_STRESS_TEST_RATE,
    DEFAULT_MAX_TENOR,
    DEFAULT_STRESS_TEST_RATE,
    DEFAULT_TDSR_LIMIT,
    MIN_TENOR,
    MSR_LIMIT,
    MSR_PROPERTY_TYPES,
    PROPERTY_TYPE_TEXT,
    RETIREMENT_AGE,
    TDSR_LIMITS,
)
from .data_models import AffordabilityInputs, AffordabilityResult
from .engine import calculate_annuity_payment


def default_stress_test_rate(property_type: str) -> Decimal:
    if property_type == "commercial":
        return COMMERCIAL_STRESS_TEST_RATE
    return DEFAULT_STRESS_TEST_RATE


def property_type_text(property_type: str) -> str:
    return PROPERTY_TYPE_TEXT.get(property_type, "Property")


def average_age(age_a: Optional[Decimal], age_b: Optional[Decimal]) -> Decimal:
    """Mean age of the applicants that gave one; 0 if neither did."""
    a = age_a or Decimal("0")
    b = age_b or Decimal("0")
    if a > 0 and b > 0:
        return (a + b) / 2
    if a > 0:
        return a
    if b > 0:
        return b
    return Decimal("0")


def max_loan_tenor(avg_age: Decimal, loan_percentage: Decimal, property_type: str) -> Decimal:
    """Longest tenor allowed for the applicants' age and loan-to-value.

    The tenor may not run past age 65 and is capped at 35, 30 or 25 years for
    loans up to 75 %, up to 80 % and above 80 % of the price. Commercial
    property is capped at 20 years; the result is never below 5 years.
    """
    if avg_age <= 0:
        return Decimal(DEFAULT_MAX_TENOR)
    if loan_percentage <= 75:
        cap = 35
    elif loan_percentage <= 80:
        cap = 30
    else:
        cap = 25
    tenor = min(Decimal(RETIREMENT_AGE) - avg_age, Decimal(cap))
    if property_type == "commercial":
        tenor = min(tenor, Decimal(COMMERCIAL_MAX_TENOR))
    return max(tenor, Decimal(MIN_TENOR))


def assess_affordability(inputs: AffordabilityInputs) -> AffordabilityResult:
    """Compute TDSR (and MSR for HDB/EC) and the overall verdict.

    Raises
    ------
    ValueError
        If the loan amount, tenor or income is not positive.
    """
    if inputs.custom_loan_amount is not None:
        loan_amount = inputs.custom_loan_amount
        loan_percentage = (
            loan_amount / inputs.purchase_price * 100 if inputs.purchase_price > 0 else Decimal("0")
        )
    else:
        loan_amount = inputs.purchase_price * inputs.loan_percentage / 100
        loan_percentage = inputs.loan_percentage

    if loan_amount <= 0 or inputs.loan_tenor <= 0 or inputs.monthly_income <= 0:
        raise ValueError("Loan amount, loan tenor and monthly income must all be positive")

    stress_rate = inputs.stress_test_rate
    if stress_rate is None:
        stress_rate = default_stress_test_rate(inputs.property_type)

    instalment = calculate_annuity_payment(loan_amount, stress_rate, inputs.loan_tenor * 12)
    tdsr = (instalment + inputs.monthly_debts) / inputs.monthly_income * 100
    tdsr_limit = TDSR_LIMITS.get(inputs.property_type, DEFAULT_TDSR_LIMIT)
    tdsr_status = "Pass" if tdsr <= tdsr_limit else "Fail"

    msr: Optional[Decimal] = None
    msr_status: Optional[str] = None
    msr_applicable = inputs.property_type in MSR_PROPERTY_TYPES
    if msr_applicable:
        msr = instalment / inputs.monthly_income * 100
        msr_status = "Pass" if msr <= MSR_LIMIT else "Fail"

    overall = "APPROVED"
    if tdsr_status == "Fail" or msr_status == "Fail":
        overall = "REJECTED"

    return AffordabilityResult(
        loan_amount=loan_amount,
        loan_percentage=loan_percentage,
        stress_test_rate=stress_rate,
        monthly_installment=instalment,
        total_monthly_income=inputs.monthly_income,
        total_debt_obligations=inputs.monthly_debts,
        tdsr=tdsr,
        tdsr_limit=tdsr_limit,
        tdsr_status=tdsr_status,
        msr=msr,
        msr_status=msr_status,
        msr_applicable=msr_applicable,
        overall_status=overall,
    )
