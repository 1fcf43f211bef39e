"""Data models for the mortgage calculators.

This module defines dataclasses for every entity used by the engines: rate
schedules, amortization rows, construction milestones and their loan/cash
split, progressive drawdown rows, rate packages and affordability results.
Inputs are frozen so that an engine call can never mutate the caller's data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .constants import FEATURE_OPTIONS, PACKAGE_YEARS, THEREAFTER

Year = Union[int, str]  # 1..5 or "thereafter"


@dataclass(frozen=True)
class YearRate:
    """An annual rate that applies from a given loan year.

    Attributes
    ----------
    year: int or str
        The loan year (1-based) or ``"thereafter"``.
    rate: Decimal or None
        Annual rate in percent. ``None`` means the field was left blank and
        the year is treated as having no explicit entry.
    """

    year: Year
    rate: Optional[Decimal]


@dataclass(frozen=True)
class FlatRate:
    """A single annual rate applied for the whole tenor."""

    rate: Decimal


@dataclass(frozen=True)
class ScheduledRates:
    """Year-indexed rates. The first entry always drives loan year 1."""

    entries: Tuple[YearRate, ...]

    def find(self, year: Year) -> Optional[YearRate]:
        for entry in self.entries:
            if entry.year == year:
                return entry
        return None


RateSchedule = Union[FlatRate, ScheduledRates]


@dataclass
class AmortizationMonth:
    month: int
    year: int
    rate: Decimal
    beginning_balance: Decimal
    payment: Decimal
    interest: Decimal
    principal: Decimal
    ending_balance: Decimal


@dataclass
class AmortizationYear:
    """Aggregate of up to twelve consecutive months.

    ``rate`` is the rate of the last month in the bucket, so a mid-year rate
    change shows the newer rate.
    """

    year: int
    rate: Decimal
    beginning_principal: Decimal
    ending_principal: Decimal
    monthly_instalment: Decimal
    interest_paid: Decimal = Decimal("0")
    principal_paid: Decimal = Decimal("0")
    months: List[AmortizationMonth] = field(default_factory=list)


@dataclass
class AmortizationResult:
    months: List[AmortizationMonth]
    years: List[AmortizationYear]
    total_interest: Decimal
    total_principal: Decimal
    total_payable: Decimal
    first_month_payment: Decimal


@dataclass
class RefinancingResult:
    current: AmortizationResult
    new: AmortizationResult
    monthly_savings: Decimal
    first_year_savings: Decimal
    total_interest_savings: Decimal


@dataclass(frozen=True)
class Timeline:
    construction_months: int
    timeline_calculated: bool


@dataclass(frozen=True)
class ConstructionMilestone:
    """A progress payment stage of a building-under-construction purchase.

    Attributes
    ----------
    month_offset: int
        Estimated project month (1-based, counted from the OTP) at which the
        stage falls due.
    estimated_time: int
        Duration of the stage in months. The next bank loan drawdown is
        scheduled this many loan months after this one.
    """

    label: str
    percent: Decimal
    is_cash_only: bool
    is_top: bool
    is_csc: bool
    month_offset: int
    estimated_time: int
    stage_amount: Decimal


@dataclass
class MilestoneAllocation:
    milestone: ConstructionMilestone
    bank_loan_amount: Decimal
    cash_cpf_amount: Decimal
    bank_loan_month: Optional[int] = None
    estimated_date: Optional[date] = None

    @property
    def payment_mode(self) -> str:
        if self.cash_cpf_amount > 0 and self.bank_loan_amount > 0:
            return "Cash/CPF + Bank Loan"
        if self.cash_cpf_amount > 0:
            return "Cash/CPF"
        return "Bank Loan"


@dataclass(frozen=True)
class DrawdownEntry:
    milestone_label: str
    bank_loan_month: int
    bank_loan_amount: Decimal
    project_month: int


@dataclass
class ProgressiveMonth:
    month: int
    year: int
    rate: Decimal
    opening_balance: Decimal
    drawdown: Decimal
    payment: Decimal
    interest: Decimal
    principal: Decimal
    ending_balance: Decimal
    milestone_label: Optional[str] = None


@dataclass(frozen=True)
class ProgressiveConfig:
    """User inputs for a progressive payment schedule."""

    purchase_price: Decimal
    loan_amount: Decimal
    tenure_years: int
    rates: RateSchedule
    otp_date: Optional[date] = None
    top_date: Optional[date] = None


@dataclass
class ProgressiveResult:
    allocations: List[MilestoneAllocation]
    drawdowns: List[DrawdownEntry]
    monthly: List[ProgressiveMonth]
    purchase_price: Decimal
    loan_amount: Decimal
    total_bank_loan: Decimal
    total_cash_cpf: Decimal
    total_interest: Decimal
    total_principal: Decimal
    total_payable: Decimal
    loan_to_value: Decimal
    first_drawdown_month: Optional[int]
    construction_months: int
    timeline_calculated: bool


def _optional_decimal(value: Any) -> Optional[Decimal]:
    """Parse a stored number; a blank string reads as 0, non-finite values as missing."""
    if value is None:
        return None
    if value == "":
        return Decimal("0")
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


@dataclass(frozen=True)
class RateTerm:
    """One year of a package: ``FIXED`` or a reference rate plus/minus a spread."""

    rate_type: Optional[str]
    operator: Optional[str]
    value: Optional[Decimal]

    @property
    def is_complete(self) -> bool:
        return bool(self.rate_type) and self.value is not None


@dataclass(frozen=True)
class RatePackage:
    """A bank package as supplied by the data store.

    ``terms`` maps years 1..5 and ``"thereafter"`` to their :class:`RateTerm`.
    Everything else is metadata used for filtering and display.
    """

    terms: Dict[Year, RateTerm]
    id: Optional[Any] = None
    bank_name: str = ""
    package_name: str = ""
    loan_type: Optional[str] = None
    property_type: Optional[str] = None
    property_status: Optional[str] = None
    buy_under: Optional[str] = None
    lock_period: Optional[str] = None
    minimum_loan_size: Optional[Decimal] = None
    rate_type_category: Optional[str] = None
    features: Dict[str, bool] = field(default_factory=dict)
    remarks: Optional[str] = None

    def term(self, year: Year) -> RateTerm:
        return self.terms.get(year, RateTerm(None, None, None))

    @classmethod
    def from_row(cls, row: Mapping[str, Any], feature_keys=tuple(FEATURE_OPTIONS)) -> "RatePackage":
        """Build a package from a flat ``year{N}_rate_type``-style row."""
        terms: Dict[Year, RateTerm] = {}
        for year in PACKAGE_YEARS:
            prefix = THEREAFTER if year == THEREAFTER else f"year{year}"
            terms[year] = RateTerm(
                rate_type=row.get(f"{prefix}_rate_type") or None,
                operator=row.get(f"{prefix}_operator") or None,
                value=_optional_decimal(row.get(f"{prefix}_value")),
            )
        features = {key: row.get(key) in (True, "true") for key in feature_keys}
        return cls(
            terms=terms,
            id=row.get("id"),
            bank_name=row.get("bank_name") or "",
            package_name=row.get("package_name") or "",
            loan_type=row.get("loan_type"),
            property_type=row.get("property_type"),
            property_status=row.get("property_status"),
            buy_under=row.get("buy_under"),
            lock_period=row.get("lock_period"),
            minimum_loan_size=_optional_decimal(row.get("minimum_loan_size")),
            rate_type_category=row.get("rate_type_category"),
            features=features,
            remarks=row.get("remarks"),
        )


@dataclass(frozen=True)
class PackageSearch:
    """Filters and loan details for ranking packages."""

    loan_type: str
    property_type: Optional[str] = None
    property_status: Optional[str] = None
    buy_under: Optional[str] = None
    loan_amount: Optional[Decimal] = None
    loan_tenure: Optional[int] = None
    existing_interest_rate: Optional[Decimal] = None
    existing_bank: Optional[str] = None
    rate_type: Optional[str] = None
    lock_period: Optional[str] = None
    banks: tuple = ()
    features: tuple = ()


@dataclass
class PackageQuote:
    package: RatePackage
    avg_first_2_years: Decimal
    monthly_installment: Decimal
    monthly_savings: Decimal = Decimal("0")
    total_savings: Decimal = Decimal("0")


@dataclass(frozen=True)
class AffordabilityInputs:
    property_type: str
    purchase_price: Decimal
    loan_tenor: int
    monthly_income: Decimal
    loan_percentage: Decimal = Decimal("75")
    custom_loan_amount: Optional[Decimal] = None
    stress_test_rate: Optional[Decimal] = None
    monthly_debts: Decimal = Decimal("0")


@dataclass
class AffordabilityResult:
    loan_amount: Decimal
    loan_percentage: Decimal
    stress_test_rate: Decimal
    monthly_installment: Decimal
    total_monthly_income: Decimal
    total_debt_obligations: Decimal
    tdsr: Decimal
    tdsr_limit: Decimal
    tdsr_status: str
    msr: Optional[Decimal]
    msr_status: Optional[str]
    msr_applicable: bool
    overall_status: str
