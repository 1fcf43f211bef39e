"""Domain constants shared by the calculators.

Milestone catalogue for building-under-construction purchases, affordability
limits and the defaults used when ranking rate packages.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Tuple

# Balances at or below this are treated as fully repaid.
BALANCE_EPSILON = Decimal("0.01")

THEREAFTER = "thereafter"
PACKAGE_YEARS = (1, 2, 3, 4, 5, THEREAFTER)

# ---------------------------------------------------------------------------
# Progressive payment (BUC) milestones
# ---------------------------------------------------------------------------

DEFAULT_CONSTRUCTION_MONTHS = 37

OTP_LABEL = "Upon grant of Option to Purchase"
SPA_LABEL = "Upon signing S&P Agreement (within 8 weeks from OTP)"
TOP_LABEL = "Temporary Occupation Permit (TOP)"
CSC_LABEL = "Certificate of Statutory Completion"

OTP_PERCENT = Decimal("5")
SPA_PERCENT = Decimal("15")
TOP_PERCENT = Decimal("25")
CSC_PERCENT = Decimal("15")

OTP_MONTH = 1
SPA_MONTH = 2
CSC_MONTHS_AFTER_TOP = 12

# (label, percent of price, weight against the construction period)
CONSTRUCTION_STAGES: List[Tuple[str, Decimal, Decimal]] = [
    ("Completion of foundation work", Decimal("10"), Decimal("0.1")),
    ("Completion of reinforced concrete framework of unit", Decimal("10"), Decimal("0.1")),
    ("Completion of partition walls of unit", Decimal("5"), Decimal("0.05")),
    ("Completion of roofing/ceiling of unit", Decimal("5"), Decimal("0.05")),
    (
        "Completion of door sub-frames/ door frames, window frames, electrical "
        "wiring, internal plastering and plumbing of unit",
        Decimal("5"),
        Decimal("0.05"),
    ),
    ("Completion of car park, roads and drains serving the housing project", Decimal("5"), Decimal("0.05")),
]
CONSTRUCTION_WEIGHT_BASIS = Decimal("0.4")

# ---------------------------------------------------------------------------
# Affordability
# ---------------------------------------------------------------------------

PROPERTY_TYPES = ("private", "hdb", "ec", "commercial")

PROPERTY_TYPE_TEXT = {
    "private": "Private Property",
    "hdb": "HDB Property",
    "ec": "EC Property",
    "commercial": "Commercial/Industrial Property",
}

TDSR_LIMITS = {
    "private": Decimal("55"),
    "ec": Decimal("55"),
    "hdb": Decimal("60"),
    "commercial": Decimal("60"),
}
DEFAULT_TDSR_LIMIT = Decimal("55")

MSR_LIMIT = Decimal("30")
MSR_PROPERTY_TYPES = ("hdb", "ec")

DEFAULT_STRESS_TEST_RATE = Decimal("4")
COMMERCIAL_STRESS_TEST_RATE = Decimal("5")

RETIREMENT_AGE = 65
DEFAULT_MAX_TENOR = 35
MIN_TENOR = 5
COMMERCIAL_MAX_TENOR = 20

# ---------------------------------------------------------------------------
# Package recommendation
# ---------------------------------------------------------------------------

DEFAULT_QUOTE_LOAN_AMOUNT = Decimal("500000")
DEFAULT_QUOTE_TENURE = 25
DEFAULT_LOCK_PERIOD = "0 Year"

NEW_HOME_LOAN = "New Home Loan"
REFINANCING_HOME_LOAN = "Refinancing Home Loan"

BANK_OPTIONS = [
    "CIMB", "OCBC", "UOB", "DBS", "MBB", "SCB",
    "HSBC", "SBI", "BOC", "HLF", "SF", "RHB", "SIF", "Citibank",
]

FEATURE_OPTIONS = {
    "legal_fee_subsidy": "Legal Fee Subsidy",
    "cash_rebate": "Cash Rebate",
    "free_package_conversion_12m": "Free Conversion (12M)",
    "free_package_conversion_24m": "Free Conversion (24M)",
    "valuation_subsidy": "Valuation Subsidy",
    "partial_repayment": "Partial Repayment",
    "waiver_due_to_sales": "Waiver Due to Sales",
}
